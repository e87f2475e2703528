"""Label and annotation keys the operator reads and writes.

The same state annotation key is used on stream definitions and on the
jobs that run them; `StateAnnotation` enumerates its values.
"""

from enum import StrEnum

STATE_ANNOTATION_KEY = "arcane/state"
CONFIGURATION_CHECKSUM_ANNOTATION_KEY = "arcane/configuration-checksum"

# Owner coordinates recorded on every job so it can be traced back to its definition.
OWNER_API_GROUP_ANNOTATION_KEY = "arcane.sneaksanddata.com/stream/api-group"
OWNER_API_VERSION_ANNOTATION_KEY = "arcane.sneaksanddata.com/stream/api-version"
OWNER_API_PLURAL_ANNOTATION_KEY = "arcane.sneaksanddata.com/stream/api-plural-name"

STREAM_ID_LABEL = "arcane/stream-id"
STREAM_KIND_LABEL = "arcane/stream-kind"
BACKFILLING_LABEL = "arcane/backfilling"


class StateAnnotation(StrEnum):
    """Values of the `arcane/state` annotation."""

    SUSPENDED = "suspended"
    RELOAD_REQUESTED = "reload-requested"
    RESTART_REQUESTED = "restart-requested"
    TERMINATING = "terminating"
    TERMINATE_REQUESTED = "terminate-requested"
    SCHEMA_MISMATCH = "schema-mismatch"
    CRASH_LOOP = "crash-loop"
