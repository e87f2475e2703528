"""Domain models of the operator.

All resources are thin `attrs` wrappers over the JSON documents returned by
the Kubernetes API; see `resource.KubernetesResource`.
"""

from arcane_operator.core.models.annotations import (
    BACKFILLING_LABEL,
    CONFIGURATION_CHECKSUM_ANNOTATION_KEY,
    OWNER_API_GROUP_ANNOTATION_KEY,
    OWNER_API_PLURAL_ANNOTATION_KEY,
    OWNER_API_VERSION_ANNOTATION_KEY,
    STATE_ANNOTATION_KEY,
    STREAM_ID_LABEL,
    STREAM_KIND_LABEL,
    StateAnnotation,
)
from arcane_operator.core.models.events import ResourceEvent, WatchEventType
from arcane_operator.core.models.job_template import StreamingJobTemplate
from arcane_operator.core.models.resource import CustomResourceApiRequest, KubernetesResource
from arcane_operator.core.models.status import (
    ConditionType,
    StreamClassPhase,
    StreamCondition,
    StreamPhase,
    build_status,
)
from arcane_operator.core.models.stream_class import StreamClass
from arcane_operator.core.models.stream_definition import StreamDefinition, compute_configuration_checksum
from arcane_operator.core.models.streaming_job import StreamingJob

__all__ = [
    "BACKFILLING_LABEL",
    "CONFIGURATION_CHECKSUM_ANNOTATION_KEY",
    "OWNER_API_GROUP_ANNOTATION_KEY",
    "OWNER_API_PLURAL_ANNOTATION_KEY",
    "OWNER_API_VERSION_ANNOTATION_KEY",
    "STATE_ANNOTATION_KEY",
    "STREAM_ID_LABEL",
    "STREAM_KIND_LABEL",
    "ConditionType",
    "CustomResourceApiRequest",
    "KubernetesResource",
    "ResourceEvent",
    "StateAnnotation",
    "StreamClass",
    "StreamClassPhase",
    "StreamCondition",
    "StreamDefinition",
    "StreamPhase",
    "StreamingJob",
    "StreamingJobTemplate",
    "WatchEventType",
    "build_status",
    "compute_configuration_checksum",
]
