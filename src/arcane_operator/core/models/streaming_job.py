"""StreamingJob: the batch job executing a stream."""

from typing import TYPE_CHECKING, Any

import attrs

from arcane_operator.core.models.annotations import (
    BACKFILLING_LABEL,
    CONFIGURATION_CHECKSUM_ANNOTATION_KEY,
    OWNER_API_GROUP_ANNOTATION_KEY,
    OWNER_API_PLURAL_ANNOTATION_KEY,
    OWNER_API_VERSION_ANNOTATION_KEY,
    STATE_ANNOTATION_KEY,
    StateAnnotation,
)
from arcane_operator.core.models.resource import CustomResourceApiRequest, KubernetesResource

if TYPE_CHECKING:
    from arcane_operator.core.models.stream_definition import StreamDefinition


@attrs.define(frozen=True, slots=True)
class StreamingJob(KubernetesResource):
    """A `batch/v1` Job created for a stream.

    The job name is the stream id. Labels carry the stream kind and the
    backfilling flag; annotations carry the configuration checksum and the
    owning definition's API coordinates.
    """

    @property
    def kind(self) -> str:
        return self.resource.get("kind") or "Job"

    @property
    def stream_id(self) -> str:
        return self.name

    @property
    def is_backfilling(self) -> bool:
        return self.labels.get(BACKFILLING_LABEL, "").lower() == "true"

    @property
    def configuration_checksum(self) -> str | None:
        return self.annotations.get(CONFIGURATION_CHECKSUM_ANNOTATION_KEY)

    @property
    def state(self) -> str | None:
        return self.annotations.get(STATE_ANNOTATION_KEY)

    @property
    def is_stopping(self) -> bool:
        return self.state == StateAnnotation.TERMINATING

    @property
    def is_reload_requested(self) -> bool:
        return self.state == StateAnnotation.RELOAD_REQUESTED

    @property
    def is_restart_requested(self) -> bool:
        return self.state == StateAnnotation.RESTART_REQUESTED

    @property
    def is_schema_mismatch(self) -> bool:
        return self.state == StateAnnotation.SCHEMA_MISMATCH

    def _has_condition(self, condition_type: str) -> bool:
        conditions: list[dict[str, Any]] = self.status.get("conditions") or []
        return any(
            condition.get("type") == condition_type and str(condition.get("status")).lower() == "true"
            for condition in conditions
        )

    @property
    def is_failed(self) -> bool:
        return self._has_condition("Failed")

    def configuration_matches(self, definition: "StreamDefinition") -> bool:
        return self.configuration_checksum == definition.configuration_checksum

    @property
    def owner_api_request(self) -> CustomResourceApiRequest | None:
        """Coordinates of the owning stream definition collection.

        Returns:
            The coordinates recorded at job creation, or None for jobs that
            were not created by the operator.
        """
        group = self.annotations.get(OWNER_API_GROUP_ANNOTATION_KEY)
        version = self.annotations.get(OWNER_API_VERSION_ANNOTATION_KEY)
        plural = self.annotations.get(OWNER_API_PLURAL_ANNOTATION_KEY)
        if not (group and version and plural):
            return None
        return CustomResourceApiRequest(
            namespace=self.namespace,
            api_group=group,
            api_version=version,
            plural=plural,
        )

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "StreamingJob":
        return cls(resource=resource)
