"""StreamDefinition: one declared stream instance.

Stream definitions of every kind share one generic model. The spec payload
is opaque to the operator apart from the two job template references; the
rest is hashed into the configuration checksum and handed to the job as
environment.
"""

import base64
import hashlib
import json
from typing import TYPE_CHECKING, Any

import attrs

from arcane_operator.core.models.annotations import STATE_ANNOTATION_KEY, StateAnnotation
from arcane_operator.core.models.resource import CustomResourceApiRequest, KubernetesResource

if TYPE_CHECKING:
    from arcane_operator.core.models.stream_class import StreamClass

JOB_TEMPLATE_REF_FIELD = "jobTemplateRef"
BACKFILL_JOB_TEMPLATE_REF_FIELD = "backfillJobTemplateRef"

CHECKSUM_LENGTH = 7


def compute_configuration_checksum(spec: dict[str, Any]) -> str:
    """Content hash of a stream spec.

    The spec is serialized canonically (sorted keys, no whitespace), hashed
    with SHA-256 and base64-encoded; the first seven characters, lower-cased,
    form the checksum.

    Args:
        spec: The stream spec payload.

    Returns:
        A seven character checksum string.
    """
    payload = json.dumps(spec, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")[:CHECKSUM_LENGTH].lower()


@attrs.define(frozen=True, slots=True)
class StreamDefinition(KubernetesResource):
    """A stream definition resource.

    Attributes:
        resource: The raw resource document.
        api_request: Coordinates of the collection the definition was read
            from. Status and annotation writes go back to the same place.
    """

    api_request: CustomResourceApiRequest | None = None

    @property
    def stream_id(self) -> str:
        return self.name

    @property
    def state(self) -> str | None:
        return self.annotations.get(STATE_ANNOTATION_KEY)

    @property
    def suspended(self) -> bool:
        return self.state == StateAnnotation.SUSPENDED

    @property
    def reload_requested(self) -> bool:
        return self.state == StateAnnotation.RELOAD_REQUESTED

    @property
    def crash_loop_detected(self) -> bool:
        return self.state == StateAnnotation.CRASH_LOOP

    @property
    def configuration_checksum(self) -> str:
        return compute_configuration_checksum(self.spec)

    def job_template_ref(self, is_backfilling: bool) -> str | None:
        """Name of the job template to start this stream with.

        Args:
            is_backfilling: Whether the job performs a full reload.

        Returns:
            Template name, or None when the spec does not name one.
        """
        field = BACKFILL_JOB_TEMPLATE_REF_FIELD if is_backfilling else JOB_TEMPLATE_REF_FIELD
        ref = self.spec.get(field)
        if isinstance(ref, dict):
            return ref.get("name")
        return ref or None

    def to_environment(self, is_backfilling: bool, stream_class: "StreamClass") -> list[dict[str, str]]:
        """Environment variables passed to every container of the stream's job.

        Secret fields listed by the StreamClass are left out of the spec
        payload; they are mounted through `to_env_from_sources` instead.
        """
        spec = {key: value for key, value in self.spec.items() if not stream_class.is_secret_ref(key)}
        return [
            {"name": "ARCANE__STREAM_ID", "value": self.stream_id},
            {"name": "ARCANE__STREAM_KIND", "value": self.kind},
            {"name": "ARCANE__FULL_LOAD", "value": str(is_backfilling).lower()},
            {"name": "ARCANE__SPEC", "value": json.dumps(spec, sort_keys=True)},
        ]

    def to_env_from_sources(self, stream_class: "StreamClass") -> list[dict[str, Any]]:
        """`envFrom` secret references for the secret fields of the spec."""
        sources: list[dict[str, Any]] = []
        for field in stream_class.secret_refs:
            ref = self.spec.get(field)
            if isinstance(ref, dict) and ref.get("name"):
                sources.append({"secretRef": {"name": ref["name"]}})
            elif isinstance(ref, str) and ref:
                sources.append({"secretRef": {"name": ref}})
        return sources

    @classmethod
    def from_resource(
        cls, resource: dict[str, Any], api_request: CustomResourceApiRequest | None = None
    ) -> "StreamDefinition":
        return cls(resource=resource, api_request=api_request)
