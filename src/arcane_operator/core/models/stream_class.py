"""StreamClass: registration of a stream kind."""

from typing import Any

import attrs

from arcane_operator.core.models.resource import CustomResourceApiRequest, KubernetesResource


@attrs.define(frozen=True, slots=True)
class StreamClass(KubernetesResource):
    """A StreamClass resource.

    The spec names the CRD of the stream definitions this class governs:

    ```yaml
    spec:
      apiGroupRef: streaming.sneaksanddata.com
      apiVersion: v1beta1
      pluralName: sql-server-streams
      kindRef: SqlServerStream
      maxBufferCapacity: 1000
      secretRefs: [connectionStringRef]
    ```
    """

    @property
    def api_group_ref(self) -> str:
        return self.spec.get("apiGroupRef", "")

    @property
    def api_version_ref(self) -> str:
        return self.spec.get("apiVersion", "")

    @property
    def plural_name(self) -> str:
        return self.spec.get("pluralName", "")

    @property
    def kind_ref(self) -> str:
        return self.spec.get("kindRef", "")

    @property
    def max_buffer_capacity(self) -> int:
        return int(self.spec.get("maxBufferCapacity") or 1000)

    @property
    def secret_refs(self) -> tuple[str, ...]:
        return tuple(self.spec.get("secretRefs") or ())

    @property
    def stream_class_id(self) -> str:
        """Stable id of the governed kind, used to key per-kind pipelines."""
        return f"{self.namespace}.{self.kind_ref}"

    def is_secret_ref(self, field_name: str) -> bool:
        return field_name in self.secret_refs

    def to_stream_api_request(self) -> CustomResourceApiRequest:
        """Coordinates of the stream definitions of this kind.

        Stream definitions are watched in the StreamClass's own namespace.
        """
        return CustomResourceApiRequest(
            namespace=self.namespace,
            api_group=self.api_group_ref,
            api_version=self.api_version_ref,
            plural=self.plural_name,
        )

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "StreamClass":
        return cls(resource=resource)
