"""Base wrappers over Kubernetes resource documents.

Resources are kept as the plain JSON documents the API server returns
(camelCase keys, as sent on the wire) and wrapped in small `attrs` classes
that expose typed accessors for the fields the operator reads.
"""

from typing import Any

import attrs


@attrs.define(frozen=True, slots=True)
class CustomResourceApiRequest:
    """API coordinates of a namespaced custom resource collection.

    Attributes:
        namespace: Namespace of the collection.
        api_group: CRD group, e.g. "streaming.sneaksanddata.com".
        api_version: CRD version, e.g. "v1beta1".
        plural: CRD plural name, e.g. "sql-server-streams".
    """

    namespace: str
    api_group: str
    api_version: str
    plural: str

    @property
    def api_version_string(self) -> str:
        return f"{self.api_group}/{self.api_version}"


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


@attrs.define(frozen=True, slots=True)
class KubernetesResource:
    """A resource document with metadata accessors.

    Attributes:
        resource: The raw resource document.
    """

    resource: dict[str, Any]

    @property
    def metadata(self) -> dict[str, Any]:
        return _mapping(self.resource.get("metadata"))

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def kind(self) -> str:
        return self.resource.get("kind") or ""

    @property
    def resource_version(self) -> str | None:
        return self.metadata.get("resourceVersion")

    @property
    def labels(self) -> dict[str, str]:
        return _mapping(self.metadata.get("labels"))

    @property
    def annotations(self) -> dict[str, str]:
        return _mapping(self.metadata.get("annotations"))

    @property
    def spec(self) -> dict[str, Any]:
        return _mapping(self.resource.get("spec"))

    @property
    def status(self) -> dict[str, Any]:
        return _mapping(self.resource.get("status"))
