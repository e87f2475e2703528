"""StreamingJobTemplate: the Job blueprint a stream is started from."""

from typing import Any

import attrs

from arcane_operator.core.models.resource import KubernetesResource


@attrs.define(frozen=True, slots=True)
class StreamingJobTemplate(KubernetesResource):
    """A job template resource.

    ```yaml
    spec:
      metadata:
        labels: {...}
        annotations: {...}
      template:
        spec: <batch/v1 JobSpec>
    ```
    """

    @property
    def job_metadata(self) -> dict[str, Any]:
        metadata = self.spec.get("metadata")
        return metadata if isinstance(metadata, dict) else {}

    @property
    def job_spec(self) -> dict[str, Any]:
        template = self.spec.get("template")
        if not isinstance(template, dict):
            return {}
        job_spec = template.get("spec")
        return job_spec if isinstance(job_spec, dict) else {}

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "StreamingJobTemplate":
        return cls(resource=resource)
