"""Build the `batch/v1` Job of a stream from its job template."""

import copy
from typing import Any

from arcane_operator.core.exceptions import ConfigurationError
from arcane_operator.core.models import (
    BACKFILLING_LABEL,
    CONFIGURATION_CHECKSUM_ANNOTATION_KEY,
    OWNER_API_GROUP_ANNOTATION_KEY,
    OWNER_API_PLURAL_ANNOTATION_KEY,
    OWNER_API_VERSION_ANNOTATION_KEY,
    STREAM_ID_LABEL,
    STREAM_KIND_LABEL,
    StreamClass,
    StreamDefinition,
    StreamingJobTemplate,
)


def build_job(
    definition: StreamDefinition,
    stream_class: StreamClass,
    template: StreamingJobTemplate,
    is_backfilling: bool,
) -> dict[str, Any]:
    """Render the Job that runs `definition`.

    The template's job spec is copied and extended:
    - the job is named after the stream id, in the definition's namespace
    - stream id, kind and backfilling flag are added as labels to the job
      and its pods
    - the configuration checksum and the definition's API coordinates are
      added as annotations
    - stream environment and secret references are appended to every
      container

    Args:
        definition: Stream to run.
        stream_class: StreamClass of the stream's kind, for secret fields.
        template: Job template selected for the run mode.
        is_backfilling: Whether the job performs a full reload.

    Returns:
        A Job document ready for `KubeCluster.send_job`.

    Raises:
        ConfigurationError: If the definition does not carry the coordinates
            of the collection it was read from.
    """
    request = definition.api_request
    if request is None:
        msg = f"Stream {definition.namespace}/{definition.stream_id} has no API coordinates"
        raise ConfigurationError(msg)

    stream_labels = {
        STREAM_ID_LABEL: definition.stream_id,
        STREAM_KIND_LABEL: definition.kind,
        BACKFILLING_LABEL: str(is_backfilling).lower(),
    }
    template_metadata = template.job_metadata

    job_spec = copy.deepcopy(template.job_spec)
    pod_template = job_spec.setdefault("template", {})
    pod_metadata = pod_template.setdefault("metadata", {})
    pod_metadata["labels"] = {**(pod_metadata.get("labels") or {}), **stream_labels}

    environment = definition.to_environment(is_backfilling, stream_class)
    env_from = definition.to_env_from_sources(stream_class)
    for container in (pod_template.get("spec") or {}).get("containers") or []:
        container["env"] = [*(container.get("env") or []), *environment]
        if env_from:
            container["envFrom"] = [*(container.get("envFrom") or []), *env_from]

    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": definition.stream_id,
            "namespace": definition.namespace,
            "labels": {**(template_metadata.get("labels") or {}), **stream_labels},
            "annotations": {
                **(template_metadata.get("annotations") or {}),
                CONFIGURATION_CHECKSUM_ANNOTATION_KEY: definition.configuration_checksum,
                OWNER_API_GROUP_ANNOTATION_KEY: request.api_group,
                OWNER_API_VERSION_ANNOTATION_KEY: request.api_version,
                OWNER_API_PLURAL_ANNOTATION_KEY: request.plural,
            },
        },
        "spec": job_spec,
    }
