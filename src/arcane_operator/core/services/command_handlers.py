"""Command handlers: turn reconciler commands into Kubernetes API calls.

Every handler is best effort: API failures are logged with the affected
resource and swallowed by the handler that performed the call, so that one
failing stream never stops the pipeline it runs in. The next event of the
stream converges it again.

## Handlers

- `StreamingJobCommandHandler`: `StartJob`, `StopJob`
- `AnnotationCommandHandler`: `SetAnnotation`, `RemoveAnnotation` on stream
  definitions and jobs
- `UpdateStatusCommandHandler`: `UpdateStatus` of stream definitions
- `StreamClassStatusCommandHandler`: `SetStreamClassStatus`

`CommandDispatcher` routes each command to its handler.

## Usage

```python
dispatcher = CommandDispatcher.create(
    cluster=cluster,
    stream_classes=stream_class_repository,
    job_templates=template_repository,
    metrics=metrics,
    delete_propagation_policy="Foreground",
)
await dispatcher.handle(StopJob("my-stream", "arcane"))
```
"""

import logging

import attrs

from arcane_operator.clients.kube_cluster import KubeCluster
from arcane_operator.core.commands import (
    AnnotationTarget,
    KubernetesCommand,
    RemoveAnnotation,
    SetAnnotation,
    SetCrashLoopStatus,
    SetInternalErrorStatus,
    SetReloadingStatus,
    SetRunningStatus,
    SetStreamClassStatus,
    StartJob,
    StopJob,
    UpdateStatus,
)
from arcane_operator.core.exceptions import ConfigurationError, UnexpectedStateError
from arcane_operator.core.models import StreamClassPhase, StreamDefinition, StreamPhase, build_status
from arcane_operator.core.services.job_builder import build_job
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.core.services.repositories import StreamClassRepository, StreamingJobTemplateRepository
from arcane_operator.foundation.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@attrs.define(slots=True)
class UpdateStatusCommandHandler:
    """Write the status subresource of stream definitions."""

    cluster: KubeCluster
    metrics: MetricsReporter

    async def handle(self, command: UpdateStatus) -> None:
        definition = command.definition
        log_extra = {
            "namespace": definition.namespace,
            "kind": definition.kind,
            "stream_id": definition.stream_id,
            "phase": str(command.phase),
        }
        if definition.api_request is None:
            logger.error("Cannot update status of a stream without API coordinates", extra=log_extra)
            return

        logger.info(
            "Stream status changed",
            extra={**log_extra, "conditions": [str(c.type) for c in command.conditions]},
        )
        try:
            await self.cluster.patch_custom_resource_status(
                definition.api_request,
                definition.stream_id,
                build_status(command.phase, command.conditions),
            )
        except UpstreamError as e:
            logger.error("Failed to update stream status", extra={**log_extra, "error": str(e)})
            return

        if isinstance(command, SetCrashLoopStatus):
            self.metrics.set_crash_loop(definition)
        elif command.phase in (StreamPhase.RUNNING, StreamPhase.RELOADING):
            self.metrics.clear_crash_loop(definition)


@attrs.define(slots=True)
class StreamingJobCommandHandler:
    """Create and delete streaming jobs.

    A started job is followed by a Running or Reloading status on its stream.
    When the job cannot be created the stream is marked FAILED with the
    reason in its error condition.
    """

    cluster: KubeCluster
    stream_classes: StreamClassRepository
    job_templates: StreamingJobTemplateRepository
    status_handler: UpdateStatusCommandHandler
    delete_propagation_policy: str = "Foreground"

    async def handle(self, command: StartJob | StopJob) -> None:
        if isinstance(command, StartJob):
            await self.start_job(command.definition, command.is_backfilling)
        elif isinstance(command, StopJob):
            await self.stop_job(command.name, command.namespace)
        else:
            raise UnexpectedStateError(f"Unsupported job command: {type(command).__name__}")

    async def start_job(self, definition: StreamDefinition, is_backfilling: bool) -> None:
        log_extra = {
            "namespace": definition.namespace,
            "kind": definition.kind,
            "stream_id": definition.stream_id,
            "is_backfilling": is_backfilling,
        }
        try:
            job = await self._render_job(definition, is_backfilling)
            created = await self.cluster.send_job(job, definition.namespace)
        except (ConfigurationError, UpstreamError) as e:
            logger.error("Failed to start streaming job", extra={**log_extra, "error": str(e)})
            await self.status_handler.handle(SetInternalErrorStatus(definition, f"Failed to start job: {e}"))
            return

        if created is None:
            # the live job keeps the status it was started with
            logger.info("Streaming job already exists", extra=log_extra)
            return
        logger.info("Streaming job started", extra=log_extra)
        status = SetReloadingStatus(definition) if is_backfilling else SetRunningStatus(definition)
        await self.status_handler.handle(status)

    async def _render_job(self, definition: StreamDefinition, is_backfilling: bool) -> dict:
        stream_class = self.stream_classes.get(definition.kind)
        if stream_class is None:
            raise ConfigurationError(f"No StreamClass registered for kind {definition.kind}")

        template_name = definition.job_template_ref(is_backfilling)
        if not template_name:
            raise ConfigurationError(f"Stream {definition.stream_id} does not reference a job template")

        template = await self.job_templates.get(definition.namespace, template_name)
        if template is None:
            raise ConfigurationError(f"Job template {definition.namespace}/{template_name} not found")

        return build_job(definition, stream_class, template, is_backfilling)

    async def stop_job(self, name: str, namespace: str) -> None:
        log_extra = {"job_name": name, "namespace": namespace}
        try:
            deleted = await self.cluster.delete_job(name, namespace, self.delete_propagation_policy)
        except UpstreamError as e:
            logger.error("Failed to stop streaming job", extra={**log_extra, "error": str(e)})
            return
        if deleted:
            logger.info("Streaming job stopped", extra=log_extra)
        else:
            logger.info("Streaming job already gone", extra=log_extra)


@attrs.define(slots=True)
class AnnotationCommandHandler:
    """Set or remove annotations on stream definitions and jobs."""

    cluster: KubeCluster

    async def handle(self, command: SetAnnotation | RemoveAnnotation) -> None:
        value = command.value if isinstance(command, SetAnnotation) else None
        resource = command.resource
        log_extra = {
            "target": str(command.target),
            "namespace": resource.namespace,
            "resource_name": resource.name,
            "annotation_key": command.key,
            "annotation_value": value,
        }
        try:
            if command.target == AnnotationTarget.STREAM_DEFINITION:
                if resource.api_request is None:
                    logger.error("Cannot annotate a stream without API coordinates", extra=log_extra)
                    return
                await self.cluster.annotate_custom_resource(resource.api_request, resource.name, command.key, value)
            else:
                await self.cluster.annotate_job(resource.name, resource.namespace, command.key, value)
        except UpstreamError as e:
            logger.error("Failed to annotate resource", extra={**log_extra, "error": str(e)})
            return
        logger.debug("Resource annotated", extra=log_extra)


@attrs.define(slots=True)
class StreamClassStatusCommandHandler:
    """Write StreamClass status and keep the StreamClass cache current."""

    cluster: KubeCluster
    stream_classes: StreamClassRepository
    metrics: MetricsReporter

    async def handle(self, command: SetStreamClassStatus) -> None:
        stream_class = command.stream_class
        log_extra = {
            "namespace": stream_class.namespace,
            "resource_name": stream_class.name,
            "kind_ref": stream_class.kind_ref,
            "phase": str(command.phase),
        }
        if command.phase == StreamClassPhase.READY:
            self.stream_classes.insert_or_update(stream_class)
        self.metrics.set_stream_class_phase(stream_class, command.phase)

        try:
            await self.cluster.patch_custom_resource_status(
                command.request,
                stream_class.name,
                build_status(command.phase, command.conditions),
            )
        except UpstreamError as e:
            logger.error("Failed to update StreamClass status", extra={**log_extra, "error": str(e)})
            return
        logger.info("StreamClass status changed", extra=log_extra)


@attrs.define(slots=True)
class CommandDispatcher:
    """Route commands to their handlers."""

    jobs: StreamingJobCommandHandler
    annotations: AnnotationCommandHandler
    statuses: UpdateStatusCommandHandler
    stream_class_statuses: StreamClassStatusCommandHandler

    @classmethod
    def create(
        cls,
        cluster: KubeCluster,
        stream_classes: StreamClassRepository,
        job_templates: StreamingJobTemplateRepository,
        metrics: MetricsReporter,
        delete_propagation_policy: str = "Foreground",
    ) -> "CommandDispatcher":
        statuses = UpdateStatusCommandHandler(cluster=cluster, metrics=metrics)
        return cls(
            jobs=StreamingJobCommandHandler(
                cluster=cluster,
                stream_classes=stream_classes,
                job_templates=job_templates,
                status_handler=statuses,
                delete_propagation_policy=delete_propagation_policy,
            ),
            annotations=AnnotationCommandHandler(cluster=cluster),
            statuses=statuses,
            stream_class_statuses=StreamClassStatusCommandHandler(
                cluster=cluster, stream_classes=stream_classes, metrics=metrics
            ),
        )

    async def handle(self, command: KubernetesCommand) -> None:
        """Execute one command.

        Raises:
            UnexpectedStateError: If no handler accepts the command.
        """
        if isinstance(command, (StartJob, StopJob)):
            await self.jobs.handle(command)
        elif isinstance(command, (SetAnnotation, RemoveAnnotation)):
            await self.annotations.handle(command)
        elif isinstance(command, UpdateStatus):
            await self.statuses.handle(command)
        elif isinstance(command, SetStreamClassStatus):
            await self.stream_class_statuses.handle(command)
        else:
            raise UnexpectedStateError(f"No handler for command {type(command).__name__}")
