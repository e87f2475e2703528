"""Job event reconciler: react to the lifecycle of streaming jobs.

Job events drive the second half of every restart. The stream reconciler
only annotates a job (restart or reload requested); this reconciler stops
the annotated job and, once the job is deleted, starts its replacement. A
new job is therefore never started while the old one still exists.

## Added

- backfilling job, definition still reload-requested:
  RemoveReloadRequestedAnnotation, SetReloadingStatus
- backfilling job: SetReloadingStatus
- otherwise: nothing

## Modified

- job terminating: nothing
- job reload or restart requested: StopJob
- otherwise: nothing

## Deleted (owning definition looked up from the job annotations)

1. no owning definition: nothing
2. job failed: SetCrashLoopStatus, SetCrashLoopStatusAnnotation
3. definition suspended: SetSuspendedStatus
4. definition in crash loop: SetCrashLoopStatus
5. otherwise: StartJob, backfilling if the job was reload requested or
   stopped on a schema mismatch
"""

import logging

from arcane_operator.core.commands import (
    KubernetesCommand,
    RemoveReloadRequestedAnnotation,
    SetCrashLoopStatus,
    SetCrashLoopStatusAnnotation,
    SetReloadingStatus,
    SetSuspendedStatus,
    StartJob,
    StopJob,
)
from arcane_operator.core.exceptions import UnexpectedStateError
from arcane_operator.core.models import ResourceEvent, StreamDefinition, StreamingJob, WatchEventType
from arcane_operator.core.services.repositories import StreamDefinitionRepository

logger = logging.getLogger(__name__)


def on_job_added(job: StreamingJob, definition: StreamDefinition | None) -> list[KubernetesCommand]:
    if definition is None or not job.is_backfilling:
        return []
    if definition.reload_requested:
        return [RemoveReloadRequestedAnnotation(definition), SetReloadingStatus(definition)]
    return [SetReloadingStatus(definition)]


def on_job_modified(job: StreamingJob) -> list[KubernetesCommand]:
    if job.is_stopping:
        return []
    if job.is_reload_requested or job.is_restart_requested:
        return [StopJob(job.name, job.namespace)]
    return []


def on_job_deleted(job: StreamingJob, definition: StreamDefinition | None) -> list[KubernetesCommand]:
    if definition is None:
        return []
    if job.is_failed:
        return [SetCrashLoopStatus(definition), SetCrashLoopStatusAnnotation(definition)]
    if definition.suspended:
        return [SetSuspendedStatus(definition)]
    if definition.crash_loop_detected:
        return [SetCrashLoopStatus(definition)]
    return [StartJob(definition, is_backfilling=job.is_reload_requested or job.is_schema_mismatch)]


class JobEventReconciler:
    """Reconciles streaming job events of one namespace.

    Args:
        definitions: Lookup of the stream definition owning a job.
    """

    def __init__(self, definitions: StreamDefinitionRepository) -> None:
        self.definitions = definitions

    async def _owner(self, job: StreamingJob) -> StreamDefinition | None:
        request = job.owner_api_request
        if request is None:
            logger.debug("Job has no owner coordinates", extra={"job_name": job.name, "namespace": job.namespace})
            return None
        return await self.definitions.get(request, job.name)

    async def reconcile(self, event: ResourceEvent[StreamingJob]) -> list[KubernetesCommand]:
        """Commands required by one job event.

        Raises:
            UnexpectedStateError: If the event type is unknown.
        """
        job = event.resource
        if event.event_type == WatchEventType.ADDED:
            commands = on_job_added(job, await self._owner(job) if job.is_backfilling else None)
        elif event.event_type == WatchEventType.MODIFIED:
            commands = on_job_modified(job)
        elif event.event_type == WatchEventType.DELETED:
            commands = on_job_deleted(job, await self._owner(job))
        else:
            raise UnexpectedStateError(f"Unexpected event type {event.event_type!r} for job {job.name}")

        if commands:
            logger.info(
                "Job event reconciled",
                extra={
                    "event_type": str(event.event_type),
                    "namespace": job.namespace,
                    "job_name": job.name,
                    "commands": [type(c).__name__ for c in commands],
                },
            )
        return commands
