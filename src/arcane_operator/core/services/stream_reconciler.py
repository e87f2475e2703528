"""Stream reconciler: decide what a stream definition event requires.

The decision is a pure function of `(event type, definition, current job)`;
`StreamReconciler.reconcile` only adds the job lookup, done fresh for every
event so that each decision sees the latest observed job.

## Added

| job | job backfilling | suspended | commands |
|-----|-----------------|-----------|----------|
| no  | -               | yes       | SetSuspendedStatus |
| no  | -               | no        | StartJob(backfill) |
| yes | yes             | -         | SetReloadingStatus |
| yes | no              | yes       | StopJob |
| yes | no              | no        | SetRunningStatus |

## Modified (first match wins)

1. crash loop, no job: SetCrashLoopStatus
2. suspended, job: StopJob
3. suspended, no job: SetSuspendedStatus
4. reload requested, no job: RemoveReloadRequestedAnnotation, StartJob(backfill)
5. reload requested, job: RemoveReloadRequestedAnnotation, RequestJobReload
6. job with a different configuration checksum: RequestJobRestart
7. job with the same configuration checksum: nothing
8. no job: StartJob(streaming)

Configuration drift never stops a job directly: the job is annotated and the
job reconciler stops it, then starts the new one when the job is deleted.

## Deleted

Nothing. Jobs are cleaned up by their own event stream.
"""

import logging

from arcane_operator.core.commands import (
    KubernetesCommand,
    RemoveReloadRequestedAnnotation,
    RequestJobReload,
    RequestJobRestart,
    SetCrashLoopStatus,
    SetReloadingStatus,
    SetRunningStatus,
    SetSuspendedStatus,
    StartJob,
    StopJob,
)
from arcane_operator.core.exceptions import UnexpectedStateError
from arcane_operator.core.models import ResourceEvent, StreamDefinition, StreamingJob, WatchEventType
from arcane_operator.core.services.repositories import StreamingJobRepository

logger = logging.getLogger(__name__)


def on_added(definition: StreamDefinition, job: StreamingJob | None) -> list[KubernetesCommand]:
    if job is None:
        if definition.suspended:
            return [SetSuspendedStatus(definition)]
        return [StartJob(definition, is_backfilling=True)]
    if job.is_backfilling:
        return [SetReloadingStatus(definition)]
    if definition.suspended:
        return [StopJob(job.name, job.namespace)]
    return [SetRunningStatus(definition)]


def on_modified(definition: StreamDefinition, job: StreamingJob | None) -> list[KubernetesCommand]:
    if definition.crash_loop_detected and job is None:
        return [SetCrashLoopStatus(definition)]
    if definition.suspended:
        if job is not None:
            return [StopJob(job.name, job.namespace)]
        return [SetSuspendedStatus(definition)]
    if definition.reload_requested:
        if job is None:
            return [RemoveReloadRequestedAnnotation(definition), StartJob(definition, is_backfilling=True)]
        return [RemoveReloadRequestedAnnotation(definition), RequestJobReload(job)]
    if job is not None:
        if job.configuration_matches(definition):
            return []
        return [RequestJobRestart(job)]
    return [StartJob(definition, is_backfilling=False)]


def decide(
    event_type: WatchEventType, definition: StreamDefinition, job: StreamingJob | None
) -> list[KubernetesCommand]:
    """Commands required by one stream definition event.

    Args:
        event_type: Type of the watch event.
        definition: Stream definition carried by the event.
        job: Current job of the stream, None if it has none.

    Returns:
        Commands to execute in order. Empty when the stream is converged.

    Raises:
        UnexpectedStateError: If the event type is unknown.
    """
    if event_type == WatchEventType.ADDED:
        return on_added(definition, job)
    if event_type == WatchEventType.MODIFIED:
        return on_modified(definition, job)
    if event_type == WatchEventType.DELETED:
        return []
    raise UnexpectedStateError(f"Unexpected event type {event_type!r} for stream {definition.stream_id}")


class StreamReconciler:
    """Reconciles the stream definitions of one kind.

    Args:
        jobs: Lookup of the current job of a stream.
    """

    def __init__(self, jobs: StreamingJobRepository) -> None:
        self.jobs = jobs

    async def reconcile(self, event: ResourceEvent[StreamDefinition]) -> list[KubernetesCommand]:
        definition = event.resource
        job = await self.jobs.get(definition.namespace, definition.stream_id)
        commands = decide(event.event_type, definition, job)
        logger.info(
            "Stream event reconciled",
            extra={
                "event_type": str(event.event_type),
                "namespace": definition.namespace,
                "kind": definition.kind,
                "stream_id": definition.stream_id,
                "job_found": job is not None,
                "commands": [type(c).__name__ for c in commands],
            },
        )
        return commands
