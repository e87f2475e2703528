"""Command model: every cluster mutation the reconcilers can request.

Commands are immutable records. Reconcilers return lists of commands and
never touch the cluster; `core.services.command_handlers` turns each command
into Kubernetes API calls.

## Variants

- `StartJob` / `StopJob`: create or delete a stream's job
- `SetAnnotation` / `RemoveAnnotation`: mutate the `arcane/state` annotation
  on a stream definition or a job
- `UpdateStatus`: rewrite a stream definition's status
- `SetStreamClassStatus`: rewrite a StreamClass's status

Named subclasses fix the arguments of the common cases (`RequestJobRestart`,
`SetCrashLoopStatus`, ...) so that decision tables read like the tables they
implement. They compare equal only to instances of the same subclass.
"""

from enum import StrEnum

import attrs

from arcane_operator.core.models import (
    STATE_ANNOTATION_KEY,
    CustomResourceApiRequest,
    StateAnnotation,
    StreamClass,
    StreamClassPhase,
    StreamCondition,
    StreamDefinition,
    StreamingJob,
    StreamPhase,
)


@attrs.define(frozen=True, slots=True)
class KubernetesCommand:
    """Base class of all commands."""


# =============================================================================
# Job commands
# =============================================================================


@attrs.define(frozen=True, slots=True)
class StartJob(KubernetesCommand):
    """Create the job of a stream from its normal or backfill template."""

    definition: StreamDefinition
    is_backfilling: bool


@attrs.define(frozen=True, slots=True)
class StopJob(KubernetesCommand):
    """Delete a job by name."""

    name: str
    namespace: str


# =============================================================================
# Annotation commands
# =============================================================================


class AnnotationTarget(StrEnum):
    STREAM_DEFINITION = "StreamDefinition"
    JOB = "Job"


@attrs.define(frozen=True, slots=True)
class SetAnnotation(KubernetesCommand):
    target: AnnotationTarget
    resource: StreamDefinition | StreamingJob
    key: str
    value: str


@attrs.define(frozen=True, slots=True)
class RemoveAnnotation(KubernetesCommand):
    target: AnnotationTarget
    resource: StreamDefinition | StreamingJob
    key: str


@attrs.define(frozen=True, slots=True, init=False)
class SetCrashLoopStatusAnnotation(SetAnnotation):
    """Mark a stream definition as crash-looping."""

    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(
            AnnotationTarget.STREAM_DEFINITION, definition, STATE_ANNOTATION_KEY, StateAnnotation.CRASH_LOOP
        )


@attrs.define(frozen=True, slots=True, init=False)
class RemoveReloadRequestedAnnotation(RemoveAnnotation):
    """Clear a pending reload request from a stream definition."""

    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(AnnotationTarget.STREAM_DEFINITION, definition, STATE_ANNOTATION_KEY)


@attrs.define(frozen=True, slots=True, init=False)
class RequestJobRestart(SetAnnotation):
    """Ask the job reconciler to stop a job and start it again."""

    def __init__(self, job: StreamingJob) -> None:
        self.__attrs_init__(AnnotationTarget.JOB, job, STATE_ANNOTATION_KEY, StateAnnotation.RESTART_REQUESTED)


@attrs.define(frozen=True, slots=True, init=False)
class RequestJobReload(SetAnnotation):
    """Ask the job reconciler to stop a job and start it in backfill mode."""

    def __init__(self, job: StreamingJob) -> None:
        self.__attrs_init__(AnnotationTarget.JOB, job, STATE_ANNOTATION_KEY, StateAnnotation.RELOAD_REQUESTED)


# =============================================================================
# Stream definition status commands
# =============================================================================


@attrs.define(frozen=True, slots=True)
class UpdateStatus(KubernetesCommand):
    definition: StreamDefinition
    conditions: tuple[StreamCondition, ...]
    phase: StreamPhase


@attrs.define(frozen=True, slots=True, init=False)
class SetCrashLoopStatus(UpdateStatus):
    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(
            definition,
            (StreamCondition.error("Crash loop detected: the stream job has failed"),),
            StreamPhase.FAILED,
        )


@attrs.define(frozen=True, slots=True, init=False)
class SetInternalErrorStatus(UpdateStatus):
    def __init__(self, definition: StreamDefinition, message: str) -> None:
        self.__attrs_init__(definition, (StreamCondition.error(message),), StreamPhase.FAILED)


@attrs.define(frozen=True, slots=True, init=False)
class SetSuspendedStatus(UpdateStatus):
    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(
            definition, (StreamCondition.warning("The stream is suspended"),), StreamPhase.SUSPENDED
        )


@attrs.define(frozen=True, slots=True, init=False)
class SetReloadingStatus(UpdateStatus):
    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(definition, (StreamCondition.ready(),), StreamPhase.RELOADING)


@attrs.define(frozen=True, slots=True, init=False)
class SetRunningStatus(UpdateStatus):
    def __init__(self, definition: StreamDefinition) -> None:
        self.__attrs_init__(definition, (StreamCondition.ready(),), StreamPhase.RUNNING)


# =============================================================================
# StreamClass status commands
# =============================================================================


@attrs.define(frozen=True, slots=True)
class SetStreamClassStatus(KubernetesCommand):
    """Rewrite a StreamClass status.

    Attributes:
        request: Coordinates of the StreamClass collection.
        stream_class: The StreamClass whose status is written.
        conditions: Conditions to write.
        phase: Phase to write.
    """

    request: CustomResourceApiRequest
    stream_class: StreamClass
    conditions: tuple[StreamCondition, ...]
    phase: StreamClassPhase


@attrs.define(frozen=True, slots=True, init=False)
class SetStreamClassReady(SetStreamClassStatus):
    def __init__(self, request: CustomResourceApiRequest, stream_class: StreamClass) -> None:
        self.__attrs_init__(request, stream_class, (StreamCondition.ready(),), StreamClassPhase.READY)


@attrs.define(frozen=True, slots=True, init=False)
class SetStreamClassFailed(SetStreamClassStatus):
    def __init__(self, request: CustomResourceApiRequest, stream_class: StreamClass, message: str) -> None:
        self.__attrs_init__(request, stream_class, (StreamCondition.error(message),), StreamClassPhase.FAILED)
