"""StreamClass supervisor: one stream pipeline per registered kind.

Every StreamClass registers a stream kind. The supervisor consumes
StreamClass events and keeps exactly one running stream pipeline per
StreamClass id (`namespace.kindRef`).

## Lifecycle of a kind

- Added: the kind is attached and its StreamClass marked READY. Attaching
  a kind whose pipeline is alive is a no-op; a kind whose pipeline has
  ended is started again.
- Modified: nothing. Status writes of the operator itself arrive as
  Modified events.
- Deleted: the kind's pipeline is stopped and the StreamClass forgotten.
  Other kinds keep running.

## Pipeline failures

- Buffer overflow: the pipeline is subscribed again from scratch after
  `overflow_restart_delay` seconds.
- Stream CRD not found: the StreamClass is marked FAILED and the kind
  stays stopped until the StreamClass is added again.

`stop()` stops every kind and refuses new attachments.
"""

import asyncio
import logging

import attrs

from arcane_operator.config import ReconcilerConfig
from arcane_operator.core.commands import KubernetesCommand, SetStreamClassFailed, SetStreamClassReady
from arcane_operator.core.exceptions import BufferOverflowError, UnexpectedStateError, WatchTargetNotFoundError
from arcane_operator.core.models import ResourceEvent, StreamClass, StreamClassPhase, StreamDefinition, WatchEventType
from arcane_operator.core.services.command_handlers import CommandDispatcher
from arcane_operator.core.services.event_filter import ResourceVersionDuplicateFilter
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.core.services.pipeline import EventPipeline, KillSwitch
from arcane_operator.core.services.repositories import (
    StreamClassRepository,
    StreamDefinitionRepository,
    StreamingJobRepository,
)
from arcane_operator.core.services.stream_reconciler import StreamReconciler

logger = logging.getLogger(__name__)


@attrs.define(slots=True)
class KindHandle:
    """Running pipeline of one stream kind."""

    stream_class: StreamClass
    kill_switch: KillSwitch
    task: asyncio.Task

    @property
    def is_running(self) -> bool:
        return not self.task.done()


class StreamClassSupervisor:
    """Attach and detach per-kind stream pipelines.

    Args:
        stream_classes: StreamClass repository and cache.
        definitions: Source of stream definition events.
        jobs: Lookup of current jobs, used by the stream reconcilers.
        dispatcher: Executes commands of all pipelines.
        metrics: Metrics reporter.
        config: Pipeline tuning.
    """

    def __init__(
        self,
        stream_classes: StreamClassRepository,
        definitions: StreamDefinitionRepository,
        jobs: StreamingJobRepository,
        dispatcher: CommandDispatcher,
        metrics: MetricsReporter,
        config: ReconcilerConfig,
    ) -> None:
        self.stream_classes = stream_classes
        self.definitions = definitions
        self.jobs = jobs
        self.dispatcher = dispatcher
        self.metrics = metrics
        self.config = config
        self._handles: dict[str, KindHandle] = {}
        self._lock = asyncio.Lock()
        self._stopped = False

    @property
    def handles(self) -> dict[str, KindHandle]:
        return dict(self._handles)

    async def reconcile(self, event: ResourceEvent[StreamClass]) -> list[KubernetesCommand]:
        """Commands required by one StreamClass event.

        Raises:
            UnexpectedStateError: If the event type is unknown.
        """
        stream_class = event.resource
        if event.event_type == WatchEventType.ADDED:
            if not await self.attach(stream_class):
                return []
            return [SetStreamClassReady(self.stream_classes.request, stream_class)]
        if event.event_type == WatchEventType.MODIFIED:
            return []
        if event.event_type == WatchEventType.DELETED:
            await self.detach(stream_class)
            self.stream_classes.remove(stream_class)
            self.metrics.set_stream_class_phase(stream_class, StreamClassPhase.STOPPED)
            return []
        raise UnexpectedStateError(f"Unexpected event type {event.event_type!r} for StreamClass {stream_class.name}")

    # =========================================================================
    # Attach / detach
    # =========================================================================

    async def attach(self, stream_class: StreamClass) -> bool:
        """Start the pipeline of a kind unless it is already running.

        Returns:
            True if the kind is running after the call, False if the
            supervisor is stopped.
        """
        stream_class_id = stream_class.stream_class_id
        async with self._lock:
            if self._stopped:
                logger.warning("Supervisor stopped, StreamClass not attached", extra={"stream_class": stream_class_id})
                return False

            handle = self._handles.get(stream_class_id)
            if handle is not None and handle.is_running:
                logger.debug("StreamClass already attached", extra={"stream_class": stream_class_id})
                return True

            kill_switch = KillSwitch()
            task = asyncio.create_task(self._run_kind(stream_class, kill_switch), name=f"streams.{stream_class_id}")
            task.add_done_callback(self._log_kind_exit)
            self._handles[stream_class_id] = KindHandle(stream_class, kill_switch, task)

        logger.info(
            "StreamClass attached",
            extra={"stream_class": stream_class_id, "kind_ref": stream_class.kind_ref, "restarted": handle is not None},
        )
        return True

    async def detach(self, stream_class: StreamClass) -> bool:
        """Stop the pipeline of a kind.

        Returns:
            True if a pipeline was attached for the kind.
        """
        stream_class_id = stream_class.stream_class_id
        async with self._lock:
            handle = self._handles.pop(stream_class_id, None)
        if handle is None:
            logger.debug("StreamClass not attached", extra={"stream_class": stream_class_id})
            return False

        handle.kill_switch.trigger()
        await self._wait_for([handle.task])
        logger.info("StreamClass detached", extra={"stream_class": stream_class_id})
        return True

    async def stop(self) -> None:
        """Stop every kind. No kind can be attached afterwards."""
        async with self._lock:
            self._stopped = True
            handles = list(self._handles.values())
            self._handles.clear()

        for handle in handles:
            handle.kill_switch.trigger()
        await self._wait_for([handle.task for handle in handles])
        logger.info("Supervisor stopped", extra={"stopped_kinds": len(handles)})

    # =========================================================================
    # Per-kind task
    # =========================================================================

    def _build_pipeline(self, stream_class: StreamClass, kill_switch: KillSwitch) -> EventPipeline[StreamDefinition]:
        request = stream_class.to_stream_api_request()
        return EventPipeline(
            name=f"streams.{stream_class.stream_class_id}",
            source=lambda: self.definitions.get_events(request, stream_class.max_buffer_capacity),
            decide=StreamReconciler(self.jobs).reconcile,
            dispatch=self.dispatcher.handle,
            kill_switch=kill_switch,
            event_filter=ResourceVersionDuplicateFilter(max_size=self.config.dedup_cache_size),
            metrics=self.metrics,
            restart_min_wait=self.config.watch_restart_min_wait,
            restart_max_wait=self.config.watch_restart_max_wait,
        )

    async def _run_kind(self, stream_class: StreamClass, kill_switch: KillSwitch) -> None:
        log_extra = {"stream_class": stream_class.stream_class_id}
        while not kill_switch.is_triggered:
            try:
                await self._build_pipeline(stream_class, kill_switch).run()
            except BufferOverflowError:
                logger.warning(
                    "Stream pipeline overflowed, restarting",
                    extra={**log_extra, "delay_seconds": self.config.overflow_restart_delay},
                )
                await kill_switch.sleep(self.config.overflow_restart_delay)
            except WatchTargetNotFoundError as e:
                logger.error("Stream resources not found, StreamClass failed", extra={**log_extra, "error": str(e)})
                await self.dispatcher.handle(
                    SetStreamClassFailed(self.stream_classes.request, stream_class, f"Stream resources not found: {e}")
                )
                return

    @staticmethod
    def _log_kind_exit(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Stream pipeline cancelled", extra={"pipeline": task.get_name()})
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Stream pipeline crashed",
                extra={"pipeline": task.get_name()},
                exc_info=(type(error), error, error.__traceback__),
            )

    async def _wait_for(self, tasks: list[asyncio.Task]) -> None:
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=self.config.shutdown_timeout)
        for task in pending:
            logger.warning("Stream pipeline did not stop in time, cancelling", extra={"pipeline": task.get_name()})
            task.cancel()
        if pending:
            await asyncio.wait(pending)
