"""Event pipeline runner shared by all reconcilers.

A pipeline pulls events from a source (list, then watch), drops duplicates,
asks a reconciler for commands and executes them one at a time.

## Stages

```
source -> metrics -> duplicate filter -> decide -> dispatch (sequential)
```

## Error policy

- `BufferOverflowError` from the source: the pipeline stops and the error
  is raised to its owner
- `WatchTargetNotFoundError` from the source: logged, the pipeline stops
  and the error is raised to its owner
- any other source failure: the source is re-subscribed with exponential
  backoff (tenacity)
- a failure while deciding on or executing one event: logged, the next
  event is processed
- a watch that ends normally (server-side timeout) is re-subscribed
  immediately

## Stopping

Each pipeline watches a `KillSwitch`. Once triggered no further event is
admitted; a command that is already executing runs to completion.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Generic, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, wait_random_exponential

from arcane_operator.core.commands import KubernetesCommand
from arcane_operator.core.exceptions import BufferOverflowError, WatchTargetNotFoundError
from arcane_operator.core.models import KubernetesResource, ResourceEvent
from arcane_operator.core.services.event_filter import ResourceVersionDuplicateFilter
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.foundation.retry import retry_logger

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=KubernetesResource)

FATAL_SOURCE_ERRORS = (BufferOverflowError, WatchTargetNotFoundError)


class KillSwitch:
    """One-shot stop signal shared by a pipeline and its owner."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def trigger(self) -> None:
        self._event.set()

    @property
    def is_triggered(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, returning early when the switch is triggered."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and not isinstance(exc, FATAL_SOURCE_ERRORS)


async def _pull(source: AsyncIterator[ResourceEvent[R]]) -> ResourceEvent[R]:
    return await source.__anext__()


class EventPipeline(Generic[R]):
    """Sequential event processor with restart and stop semantics.

    Args:
        name: Pipeline name used in logs, e.g. "streams.SqlServerStream".
        source: Creates a fresh event source for every subscription.
        decide: Maps one event to the commands it requires.
        dispatch: Executes one command.
        kill_switch: Stops the pipeline when triggered.
        event_filter: Duplicate event filter; a new one is created if None.
        metrics: Counts processed events when given.
        restart_min_wait: Initial backoff before a failed source is
            re-subscribed, in seconds.
        restart_max_wait: Upper bound of that backoff, in seconds.

    Example:
        ```python
        pipeline = EventPipeline(
            name="jobs",
            source=lambda: jobs.get_events("arcane", 1000),
            decide=job_reconciler.decide,
            dispatch=dispatcher.handle,
            kill_switch=KillSwitch(),
        )
        await pipeline.run()
        ```
    """

    def __init__(
        self,
        name: str,
        source: Callable[[], AsyncIterator[ResourceEvent[R]]],
        decide: Callable[[ResourceEvent[R]], Awaitable[list[KubernetesCommand]]],
        dispatch: Callable[[KubernetesCommand], Awaitable[None]],
        kill_switch: KillSwitch,
        event_filter: ResourceVersionDuplicateFilter[R] | None = None,
        metrics: MetricsReporter | None = None,
        restart_min_wait: float = 10.0,
        restart_max_wait: float = 180.0,
    ) -> None:
        self.name = name
        self.source = source
        self.decide = decide
        self.dispatch = dispatch
        self.kill_switch = kill_switch
        self.event_filter = event_filter if event_filter is not None else ResourceVersionDuplicateFilter()
        self.metrics = metrics
        self.restart_min_wait = restart_min_wait
        self.restart_max_wait = restart_max_wait

    async def run(self) -> None:
        """Process events until the kill switch is triggered.

        Raises:
            BufferOverflowError: If the source buffer overflowed.
            WatchTargetNotFoundError: If the watched collection does not exist.
        """
        logger.info("Pipeline started", extra={"pipeline": self.name})
        try:
            while not self.kill_switch.is_triggered:
                await self._run_subscription()
        except BufferOverflowError:
            logger.error("Pipeline buffer overflow", extra={"pipeline": self.name})
            raise
        except WatchTargetNotFoundError as e:
            logger.warning("Pipeline watch target not found", extra={"pipeline": self.name, "error": str(e)})
            raise
        logger.info("Pipeline stopped", extra={"pipeline": self.name})

    def restart_wait(self) -> wait_random_exponential:
        """Jittered exponential backoff between `restart_min_wait` and `restart_max_wait`."""
        return wait_random_exponential(min=self.restart_min_wait, max=self.restart_max_wait)

    async def _run_subscription(self) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            wait=self.restart_wait(),
            before_sleep=retry_logger(logger, "Event source failed, re-subscribing", extra={"pipeline": self.name}),
            sleep=self.kill_switch.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._consume()

    async def _consume(self) -> None:
        if self.kill_switch.is_triggered:
            return
        source = self.source()
        try:
            while True:
                event = await self._next_event(source)
                if event is None:
                    return
                await self._process(event)
        finally:
            await source.aclose()

    async def _next_event(self, source: AsyncIterator[ResourceEvent[R]]) -> ResourceEvent[R] | None:
        """Next event of `source`, or None when the source ended or the pipeline stops."""
        if self.kill_switch.is_triggered:
            return None
        next_event = asyncio.create_task(_pull(source))
        stop = asyncio.create_task(self.kill_switch.wait())
        try:
            await asyncio.wait({next_event, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if not next_event.done():
            next_event.cancel()
            await asyncio.wait({next_event})
            return None

        try:
            return next_event.result()
        except StopAsyncIteration:
            return None

    async def _process(self, event: ResourceEvent[R]) -> None:
        if self.metrics is not None:
            self.metrics.count_event(str(event.event_type), event.resource)

        if self.event_filter.filter(event) is None:
            return

        log_extra: dict[str, Any] = {
            "pipeline": self.name,
            "event_type": str(event.event_type),
            "namespace": event.resource.namespace,
            "resource_name": event.resource.name,
        }
        try:
            commands = await self.decide(event)
            for command in commands:
                logger.debug("Executing command", extra={**log_extra, "command": type(command).__name__})
                await self.dispatch(command)
        except Exception:
            logger.exception("Failed to process event", extra=log_extra)
