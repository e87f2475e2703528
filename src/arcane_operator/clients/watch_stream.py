"""Bounded async stream over a blocking Kubernetes watch.

`kubernetes.watch.Watch.stream()` is a blocking generator. `WatchEventStream`
runs it on a dedicated daemon thread and hands decoded events to the event
loop through a bounded `asyncio.Queue`. The producer never blocks: when the
consumer falls behind by more than the buffer capacity the stream fails with
`BufferOverflowError` and stops the underlying watch.

```python
async with WatchEventStream(events, buffer_capacity=100, name="jobs") as stream:
    async for event_type, resource in stream:
        ...
```
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from kubernetes.client.rest import ApiException

from arcane_operator.core.exceptions import BufferOverflowError, KubernetesApiError, WatchTargetNotFoundError
from arcane_operator.core.models import WatchEventType

logger = logging.getLogger(__name__)

_EVENT_TYPES = {event_type.value: event_type for event_type in WatchEventType}


def translate_watch_error(error: BaseException, name: str) -> BaseException:
    """Map a failure raised by a watch to the operator's exception hierarchy."""
    if isinstance(error, ApiException):
        if error.status == 404:
            translated: BaseException = WatchTargetNotFoundError(
                f"Watch target of {name} does not exist: {error.reason}"
            )
        else:
            translated = KubernetesApiError(
                f"Watch {name} failed with status {error.status}: {error.reason}",
                status=error.status,
                reason=error.reason,
            )
    else:
        translated = KubernetesApiError(f"Watch {name} failed: {error}")
    translated.__cause__ = error
    return translated


class WatchEventStream:
    """Async iterator of `(WatchEventType, resource)` pairs from a watch thread.

    Args:
        events: Zero-argument callable returning the blocking watch iterable,
            typically `lambda: watch.Watch().stream(list_func, ...)`.
        buffer_capacity: Maximum number of events held for the consumer.
        name: Label used in thread names, errors and logs.
        on_close: Called when the stream is closed, e.g. `Watch.stop`.
    """

    def __init__(
        self,
        events: Callable[[], Iterable[dict[str, Any]]],
        buffer_capacity: int,
        name: str,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.name = name
        self.buffer_capacity = buffer_capacity
        self._events = events
        self._on_close = on_close
        self._queue: asyncio.Queue[tuple[WatchEventType, dict[str, Any]]] = asyncio.Queue(maxsize=buffer_capacity)
        self._wakeup = asyncio.Event()
        self._failure: BaseException | None = None
        self._finished = False
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._produce, name=f"watch-{self.name}", daemon=True)
        self._thread.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()
        self._wakeup.set()

    async def __aenter__(self) -> WatchEventStream:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Producer side (watch thread)
    # ------------------------------------------------------------------

    def _produce(self) -> None:
        failure: BaseException | None = None
        try:
            for event in self._events():
                if self._closed:
                    break
                event_type = _EVENT_TYPES.get(event.get("type", ""))
                if event_type is None:
                    # BOOKMARK and anything newer than this client
                    continue
                resource = event.get("raw_object") or event.get("object")
                self._call_in_loop(self._offer, (event_type, resource))
        except Exception as e:  # noqa: BLE001 - handed to the consumer
            failure = translate_watch_error(e, self.name)
        self._call_in_loop(self._finish, failure)

    def _call_in_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Event loop closed, dropping watch callback", extra={"watch": self.name})
            return
        loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Event loop side
    # ------------------------------------------------------------------

    def _offer(self, item: tuple[WatchEventType, dict[str, Any]]) -> None:
        if self._closed or self._failure is not None:
            return
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self._failure = BufferOverflowError(
                f"Watch {self.name} exceeded its buffer capacity of {self.buffer_capacity} events"
            )
            if self._on_close is not None:
                self._on_close()
        self._wakeup.set()

    def _finish(self, failure: BaseException | None) -> None:
        self._finished = True
        if failure is not None and self._failure is None:
            self._failure = failure
        self._wakeup.set()

    def __aiter__(self) -> WatchEventStream:
        return self

    async def __anext__(self) -> tuple[WatchEventType, dict[str, Any]]:
        while True:
            # Overflow fails fast, other failures are raised once the buffer is drained.
            if isinstance(self._failure, BufferOverflowError):
                raise self._failure
            if self._closed:
                raise StopAsyncIteration
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._failure is not None:
                raise self._failure
            if self._finished:
                raise StopAsyncIteration
            self._wakeup.clear()
            await self._wakeup.wait()
