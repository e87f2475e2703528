"""Unit tests for core.services.pipeline module.

This file tests the event pipeline runner shared by all reconcilers and
its kill switch.

# Test Coverage

The tests cover:
  - KillSwitch: trigger, wait, interruptible sleep
  - Processing: order, sequential commands, duplicate suppression, metrics,
    replayed job deletions
  - Error policy: per-event failures are logged and skipped, transient
    source failures re-subscribe, overflow and missing targets stop the
    pipeline
  - Stopping: idle pipelines stop promptly, no event is admitted after
    the switch is triggered

# Running Tests

Run with: pytest tests/unit/services/test_pipeline.py
"""

import asyncio
import warnings
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from arcane_operator.core.commands import SetCrashLoopStatus, SetCrashLoopStatusAnnotation, StopJob
from arcane_operator.core.exceptions import BufferOverflowError, KubernetesApiError, WatchTargetNotFoundError
from arcane_operator.core.models import ResourceEvent, WatchEventType
from arcane_operator.core.services.job_reconciler import JobEventReconciler
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.core.services.pipeline import EventPipeline, KillSwitch


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait until `predicate` holds, failing the test after `timeout` seconds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def make_pipeline(source, decide=None, dispatch=None, kill_switch=None, metrics=None) -> EventPipeline:
    return EventPipeline(
        name="test",
        source=source,
        decide=decide or AsyncMock(return_value=[]),
        dispatch=dispatch or AsyncMock(),
        kill_switch=kill_switch or KillSwitch(),
        metrics=metrics,
        restart_min_wait=0,
        restart_max_wait=0,
    )


async def run_until(pipeline: EventPipeline, predicate: Callable[[], bool]) -> None:
    """Run `pipeline` until `predicate` holds, then stop it."""
    task = asyncio.create_task(pipeline.run())
    try:
        await eventually(predicate)
    finally:
        pipeline.kill_switch.trigger()
        await asyncio.wait_for(task, timeout=2.0)


# =============================================================================
# KillSwitch Tests
# =============================================================================


class TestKillSwitch:
    """Test suite for KillSwitch."""

    @pytest.mark.asyncio
    async def test_trigger(self) -> None:
        kill_switch = KillSwitch()
        assert kill_switch.is_triggered is False

        kill_switch.trigger()

        assert kill_switch.is_triggered is True
        await asyncio.wait_for(kill_switch.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_sleep_returns_early_when_triggered(self) -> None:
        """Test that restart backoff does not delay shutdown.

        **Why this test is important:**
          - A pipeline waiting minutes before re-subscribing must still stop
            within the shutdown timeout

        **What it tests:**
          - sleep(60) returns as soon as the switch is triggered
        """
        kill_switch = KillSwitch()
        sleeper = asyncio.create_task(kill_switch.sleep(60))
        await asyncio.sleep(0)

        kill_switch.trigger()

        await asyncio.wait_for(sleeper, timeout=1.0)

    @pytest.mark.asyncio
    async def test_sleep_times_out(self) -> None:
        await asyncio.wait_for(KillSwitch().sleep(0.01), timeout=1.0)


# =============================================================================
# Processing Tests
# =============================================================================


class TestProcessing:
    """Test suite for event processing."""

    def test_restart_wait_is_bounded(self) -> None:
        """Test that re-subscription waits stay within the configured bounds."""
        pipeline = EventPipeline(
            name="test",
            source=MagicMock(),
            decide=AsyncMock(),
            dispatch=AsyncMock(),
            kill_switch=KillSwitch(),
            restart_min_wait=1,
            restart_max_wait=4,
        )
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            wait = pipeline.restart_wait()

        for attempt in range(1, 8):
            state = MagicMock()
            state.attempt_number = attempt
            assert 1 <= wait(state) <= 4

    @pytest.mark.asyncio
    async def test_events_processed_in_order(self, source_factory, make_definition) -> None:
        """Test that events and their commands are processed sequentially.

        **Why this test is important:**
          - Commands of one event must finish before the next event is
            decided on, otherwise decisions see stale cluster state

        **What it tests:**
          - decide is called per event in source order
          - All commands are dispatched in order
        """
        first = ResourceEvent(WatchEventType.ADDED, make_definition(name="a"))
        second = ResourceEvent(WatchEventType.ADDED, make_definition(name="b"))
        decide = AsyncMock(side_effect=lambda e: [StopJob(e.resource.name, "arcane"), StopJob("x", "arcane")])
        dispatch = AsyncMock()
        pipeline = make_pipeline(source_factory([first, second]), decide=decide, dispatch=dispatch)

        await run_until(pipeline, lambda: dispatch.await_count == 4)

        assert [c.args[0] for c in decide.await_args_list] == [first, second]
        assert [c.args[0].name for c in dispatch.await_args_list] == ["a", "x", "b", "x"]

    @pytest.mark.asyncio
    async def test_duplicates_are_dropped(self, source_factory, make_definition) -> None:
        event = ResourceEvent(WatchEventType.MODIFIED, make_definition(resource_version="5"))
        newer = ResourceEvent(WatchEventType.MODIFIED, make_definition(resource_version="6"))
        decide = AsyncMock(return_value=[])
        pipeline = make_pipeline(source_factory([event, event, newer]), decide=decide)

        await run_until(pipeline, lambda: decide.await_count == 2)

        assert [c.args[0] for c in decide.await_args_list] == [event, newer]

    @pytest.mark.asyncio
    async def test_metrics_count_every_event(self, source_factory, make_definition) -> None:
        """Test that duplicates are counted too."""
        event = ResourceEvent(WatchEventType.MODIFIED, make_definition(resource_version="5"))
        metrics = MagicMock(spec=MetricsReporter)
        pipeline = make_pipeline(source_factory([event, event]), metrics=metrics)

        await run_until(pipeline, lambda: metrics.count_event.call_count == 2)

        metrics.count_event.assert_called_with("MODIFIED", event.resource)

    @pytest.mark.asyncio
    async def test_replayed_failed_job_deletion_marks_crash_loop_once(
        self, source_factory, mock_definitions, make_job, make_definition
    ) -> None:
        """Test that a replayed Deleted event of a failed job is not acted on twice.

        **Why this test is important:**
          - A watch restart re-lists jobs and replays their last event
          - A second crash-loop annotation write would bump the definition
            and trigger another reconciliation round

        **What it tests:**
          - The same Deleted event arrives on two subscriptions
          - Exactly one SetCrashLoopStatus and one
            SetCrashLoopStatusAnnotation are dispatched
        """
        definition = make_definition()
        mock_definitions.get.return_value = definition
        deleted = ResourceEvent(WatchEventType.DELETED, make_job(failed=True, resource_version="12"))
        source = source_factory([deleted], [deleted])
        dispatch = AsyncMock()
        pipeline = make_pipeline(source, decide=JobEventReconciler(mock_definitions).reconcile, dispatch=dispatch)

        await run_until(pipeline, lambda: source.subscriptions >= 3)

        assert [c.args[0] for c in dispatch.await_args_list] == [
            SetCrashLoopStatus(definition),
            SetCrashLoopStatusAnnotation(definition),
        ]


# =============================================================================
# Error Policy Tests
# =============================================================================


class TestErrorPolicy:
    """Test suite for the pipeline error policy."""

    @pytest.mark.asyncio
    async def test_decide_failure_skips_event(self, source_factory, make_definition) -> None:
        """Test that a failing event does not stop the pipeline.

        **Why this test is important:**
          - One broken stream must not stop every other stream of its kind

        **What it tests:**
          - The failure is logged with the event's identity
          - The next event is processed
        """
        events = [
            ResourceEvent(WatchEventType.ADDED, make_definition(name="broken")),
            ResourceEvent(WatchEventType.ADDED, make_definition(name="healthy")),
        ]
        decide = AsyncMock(side_effect=[RuntimeError("boom"), [StopJob("healthy", "arcane")]])
        dispatch = AsyncMock()
        pipeline = make_pipeline(source_factory(events), decide=decide, dispatch=dispatch)

        with patch("arcane_operator.core.services.pipeline.logger") as mock_logger:
            await run_until(pipeline, lambda: dispatch.await_count == 1)

        dispatch.assert_awaited_once_with(StopJob("healthy", "arcane"))
        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args[1]["extra"]["resource_name"] == "broken"

    @pytest.mark.asyncio
    async def test_dispatch_failure_skips_remaining_commands(self, source_factory, make_definition) -> None:
        events = [
            ResourceEvent(WatchEventType.ADDED, make_definition(name="a")),
            ResourceEvent(WatchEventType.ADDED, make_definition(name="b")),
        ]
        decide = AsyncMock(side_effect=lambda e: [StopJob(e.resource.name, "arcane")])
        dispatch = AsyncMock(side_effect=[KubernetesApiError("boom"), None])
        pipeline = make_pipeline(source_factory(events), decide=decide, dispatch=dispatch)

        await run_until(pipeline, lambda: dispatch.await_count == 2)

        assert dispatch.await_args_list[1].args[0] == StopJob("b", "arcane")

    @pytest.mark.asyncio
    async def test_transient_source_failure_resubscribes(self, source_factory, make_definition) -> None:
        """Test that a failed watch is subscribed again.

        **Why this test is important:**
          - API server restarts break every watch; pipelines must recover

        **What it tests:**
          - A new subscription is made after the failure
          - Events of the new subscription are processed
        """
        event = ResourceEvent(WatchEventType.ADDED, make_definition())
        source = source_factory([KubernetesApiError("connection reset")], [event])
        decide = AsyncMock(return_value=[])
        pipeline = make_pipeline(source, decide=decide)

        await run_until(pipeline, lambda: decide.await_count == 1)

        assert source.subscriptions >= 2

    @pytest.mark.asyncio
    async def test_source_end_resubscribes(self, source_factory, make_definition) -> None:
        """Test that a watch that times out server-side is restarted."""
        first = ResourceEvent(WatchEventType.ADDED, make_definition(name="a"))
        second = ResourceEvent(WatchEventType.ADDED, make_definition(name="b"))
        source = source_factory([first], [second])
        decide = AsyncMock(return_value=[])
        pipeline = make_pipeline(source, decide=decide)

        await run_until(pipeline, lambda: decide.await_count == 2)

        assert source.subscriptions >= 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [BufferOverflowError("full"), WatchTargetNotFoundError("missing")])
    async def test_fatal_source_failures_stop_pipeline(self, source_factory, error) -> None:
        """Test that overflow and missing targets are raised to the owner.

        **Why this test is important:**
          - The supervisor decides what happens next: re-subscribe after
            overflow, mark the StreamClass FAILED for a missing CRD

        **What it tests:**
          - run() raises the error without re-subscribing
        """
        source = source_factory([error])
        pipeline = make_pipeline(source)

        with pytest.raises(type(error)):
            await asyncio.wait_for(pipeline.run(), timeout=2.0)

        assert source.subscriptions == 1


# =============================================================================
# Stopping Tests
# =============================================================================


class TestStopping:
    """Test suite for stopping pipelines."""

    @pytest.mark.asyncio
    async def test_idle_pipeline_stops(self, source_factory) -> None:
        source = source_factory()
        pipeline = make_pipeline(source)
        task = asyncio.create_task(pipeline.run())
        await eventually(lambda: source.subscriptions == 1)

        pipeline.kill_switch.trigger()

        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_triggered_before_start(self, source_factory) -> None:
        source = source_factory()
        kill_switch = KillSwitch()
        kill_switch.trigger()

        await asyncio.wait_for(make_pipeline(source, kill_switch=kill_switch).run(), timeout=1.0)

        assert source.subscriptions == 0

    @pytest.mark.asyncio
    async def test_in_flight_command_completes(self, source_factory, make_definition) -> None:
        """Test that a command running when the switch is triggered finishes.

        **Why this test is important:**
          - Interrupting a job creation midway could leave the stream with
            neither a job nor a status

        **What it tests:**
          - The in-flight dispatch completes
          - The next event is not admitted
        """
        events = [
            ResourceEvent(WatchEventType.ADDED, make_definition(name="a")),
            ResourceEvent(WatchEventType.ADDED, make_definition(name="b")),
        ]
        kill_switch = KillSwitch()
        completed = []

        async def dispatch(command: StopJob) -> None:
            kill_switch.trigger()
            await asyncio.sleep(0.01)
            completed.append(command.name)

        decide = AsyncMock(side_effect=lambda e: [StopJob(e.resource.name, "arcane")])
        pipeline = make_pipeline(source_factory(events), decide=decide, dispatch=dispatch, kill_switch=kill_switch)

        await asyncio.wait_for(pipeline.run(), timeout=2.0)

        assert completed == ["a"]
        assert decide.await_count == 1
