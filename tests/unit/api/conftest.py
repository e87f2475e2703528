"""Shared fixtures for API tests.

This module provides a fake operator host and a test client whose app runs
that host in its lifespan. Prometheus metrics go to a private registry per
test so that apps can be created repeatedly.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from arcane_operator.api.app import create_app
from arcane_operator.core.services.operator import OperatorHost
from arcane_operator.core.services.pipeline import KillSwitch
from arcane_operator.core.services.stream_class_supervisor import KindHandle, StreamClassSupervisor

# =============================================================================
# Fake Host
# =============================================================================


@pytest.fixture
def make_task() -> Callable[..., MagicMock]:
    """Factory for fake asyncio tasks.

    Returns:
        Function accepting `name` and `done`.
    """

    def _make(name: str, done: bool = False) -> MagicMock:
        task = MagicMock()
        task.get_name = MagicMock(return_value=name)
        task.done = MagicMock(return_value=done)
        return task

    return _make


@pytest.fixture
def make_handle(make_task) -> Callable[..., KindHandle]:
    """Factory for attached kinds.

    Returns:
        Function accepting a StreamClass and whether its pipeline runs.
    """

    def _make(stream_class, running: bool = True) -> KindHandle:
        task = make_task(f"streams.{stream_class.stream_class_id}", done=not running)
        return KindHandle(stream_class=stream_class, kill_switch=KillSwitch(), task=task)

    return _make


@pytest.fixture
def fake_host(make_task) -> MagicMock:
    """Create a ready fake OperatorHost without attached kinds.

    Returns:
        MagicMock: Host with async start/stop, both pipelines running and
        a supervisor whose `handles` can be replaced by tests.
    """
    host = MagicMock(spec=OperatorHost)
    host.start = AsyncMock()
    host.stop = AsyncMock()
    host.is_ready = True
    host.tasks = [make_task("stream-classes"), make_task("jobs")]
    host.supervisor = MagicMock(spec=StreamClassSupervisor)
    host.supervisor.handles = {}
    return host


# =============================================================================
# FastAPI Test Client
# =============================================================================


@pytest.fixture
def test_client(fake_host: MagicMock) -> Iterator[TestClient]:
    """Create a FastAPI test client running `fake_host`.

    The client is entered so that the app's lifespan starts the host.

    Yields:
        TestClient: A configured test client for making HTTP requests.
    """
    app = create_app(host_factory=lambda: fake_host, registry=CollectorRegistry())
    with TestClient(app) as client:
        yield client
