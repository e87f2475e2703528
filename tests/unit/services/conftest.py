"""Shared fixtures for service tests.

This module provides mocked Kubernetes accessors and repositories, a metrics
reporter on a private Prometheus registry, and helpers that build async
event sources from lists.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

import asyncio
from collections.abc import AsyncIterator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import CollectorRegistry

from arcane_operator.clients.kube_cluster import KubeCluster
from arcane_operator.core.models import ResourceEvent
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.core.services.repositories import (
    StreamClassRepository,
    StreamDefinitionRepository,
    StreamingJobRepository,
    StreamingJobTemplateRepository,
)

# =============================================================================
# Accessor and Repository Mocks
# =============================================================================


@pytest.fixture
def mock_cluster() -> MagicMock:
    """Create a mock KubeCluster with async operations.

    Returns:
        MagicMock: Reads return None, writes succeed.
    """
    cluster = MagicMock(spec=KubeCluster)
    cluster.get_custom_resource = AsyncMock(return_value=None)
    cluster.list_custom_resources = AsyncMock()
    cluster.patch_custom_resource_status = AsyncMock(return_value={})
    cluster.annotate_custom_resource = AsyncMock(return_value={})
    cluster.list_jobs = AsyncMock()
    cluster.get_job = AsyncMock(return_value=None)
    cluster.send_job = AsyncMock(return_value={})
    cluster.delete_job = AsyncMock(return_value=True)
    cluster.annotate_job = AsyncMock(return_value={})
    return cluster


@pytest.fixture
def metrics() -> MetricsReporter:
    """A metrics reporter registered on a private registry."""
    return MetricsReporter(registry=CollectorRegistry())


@pytest.fixture
def mock_jobs() -> MagicMock:
    """Create a mock StreamingJobRepository; no stream has a job."""
    jobs = MagicMock(spec=StreamingJobRepository)
    jobs.get = AsyncMock(return_value=None)
    return jobs


@pytest.fixture
def mock_definitions() -> MagicMock:
    """Create a mock StreamDefinitionRepository; no definition exists."""
    definitions = MagicMock(spec=StreamDefinitionRepository)
    definitions.get = AsyncMock(return_value=None)
    return definitions


@pytest.fixture
def mock_job_templates(job_template) -> MagicMock:
    """Create a mock StreamingJobTemplateRepository returning `job_template`."""
    templates = MagicMock(spec=StreamingJobTemplateRepository)
    templates.get = AsyncMock(return_value=job_template)
    return templates


@pytest.fixture
def mock_stream_classes(make_stream_class, stream_request) -> MagicMock:
    """Create a mock StreamClassRepository knowing the default StreamClass."""
    stream_classes = MagicMock(spec=StreamClassRepository)
    stream_classes.get = MagicMock(return_value=make_stream_class())
    stream_classes.request = stream_request
    return stream_classes



# =============================================================================
# Event Sources
# =============================================================================


async def events_from(items: list) -> AsyncIterator[ResourceEvent]:
    """Async generator yielding events, or raising items that are exceptions."""
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


async def idle() -> AsyncIterator[ResourceEvent]:
    """Async generator that never yields, like a watch without traffic."""
    await asyncio.Event().wait()
    yield  # pragma: no cover


@pytest.fixture
def source_factory() -> Callable[..., Callable[[], AsyncIterator[ResourceEvent]]]:
    """Factory for pipeline sources.

    Each argument is the list of items of one subscription; the source
    returns them in order on successive subscriptions and then idles.

    Returns:
        Function accepting subscriptions, returning a source with a
        `subscriptions` counter attribute.
    """

    def _make(*subscriptions: list) -> Callable[[], AsyncIterator[ResourceEvent]]:
        remaining = list(subscriptions)

        def source() -> AsyncIterator[ResourceEvent]:
            source.subscriptions += 1
            if not remaining:
                return idle()
            return events_from(remaining.pop(0))

        source.subscriptions = 0
        return source

    return _make
