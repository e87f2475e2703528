"""Shared fixtures for client tests.

This module provides a `KubeCluster` wired to mocked Kubernetes API objects
with a retry policy that does not sleep.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

from unittest.mock import MagicMock

import pytest
from kubernetes import client

from arcane_operator.clients.kube_cluster import KubeCluster, KubernetesErrorClassifier
from arcane_operator.foundation.retry import BackoffPolicy

# =============================================================================
# Kubernetes API Mocks
# =============================================================================


@pytest.fixture
def mock_custom_objects_api() -> MagicMock:
    """Create a mock CustomObjectsApi."""
    return MagicMock(spec=client.CustomObjectsApi)


@pytest.fixture
def mock_batch_api() -> MagicMock:
    """Create a mock BatchV1Api."""
    return MagicMock(spec=client.BatchV1Api)


@pytest.fixture
def mock_api_client() -> MagicMock:
    """Create a mock ApiClient whose serializer returns dicts unchanged."""
    api_client = MagicMock(spec=client.ApiClient)
    api_client.sanitize_for_serialization = MagicMock(side_effect=lambda obj: obj)
    return api_client


# =============================================================================
# KubeCluster Fixtures
# =============================================================================


@pytest.fixture
def make_cluster(mock_custom_objects_api, mock_batch_api, mock_api_client):
    """Factory for KubeCluster instances over the mocked APIs.

    Returns:
        Function accepting `max_attempts` and `circuit_breaker_threshold`.
    """

    def _make(max_attempts: int = 2, circuit_breaker_threshold: int = 5) -> KubeCluster:
        return KubeCluster(
            custom_objects_api=mock_custom_objects_api,
            batch_api=mock_batch_api,
            api_client=mock_api_client,
            retry=BackoffPolicy(
                max_attempts=max_attempts,
                wait_min=0,
                wait_max=0,
                classifier=KubernetesErrorClassifier(),
            ),
            circuit_breaker_threshold=circuit_breaker_threshold,
            watch_timeout_seconds=60,
        )

    return _make


@pytest.fixture
def cluster(make_cluster) -> KubeCluster:
    """A KubeCluster with default test settings."""
    return make_cluster()
