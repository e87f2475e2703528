"""Shared pytest configuration and fixtures.

This module provides global fixtures that are available to all tests in the
test suite. Resource fixtures are factories: each returns a function that
builds a Kubernetes document or domain model with sensible defaults, so that
tests only spell out the fields they care about.

Fixtures defined here are automatically available to all tests without explicit
import statements. Keep fixtures small, composable, and focused on setup/teardown.
Do NOT put business logic in fixtures.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from arcane_operator.core.models import (
    BACKFILLING_LABEL,
    CONFIGURATION_CHECKSUM_ANNOTATION_KEY,
    OWNER_API_GROUP_ANNOTATION_KEY,
    OWNER_API_PLURAL_ANNOTATION_KEY,
    OWNER_API_VERSION_ANNOTATION_KEY,
    STATE_ANNOTATION_KEY,
    STREAM_KIND_LABEL,
    CustomResourceApiRequest,
    StreamClass,
    StreamDefinition,
    StreamingJob,
    StreamingJobTemplate,
    compute_configuration_checksum,
)

NAMESPACE = "arcane"
STREAM_KIND = "SqlServerStream"
API_GROUP = "streaming.sneaksanddata.com"
API_VERSION = "v1beta1"
PLURAL = "sql-server-streams"

DEFAULT_SPEC: dict[str, Any] = {
    "jobTemplateRef": {"name": "standard-job"},
    "backfillJobTemplateRef": {"name": "large-job"},
    "connectionStringRef": {"name": "sql-server-secret"},
    "schema": "dbo",
    "table": "orders",
}

# =============================================================================
# Coordinates
# =============================================================================


@pytest.fixture
def stream_request() -> CustomResourceApiRequest:
    """Coordinates of the SqlServerStream collection used across tests."""
    return CustomResourceApiRequest(namespace=NAMESPACE, api_group=API_GROUP, api_version=API_VERSION, plural=PLURAL)


# =============================================================================
# Resource Factories
# =============================================================================


@pytest.fixture
def make_stream_class() -> Callable[..., StreamClass]:
    """Factory for StreamClass models.

    Returns:
        Function accepting `name`, `namespace`, `kind_ref`, `plural`,
        `resource_version`, `secret_refs` and `max_buffer_capacity`.
    """

    def _make(
        name: str = "arcane-stream-sql-server",
        namespace: str = NAMESPACE,
        kind_ref: str = STREAM_KIND,
        plural: str = PLURAL,
        resource_version: str = "1",
        secret_refs: list[str] | None = None,
        max_buffer_capacity: int = 100,
    ) -> StreamClass:
        return StreamClass.from_resource(
            {
                "apiVersion": f"{API_GROUP}/v1beta1",
                "kind": "StreamClass",
                "metadata": {"name": name, "namespace": namespace, "resourceVersion": resource_version},
                "spec": {
                    "apiGroupRef": API_GROUP,
                    "apiVersion": API_VERSION,
                    "pluralName": plural,
                    "kindRef": kind_ref,
                    "maxBufferCapacity": max_buffer_capacity,
                    "secretRefs": ["connectionStringRef"] if secret_refs is None else secret_refs,
                },
            }
        )

    return _make


@pytest.fixture
def make_definition(stream_request: CustomResourceApiRequest) -> Callable[..., StreamDefinition]:
    """Factory for StreamDefinition models.

    Returns:
        Function accepting `name`, `state` (value of the state annotation),
        `spec`, `resource_version` and `api_request`.
    """

    def _make(
        name: str = "orders-stream",
        state: str | None = None,
        spec: dict[str, Any] | None = None,
        resource_version: str = "1",
        api_request: CustomResourceApiRequest | None = stream_request,
    ) -> StreamDefinition:
        annotations = {} if state is None else {STATE_ANNOTATION_KEY: str(state)}
        return StreamDefinition.from_resource(
            {
                "apiVersion": f"{API_GROUP}/{API_VERSION}",
                "kind": STREAM_KIND,
                "metadata": {
                    "name": name,
                    "namespace": NAMESPACE,
                    "resourceVersion": resource_version,
                    "annotations": annotations,
                },
                "spec": dict(DEFAULT_SPEC) if spec is None else spec,
            },
            api_request=api_request,
        )

    return _make


@pytest.fixture
def make_job() -> Callable[..., StreamingJob]:
    """Factory for StreamingJob models.

    Returns:
        Function accepting `name`, `state`, `backfilling`, `checksum`,
        `failed`, `owned` (whether owner annotations are present) and
        `resource_version`. The checksum defaults to the checksum of the
        default stream spec.
    """

    def _make(
        name: str = "orders-stream",
        state: str | None = None,
        backfilling: bool = False,
        checksum: str | None = None,
        failed: bool = False,
        owned: bool = True,
        resource_version: str = "10",
    ) -> StreamingJob:
        annotations = {
            CONFIGURATION_CHECKSUM_ANNOTATION_KEY: checksum or compute_configuration_checksum(DEFAULT_SPEC),
        }
        if owned:
            annotations.update(
                {
                    OWNER_API_GROUP_ANNOTATION_KEY: API_GROUP,
                    OWNER_API_VERSION_ANNOTATION_KEY: API_VERSION,
                    OWNER_API_PLURAL_ANNOTATION_KEY: PLURAL,
                }
            )
        if state is not None:
            annotations[STATE_ANNOTATION_KEY] = str(state)
        conditions = [{"type": "Failed", "status": "True", "reason": "BackoffLimitExceeded"}] if failed else []
        return StreamingJob.from_resource(
            {
                "apiVersion": "batch/v1",
                "kind": "Job",
                "metadata": {
                    "name": name,
                    "namespace": NAMESPACE,
                    "resourceVersion": resource_version,
                    "labels": {
                        STREAM_KIND_LABEL: STREAM_KIND,
                        BACKFILLING_LABEL: str(backfilling).lower(),
                    },
                    "annotations": annotations,
                },
                "spec": {},
                "status": {"conditions": conditions},
            }
        )

    return _make


@pytest.fixture
def job_template() -> StreamingJobTemplate:
    """A job template with one container and template-level metadata."""
    return StreamingJobTemplate.from_resource(
        {
            "apiVersion": f"{API_GROUP}/v1",
            "kind": "StreamingJobTemplate",
            "metadata": {"name": "standard-job", "namespace": NAMESPACE},
            "spec": {
                "metadata": {
                    "labels": {"team": "data"},
                    "annotations": {"owner": "platform"},
                },
                "template": {
                    "spec": {
                        "backoffLimit": 3,
                        "template": {
                            "metadata": {"labels": {"app": "arcane-stream"}},
                            "spec": {
                                "restartPolicy": "Never",
                                "containers": [
                                    {
                                        "name": "stream",
                                        "image": "ghcr.io/sneaksanddata/arcane-stream-sql-server:1.0.0",
                                        "env": [{"name": "LOG_LEVEL", "value": "INFO"}],
                                    }
                                ],
                            },
                        },
                    }
                },
            },
        }
    )
