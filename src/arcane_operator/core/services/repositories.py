"""Typed repositories over the Kubernetes accessor.

Each repository turns raw documents returned by `KubeCluster` into domain
models and exposes event sources that first list the collection and then
watch it from the listed resourceVersion. Listed stream definitions are
reported as Modified events; listed jobs and StreamClasses as Added events,
the same way a watch started without a resourceVersion reports them.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

from arcane_operator.clients.kube_cluster import KubeCluster, ResourceList
from arcane_operator.clients.watch_stream import WatchEventStream
from arcane_operator.config import JobTemplateConfig, StreamClassOperatorConfig
from arcane_operator.core.exceptions import KubernetesApiError, WatchTargetNotFoundError
from arcane_operator.core.models import (
    CustomResourceApiRequest,
    KubernetesResource,
    ResourceEvent,
    StreamClass,
    StreamDefinition,
    StreamingJob,
    StreamingJobTemplate,
    WatchEventType,
)
from arcane_operator.foundation.cache import BoundedCache

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=KubernetesResource)


async def list_then_watch(
    listing: Callable[[], Awaitable[ResourceList]],
    watch: Callable[[str | None], WatchEventStream],
    decode: Callable[[dict[str, Any]], R],
    initial_event_type: WatchEventType = WatchEventType.MODIFIED,
) -> AsyncIterator[ResourceEvent[R]]:
    """Initial sync followed by a watch from the listed resourceVersion.

    Args:
        listing: Coroutine factory listing the collection.
        watch: Creates a watch starting at the given resourceVersion.
        decode: Converts a raw document into a domain model.
        initial_event_type: Event type reported for listed resources.

    Yields:
        One event per listed resource, then every watch event.
    """
    resources = await listing()
    for item in resources.items:
        yield ResourceEvent(initial_event_type, decode(item))

    async with watch(resources.resource_version) as stream:
        async for event_type, resource in stream:
            yield ResourceEvent(event_type, decode(resource))


async def _list_or_not_found(cluster: KubeCluster, request: CustomResourceApiRequest) -> ResourceList:
    try:
        return await cluster.list_custom_resources(request)
    except KubernetesApiError as e:
        if e.status == 404:
            msg = f"Custom resource collection {request.api_version_string}/{request.plural} does not exist"
            raise WatchTargetNotFoundError(msg) from e
        raise


class StreamDefinitionRepository:
    """Stream definitions of any kind, addressed by their collection coordinates."""

    def __init__(self, cluster: KubeCluster) -> None:
        self.cluster = cluster

    async def get(self, request: CustomResourceApiRequest, name: str) -> StreamDefinition | None:
        resource = await self.cluster.get_custom_resource(request, name)
        if resource is None:
            return None
        return StreamDefinition.from_resource(resource, api_request=request)

    def get_events(
        self, request: CustomResourceApiRequest, buffer_capacity: int
    ) -> AsyncIterator[ResourceEvent[StreamDefinition]]:
        return list_then_watch(
            lambda: _list_or_not_found(self.cluster, request),
            lambda resource_version: self.cluster.watch_custom_resources(request, buffer_capacity, resource_version),
            lambda resource: StreamDefinition.from_resource(resource, api_request=request),
        )


class StreamingJobRepository:
    """Streaming jobs, addressed by namespace and stream id."""

    def __init__(self, cluster: KubeCluster) -> None:
        self.cluster = cluster

    async def get(self, namespace: str, stream_id: str) -> StreamingJob | None:
        resource = await self.cluster.get_job(stream_id, namespace)
        return None if resource is None else StreamingJob.from_resource(resource)

    def get_events(self, namespace: str, buffer_capacity: int) -> AsyncIterator[ResourceEvent[StreamingJob]]:
        return list_then_watch(
            lambda: self.cluster.list_jobs(namespace),
            lambda resource_version: self.cluster.watch_jobs(namespace, buffer_capacity, resource_version),
            StreamingJob.from_resource,
            initial_event_type=WatchEventType.ADDED,
        )


class StreamingJobTemplateRepository:
    """Job templates, looked up by name in the stream's namespace."""

    def __init__(self, cluster: KubeCluster, config: JobTemplateConfig) -> None:
        self.cluster = cluster
        self.config = config

    async def get(self, namespace: str, name: str) -> StreamingJobTemplate | None:
        request = CustomResourceApiRequest(
            namespace=namespace,
            api_group=self.config.api_group,
            api_version=self.config.api_version,
            plural=self.config.plural,
        )
        resource = await self.cluster.get_custom_resource(request, name)
        return None if resource is None else StreamingJobTemplate.from_resource(resource)


class StreamClassRepository:
    """StreamClass event source plus the in-process lookup cache.

    The cache maps a kind reference (e.g. "SqlServerStream") to the
    StreamClass registering it. It is filled when a StreamClass becomes
    ready and emptied when it is detached.

    Args:
        cluster: Kubernetes accessor.
        config: StreamClass watch configuration.
        cache_size: Max StreamClasses kept in the lookup cache.
    """

    def __init__(self, cluster: KubeCluster, config: StreamClassOperatorConfig, cache_size: int = 256) -> None:
        self.cluster = cluster
        self.config = config
        self._cache: BoundedCache[str, StreamClass] = BoundedCache(max_size=cache_size)

    @property
    def request(self) -> CustomResourceApiRequest:
        return CustomResourceApiRequest(
            namespace=self.config.namespace,
            api_group=self.config.api_group,
            api_version=self.config.api_version,
            plural=self.config.plural,
        )

    def get(self, kind: str) -> StreamClass | None:
        return self._cache.get(kind)

    def insert_or_update(self, stream_class: StreamClass) -> None:
        self._cache.put(stream_class.kind_ref, stream_class)

    def remove(self, stream_class: StreamClass) -> None:
        self._cache.pop(stream_class.kind_ref)

    def get_events(self) -> AsyncIterator[ResourceEvent[StreamClass]]:
        request = self.request
        return list_then_watch(
            lambda: _list_or_not_found(self.cluster, request),
            lambda resource_version: self.cluster.watch_custom_resources(
                request, self.config.max_buffer_capacity, resource_version
            ),
            StreamClass.from_resource,
            initial_event_type=WatchEventType.ADDED,
        )
