"""Kubernetes resource accessor used by the operator.

`KubeCluster` wraps the official `kubernetes` client and exposes the
operations the reconcilers need on custom resources and batch jobs:
list, watch, get, patch status, annotate, create and delete.

Every request/response call:
- runs the blocking client call on a worker thread (`asyncio.to_thread`)
- is retried with exponential backoff for throttling, 5xx and connection
  errors (`BackoffPolicy` + `KubernetesErrorClassifier`)
- is protected by a circuit breaker that ignores 4xx answers
- surfaces API failures as `KubernetesApiError`

Resources are returned as plain JSON documents (camelCase keys). Typed
client models (`V1Job`) are converted with `ApiClient.sanitize_for_serialization`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import attrs
import urllib3
from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException

from arcane_operator.clients.mixins import BreakerMixin
from arcane_operator.clients.watch_stream import WatchEventStream
from arcane_operator.config import KubernetesConfig
from arcane_operator.core.exceptions import KubernetesApiError
from arcane_operator.core.models import CustomResourceApiRequest
from arcane_operator.foundation.circuit_breaker import IgnoredFailure, guarded_by_breaker
from arcane_operator.foundation.retry import BackoffPolicy, StatusCodeClassifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

MERGE_PATCH = "application/merge-patch+json"


class KubernetesErrorClassifier(StatusCodeClassifier):
    """Retry throttling, server errors and broken connections; fail fast on the rest."""

    transient_errors = (urllib3.exceptions.HTTPError, ConnectionError)

    def status_of(self, exc: BaseException) -> int | None:
        return exc.status if isinstance(exc, ApiException) else None

    def describe(self, exc: BaseException) -> dict[str, Any]:
        if isinstance(exc, ApiException):
            return {"http_status": exc.status, "reason": exc.reason}
        return {}


@attrs.define(frozen=True, slots=True)
class ResourceList:
    """Result of a list call.

    Attributes:
        items: Resource documents.
        resource_version: Collection resourceVersion to start a watch from.
    """

    items: list[dict[str, Any]]
    resource_version: str | None


@attrs.define(frozen=False, slots=True)
class KubeCluster(BreakerMixin):
    """Accessor for custom resources and batch jobs.

    Example:
        >>> cluster = KubeCluster.from_config(KubernetesConfig.from_env())
        >>> job = await cluster.get_job("my-stream", "arcane")
    """

    custom_objects_api: client.CustomObjectsApi
    batch_api: client.BatchV1Api
    api_client: client.ApiClient
    retry: BackoffPolicy = attrs.field(factory=lambda: BackoffPolicy(classifier=KubernetesErrorClassifier()))
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 30
    watch_timeout_seconds: int = 300
    _classifier: KubernetesErrorClassifier = attrs.field(init=False, factory=KubernetesErrorClassifier)

    def __attrs_post_init__(self) -> None:
        self._install_breaker("kubernetes", self.circuit_breaker_threshold, self.circuit_breaker_timeout)

    def _ignored_failures(self) -> list[IgnoredFailure]:
        # 4xx answers other than throttling
        return [lambda e: isinstance(e, ApiException) and not self._classifier.is_retriable(e)]

    @classmethod
    def from_config(cls, kubernetes_config: KubernetesConfig) -> KubeCluster:
        """Create an accessor, loading in-cluster credentials or the local kubeconfig.

        Args:
            kubernetes_config: Kubernetes client configuration.

        Returns:
            Configured KubeCluster instance.
        """
        if kubernetes_config.in_cluster:
            try:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration")
            except config.ConfigException:
                config.load_kube_config()
                logger.info("Loaded Kubernetes configuration from kubeconfig")
        else:
            config.load_kube_config()
            logger.info("Loaded Kubernetes configuration from kubeconfig")

        api_client = client.ApiClient()
        return cls(
            custom_objects_api=client.CustomObjectsApi(api_client),
            batch_api=client.BatchV1Api(api_client),
            api_client=api_client,
            retry=BackoffPolicy(
                max_attempts=kubernetes_config.retry_max_attempts,
                wait_min=kubernetes_config.retry_min_wait,
                wait_max=kubernetes_config.retry_max_wait,
                classifier=KubernetesErrorClassifier(),
                logger=logger,
            ),
            circuit_breaker_threshold=kubernetes_config.circuit_breaker_threshold,
            circuit_breaker_timeout=kubernetes_config.circuit_breaker_timeout,
            watch_timeout_seconds=kubernetes_config.watch_timeout_seconds,
        )

    # =========================================================================
    # Call plumbing
    # =========================================================================

    @guarded_by_breaker("Kubernetes API server")
    def _guarded(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return func(*args, **kwargs)

    def _call_sync(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return self.retry.call(self._guarded, func, *args, **kwargs)

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(self._call_sync, func, *args, **kwargs)
        except urllib3.exceptions.HTTPError as e:
            raise KubernetesApiError(f"Kubernetes API server unreachable: {e}") from e

    def _to_dict(self, obj: Any) -> Any:
        if obj is None or isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    @staticmethod
    def _api_error(e: ApiException, action: str, extra: dict[str, Any]) -> KubernetesApiError:
        logger.warning(
            f"Failed to {action}",
            extra={**extra, "http_status": e.status, "reason": e.reason},
        )
        return KubernetesApiError(f"Failed to {action}: {e.status} {e.reason}", status=e.status, reason=e.reason)

    def _watch(self, list_func: Callable[..., Any], name: str, buffer_capacity: int, **kwargs: Any) -> WatchEventStream:
        w = watch.Watch()
        kwargs["timeout_seconds"] = self.watch_timeout_seconds
        return WatchEventStream(
            events=lambda: w.stream(list_func, **kwargs),
            buffer_capacity=buffer_capacity,
            name=name,
            on_close=w.stop,
        )

    # =========================================================================
    # Custom resources
    # =========================================================================

    async def list_custom_resources(self, request: CustomResourceApiRequest) -> ResourceList:
        """List all resources of a custom resource collection."""
        try:
            response = await self._call(
                self.custom_objects_api.list_namespaced_custom_object,
                request.api_group,
                request.api_version,
                request.namespace,
                request.plural,
            )
        except ApiException as e:
            raise self._api_error(e, f"list {request.plural}", attrs.asdict(request)) from e

        return ResourceList(
            items=list(response.get("items") or []),
            resource_version=(response.get("metadata") or {}).get("resourceVersion"),
        )

    def watch_custom_resources(
        self,
        request: CustomResourceApiRequest,
        buffer_capacity: int,
        resource_version: str | None = None,
    ) -> WatchEventStream:
        """Watch a custom resource collection.

        Args:
            request: Collection coordinates.
            buffer_capacity: Max events buffered for the consumer.
            resource_version: Start the watch after this collection version.

        Returns:
            An unstarted WatchEventStream; use it as an async context manager.
        """
        kwargs: dict[str, Any] = {
            "group": request.api_group,
            "version": request.api_version,
            "namespace": request.namespace,
            "plural": request.plural,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version
        return self._watch(
            self.custom_objects_api.list_namespaced_custom_object,
            f"{request.namespace}/{request.plural}",
            buffer_capacity,
            **kwargs,
        )

    async def get_custom_resource(self, request: CustomResourceApiRequest, name: str) -> dict[str, Any] | None:
        """Read a custom resource; returns None if it does not exist."""
        try:
            return await self._call(
                self.custom_objects_api.get_namespaced_custom_object,
                request.api_group,
                request.api_version,
                request.namespace,
                request.plural,
                name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._api_error(e, f"get {request.plural}/{name}", attrs.asdict(request)) from e

    async def patch_custom_resource_status(
        self,
        request: CustomResourceApiRequest,
        name: str,
        status: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Replace fields of a custom resource's status sub-resource.

        Returns:
            The patched resource, or None if the resource no longer exists.
        """
        try:
            return await self._call(
                self.custom_objects_api.patch_namespaced_custom_object_status,
                request.api_group,
                request.api_version,
                request.namespace,
                request.plural,
                name,
                {"status": status},
                _content_type=MERGE_PATCH,
            )
        except ApiException as e:
            if e.status == 404:
                logger.warning(
                    "Resource disappeared before its status could be written",
                    extra={**attrs.asdict(request), "resource_name": name},
                )
                return None
            raise self._api_error(e, f"patch status of {request.plural}/{name}", attrs.asdict(request)) from e

    async def annotate_custom_resource(
        self,
        request: CustomResourceApiRequest,
        name: str,
        key: str,
        value: str | None,
    ) -> dict[str, Any] | None:
        """Set an annotation on a custom resource; a None value removes it.

        Returns:
            The patched resource, or None if the resource no longer exists.
        """
        try:
            return await self._call(
                self.custom_objects_api.patch_namespaced_custom_object,
                request.api_group,
                request.api_version,
                request.namespace,
                request.plural,
                name,
                {"metadata": {"annotations": {key: value}}},
                _content_type=MERGE_PATCH,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._api_error(e, f"annotate {request.plural}/{name}", attrs.asdict(request)) from e

    # =========================================================================
    # Jobs
    # =========================================================================

    async def list_jobs(self, namespace: str) -> ResourceList:
        try:
            response = await self._call(self.batch_api.list_namespaced_job, namespace)
        except ApiException as e:
            raise self._api_error(e, "list jobs", {"namespace": namespace}) from e

        document = self._to_dict(response)
        return ResourceList(
            items=list(document.get("items") or []),
            resource_version=(document.get("metadata") or {}).get("resourceVersion"),
        )

    def watch_jobs(self, namespace: str, buffer_capacity: int, resource_version: str | None = None) -> WatchEventStream:
        kwargs: dict[str, Any] = {"namespace": namespace}
        if resource_version:
            kwargs["resource_version"] = resource_version
        return self._watch(self.batch_api.list_namespaced_job, f"{namespace}/jobs", buffer_capacity, **kwargs)

    async def get_job(self, name: str, namespace: str) -> dict[str, Any] | None:
        """Read a job; returns None if it does not exist."""
        try:
            response = await self._call(self.batch_api.read_namespaced_job, name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._api_error(e, f"get job {name}", {"namespace": namespace}) from e
        return self._to_dict(response)

    async def send_job(self, job: dict[str, Any], namespace: str) -> dict[str, Any] | None:
        """Create a job.

        Returns:
            The created job, or None if a job with the same name already
            exists (the job name is the stream id, so this is the live job).
        """
        name = (job.get("metadata") or {}).get("name")
        try:
            response = await self._call(self.batch_api.create_namespaced_job, namespace, job)
        except ApiException as e:
            if e.status == 409:
                logger.info("Job already exists", extra={"namespace": namespace, "job_name": name})
                return None
            raise self._api_error(e, f"create job {name}", {"namespace": namespace}) from e
        return self._to_dict(response)

    async def delete_job(self, name: str, namespace: str, propagation_policy: str = "Foreground") -> bool:
        """Delete a job.

        Returns:
            True if the job was deleted, False if it did not exist.
        """
        try:
            await self._call(
                self.batch_api.delete_namespaced_job,
                name,
                namespace,
                propagation_policy=propagation_policy,
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise self._api_error(e, f"delete job {name}", {"namespace": namespace}) from e
        return True

    async def annotate_job(self, name: str, namespace: str, key: str, value: str | None) -> dict[str, Any] | None:
        """Set an annotation on a job; returns None if the job no longer exists."""
        try:
            response = await self._call(
                self.batch_api.patch_namespaced_job,
                name,
                namespace,
                {"metadata": {"annotations": {key: value}}},
                _content_type=MERGE_PATCH,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._api_error(e, f"annotate job {name}", {"namespace": namespace}) from e
        return self._to_dict(response)
