"""Operator host: wires the reconciliation engine and runs its pipelines.

Two long running pipelines are started:

- StreamClass pipeline: feeds `StreamClassSupervisor`, which in turn runs
  one stream pipeline per registered kind
- Job pipeline: feeds `JobEventReconciler` with the jobs of the streaming
  job namespace

A failure of either top-level pipeline is logged and marks the host as not
ready; the readiness probe then lets Kubernetes restart the operator.
"""

import asyncio
import logging

from arcane_operator.clients.kube_cluster import KubeCluster
from arcane_operator.config import Settings
from arcane_operator.core.models import StreamClass, StreamingJob
from arcane_operator.core.services.command_handlers import CommandDispatcher
from arcane_operator.core.services.event_filter import ResourceVersionDuplicateFilter
from arcane_operator.core.services.job_reconciler import JobEventReconciler
from arcane_operator.core.services.metrics import MetricsReporter
from arcane_operator.core.services.pipeline import EventPipeline, KillSwitch
from arcane_operator.core.services.repositories import (
    StreamClassRepository,
    StreamDefinitionRepository,
    StreamingJobRepository,
    StreamingJobTemplateRepository,
)
from arcane_operator.core.services.stream_class_supervisor import StreamClassSupervisor

logger = logging.getLogger(__name__)


class OperatorHost:
    """Owns the pipelines of the operator process.

    Args:
        settings: Operator settings.
        cluster: Kubernetes accessor.
        metrics: Metrics reporter; one on the default registry if None.

    Example:
        ```python
        host = OperatorHost.from_settings(get_settings())
        await host.start()
        ...
        await host.stop()
        ```
    """

    def __init__(self, settings: Settings, cluster: KubeCluster, metrics: MetricsReporter | None = None) -> None:
        self.settings = settings
        self.cluster = cluster
        self.metrics = metrics if metrics is not None else MetricsReporter()

        reconciler_config = settings.reconciler
        self.stream_classes = StreamClassRepository(
            cluster, settings.stream_class, cache_size=reconciler_config.stream_class_cache_size
        )
        self.definitions = StreamDefinitionRepository(cluster)
        self.jobs = StreamingJobRepository(cluster)
        self.job_templates = StreamingJobTemplateRepository(cluster, settings.job_template)
        self.dispatcher = CommandDispatcher.create(
            cluster=cluster,
            stream_classes=self.stream_classes,
            job_templates=self.job_templates,
            metrics=self.metrics,
            delete_propagation_policy=settings.streaming_job.delete_propagation_policy,
        )
        self.supervisor = StreamClassSupervisor(
            stream_classes=self.stream_classes,
            definitions=self.definitions,
            jobs=self.jobs,
            dispatcher=self.dispatcher,
            metrics=self.metrics,
            config=reconciler_config,
        )
        self.kill_switch = KillSwitch()
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "OperatorHost":
        return cls(settings, KubeCluster.from_config(settings.kubernetes))

    @property
    def tasks(self) -> list[asyncio.Task]:
        return list(self._tasks)

    @property
    def is_ready(self) -> bool:
        return bool(self._tasks) and not self.kill_switch.is_triggered and all(not t.done() for t in self._tasks)

    def stream_class_pipeline(self) -> EventPipeline[StreamClass]:
        config = self.settings.reconciler
        return EventPipeline(
            name="stream-classes",
            source=self.stream_classes.get_events,
            decide=self.supervisor.reconcile,
            dispatch=self.dispatcher.handle,
            kill_switch=self.kill_switch,
            event_filter=ResourceVersionDuplicateFilter(max_size=config.dedup_cache_size),
            metrics=self.metrics,
            restart_min_wait=config.watch_restart_min_wait,
            restart_max_wait=config.watch_restart_max_wait,
        )

    def job_pipeline(self) -> EventPipeline[StreamingJob]:
        config = self.settings.reconciler
        job_config = self.settings.streaming_job
        return EventPipeline(
            name="jobs",
            source=lambda: self.jobs.get_events(job_config.namespace, job_config.max_buffer_capacity),
            decide=JobEventReconciler(self.definitions).reconcile,
            dispatch=self.dispatcher.handle,
            kill_switch=self.kill_switch,
            event_filter=ResourceVersionDuplicateFilter(max_size=config.dedup_cache_size),
            metrics=self.metrics,
            restart_min_wait=config.watch_restart_min_wait,
            restart_max_wait=config.watch_restart_max_wait,
        )

    async def start(self) -> None:
        if self._tasks:
            return
        for pipeline in (self.stream_class_pipeline(), self.job_pipeline()):
            task = asyncio.create_task(pipeline.run(), name=pipeline.name)
            task.add_done_callback(self._log_exit)
            self._tasks.append(task)
        logger.info(
            "Operator started",
            extra={
                "stream_class_namespace": self.settings.stream_class.namespace,
                "job_namespace": self.settings.streaming_job.namespace,
            },
        )

    async def stop(self) -> None:
        """Stop admitting events, then wait for in-flight commands to finish."""
        self.kill_switch.trigger()
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self.settings.reconciler.shutdown_timeout)
            for task in pending:
                logger.warning("Pipeline did not stop in time, cancelling", extra={"pipeline": task.get_name()})
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        await self.supervisor.stop()
        logger.info("Operator stopped")

    def _log_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Pipeline terminated, operator is no longer ready",
                extra={"pipeline": task.get_name()},
                exc_info=(type(error), error, error.__traceback__),
            )
