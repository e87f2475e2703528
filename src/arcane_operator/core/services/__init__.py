"""Reconciliation services.

Stream definitions and jobs flow through `EventPipeline`s; reconcilers turn
events into commands and `CommandDispatcher` executes them. `OperatorHost`
wires everything for the running process.
"""

from .command_handlers import CommandDispatcher
from .event_filter import ResourceVersionDuplicateFilter
from .job_reconciler import JobEventReconciler
from .metrics import MetricsReporter
from .operator import OperatorHost
from .pipeline import EventPipeline, KillSwitch
from .repositories import (
    StreamClassRepository,
    StreamDefinitionRepository,
    StreamingJobRepository,
    StreamingJobTemplateRepository,
)
from .stream_class_supervisor import StreamClassSupervisor
from .stream_reconciler import StreamReconciler

__all__ = [
    "CommandDispatcher",
    "EventPipeline",
    "JobEventReconciler",
    "KillSwitch",
    "MetricsReporter",
    "OperatorHost",
    "ResourceVersionDuplicateFilter",
    "StreamClassRepository",
    "StreamClassSupervisor",
    "StreamDefinitionRepository",
    "StreamReconciler",
    "StreamingJobRepository",
    "StreamingJobTemplateRepository",
]
