"""Core domain of the operator: models, commands, exceptions and services.

- `models`: typed views of StreamClasses, stream definitions, jobs and
  job templates
- `commands`: the cluster mutations reconcilers can request
- `exceptions`: operator exception hierarchy
- `services`: repositories, reconcilers, command handlers and pipelines
"""

from .commands import KubernetesCommand
from .exceptions import (
    BufferOverflowError,
    ConfigurationError,
    KubernetesApiError,
    OperatorError,
    UnexpectedStateError,
    WatchTargetNotFoundError,
)

__all__ = [
    "BufferOverflowError",
    "ConfigurationError",
    "KubernetesApiError",
    "KubernetesCommand",
    "OperatorError",
    "UnexpectedStateError",
    "WatchTargetNotFoundError",
]
