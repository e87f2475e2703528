"""Exception hierarchy for the operator.

This module defines a framework-agnostic exception hierarchy that allows:
- The Kubernetes accessor to report API failures without leaking
  `kubernetes.client.ApiException` into the reconcilers
- The pipeline runner to tell fatal failures (stop the pipeline) from
  transient ones (log and resume)
- API routes to translate exceptions into HTTP status codes

## Exception Hierarchy

All operator exceptions inherit from `OperatorError`, except
`KubernetesApiError`, which is an `UpstreamError` so that it shares the
circuit breaker's error type:

- `KubernetesApiError`: API server returned an error (transient or not)
- `WatchTargetNotFoundError`: the watched resource type does not exist
  (fatal to the pipeline that watches it)
- `BufferOverflowError`: a bounded event buffer overflowed (fatal to the
  pipeline that owns it)
- `ConfigurationError`: a StreamClass or job template a stream refers to is
  missing (reported on the stream's status)
- `UnexpectedStateError`: a reconciler received a combination its decision
  tables do not cover

## Pipeline policy

```python
BufferOverflowError          -> pipeline stops, supervisor re-subscribes
WatchTargetNotFoundError     -> pipeline stops, StreamClass marked FAILED
anything else                -> logged, next event is processed
```
"""

from arcane_operator.foundation.exceptions import UpstreamError


class OperatorError(Exception):
    """Base exception class for all operator errors.

    This exception maps to HTTP 500 (Internal Server Error) if it reaches the
    HTTP layer.
    """


class KubernetesApiError(UpstreamError):
    """Exception raised when the Kubernetes API server rejects or fails a call.

    Attributes:
        status: HTTP status returned by the API server, None for connection
            level failures.
        reason: Reason phrase or message returned by the API server.
    """

    def __init__(self, message: str, status: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class WatchTargetNotFoundError(OperatorError):
    """Exception raised when a watch targets a resource type that does not exist.

    Typically the CRD referenced by a StreamClass was never installed or has
    been removed. Distinct from a missing resource instance, which is reported
    as `None` by the accessor.
    """


class BufferOverflowError(OperatorError):
    """Exception raised when a bounded watch buffer is full.

    The consumer of a watch fell behind by more than the buffer capacity. The
    pipeline owning the buffer must stop and be re-subscribed from scratch.
    """


class ConfigurationError(OperatorError):
    """Exception raised when a stream refers to configuration that does not exist.

    Examples:
        - No StreamClass registered for the stream's kind
        - Job template named in the stream spec is missing
    """


class UnexpectedStateError(OperatorError):
    """Exception raised when a reconciler receives an input it cannot decide on."""
