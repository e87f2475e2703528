"""Bounded retries with exponential backoff (tenacity).

Two kinds of retrying exist in the operator:

- single request/response calls to the API server are retried a few times
  by `BackoffPolicy`, driven by an error classifier
- event sources of the pipelines are re-subscribed indefinitely; the
  pipeline runner builds its own `AsyncRetrying` and only borrows
  `retry_logger` from here

## Classifiers

`StatusCodeClassifier` retries throttling (429) and gateway/server errors
(500, 502, 503, 504) and a configurable set of connection-level exceptions.
Client-specific subclasses tell it where the status code lives:

```python
class KubernetesErrorClassifier(StatusCodeClassifier):
    transient_errors = (urllib3.exceptions.HTTPError, ConnectionError)

    def status_of(self, exc: BaseException) -> int | None:
        return exc.status if isinstance(exc, ApiException) else None


policy = BackoffPolicy(max_attempts=5, classifier=KubernetesErrorClassifier())
policy.call(api.read_namespaced_job, name, namespace)
```
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import attrs
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

T = TypeVar("T")

RETRIABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# Bugs, not outages.
NEVER_RETRIED: tuple[type[BaseException], ...] = (TypeError, AttributeError, KeyError)


class StatusCodeClassifier:
    """Classify failures by HTTP status, falling back to exception type.

    Attributes:
        retriable_statuses: Statuses worth another attempt.
        transient_errors: Exception types retried when no status is known.
    """

    retriable_statuses: frozenset[int] = RETRIABLE_STATUSES
    transient_errors: tuple[type[BaseException], ...] = (ConnectionError,)

    def status_of(self, exc: BaseException) -> int | None:
        status = getattr(exc, "status", None)
        return status if isinstance(status, int) else None

    def is_retriable(self, exc: BaseException) -> bool:
        status = self.status_of(exc)
        if status is not None:
            return status in self.retriable_statuses
        return isinstance(exc, self.transient_errors)

    def describe(self, exc: BaseException) -> dict[str, Any]:
        """Fields added to retry log records."""
        status = self.status_of(exc)
        return {} if status is None else {"http_status": status}


def retry_logger(
    logger: logging.Logger,
    message: str,
    extra: dict[str, Any] | None = None,
    describe: Callable[[BaseException], dict[str, Any]] | None = None,
) -> Callable[[RetryCallState], None]:
    """Build a tenacity `before_sleep` callback logging the upcoming retry.

    Args:
        logger: Logger the warning is written to.
        message: Log message.
        extra: Static fields of every record, e.g. the pipeline name.
        describe: Extracts failure-specific fields, e.g. the HTTP status.

    Returns:
        Callback for `before_sleep`.
    """

    def log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return
        exc = outcome.exception()
        fields = {
            **(extra or {}),
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(retry_state.next_action.sleep, 2) if retry_state.next_action else 0,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
        }
        if describe is not None:
            fields.update(describe(exc))
        logger.warning(message, extra=fields)

    return log_retry


@attrs.define(frozen=True, slots=True)
class BackoffPolicy:
    """Retry policy for a single blocking call.

    Attributes:
        max_attempts: Attempts including the first one.
        wait_min: Lower bound of the exponential wait, in seconds.
        wait_max: Upper bound of the exponential wait, in seconds.
        classifier: Decides which failures are retried. Without one nothing
            is retried.
        logger: Receives one warning per retry and one error when attempts
            run out.
    """

    max_attempts: int = 3
    wait_min: float = 0.5
    wait_max: float = 10.0
    classifier: StatusCodeClassifier | None = None
    logger: logging.Logger = attrs.field(factory=lambda: logging.getLogger("arcane_operator.retry"))

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, NEVER_RETRIED) or self.classifier is None:
            return False
        return self.classifier.is_retriable(exc)

    def _log_exhausted(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed or retry_state.attempt_number < self.max_attempts:
            return
        exc = outcome.exception()
        self.logger.error(
            "Giving up after retries",
            extra={"max_attempts": self.max_attempts, "error_type": type(exc).__name__, "error": str(exc)},
        )

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run `func(*args, **kwargs)`, retrying classified failures.

        Raises:
            Exception: The first failure that is not retried, or the last
                one once attempts are exhausted.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(min=self.wait_min, max=self.wait_max),
            retry=retry_if_exception(self.should_retry),
            before_sleep=retry_logger(
                self.logger,
                "Kubernetes call failed, retrying",
                describe=self.classifier.describe if self.classifier is not None else None,
            ),
            after=self._log_exhausted,
            reraise=True,
        )
        return retrying(func, *args, **kwargs)
