"""Circuit breaker for calls to the Kubernetes API server (pybreaker).

Every pipeline of the operator talks to the same API server. When it is
degraded, retrying from each pipeline independently only adds load, so
accessor calls share one breaker: after `fail_max` consecutive outages the
breaker opens and calls fail with `UpstreamError` until `reset_timeout`
seconds pass and a trial call succeeds.

Answers such as 404 or 409 are not outages; accessors pass them to
`breaker_for` as ignored failures so they never open the breaker.

```python
@attrs.define(slots=True)
class KubeCluster(BreakerMixin):
    def __attrs_post_init__(self) -> None:
        self._install_breaker("kubernetes", fail_max=5, reset_timeout=30)

    @guarded_by_breaker("Kubernetes API server")
    def _read(self, name: str) -> dict:
        ...
```
"""

import functools
import logging
from collections.abc import Callable, Iterable
from typing import Any

import pybreaker

from arcane_operator.foundation.exceptions import UpstreamError

logger = logging.getLogger("arcane_operator.circuit_breaker")

IgnoredFailure = type[BaseException] | Callable[[BaseException], bool]


class ApiServerBreakerListener(pybreaker.CircuitBreakerListener):
    """Logs breaker transitions and counted failures."""

    def state_change(
        self,
        cb: pybreaker.CircuitBreaker,
        old_state: pybreaker.CircuitBreakerState | None,
        new_state: pybreaker.CircuitBreakerState,
    ) -> None:
        fields = {
            "breaker": cb.name,
            "from_state": old_state.name if old_state is not None else None,
            "to_state": new_state.name,
            "consecutive_failures": cb.fail_counter,
        }
        if new_state.name == pybreaker.STATE_OPEN:
            logger.warning("Breaker opened, failing calls fast", extra=fields)
        else:
            logger.info("Breaker state changed", extra=fields)

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.debug(
            "Breaker counted a failure",
            extra={"breaker": cb.name, "error_type": type(exc).__name__, "error": str(exc)},
        )


def breaker_for(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 30,
    ignored: Iterable[IgnoredFailure] = (),
) -> pybreaker.CircuitBreaker:
    """Create a breaker with the logging listener attached.

    Args:
        name: Breaker name, used in logs.
        fail_max: Consecutive counted failures that open the breaker.
        reset_timeout: Seconds the breaker stays open before a trial call.
        ignored: Exception types or predicates that are not counted.

    Returns:
        A closed breaker.
    """
    return pybreaker.CircuitBreaker(
        name=name,
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=list(ignored),
        listeners=[ApiServerBreakerListener()],
    )


def _breaker_of(instance: object) -> pybreaker.CircuitBreaker:
    breaker = getattr(instance, "_breaker", None)
    if breaker is None:
        raise RuntimeError(f"{type(instance).__name__} called a guarded method before installing its breaker")
    return breaker


def guarded_by_breaker(target: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Run a synchronous method through the instance's breaker.

    Args:
        target: Human-readable name of the protected dependency.

    Raises:
        UpstreamError: When the breaker is open, or opens on this call.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(self: object, *args: Any, **kwargs: Any) -> Any:
            breaker = _breaker_of(self)
            try:
                return breaker.call(func, self, *args, **kwargs)
            except pybreaker.CircuitBreakerError as e:
                raise UpstreamError(
                    f"{target} is unavailable after repeated failures; "
                    f"calls resume in at most {breaker.reset_timeout}s"
                ) from e

        return wrapper

    return decorator
