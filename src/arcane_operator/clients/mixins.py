"""Mixins shared by client wrappers."""

import attrs
import pybreaker

from arcane_operator.foundation.circuit_breaker import IgnoredFailure, breaker_for


@attrs.define(slots=True)
class BreakerMixin:
    """Holds the breaker used by `guarded_by_breaker` methods.

    Subclasses call `_install_breaker` from `__attrs_post_init__` and may
    override `_ignored_failures` to exempt answers from the failure count.
    """

    _breaker: pybreaker.CircuitBreaker | None = attrs.field(init=False, default=None)

    def _ignored_failures(self) -> list[IgnoredFailure]:
        return []

    def _install_breaker(self, name: str, fail_max: int, reset_timeout: int) -> None:
        self._breaker = breaker_for(name, fail_max, reset_timeout, self._ignored_failures())
