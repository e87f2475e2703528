"""Unit tests for foundation.circuit_breaker module.

# Test Coverage

The tests cover:
  - ApiServerBreakerListener: Opening is a warning, other transitions info
  - breaker_for: Configuration and listener
  - guarded_by_breaker: Pass-through, opening, ignored failures, missing breaker

# Running Tests

Run with: pytest tests/unit/foundation/test_circuit_breaker.py
"""

import logging
from unittest.mock import MagicMock, patch

import attrs
import pybreaker
import pytest

from arcane_operator.clients.mixins import BreakerMixin
from arcane_operator.foundation.circuit_breaker import ApiServerBreakerListener, breaker_for, guarded_by_breaker
from arcane_operator.foundation.exceptions import UpstreamError


@attrs.define(slots=True)
class FlakyApi(BreakerMixin):
    """Opens after two counted failures; LookupError is an answer."""

    calls: list = attrs.field(factory=list)

    def __attrs_post_init__(self) -> None:
        self._install_breaker("flaky", fail_max=2, reset_timeout=60)

    def _ignored_failures(self) -> list:
        return [LookupError]

    @guarded_by_breaker("Flaky API")
    def fetch(self, value: object) -> object:
        self.calls.append(value)
        if isinstance(value, BaseException):
            raise value
        return value


def _state(name: str) -> MagicMock:
    state = MagicMock(spec=pybreaker.CircuitBreakerState)
    state.name = name
    return state


def _breaker(name: str = "kubernetes", failures: int = 0) -> MagicMock:
    cb = MagicMock(spec=pybreaker.CircuitBreaker)
    cb.name = name
    cb.fail_counter = failures
    return cb


class TestApiServerBreakerListener:
    """Test suite for ApiServerBreakerListener."""

    def test_opening_is_a_warning(self) -> None:
        """Test that opening the breaker is logged as a warning.

        **Why this test is important:**
          - An open breaker stalls every pipeline of the operator

        **What it tests:**
          - Warning with breaker name, both states and the failure count
        """
        mock_logger = MagicMock(spec=logging.Logger)
        with patch("arcane_operator.foundation.circuit_breaker.logger", mock_logger):
            ApiServerBreakerListener().state_change(_breaker(failures=5), _state("closed"), _state("open"))

        extra = mock_logger.warning.call_args[1]["extra"]
        assert extra == {"breaker": "kubernetes", "from_state": "closed", "to_state": "open", "consecutive_failures": 5}
        mock_logger.info.assert_not_called()

    def test_recovery_is_info(self) -> None:
        mock_logger = MagicMock(spec=logging.Logger)
        with patch("arcane_operator.foundation.circuit_breaker.logger", mock_logger):
            ApiServerBreakerListener().state_change(_breaker(), _state("half-open"), _state("closed"))

        assert mock_logger.info.call_args[1]["extra"]["to_state"] == "closed"
        mock_logger.warning.assert_not_called()

    def test_failure_is_debug(self) -> None:
        mock_logger = MagicMock(spec=logging.Logger)
        with patch("arcane_operator.foundation.circuit_breaker.logger", mock_logger):
            ApiServerBreakerListener().failure(_breaker(), ConnectionError("refused"))

        extra = mock_logger.debug.call_args[1]["extra"]
        assert extra["error_type"] == "ConnectionError"
        assert extra["error"] == "refused"


class TestBreakerFor:
    """Test suite for breaker_for."""

    def test_configures_breaker(self) -> None:
        breaker = breaker_for("kubernetes", fail_max=3, reset_timeout=15)

        assert breaker.name == "kubernetes"
        assert breaker.fail_max == 3
        assert breaker.reset_timeout == 15
        assert any(isinstance(listener, ApiServerBreakerListener) for listener in breaker.listeners)


class TestGuardedByBreaker:
    """Test suite for the guarded_by_breaker decorator."""

    def test_passes_through_results(self) -> None:
        assert FlakyApi().fetch("value") == "value"

    def test_opens_and_fails_fast(self) -> None:
        """Test that repeated failures open the breaker.

        **Why this test is important:**
          - Once open, calls must not reach the API server at all

        **What it tests:**
          - The failure that trips the breaker surfaces as UpstreamError
          - The next call raises UpstreamError without calling the method
        """
        api = FlakyApi()

        with pytest.raises(ConnectionError):
            api.fetch(ConnectionError("refused"))
        with pytest.raises(UpstreamError):
            api.fetch(ConnectionError("refused"))

        with pytest.raises(UpstreamError, match="Flaky API is unavailable"):
            api.fetch("value")
        assert len(api.calls) == 2

    def test_ignored_failures_do_not_count(self) -> None:
        """Test that ignored failures never open the breaker."""
        api = FlakyApi()

        for _ in range(3):
            with pytest.raises(LookupError):
                api.fetch(LookupError("not found"))

        assert api.fetch("value") == "value"

    def test_missing_breaker_raises(self) -> None:
        """Test that a guarded call before installing a breaker is reported."""

        @attrs.define(slots=True)
        class Uninstalled(BreakerMixin):
            @guarded_by_breaker("nothing")
            def fetch(self) -> None:
                return None

        with pytest.raises(RuntimeError, match="before installing its breaker"):
            Uninstalled().fetch()
