"""Status phases and conditions written by the operator."""

from enum import StrEnum
from typing import Any

import attrs


class StreamPhase(StrEnum):
    """Phase of a stream definition."""

    RUNNING = "RUNNING"
    RELOADING = "RELOADING"
    SUSPENDED = "SUSPENDED"
    FAILED = "FAILED"


class StreamClassPhase(StrEnum):
    """Phase of a StreamClass. STOPPED and FAILED are terminal."""

    READY = "READY"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    @property
    def is_final(self) -> bool:
        return self in (StreamClassPhase.FAILED, StreamClassPhase.STOPPED)


class ConditionType(StrEnum):
    READY = "READY"
    ERROR = "ERROR"
    WARNING = "WARNING"


@attrs.define(frozen=True, slots=True)
class StreamCondition:
    """A single entry of a status condition list.

    Attributes:
        type: Condition type.
        status: Kubernetes condition status string, always "True" for
            conditions the operator writes.
        message: Optional human readable detail.
    """

    type: ConditionType
    status: str = "True"
    message: str | None = None

    @classmethod
    def ready(cls) -> "StreamCondition":
        return cls(type=ConditionType.READY)

    @classmethod
    def warning(cls, message: str | None = None) -> "StreamCondition":
        return cls(type=ConditionType.WARNING, message=message)

    @classmethod
    def error(cls, message: str | None = None) -> "StreamCondition":
        return cls(type=ConditionType.ERROR, message=message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": str(self.type), "status": self.status}
        if self.message is not None:
            d["message"] = self.message
        return d


def build_status(phase: StrEnum, conditions: tuple[StreamCondition, ...]) -> dict[str, Any]:
    """Render a status sub-resource document.

    Args:
        phase: Stream or StreamClass phase.
        conditions: Conditions to write; replaces the existing list.

    Returns:
        The `status` document, e.g. ``{"phase": "RUNNING", "conditions": [...]}``.
    """
    return {"phase": str(phase), "conditions": [condition.to_dict() for condition in conditions]}
