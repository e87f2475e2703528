"""Watch events consumed by the reconcilers."""

from enum import StrEnum
from typing import Generic, TypeVar

import attrs

from arcane_operator.core.models.resource import KubernetesResource

R = TypeVar("R", bound=KubernetesResource)


class WatchEventType(StrEnum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@attrs.define(frozen=True, slots=True)
class ResourceEvent(Generic[R]):
    """A single watch notification.

    Attributes:
        event_type: What happened to the resource.
        resource: The resource as of the event.
    """

    event_type: WatchEventType
    resource: R
