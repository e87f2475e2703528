"""Drop watch notifications that repeat an already seen resource version.

Watches replay events on reconnect and the initial list re-emits every
resource. The filter remembers the last event per `(kind, namespace, name)`
and suppresses an event whose resourceVersion equals the remembered one.
"""

import logging
from typing import Generic, TypeVar

from arcane_operator.core.models import KubernetesResource, ResourceEvent
from arcane_operator.foundation.cache import BoundedCache

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=KubernetesResource)


class ResourceVersionDuplicateFilter(Generic[R]):
    """Event deduplicator keyed by `(kind, namespace, name)`.

    Args:
        max_size: Max number of keys remembered. The least recently updated
            key is forgotten first.
    """

    def __init__(self, max_size: int = 10000) -> None:
        self._last_seen: BoundedCache[tuple[str, str, str], ResourceEvent[R]] = BoundedCache(max_size=max_size)

    def filter(self, event: ResourceEvent[R]) -> ResourceEvent[R] | None:
        """Return the event if it is new, None if it repeats the last one seen."""
        resource = event.resource
        key = (resource.kind, resource.namespace, resource.name)
        previous = self._last_seen.replace(key, event)
        if previous is not None and previous.resource.resource_version == resource.resource_version:
            logger.debug(
                "Duplicate event suppressed",
                extra={
                    "kind": resource.kind,
                    "namespace": resource.namespace,
                    "resource_name": resource.name,
                    "resource_version": resource.resource_version,
                    "event_type": str(event.event_type),
                },
            )
            return None
        return event
