"""Prometheus metrics emitted by the operator.

## Metrics

- `arcane_operator_objects_total{event_type, namespace, kind}`: counter of
  resource events processed by the pipelines
- `arcane_operator_stream_class_status{namespace, name, kind_ref, phase}`:
  gauge set to 1 for every StreamClass in a non-final phase; the series is
  removed when the StreamClass reaches a final phase
- `arcane_operator_crash_loops{namespace, kind, stream_id}`: gauge set to 1
  for every stream currently in crash loop

All metrics are registered on one `CollectorRegistry`. The default registry
is used in production so that `/metrics` exposes them next to the HTTP
metrics; tests pass a private registry.
"""

import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

from arcane_operator.core.models import KubernetesResource, StreamClass, StreamClassPhase, StreamDefinition

logger = logging.getLogger(__name__)


class MetricsReporter:
    """Counters and gauges of the reconciliation engine.

    Args:
        registry: Registry the metrics are registered on.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.registry = registry
        self.objects_total = Counter(
            "arcane_operator_objects_total",
            "Resource events processed by the operator",
            ["event_type", "namespace", "kind"],
            registry=registry,
        )
        self.stream_class_status = Gauge(
            "arcane_operator_stream_class_status",
            "StreamClasses known to the operator, by phase",
            ["namespace", "name", "kind_ref", "phase"],
            registry=registry,
        )
        self.crash_loops = Gauge(
            "arcane_operator_crash_loops",
            "Streams whose job is in crash loop",
            ["namespace", "kind", "stream_id"],
            registry=registry,
        )
        self._stream_class_phases: dict[tuple[str, str, str], StreamClassPhase] = {}

    def count_event(self, event_type: str, resource: KubernetesResource) -> None:
        self.objects_total.labels(event_type=event_type, namespace=resource.namespace, kind=resource.kind).inc()

    def set_stream_class_phase(self, stream_class: StreamClass, phase: StreamClassPhase) -> None:
        """Record the phase of a StreamClass.

        Only one phase series is kept per StreamClass. A final phase removes
        the series altogether.
        """
        key = (stream_class.namespace, stream_class.name, stream_class.kind_ref)
        previous = self._stream_class_phases.pop(key, None)
        if previous is not None:
            self.stream_class_status.remove(*key, previous)
        if phase.is_final:
            return
        self._stream_class_phases[key] = phase
        self.stream_class_status.labels(*key, phase).set(1)

    def set_crash_loop(self, definition: StreamDefinition) -> None:
        self.crash_loops.labels(definition.namespace, definition.kind, definition.stream_id).set(1)

    def clear_crash_loop(self, definition: StreamDefinition) -> None:
        try:
            self.crash_loops.remove(definition.namespace, definition.kind, definition.stream_id)
        except KeyError:
            logger.debug(
                "No crash loop series to remove",
                extra={"namespace": definition.namespace, "stream_id": definition.stream_id},
            )
