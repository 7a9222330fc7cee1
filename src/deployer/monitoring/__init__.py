"""Observability for deployment runs."""

from .metrics import (
    HEALTH_PROBE_ATTEMPTS,
    HEALTH_PROBE_LATENCY,
    TRAFFIC_WEIGHT,
    WINDOW_AVERAGE,
    DEPLOYMENT_STATUS,
    ROLLBACKS_TOTAL,
    CIRCUIT_STATE,
    export_metrics,
)

from .tracing import (
    tracer,
    setup_tracing,
    set_span_attributes,
    record_exception,
)

__all__ = [
    # Prometheus metrics
    "HEALTH_PROBE_ATTEMPTS",
    "HEALTH_PROBE_LATENCY",
    "TRAFFIC_WEIGHT",
    "WINDOW_AVERAGE",
    "DEPLOYMENT_STATUS",
    "ROLLBACKS_TOTAL",
    "CIRCUIT_STATE",
    "export_metrics",
    # Tracing
    "tracer",
    "setup_tracing",
    "set_span_attributes",
    "record_exception",
]
