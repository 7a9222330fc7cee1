from typing import Optional

from prometheus_client import (
    REGISTRY,
    Counter,
    Enum,
    Gauge,
    Histogram,
    write_to_textfile,
)
from loguru import logger

# Define Metrics
HEALTH_PROBE_ATTEMPTS = Counter(
    "deployment_health_probe_attempts_total",
    "Health probe attempts against a deployment slot",
    ["slot_url", "result"]
)

HEALTH_PROBE_LATENCY = Histogram(
    "deployment_health_probe_seconds",
    "Latency of successful health probes in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

TRAFFIC_WEIGHT = Gauge(
    "deployment_traffic_weight_percent",
    "Share of live traffic routed to a slot",
    ["environment", "slot"]
)

WINDOW_AVERAGE = Gauge(
    "deployment_window_average",
    "Average of the last evaluated health samples",
    ["metric"]
)

DEPLOYMENT_STATUS = Enum(
    "deployment_status",
    "Status of the current deployment",
    ["environment"],
    states=["deploying", "monitoring", "completed", "failed", "rolled-back"]
)

ROLLBACKS_TOTAL = Counter(
    "deployment_rollbacks_total",
    "Automatic rollbacks executed",
    ["environment"]
)

CIRCUIT_STATE = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state: 0=closed, 1=open, 2=half_open",
    ["service"],
)


def export_metrics(path: Optional[str]) -> None:
    """Write the registry for the node-exporter textfile collector."""
    if not path:
        return
    try:
        write_to_textfile(path, REGISTRY)
        logger.debug(f"Metrics written to {path}")
    except OSError as e:
        logger.warning(f"Failed to write metrics textfile {path}: {e}")
