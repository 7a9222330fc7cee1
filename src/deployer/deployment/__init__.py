"""Blue/green deployment components: gates, traffic switching, monitoring, rollback."""

from .state_store import (
    DeploymentState,
    FileLock,
    JsonStateStore,
    Slot,
    StateStore,
    Status,
)

from .metrics_evaluator import (
    HealthSample,
    HealthThresholds,
    MetricsEvaluator,
)

from .health_prober import HealthProber
from .load_gate import LoadGate
from .hosting import FirebaseHosting, HostingProvider
from .monitor import DeploymentMonitor, MetricsCollector
from .traffic_switcher import ROLLOUT_STEPS, TrafficSwitcher
from .rollback import RollbackController
from .preflight import PreflightChecker
from .orchestrator import DeploymentOrchestrator, generate_deployment_id

__all__ = [
    # State
    "DeploymentState",
    "FileLock",
    "JsonStateStore",
    "Slot",
    "StateStore",
    "Status",
    # Evaluation
    "HealthSample",
    "HealthThresholds",
    "MetricsEvaluator",
    # Gates
    "HealthProber",
    "LoadGate",
    "PreflightChecker",
    # Traffic
    "FirebaseHosting",
    "HostingProvider",
    "ROLLOUT_STEPS",
    "TrafficSwitcher",
    # Monitoring and rollback
    "DeploymentMonitor",
    "MetricsCollector",
    "RollbackController",
    # Orchestration
    "DeploymentOrchestrator",
    "generate_deployment_id",
]
