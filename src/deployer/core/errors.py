"""Deployment error taxonomy and tagged phase outcomes.

Gate verdicts (`GateFailure` subclasses) are expected outcomes of a run and
become `GateFailed`; everything else raised inside a phase is an I/O fault
and becomes `IoError`. The orchestrator decides whether a rollback is needed
from the failing phase alone.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Phase(Enum):
    """Ordered phases of a deployment run."""
    PREFLIGHT = "preflight"
    DEPLOY = "deploy"
    HEALTH_GATE = "health_gate"
    LOAD_GATE = "load_gate"
    SWITCH = "switch"
    MONITOR = "monitor"

    @property
    def shifts_traffic(self) -> bool:
        """Whether live traffic may already point at the new slot."""
        return self in (Phase.SWITCH, Phase.MONITOR)


class DeploymentError(Exception):
    """Base class for deployment failures."""


class GateFailure(DeploymentError):
    """A gate or health evaluation rejected the new build."""


class PreflightFailure(GateFailure):
    pass


class HealthGateExhausted(GateFailure):
    pass


class LoadGateFailed(GateFailure):
    pass


class TrafficSwitchFailure(GateFailure):
    pass


class MonitoringDegradation(GateFailure):
    pass


class DeployFailure(DeploymentError):
    """Publishing the build to a slot failed."""


class HostingCommandError(DeploymentError):
    """A hosting CLI invocation exited non-zero or timed out."""


class StaleStateError(DeploymentError):
    """The persisted state was written by another orchestrator."""


@dataclass(frozen=True)
class Promoted:
    state: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class GateFailed:
    phase: Phase
    reason: str

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class IoError:
    phase: Phase
    cause: BaseException

    @property
    def ok(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        return f"{type(self.cause).__name__}: {self.cause}"


DeploymentOutcome = Union[Promoted, GateFailed, IoError]


def classify(phase: Phase, exc: BaseException) -> DeploymentOutcome:
    """Map an exception raised during `phase` to a tagged outcome."""
    if isinstance(exc, GateFailure):
        return GateFailed(phase=phase, reason=str(exc))
    return IoError(phase=phase, cause=exc)
