import os
from typing import Callable, List, Optional

import pytest

# Disable OTLP export during tests to prevent connection errors
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = "none"

from src.deployer.core.config import DeploymentConfig
from src.deployer.deployment.health_prober import HealthProber
from src.deployer.deployment.metrics_evaluator import MetricsEvaluator
from src.deployer.deployment.monitor import DeploymentMonitor
from src.deployer.deployment.orchestrator import DeploymentOrchestrator
from src.deployer.deployment.rollback import RollbackController
from src.deployer.deployment.state_store import JsonStateStore
from src.deployer.deployment.traffic_switcher import TrafficSwitcher
from src.deployer.models.samples import HealthSample
from tests.fakes import (
    FakeHosting,
    ManualScheduler,
    RecordingSink,
    ScriptedCollector,
    StubLoadGate,
    StubPreflight,
    health_client,
)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def hosting():
    return FakeHosting()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store(tmp_path):
    return JsonStateStore(str(tmp_path / "deployment-state.json"))


@pytest.fixture
def evaluator():
    return MetricsEvaluator()


@pytest.fixture
def production_config():
    return DeploymentConfig(environment="production", monitoring_duration=300.0)


@pytest.fixture
def staging_config():
    return DeploymentConfig(environment="staging", monitoring_duration=300.0)


@pytest.fixture
def make_orchestrator(store, hosting, sink, scheduler):
    """Build an orchestrator wired to fakes; keyword arguments tune them."""

    def build(
        environment: str = "production",
        sample_fn: Optional[Callable[[str], Optional[HealthSample]]] = None,
        health_statuses: Optional[List[int]] = None,
        load_passes: bool = True,
        preflight_error: Optional[Exception] = None,
        health_check_url: Optional[str] = None,
    ) -> DeploymentOrchestrator:
        config = DeploymentConfig(
            environment=environment,
            monitoring_duration=300.0,
            health_check_url=health_check_url,
        )
        evaluator = MetricsEvaluator()
        collector = ScriptedCollector(evaluator, sample_fn)
        orchestrator = DeploymentOrchestrator(
            config=config,
            store=store,
            hosting=hosting,
            preflight=StubPreflight(preflight_error),
            prober=HealthProber(
                client=health_client(health_statuses or []),
                scheduler=scheduler,
            ),
            load_gate=StubLoadGate(load_passes),
            switcher=TrafficSwitcher(config, hosting, collector, store, scheduler=scheduler),
            monitor=DeploymentMonitor(collector, store, scheduler=scheduler),
            rollback=RollbackController(config, hosting, store, evaluator, sink),
        )
        orchestrator.collector = collector
        return orchestrator

    return build
