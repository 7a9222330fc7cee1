"""Blue/green deployment orchestration.

Sequences one deployment run:

    preflight -> deploy to idle slot -> health gate -> load gate
              -> traffic switch -> monitoring -> cleanup of the old slot

Every phase raises on failure. A single handler turns the exception into a
tagged outcome and, depending on whether traffic had already moved, either
rolls back to the previous slot or aborts with a notification.

Example:
    >>> orchestrator = DeploymentOrchestrator.create(DeploymentConfig.from_settings())
    >>> outcome = await orchestrator.deploy()
    >>> if not outcome.ok:
    >>>     print(outcome.phase, outcome.reason)
"""
import asyncio
import random
import string
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Mapping, Optional

import httpx
from loguru import logger

from src.deployer.core.config import DeploymentConfig, Settings, settings as default_settings
from src.deployer.core.errors import (
    DeploymentOutcome,
    GateFailed,
    HealthGateExhausted,
    LoadGateFailed,
    Phase,
    Promoted,
    classify,
)
from src.deployer.core.logging import deployment_id as deployment_id_var
from src.deployer.core.scheduler import AsyncioScheduler, Scheduler
from src.deployer.deployment.health_prober import HealthProber
from src.deployer.deployment.hosting import FirebaseHosting, HostingProvider
from src.deployer.deployment.load_gate import LoadGate
from src.deployer.deployment.metrics_evaluator import HealthThresholds, MetricsEvaluator
from src.deployer.deployment.monitor import DeploymentMonitor, MetricsCollector
from src.deployer.deployment.preflight import PreflightChecker
from src.deployer.deployment.rollback import RollbackController
from src.deployer.deployment.state_store import (
    DeploymentState,
    JsonStateStore,
    Slot,
    StateStore,
    Status,
)
from src.deployer.deployment.traffic_switcher import TrafficSwitcher
from src.deployer.monitoring.metrics import DEPLOYMENT_STATUS
from src.deployer.monitoring.tracing import record_exception, set_span_attributes, tracer
from src.deployer.notifications.slack import NotificationSink, SlackWebhookSink


def generate_deployment_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"deploy-{int(time.time() * 1000)}-{suffix}"


class DeploymentOrchestrator:
    """Drives a blue/green deployment from preflight to completion or rollback."""

    def __init__(
        self,
        config: DeploymentConfig,
        store: StateStore,
        hosting: HostingProvider,
        preflight: PreflightChecker,
        prober: HealthProber,
        load_gate: LoadGate,
        switcher: TrafficSwitcher,
        monitor: DeploymentMonitor,
        rollback: RollbackController,
        health_attempts: int = 10,
        health_retry_delay: float = 5.0,
        monitor_interval: float = 30.0,
    ):
        self.config = config
        self.store = store
        self.hosting = hosting
        self.preflight = preflight
        self.prober = prober
        self.load_gate = load_gate
        self.switcher = switcher
        self.monitor = monitor
        self.rollback = rollback
        self.evaluator = monitor.evaluator
        self.health_attempts = health_attempts
        self.health_retry_delay = health_retry_delay
        self.monitor_interval = monitor_interval

        self.state = store.load()
        self.phase = Phase.PREFLIGHT
        self._started = False

    @classmethod
    def create(
        cls,
        config: DeploymentConfig,
        settings: Settings = default_settings,
        store: Optional[StateStore] = None,
        hosting: Optional[HostingProvider] = None,
        sink: Optional[NotificationSink] = None,
        scheduler: Optional[Scheduler] = None,
        client: Optional[httpx.AsyncClient] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DeploymentOrchestrator":
        """Wire the default collaborators from settings."""
        scheduler = scheduler or AsyncioScheduler()
        client = client or httpx.AsyncClient(timeout=10.0)
        store = store or JsonStateStore(settings.STATE_PATH)
        hosting = hosting or FirebaseHosting(
            environment=config.environment,
            token=settings.FIREBASE_TOKEN,
            url_template=settings.SLOT_URL_TEMPLATE,
        )
        sink = sink or SlackWebhookSink(settings.SLACK_WEBHOOK)

        evaluator = MetricsEvaluator(HealthThresholds(max_error_rate=config.rollback_threshold))
        collector = MetricsCollector(evaluator, client=client)

        return cls(
            config=config,
            store=store,
            hosting=hosting,
            preflight=PreflightChecker(
                hosting,
                gate_command=settings.QUALITY_GATE_COMMAND,
                gate_timeout=settings.QUALITY_GATE_TIMEOUT,
                results_path=settings.DOD_RESULTS_PATH,
                min_score=settings.QUALITY_GATE_MIN_SCORE,
                environ=environ,
            ),
            prober=HealthProber(client=client, scheduler=scheduler),
            load_gate=LoadGate(settings.LOAD_TEST_COMMAND, timeout=settings.LOAD_TEST_TIMEOUT),
            switcher=TrafficSwitcher(config, hosting, collector, store, scheduler=scheduler),
            monitor=DeploymentMonitor(collector, store, scheduler=scheduler),
            rollback=RollbackController(config, hosting, store, evaluator, sink),
        )

    def get_target_slot(self) -> Slot:
        """The idle slot that receives the new build."""
        return self.state.current_slot.other

    async def deploy(self) -> DeploymentOutcome:
        """Run one deployment end to end.

        Returns:
            Promoted on completion, GateFailed or IoError otherwise
        """
        logger.info(f"🚀 Starting Blue-Green Deployment ({self.config.environment})...")

        lock = self.store.lock()
        try:
            lock.acquire()
        except TimeoutError as e:
            logger.error(f"❌ {e}")
            return GateFailed(phase=Phase.PREFLIGHT, reason=f"Another deployment is in progress: {e}")

        try:
            return await self._deploy()
        finally:
            lock.release()

    async def _deploy(self) -> DeploymentOutcome:
        with tracer.start_as_current_span("deployment") as span:
            set_span_attributes(span, environment=self.config.environment)
            try:
                await self._run_phases()
            except asyncio.CancelledError as e:
                logger.warning(f"Deployment cancelled during {self.phase.value}")
                await self._compensate(classify(self.phase, e))
                raise
            except Exception as e:
                outcome = classify(self.phase, e)
                record_exception(span, e)
                logger.error(f"❌ Deployment failed during {self.phase.value}: {outcome.reason}")
                await self._compensate(outcome)
                return outcome
            finally:
                self._publish_status()
                set_span_attributes(
                    span,
                    deployment_id=self.state.deployment_id,
                    status=self.state.status.value,
                )

        await self._cleanup_old_slot()
        logger.info("✅ Blue-Green Deployment completed successfully")
        return Promoted(state=self.state)

    async def _run_phases(self) -> None:
        with self._phase(Phase.PREFLIGHT):
            await self.preflight.run()
            self._begin()

        target = self.get_target_slot()
        target_url = self.hosting.slot_url(target)
        logger.info(f"🎯 Target slot: {target.value}")

        with self._phase(Phase.DEPLOY):
            await self.hosting.deploy_to_slot(target)

        with self._phase(Phase.HEALTH_GATE):
            sample, ok = await self.prober.probe(
                target_url,
                max_attempts=self.health_attempts,
                retry_delay=self.health_retry_delay,
            )
            if not ok:
                raise HealthGateExhausted("Health checks failed")
            self.evaluator.record(sample)

        with self._phase(Phase.LOAD_GATE):
            if not await self.load_gate.run(target_url):
                raise LoadGateFailed("Load testing failed")

        with self._phase(Phase.SWITCH):
            await self.switcher.switch(self.state, target)
            self._publish_status()

        with self._phase(Phase.MONITOR):
            await self.monitor.start(
                self.state,
                self._live_url(),
                duration=self.config.monitoring_duration,
                interval=self.monitor_interval,
            )

    def _live_url(self) -> str:
        """URL watched during monitoring: the public site when configured."""
        return self.config.health_check_url or self.hosting.slot_url(self.state.current_slot)

    def _begin(self) -> None:
        """Open a fresh deployment record on top of the persisted one."""
        live = self.state.current_slot
        self.state = DeploymentState(
            current_slot=live,
            previous_slot=live,
            deployment_id=generate_deployment_id(),
            start_time=datetime.now(timezone.utc),
            status=Status.DEPLOYING,
            revision=self.state.revision,
        )
        self.store.save(self.state)
        self._started = True
        deployment_id_var.set(self.state.deployment_id)
        self._publish_status()
        logger.info(f"📝 Deployment {self.state.deployment_id} started, live slot {live.value}")

    @contextmanager
    def _phase(self, phase: Phase):
        self.phase = phase
        with tracer.start_as_current_span(f"deployment.{phase.value}"):
            yield

    async def _compensate(self, outcome) -> None:
        try:
            if outcome.phase.shifts_traffic:
                await self.rollback.rollback(self.state, outcome.reason)
            else:
                await self.rollback.abort(self.state, outcome.reason, record=self._started)
        except Exception as e:
            logger.error(f"❌ Compensation after {outcome.phase.value} failed: {e}")

    async def _cleanup_old_slot(self) -> None:
        old_slot = self.state.previous_slot
        if old_slot == self.state.current_slot:
            return

        logger.info("🧹 Cleaning up old deployment slot...")
        try:
            await self.hosting.delete_slot(old_slot)
            logger.info(f"✅ Cleaned up {old_slot.value} slot")
        except Exception as e:
            logger.warning(f"⚠️ Failed to cleanup old slot: {e}")

    def _publish_status(self) -> None:
        DEPLOYMENT_STATUS.labels(environment=self.config.environment).state(
            self.state.status.value
        )

    async def close(self) -> None:
        await self.prober.close()
