"""Post-promotion monitoring of the live slot.

A ticker fires every `interval` seconds; each tick samples the live slot's
metrics endpoint into the shared `MetricsEvaluator`. The first degraded
evaluation stops the ticker and raises `MonitoringDegradation`, which the
orchestrator answers with a rollback. When the monitoring duration elapses
cleanly the deployment is marked completed.
"""
import time
from typing import Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from src.deployer.core.errors import MonitoringDegradation
from src.deployer.core.scheduler import AsyncioScheduler, Scheduler
from src.deployer.deployment.metrics_evaluator import MetricsEvaluator
from src.deployer.deployment.state_store import DeploymentState, StateStore, Status
from src.deployer.models.samples import HealthSample
from src.deployer.models.schemas import MetricsResponse


class MetricsCollector:
    """Samples `{target}/api/metrics` into a `MetricsEvaluator`."""

    def __init__(
        self,
        evaluator: MetricsEvaluator,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.evaluator = evaluator
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def collect(self, target_url: str) -> Optional[HealthSample]:
        """Fetch one sample and record it.

        Collection failures are logged and yield None; a missing sample
        never counts against the slot.
        """
        url = f"{target_url.rstrip('/')}/api/metrics"
        try:
            started = time.perf_counter()
            response = await self.client.get(url)
            response_time = (time.perf_counter() - started) * 1000
            response.raise_for_status()
            body = MetricsResponse.model_validate_json(response.content)
            sample = HealthSample(
                response_time=response_time,
                error_rate=body.error_rate,
                success_rate=body.success_rate,
            )
        except (httpx.HTTPError, ValidationError) as e:
            logger.warning(f"⚠️ Failed to collect health metrics from {url}: {e}")
            return None

        self.evaluator.record(sample)
        return sample

    async def close(self):
        await self.client.aclose()


class DeploymentMonitor:
    """Watches the promoted slot for the configured duration."""

    def __init__(
        self,
        collector: MetricsCollector,
        store: StateStore,
        scheduler: Optional[Scheduler] = None,
    ):
        self.collector = collector
        self.evaluator = collector.evaluator
        self.store = store
        self.scheduler = scheduler or AsyncioScheduler()

    async def start(
        self,
        state: DeploymentState,
        target_url: str,
        duration: float,
        interval: float = 30.0,
    ) -> None:
        """Monitor `target_url` until `duration` seconds of clean ticks.

        Args:
            state: Deployment record, marked completed on success
            target_url: Base URL of the live slot
            duration: Total monitoring time in seconds
            interval: Seconds between samples

        Raises:
            MonitoringDegradation: On the first unhealthy evaluation
        """
        logger.info(
            f"📊 Starting deployment monitoring for {duration:.0f}s "
            f"(every {interval:.0f}s)"
        )

        elapsed = 0.0
        ticker = self.scheduler.every(interval)
        try:
            async for tick in ticker:
                await self.collector.collect(target_url)
                elapsed += interval

                if not self.evaluator.is_healthy():
                    raise MonitoringDegradation(
                        "Health metrics degraded - triggering rollback"
                    )

                logger.debug(f"Monitoring tick {tick}: {elapsed:.0f}/{duration:.0f}s healthy")

                if elapsed >= duration:
                    break
        finally:
            ticker.stop()

        if elapsed < duration:
            raise MonitoringDegradation(
                f"Monitoring stopped after {elapsed:.0f}s of {duration:.0f}s"
            )

        logger.info("✅ Deployment monitoring completed successfully")
        state.status = Status.COMPLETED
        self.store.save(state)
