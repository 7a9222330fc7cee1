"""Traffic switching between blue and green slots.

Non-production environments cut over in one step. Production walks the
canary steps 10/25/50/75/100%, observing each step for a fixed window while
the metrics collector samples the new slot, and aborts on the first
unhealthy intermediate step.
"""
from typing import Optional, Sequence

from loguru import logger

from src.deployer.core.config import DeploymentConfig
from src.deployer.core.errors import TrafficSwitchFailure
from src.deployer.core.scheduler import AsyncioScheduler, Scheduler
from src.deployer.deployment.hosting import HostingProvider
from src.deployer.deployment.monitor import MetricsCollector
from src.deployer.deployment.state_store import DeploymentState, Slot, StateStore, Status

ROLLOUT_STEPS = (10, 25, 50, 75, 100)


class TrafficSwitcher:
    """Moves live traffic to a target slot and records the promotion."""

    def __init__(
        self,
        config: DeploymentConfig,
        hosting: HostingProvider,
        collector: MetricsCollector,
        store: StateStore,
        scheduler: Optional[Scheduler] = None,
        steps: Sequence[int] = ROLLOUT_STEPS,
        observation_window: float = 120.0,
        sample_interval: float = 30.0,
    ):
        """Initialize traffic switcher.

        Args:
            config: Run configuration; the environment selects the mode
            hosting: Platform driver applying splits and cutovers
            collector: Sampler feeding the shared metrics evaluator
            store: State store persisting the promotion
            scheduler: Source of observation ticks
            steps: Canary percentages, ending at 100
            observation_window: Seconds each canary step is observed
            sample_interval: Seconds between samples inside a window
        """
        if not steps or steps[-1] != 100:
            raise ValueError("Rollout steps must end at 100")
        if list(steps) != sorted(steps):
            raise ValueError("Rollout steps must be increasing")

        self.config = config
        self.hosting = hosting
        self.collector = collector
        self.evaluator = collector.evaluator
        self.store = store
        self.scheduler = scheduler or AsyncioScheduler()
        self.steps = tuple(steps)
        self.observation_window = observation_window
        self.sample_interval = sample_interval

    async def switch(self, state: DeploymentState, target: Slot) -> None:
        """Route traffic to `target` and persist the new slot assignment.

        Raises:
            TrafficSwitchFailure: If an intermediate canary step is unhealthy
        """
        logger.info(f"🔄 Switching traffic to {target.value} slot...")

        if self.config.gradual:
            await self._gradual_switch(target)
        else:
            await self._immediate_switch(target)

        state.previous_slot = state.current_slot
        state.current_slot = target
        state.status = Status.MONITORING
        self.store.save(state)

        logger.info(f"✅ Traffic switched to {target.value} slot")

    async def _immediate_switch(self, target: Slot) -> None:
        logger.info("⚡ Performing immediate traffic switch...")
        await self.hosting.cutover(target)

    async def _gradual_switch(self, target: Slot) -> None:
        logger.info("🐤 Performing gradual traffic switch...")
        target_url = self.hosting.slot_url(target)

        for percentage in self.steps:
            logger.info(f"🔄 Switching {percentage}% traffic to {target.value}...")
            await self.hosting.configure_traffic_split(target, percentage)

            await self._observe(target_url)

            if not self.evaluator.is_healthy():
                if percentage < 100:
                    raise TrafficSwitchFailure(
                        f"Traffic metrics deteriorated at {percentage}% - rolling back"
                    )
                # TODO: raise here as well; an unhealthy 100% step is only caught by the monitor
                logger.warning(
                    f"⚠️ Traffic metrics unhealthy at {percentage}%, continuing to monitoring"
                )

            logger.info(f"✅ {percentage}% traffic switch successful")

    async def _observe(self, target_url: str) -> None:
        """Sample the target for one observation window."""
        if self.observation_window <= 0:
            return

        elapsed = 0.0
        ticker = self.scheduler.every(min(self.sample_interval, self.observation_window))
        try:
            async for _ in ticker:
                await self.collector.collect(target_url)
                elapsed += ticker.interval
                if elapsed >= self.observation_window:
                    break
        finally:
            ticker.stop()
