"""Compensating actions for failed deployments.

`rollback` reverts live traffic to the previous slot after traffic has
moved; `abort` records a failure that happened before any traffic moved.
Both are best-effort: every secondary failure is logged and swallowed so the
process still exits deterministically.
"""
from loguru import logger

from src.deployer.core.config import DeploymentConfig
from src.deployer.deployment.hosting import HostingProvider
from src.deployer.deployment.metrics_evaluator import MetricsEvaluator
from src.deployer.deployment.state_store import DeploymentState, StateStore, Status
from src.deployer.monitoring.metrics import ROLLBACKS_TOTAL
from src.deployer.notifications.slack import DeploymentNotification, NotificationSink


class RollbackController:
    """Reverts traffic, records the outcome and notifies the team."""

    def __init__(
        self,
        config: DeploymentConfig,
        hosting: HostingProvider,
        store: StateStore,
        evaluator: MetricsEvaluator,
        sink: NotificationSink,
    ):
        self.config = config
        self.hosting = hosting
        self.store = store
        self.evaluator = evaluator
        self.sink = sink

    async def rollback(self, state: DeploymentState, reason: str) -> None:
        """Route traffic back to the slot that was live before this run."""
        logger.warning("🔙 Executing automatic rollback...")

        # Before the switch persisted, current_slot is still the old live slot
        restore = state.previous_slot if state.status == Status.MONITORING else state.current_slot
        failed = restore.other

        try:
            await self.hosting.cutover(restore)
        except Exception as e:
            logger.error(f"❌ Rollback cutover to {restore.value} failed: {e}")
            state.status = Status.FAILED
            self.store.save(state)
            await self._notify("rollback-failed", state, f"{reason}; cutover failed: {e}")
            return

        state.current_slot = restore
        state.previous_slot = failed
        state.status = Status.ROLLED_BACK
        self.store.save(state)
        ROLLBACKS_TOTAL.labels(environment=self.config.environment).inc()

        await self._notify("rollback", state, reason)
        logger.info(f"✅ Rollback completed, live traffic on {restore.value}")

    async def abort(self, state: DeploymentState, reason: str, record: bool = True) -> None:
        """Record a failure that happened before traffic moved.

        Args:
            state: Deployment record of the run
            reason: Failure description for the notification
            record: Persist `failed`; False when the run never started its record
        """
        logger.warning("🛑 Deployment aborted before traffic switch, no rollback needed")

        if record:
            state.status = Status.FAILED
            self.store.save(state)

        await self._notify("aborted", state, reason)

    async def _notify(self, kind: str, state: DeploymentState, reason: str) -> None:
        notification = DeploymentNotification(
            kind=kind,
            environment=self.config.environment,
            deployment_id=state.deployment_id,
            previous_slot=state.previous_slot.value,
            current_slot=state.current_slot.value,
            reason=reason,
            metrics=self.evaluator.recent(5),
        )
        try:
            await self.sink.notify(notification)
        except Exception as e:
            logger.warning(f"Failed to send {kind} notification: {e}")
