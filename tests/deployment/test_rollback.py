"""Unit tests for rollback and abort handling."""
import pytest

from src.deployer.deployment.rollback import RollbackController
from src.deployer.deployment.state_store import DeploymentState, Slot, Status
from tests.fakes import FakeHosting, RecordingSink, failing_sample


@pytest.fixture
def controller(production_config, hosting, store, evaluator, sink):
    return RollbackController(production_config, hosting, store, evaluator, sink)


def switched_state():
    return DeploymentState(
        current_slot=Slot.GREEN,
        previous_slot=Slot.BLUE,
        deployment_id="deploy-1-abcdef",
        status=Status.MONITORING,
    )


class TestRollback:
    """Test reverting live traffic."""

    @pytest.mark.asyncio
    async def test_restores_previous_slot(self, controller, hosting, store, evaluator, sink):
        for _ in range(7):
            evaluator.record(failing_sample())
        state = switched_state()

        await controller.rollback(state, "Health metrics degraded - triggering rollback")

        assert hosting.calls == [("cutover", Slot.BLUE)]
        assert state.current_slot == Slot.BLUE
        assert state.previous_slot == Slot.GREEN
        assert state.status == Status.ROLLED_BACK
        assert store.load().status == Status.ROLLED_BACK

        notification = sink.notifications[0]
        assert notification.kind == "rollback"
        assert notification.deployment_id == "deploy-1-abcdef"
        assert notification.current_slot == "blue"
        assert notification.previous_slot == "green"
        assert len(notification.metrics) == 5

    @pytest.mark.asyncio
    async def test_before_switch_keeps_live_slot(self, controller, hosting):
        """A canary failure happens before the new slot is recorded as current."""
        state = DeploymentState(deployment_id="deploy-1-a", status=Status.DEPLOYING)

        await controller.rollback(state, "Traffic metrics deteriorated at 50% - rolling back")

        assert hosting.calls == [("cutover", Slot.BLUE)]
        assert state.current_slot == Slot.BLUE
        assert state.previous_slot == Slot.GREEN
        assert state.status == Status.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_failed_cutover_marks_failed(
        self, production_config, store, evaluator, sink
    ):
        hosting = FakeHosting(fail_on={"cutover"})
        controller = RollbackController(production_config, hosting, store, evaluator, sink)
        state = switched_state()

        await controller.rollback(state, "degraded")

        assert state.status == Status.FAILED
        assert state.current_slot == Slot.GREEN
        assert store.load().status == Status.FAILED
        assert [n.kind for n in sink.notifications] == ["rollback-failed"]
        assert "cutover failed" in sink.notifications[0].reason

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self, production_config, hosting, store, evaluator):
        controller = RollbackController(
            production_config, hosting, store, evaluator, RecordingSink(fail=True)
        )
        state = switched_state()

        await controller.rollback(state, "degraded")

        assert state.status == Status.ROLLED_BACK


class TestAbort:
    """Test failures before traffic moved."""

    @pytest.mark.asyncio
    async def test_abort_records_failure(self, controller, hosting, store, sink):
        state = DeploymentState(deployment_id="deploy-1-a")

        await controller.abort(state, "Health checks failed")

        assert hosting.calls == []
        assert state.status == Status.FAILED
        assert store.load().status == Status.FAILED
        assert [n.kind for n in sink.notifications] == ["aborted"]
        assert sink.notifications[0].reason == "Health checks failed"

    @pytest.mark.asyncio
    async def test_abort_without_record(self, controller, store, sink):
        state = DeploymentState()

        await controller.abort(state, "DoD gates failed - deployment blocked", record=False)

        assert not store.path.exists()
        assert state.status == Status.DEPLOYING
        assert len(sink.notifications) == 1
