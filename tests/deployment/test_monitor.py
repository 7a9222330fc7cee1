"""Unit tests for metrics collection and post-promotion monitoring."""
import httpx
import pytest

from src.deployer.core.errors import MonitoringDegradation
from src.deployer.deployment.monitor import DeploymentMonitor, MetricsCollector
from src.deployer.deployment.state_store import DeploymentState, Slot, Status
from tests.fakes import ScriptedCollector, failing_sample, healthy_sample

LIVE = "https://green.example.test"


def metrics_client(status: int = 200, body=None) -> httpx.AsyncClient:
    def handler(request):
        assert request.url.path == "/api/metrics"
        return httpx.Response(status, json=body if body is not None else {})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMetricsCollector:
    """Test sampling of the metrics endpoint."""

    @pytest.mark.asyncio
    async def test_parses_metrics(self, evaluator):
        collector = MetricsCollector(
            evaluator, client=metrics_client(body={"errorRate": 2.5, "successRate": 97.5})
        )

        sample = await collector.collect(LIVE)

        assert sample.error_rate == 2.5
        assert sample.success_rate == 97.5
        assert sample.response_time >= 0
        assert len(evaluator) == 1
        await collector.close()

    @pytest.mark.asyncio
    async def test_missing_fields_default(self, evaluator):
        collector = MetricsCollector(evaluator, client=metrics_client(body={}))

        sample = await collector.collect(LIVE)

        assert sample.error_rate == 0.0
        assert sample.success_rate == 100.0

    @pytest.mark.asyncio
    async def test_server_error_yields_none(self, evaluator):
        collector = MetricsCollector(evaluator, client=metrics_client(status=500))

        assert await collector.collect(LIVE) is None
        assert len(evaluator) == 0

    @pytest.mark.asyncio
    async def test_invalid_body_yields_none(self, evaluator):
        collector = MetricsCollector(evaluator, client=metrics_client(body={"errorRate": "lots"}))

        assert await collector.collect(LIVE) is None
        assert len(evaluator) == 0

    @pytest.mark.asyncio
    async def test_out_of_range_error_rate_is_recorded(self, evaluator):
        collector = MetricsCollector(evaluator, client=metrics_client(body={"errorRate": 150}))

        for _ in range(3):
            sample = await collector.collect(LIVE)

        assert sample.error_rate == 150.0
        assert evaluator.is_healthy() is False


class TestDeploymentMonitor:
    """Test the monitoring loop."""

    @pytest.fixture
    def state(self):
        return DeploymentState(
            current_slot=Slot.GREEN,
            previous_slot=Slot.BLUE,
            deployment_id="deploy-1-a",
            status=Status.MONITORING,
        )

    @pytest.mark.asyncio
    async def test_healthy_run_completes(self, store, scheduler, evaluator, state):
        collector = ScriptedCollector(evaluator)
        monitor = DeploymentMonitor(collector, store, scheduler=scheduler)

        await monitor.start(state, LIVE, duration=300, interval=30)

        assert len(collector.calls) == 10
        assert scheduler.tickers[0].ticks == 10
        assert scheduler.tickers[0].stopped
        assert state.status == Status.COMPLETED
        assert store.load().status == Status.COMPLETED

    @pytest.mark.asyncio
    async def test_degradation_raises(self, store, scheduler, evaluator, state):
        collector = ScriptedCollector(evaluator, lambda url: failing_sample())
        monitor = DeploymentMonitor(collector, store, scheduler=scheduler)

        with pytest.raises(MonitoringDegradation, match="Health metrics degraded"):
            await monitor.start(state, LIVE, duration=300, interval=30)

        # Unhealthy as soon as the grace period of three samples is over
        assert len(collector.calls) == 3
        assert scheduler.tickers[0].stopped
        assert state.status == Status.MONITORING

    @pytest.mark.asyncio
    async def test_missing_samples_do_not_degrade(self, store, scheduler, evaluator, state):
        collector = ScriptedCollector(evaluator, lambda url: None)
        monitor = DeploymentMonitor(collector, store, scheduler=scheduler)

        await monitor.start(state, LIVE, duration=90, interval=30)

        assert len(collector.calls) == 3
        assert state.status == Status.COMPLETED

    @pytest.mark.asyncio
    async def test_late_degradation(self, store, scheduler, evaluator, state):
        samples = [healthy_sample()] * 5 + [failing_sample()] * 5

        collector = ScriptedCollector(evaluator, lambda url: samples.pop(0))
        monitor = DeploymentMonitor(collector, store, scheduler=scheduler)

        with pytest.raises(MonitoringDegradation):
            await monitor.start(state, LIVE, duration=300, interval=30)

        assert 5 < len(collector.calls) <= 10
