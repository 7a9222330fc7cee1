"""Unit tests for Slack webhook notifications."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx
import pybreaker
import pytest

from src.deployer.models.samples import HealthSample
from src.deployer.notifications.slack import (
    DeploymentNotification,
    SlackWebhookSink,
    build_slack_payload,
    format_metrics,
)

WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"


@pytest.fixture
def notification():
    return DeploymentNotification(
        kind="rollback",
        environment="production",
        deployment_id="deploy-1700000000000-abc123",
        previous_slot="green",
        current_slot="blue",
        reason="Health metrics degraded - triggering rollback",
        metrics=[HealthSample(response_time=4000.0, error_rate=1.0, success_rate=99.0)],
        timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def breaker():
    return pybreaker.CircuitBreaker(fail_max=3, reset_timeout=60, name="test_webhook")


class TestPayload:

    def test_slack_payload_shape(self, notification):
        payload = build_slack_payload(notification)

        assert payload["text"] == "🚨 AUTOMATIC ROLLBACK EXECUTED"
        attachment = payload["attachments"][0]
        assert attachment["color"] == "danger"
        assert attachment["ts"] == 1704110400
        titles = [f["title"] for f in attachment["fields"]]
        assert titles == [
            "Environment", "Deployment ID", "Previous Slot",
            "Current Slot", "Reason", "Recent Metrics",
        ]
        values = {f["title"]: f["value"] for f in attachment["fields"]}
        assert values["Deployment ID"] == "deploy-1700000000000-abc123"
        assert "RT=4000ms" in values["Recent Metrics"]

    def test_aborted_uses_warning_color(self, notification):
        aborted = DeploymentNotification(
            kind="aborted",
            environment="staging",
            deployment_id="x",
            previous_slot="blue",
            current_slot="blue",
            reason="Load testing failed",
        )

        payload = build_slack_payload(aborted)

        assert payload["attachments"][0]["color"] == "warning"

    def test_format_without_samples(self):
        assert format_metrics([]) == "no samples recorded"

    def test_to_dict(self, notification):
        data = notification.to_dict()

        assert data["type"] == "deployment-rollback"
        assert data["currentSlot"] == "blue"
        assert data["metrics"][0]["responseTime"] == 4000.0


class TestSlackWebhookSink:

    @pytest.mark.asyncio
    async def test_without_webhook_skips(self, notification, breaker):
        sink = SlackWebhookSink(None, breaker=breaker)

        with patch("httpx.post") as post:
            assert await sink.notify(notification) is False

        post.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_payload(self, notification, breaker):
        sink = SlackWebhookSink(WEBHOOK, breaker=breaker)
        response = MagicMock()

        with patch("httpx.post", return_value=response) as post:
            assert await sink.notify(notification) is True

        args, kwargs = post.call_args
        assert args[0] == WEBHOOK
        assert kwargs["json"]["text"] == "🚨 AUTOMATIC ROLLBACK EXECUTED"
        response.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_http_error_is_reported(self, notification, breaker):
        sink = SlackWebhookSink(WEBHOOK, breaker=breaker)
        error = httpx.ConnectError("unreachable")

        with patch("httpx.post", side_effect=error):
            assert await sink.notify(notification) is False

    @pytest.mark.asyncio
    async def test_open_circuit_skips(self, notification, breaker):
        sink = SlackWebhookSink(WEBHOOK, breaker=breaker)

        with patch("httpx.post", side_effect=httpx.ConnectError("unreachable")) as post:
            for _ in range(4):
                assert await sink.notify(notification) is False

        assert breaker.current_state == pybreaker.STATE_OPEN
        assert post.call_count == 3
