"""Deployment notifications delivered to a Slack-compatible webhook."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pybreaker
from loguru import logger

from src.deployer.core.circuit_breaker import webhook_breaker
from src.deployer.models.samples import HealthSample


@dataclass(frozen=True)
class DeploymentNotification:
    """Rollback or abort event for the team channel."""
    kind: str  # "rollback", "rollback-failed" or "aborted"
    environment: str
    deployment_id: str
    previous_slot: str
    current_slot: str
    reason: str
    metrics: List[HealthSample] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "type": f"deployment-{self.kind}",
            "environment": self.environment,
            "deploymentId": self.deployment_id,
            "previousSlot": self.previous_slot,
            "currentSlot": self.current_slot,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "metrics": [m.to_dict() for m in self.metrics],
        }


class NotificationSink(ABC):
    """Fire-and-forget destination for deployment notifications."""

    @abstractmethod
    async def notify(self, notification: DeploymentNotification) -> bool:
        """Deliver `notification`; return whether it was accepted."""


HEADLINES = {
    "rollback": ("🚨 AUTOMATIC ROLLBACK EXECUTED", "danger"),
    "rollback-failed": ("🔥 AUTOMATIC ROLLBACK FAILED", "danger"),
    "aborted": ("⚠️ DEPLOYMENT ABORTED BEFORE TRAFFIC SWITCH", "warning"),
}


def format_metrics(samples: List[HealthSample]) -> str:
    if not samples:
        return "no samples recorded"
    return "\n".join(
        f"{s.timestamp:%H:%M:%S} RT={s.response_time:.0f}ms "
        f"ER={s.error_rate:.1f}% SR={s.success_rate:.1f}%"
        for s in samples
    )


def build_slack_payload(notification: DeploymentNotification) -> Dict[str, Any]:
    """Render a notification as a Slack attachment message."""
    text, color = HEADLINES.get(notification.kind, (notification.kind.upper(), "danger"))
    fields = [
        {"title": "Environment", "value": notification.environment, "short": True},
        {"title": "Deployment ID", "value": notification.deployment_id, "short": True},
        {"title": "Previous Slot", "value": notification.previous_slot, "short": True},
        {"title": "Current Slot", "value": notification.current_slot, "short": True},
        {"title": "Reason", "value": notification.reason, "short": False},
        {"title": "Recent Metrics", "value": format_metrics(notification.metrics), "short": False},
    ]
    return {
        "text": text,
        "attachments": [{
            "color": color,
            "fields": fields,
            "ts": int(notification.timestamp.timestamp()),
        }],
    }


class SlackWebhookSink(NotificationSink):
    """Posts notifications to an incoming webhook behind a circuit breaker."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: float = 10.0,
        breaker: pybreaker.CircuitBreaker = webhook_breaker,
    ):
        """Initialize webhook sink.

        Args:
            webhook_url: Slack incoming webhook URL; notifications are skipped when unset
            timeout: Request timeout in seconds
            breaker: Circuit breaker shared by webhook deliveries
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.breaker = breaker

    async def notify(self, notification: DeploymentNotification) -> bool:
        if not self.webhook_url:
            logger.warning("No Slack webhook configured, skipping notification")
            return False

        payload = build_slack_payload(notification)
        try:
            await asyncio.to_thread(self.breaker.call, self._post, payload)
        except pybreaker.CircuitBreakerError:
            logger.warning("Notification webhook circuit open, skipping notification")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send Slack notification: {e}")
            return False

        logger.info(f"📣 {notification.kind} notification sent")
        return True

    def _post(self, payload: Dict[str, Any]) -> None:
        response = httpx.post(self.webhook_url, json=payload, timeout=self.timeout)
        response.raise_for_status()
