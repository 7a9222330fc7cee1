"""Notification sinks for deployment events."""

from .slack import (
    DeploymentNotification,
    NotificationSink,
    SlackWebhookSink,
    build_slack_payload,
)

__all__ = [
    "DeploymentNotification",
    "NotificationSink",
    "SlackWebhookSink",
    "build_slack_payload",
]
