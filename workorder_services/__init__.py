"""
Work Order Services -- notification delivery.

Gateways for chat-ops (Slack incoming webhook) and email (SMTP), and the
dispatcher the work order and payment services call after commit.
"""

from workorder_config.schema import WorkOrderSettings
from workorder_services.email_gateway import SmtpEmailGateway
from workorder_services.notifications import (
    ChatGateway,
    DeliveryResult,
    EmailGateway,
    NotificationDispatcher,
    NotificationReport,
)
from workorder_services.slack_gateway import SlackWebhookGateway


def build_dispatcher(settings: WorkOrderSettings) -> NotificationDispatcher:
    """Wire the Slack and SMTP gateways from settings."""
    return NotificationDispatcher(
        chat=SlackWebhookGateway(
            settings.slack_webhook_url,
            timeout=settings.slack_timeout_seconds,
        ),
        email=SmtpEmailGateway(settings.mail),
    )


__all__ = [
    "ChatGateway",
    "DeliveryResult",
    "EmailGateway",
    "NotificationDispatcher",
    "NotificationReport",
    "SlackWebhookGateway",
    "SmtpEmailGateway",
    "build_dispatcher",
]
