"""
Slack incoming-webhook gateway.

POSTs ``{"text": ...}`` to the configured webhook URL with ``requests``.
No URL configured means every message is skipped.  Network and HTTP
errors are captured in the returned ``DeliveryResult``; nothing raises.
"""

from __future__ import annotations

import requests

from workorder_kernel.logging_config import get_logger
from workorder_services.notifications import DeliveryResult

logger = get_logger("services.slack")

_DEFAULT_TIMEOUT = 10  # seconds


class SlackWebhookGateway:
    """Chat gateway backed by a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        timeout: int = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    def post_message(self, text: str) -> DeliveryResult:
        if not self.enabled:
            logger.warning("slack_webhook_not_configured")
            return DeliveryResult.skip("Webhook URL not configured")

        try:
            response = self._session.post(
                self._webhook_url,
                json={"text": text},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("slack_request_failed", extra={"error": str(exc)})
            return DeliveryResult.failed(str(exc))

        if not response.ok:
            logger.error(
                "slack_api_error",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            return DeliveryResult.failed(
                f"HTTP {response.status_code}: {response.text[:200]}"
            )
        return DeliveryResult.delivered()
