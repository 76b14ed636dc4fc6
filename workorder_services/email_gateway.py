"""
SMTP email gateway.

Sends plain-text mail with ``smtplib``.  When no SMTP host is configured
the gateway runs in log-only mode: the message is logged and reported as
skipped.  SMTP and socket errors are captured in the returned
``DeliveryResult``; nothing raises.
"""

from __future__ import annotations

import smtplib
from email.mime.text import MIMEText
from email.utils import formataddr

from workorder_config.schema import MailSettings
from workorder_kernel.logging_config import get_logger
from workorder_services.notifications import DeliveryResult

logger = get_logger("services.email")


class SmtpEmailGateway:
    """Email gateway backed by an SMTP server."""

    def __init__(self, settings: MailSettings, timeout: int = 30):
        self._settings = settings
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._settings.host)

    def build_message(self, to: str, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = formataddr((self._settings.from_name, self._settings.from_email))
        msg["To"] = to
        return msg

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        if not self.enabled:
            logger.info("email_log_only", extra={"to": to, "subject": subject})
            return DeliveryResult.skip("SMTP not configured")

        msg = self.build_message(to, subject, body)
        cfg = self._settings
        try:
            with smtplib.SMTP(cfg.host, cfg.port, timeout=self._timeout) as smtp:
                if cfg.use_tls:
                    smtp.starttls()
                if cfg.username and cfg.password:
                    smtp.login(cfg.username, cfg.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "email_send_failed",
                extra={"to": to, "subject": subject, "error": str(exc)},
            )
            return DeliveryResult.failed(str(exc))

        logger.info("email_sent", extra={"to": to, "subject": subject})
        return DeliveryResult.delivered()
