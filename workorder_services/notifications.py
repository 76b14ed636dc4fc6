"""
Notification Dispatch (``workorder_services.notifications``).

Responsibility
--------------
Turn work order events (publication, payment status change) into a
chat-ops message and, when requested, a vendor email.  Delivery is
delegated to gateways; this module only formats plain-text messages and
decides which gateway to call.

Architecture position
---------------------
**Services layer** -- called by ``workorder_modules`` services AFTER their
transaction has committed.  Imports only from ``workorder_kernel``.

Invariants enforced
-------------------
* Dispatch never raises for delivery problems.  Gateways return a
  ``DeliveryResult``; failures are logged as warnings.
* Business state is never rolled back because a notification failed.

Failure modes
-------------
* Gateway reports ``ok=False``  -> ``notification_delivery_failed`` warning.
* Gateway reports ``skipped``  -> ``notification_skipped`` debug record.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Protocol

from workorder_kernel.domain.currency import CurrencyRegistry
from workorder_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt.  Gateways never raise."""

    ok: bool
    skipped: bool = False
    error: str | None = None

    @classmethod
    def delivered(cls) -> "DeliveryResult":
        return cls(ok=True)

    @classmethod
    def skip(cls, reason: str) -> "DeliveryResult":
        return cls(ok=False, skipped=True, error=reason)

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(ok=False, error=error)


class ChatGateway(Protocol):
    """Posts a plain-text message to a chat channel."""

    def post_message(self, text: str) -> DeliveryResult: ...


class EmailGateway(Protocol):
    """Sends a plain-text email."""

    def send(self, to: str, subject: str, body: str) -> DeliveryResult: ...


@dataclass(frozen=True)
class NotificationReport:
    """Per-channel results of one dispatch.  None means not attempted."""

    chat: DeliveryResult | None = None
    email: DeliveryResult | None = None


def format_amount(currency: str, amount: Decimal) -> str:
    """``IDR 1,500,000.00`` style amount in the currency's minor units."""
    info = CurrencyRegistry.get_info(currency)
    places = info.decimal_places if info is not None else 2
    with localcontext() as ctx:
        # quantize needs every integer digit plus the minor units
        ctx.prec = max(ctx.prec, amount.adjusted() + places + 2)
        quantized = amount.quantize(Decimal(1).scaleb(-places))
    return f"{currency} {quantized:,}"


def _status_text(status) -> str:
    return getattr(status, "value", status)


def published_chat_text(work_order) -> str:
    return (
        f"New SPK {work_order.work_order_number} published for "
        f"{work_order.vendor_name} - {work_order.project_name} "
        f"({format_amount(work_order.currency, work_order.contract_value)})"
    )


def published_email(work_order, portal_url: str | None) -> tuple[str, str]:
    subject = f"New Work Order: {work_order.work_order_number}"
    lines = [
        f"Dear {work_order.vendor_name},",
        "",
        f"Work order {work_order.work_order_number} has been issued for "
        f"project {work_order.project_name}.",
        f"Contract value: "
        f"{format_amount(work_order.currency, work_order.contract_value)}",
        f"Start date: {work_order.start_date.isoformat()}",
    ]
    if work_order.end_date is not None:
        lines.append(f"End date: {work_order.end_date.isoformat()}")
    if work_order.payments:
        lines.append("")
        lines.append("Payment terms:")
        for payment in work_order.payments:
            lines.append(
                f"  {payment.term_order}. {payment.term_name}: "
                f"{format_amount(work_order.currency, payment.amount)}"
            )
    if portal_url:
        lines.extend(["", f"View your work orders: {portal_url}"])
    return subject, "\n".join(lines)


def payment_chat_text(work_order, payment, actor: str) -> str:
    return (
        f"Payment updated for SPK {work_order.work_order_number}: "
        f"{payment.term_name} "
        f"({format_amount(work_order.currency, payment.amount)}) is now "
        f"{_status_text(payment.status)}, by {actor}"
    )


def payment_email(work_order, payment) -> tuple[str, str]:
    subject = (
        f"Payment Update: {work_order.work_order_number} - {payment.term_name}"
    )
    lines = [
        f"Dear {work_order.vendor_name},",
        "",
        f"The status of payment '{payment.term_name}' for work order "
        f"{work_order.work_order_number} is now "
        f"{_status_text(payment.status)}.",
        f"Amount: {format_amount(work_order.currency, payment.amount)}",
    ]
    if payment.paid_date is not None:
        lines.append(f"Paid on: {payment.paid_date.isoformat()}")
    if payment.payment_reference:
        lines.append(f"Reference: {payment.payment_reference}")
    return subject, "\n".join(lines)


class NotificationDispatcher:
    """
    Sends work order notifications through the configured gateways.

    Contract:
        Called after commit.  Returns a ``NotificationReport``; never raises
        because of a delivery problem.
    """

    def __init__(self, chat: ChatGateway, email: EmailGateway):
        self._chat = chat
        self._email = email

    def work_order_published(
        self,
        work_order,
        email_to: str | None = None,
        portal_url: str | None = None,
    ) -> NotificationReport:
        chat = self._record(
            "chat", "work_order_published", work_order,
            self._chat.post_message(published_chat_text(work_order)),
        )
        email = None
        if email_to:
            subject, body = published_email(work_order, portal_url)
            email = self._record(
                "email", "work_order_published", work_order,
                self._email.send(email_to, subject, body),
            )
        return NotificationReport(chat=chat, email=email)

    def payment_updated(
        self,
        work_order,
        payment,
        actor: str,
        email_to: str | None = None,
    ) -> NotificationReport:
        chat = self._record(
            "chat", "payment_updated", work_order,
            self._chat.post_message(payment_chat_text(work_order, payment, actor)),
        )
        email = None
        if email_to:
            subject, body = payment_email(work_order, payment)
            email = self._record(
                "email", "payment_updated", work_order,
                self._email.send(email_to, subject, body),
            )
        return NotificationReport(chat=chat, email=email)

    def _record(
        self, channel: str, event: str, work_order, result: DeliveryResult,
    ) -> DeliveryResult:
        extra = {
            "channel": channel,
            "event": event,
            "work_order_number": work_order.work_order_number,
        }
        if result.ok:
            logger.info("notification_sent", extra=extra)
        elif result.skipped:
            logger.debug("notification_skipped", extra={**extra, "reason": result.error})
        else:
            logger.warning(
                "notification_delivery_failed", extra={**extra, "error": result.error},
            )
        return result
