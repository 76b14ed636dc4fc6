"""
Payment Tracking Service (``workorder_modules.payments.service``).

Responsibility
--------------
Tracks each installment of a published work order through
``pending`` / ``paid`` / ``overdue``, sweeps past-due installments to
``overdue`` and summarizes payment progress per work order.

Architecture position
---------------------
**Modules layer**.  Reads and writes ``PaymentModel`` rows owned by the
work orders module; notifies through ``NotificationDispatcher`` after
commit.

Invariants enforced
-------------------
* Each public writing method owns the transaction boundary.
* Only installments of ``published`` work orders are tracked.
* ``paid_date`` is set exactly while the installment is ``paid``.
* ``mark_overdue`` only moves ``pending`` installments whose due date is
  before the cut-off date.

Failure modes
-------------
* Unknown installment  -> ``PaymentNotFoundError``.
* Unknown work order  -> ``WorkOrderNotFoundError``.
* Work order still a draft  -> ``WorkOrderStateError``.
* Status unchanged  -> ``InvalidPaymentTransitionError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workorder_config.schema import WorkOrderSettings
from workorder_kernel.domain.clock import Clock, SystemClock
from workorder_kernel.exceptions import (
    InvalidPaymentTransitionError,
    PaymentNotFoundError,
    WorkOrderNotFoundError,
    WorkOrderStateError,
)
from workorder_kernel.logging_config import get_logger
from workorder_modules.work_orders.models import (
    Payment,
    PaymentStatus,
    WorkOrderStatus,
)
from workorder_modules.work_orders.orm import PaymentModel, WorkOrderModel
from workorder_services import NotificationDispatcher, build_dispatcher

logger = get_logger("modules.payments.service")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentProgress:
    """Paid versus outstanding amounts of one work order."""
    work_order_id: UUID
    contract_value: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    paid_count: int
    pending_count: int
    overdue_count: int

    @property
    def is_fully_paid(self) -> bool:
        return self.pending_count == 0 and self.overdue_count == 0


class PaymentService:
    """
    Installment status tracking.

    Guarantees
    ----------
    * Session is committed only on success; otherwise rolled back and the
      exception re-raised.
    * Clock is injectable; "today" uses ``settings.business_utc_offset``.
    """

    def __init__(
        self,
        session: Session,
        settings: WorkOrderSettings,
        clock: Clock | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._notifier = notifier or build_dispatcher(settings)

    def _today(self) -> date:
        return self._clock.today(self._settings.business_utc_offset)

    def update_status(
        self,
        payment_id: UUID,
        status: PaymentStatus | str,
        actor: str,
        paid_date: date | None = None,
        payment_reference: str | None = None,
        send_email: bool = False,
    ) -> Payment:
        """
        Change an installment's status.

        Moving to ``paid`` stamps ``paid_date`` (default today) and the
        optional reference.  Leaving ``paid`` clears ``paid_date`` and the
        reference.
        """
        target = PaymentStatus(status)
        try:
            payment = self._session.get(PaymentModel, payment_id)
            if payment is None:
                raise PaymentNotFoundError(str(payment_id))
            work_order = payment.work_order
            if work_order.status != WorkOrderStatus.PUBLISHED.value:
                raise WorkOrderStateError(
                    str(work_order.id), work_order.status, "track payments of",
                )
            if payment.status == target.value:
                raise InvalidPaymentTransitionError(
                    str(payment_id), payment.status, target.value,
                )

            previous = payment.status
            payment.status = target.value
            if target is PaymentStatus.PAID:
                payment.paid_date = paid_date or self._today()
                if payment_reference is not None:
                    payment.payment_reference = payment_reference.strip() or None
            else:
                payment.paid_date = None
                payment.payment_reference = None
            payment.updated_by = actor
            payment.updated_at = self._clock.now()

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        dto = payment.to_dto()
        work_order_dto = work_order.to_dto()
        logger.info(
            "payment_status_updated",
            extra={
                "payment_id": str(payment_id),
                "work_order_number": work_order.work_order_number,
                "from_status": previous,
                "to_status": target.value,
                "actor": actor,
            },
        )
        self._notifier.payment_updated(
            work_order_dto,
            dto,
            actor,
            email_to=work_order_dto.vendor_email if send_email else None,
        )
        return dto

    def mark_overdue(self, as_of: date | None = None) -> list[Payment]:
        """Move pending installments due before ``as_of`` to ``overdue``."""
        cutoff = as_of or self._today()
        try:
            rows = self._session.execute(
                select(PaymentModel)
                .join(WorkOrderModel, PaymentModel.work_order_id == WorkOrderModel.id)
                .where(
                    WorkOrderModel.status == WorkOrderStatus.PUBLISHED.value,
                    PaymentModel.status == PaymentStatus.PENDING.value,
                    PaymentModel.due_date.is_not(None),
                    PaymentModel.due_date < cutoff,
                )
                .order_by(WorkOrderModel.work_order_number, PaymentModel.term_order)
            ).scalars().all()

            now = self._clock.now()
            for payment in rows:
                payment.status = PaymentStatus.OVERDUE.value
                payment.updated_by = "system"
                payment.updated_at = now
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "payments_marked_overdue",
            extra={"as_of": cutoff, "count": len(rows)},
        )
        updated = []
        for payment in rows:
            dto = payment.to_dto()
            self._notifier.payment_updated(payment.work_order.to_dto(), dto, "system")
            updated.append(dto)
        return updated

    def payments_for(self, work_order_id: UUID) -> list[Payment]:
        """Installments of a work order in ``term_order``."""
        work_order = self._get_work_order(work_order_id)
        return [p.to_dto() for p in work_order.payments]

    def progress(self, work_order_id: UUID) -> PaymentProgress:
        work_order = self._get_work_order(work_order_id)
        paid = [p for p in work_order.payments if p.status == PaymentStatus.PAID.value]
        paid_amount = sum((p.amount for p in paid), _ZERO)
        return PaymentProgress(
            work_order_id=work_order.id,
            contract_value=work_order.contract_value,
            paid_amount=paid_amount,
            outstanding_amount=work_order.contract_value - paid_amount,
            paid_count=len(paid),
            pending_count=sum(
                1 for p in work_order.payments
                if p.status == PaymentStatus.PENDING.value
            ),
            overdue_count=sum(
                1 for p in work_order.payments
                if p.status == PaymentStatus.OVERDUE.value
            ),
        )

    def _get_work_order(self, work_order_id: UUID) -> WorkOrderModel:
        model = self._session.get(WorkOrderModel, work_order_id)
        if model is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        return model
