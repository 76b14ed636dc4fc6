"""
SQLAlchemy ORM persistence models for the Work Orders module.

Responsibility
--------------
Provide database-backed persistence for work orders and their payment
installments.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``WorkOrderService`` and
``PaymentService``.  Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``work_order_number`` is unique (``uq_work_order_number``).  This
  constraint is what turns a concurrent allocation race into a detectable
  ``IntegrityError``.
* ``(work_order_id, term_order)`` is unique.
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Enum fields stored as String(20) for readability and portability.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workorder_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# WorkOrderModel
# ---------------------------------------------------------------------------


class WorkOrderModel(TrackedBase):
    """
    An issued work order (SPK).

    Maps to the ``WorkOrder`` DTO in ``workorder_modules.work_orders.models``.

    Guarantees:
        - ``work_order_number`` is unique and never reassigned.
        - ``status`` follows the lifecycle: draft -> published.
    """

    __tablename__ = "work_orders"

    __table_args__ = (
        UniqueConstraint("work_order_number", name="uq_work_order_number"),
        Index("idx_work_order_status", "status"),
        Index("idx_work_order_vendor_email", "vendor_email"),
        Index("idx_work_order_created_at", "created_at"),
    )

    work_order_number: Mapped[str] = mapped_column(String(64), nullable=False)
    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    contract_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    payments: Mapped[list["PaymentModel"]] = relationship(
        "PaymentModel",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="PaymentModel.term_order",
        lazy="selectin",
    )

    def to_dto(self):
        from workorder_modules.work_orders.models import WorkOrder, WorkOrderStatus

        return WorkOrder(
            id=self.id,
            work_order_number=self.work_order_number,
            vendor_name=self.vendor_name,
            project_name=self.project_name,
            contract_value=self.contract_value,
            currency=self.currency,
            start_date=self.start_date,
            status=WorkOrderStatus(self.status),
            vendor_email=self.vendor_email,
            vendor_phone=self.vendor_phone,
            project_description=self.project_description,
            end_date=self.end_date,
            notes=self.notes,
            published_at=self.published_at,
            created_at=self.created_at,
            created_by=self.created_by,
            payments=tuple(p.to_dto() for p in self.payments),
        )

    def __repr__(self) -> str:
        return f"<WorkOrderModel {self.work_order_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    A payment installment of a work order.

    Maps to the ``Payment`` DTO in ``workorder_modules.work_orders.models``.

    Guarantees:
        - Belongs to exactly one ``WorkOrderModel``.
        - (work_order_id, term_order) is unique.
        - ``amount`` is the resolved amount; ``percentage`` is set only for
          percentage-mode installments.
    """

    __tablename__ = "work_order_payments"

    __table_args__ = (
        UniqueConstraint(
            "work_order_id", "term_order",
            name="uq_work_order_payment_term_order",
        ),
        Index("idx_payment_work_order", "work_order_id"),
        Index("idx_payment_status_due", "status", "due_date"),
    )

    work_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False,
    )
    term_name: Mapped[str] = mapped_column(String(255), nullable=False)
    term_order: Mapped[int]
    input_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(12, 9), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    work_order: Mapped["WorkOrderModel"] = relationship(
        "WorkOrderModel",
        back_populates="payments",
    )

    def to_dto(self):
        from workorder_engines import InputMode
        from workorder_modules.work_orders.models import Payment, PaymentStatus

        return Payment(
            id=self.id,
            work_order_id=self.work_order_id,
            term_name=self.term_name,
            term_order=self.term_order,
            input_mode=InputMode(self.input_mode),
            amount=self.amount,
            status=PaymentStatus(self.status),
            percentage=self.percentage,
            due_date=self.due_date,
            description=self.description,
            paid_date=self.paid_date,
            payment_reference=self.payment_reference,
            updated_by=self.updated_by,
        )

    @classmethod
    def from_resolved(cls, resolved, created_by: str, created_at: datetime) -> "PaymentModel":
        """Build a pending installment row from a ``ResolvedTerm``."""
        term = resolved.term
        return cls(
            term_name=term.name.strip(),
            term_order=term.order,
            input_mode=term.input_mode.value,
            percentage=resolved.percentage,
            amount=resolved.amount,
            due_date=term.due_date,
            description=term.description,
            status="pending",
            created_by=created_by,
            created_at=created_at,
            updated_at=created_at,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.term_order}:{self.term_name} [{self.status}]>"
