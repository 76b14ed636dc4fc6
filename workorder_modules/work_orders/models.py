"""
Work Order Domain Models.

The nouns of SPK issuance: the draft an operator submits, the persisted
work order and its payment installments.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from workorder_engines import InputMode


class WorkOrderStatus(Enum):
    """Work order lifecycle states."""
    DRAFT = "draft"
    PUBLISHED = "published"


class PaymentStatus(Enum):
    """Installment tracking states."""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class WorkOrderDraft:
    """Header fields of a work order before a number is assigned.

    ``currency`` of None means the configured default currency.
    """
    vendor_name: str
    project_name: str
    contract_value: Decimal
    start_date: date
    vendor_email: str | None = None
    vendor_phone: str | None = None
    project_description: str | None = None
    currency: str | None = None
    end_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Payment:
    """One installment of a work order."""
    id: UUID
    work_order_id: UUID
    term_name: str
    term_order: int
    input_mode: InputMode
    amount: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    percentage: Decimal | None = None
    due_date: date | None = None
    description: str | None = None
    paid_date: date | None = None
    payment_reference: str | None = None
    updated_by: str | None = None


@dataclass(frozen=True)
class WorkOrder:
    """An issued work order (SPK)."""
    id: UUID
    work_order_number: str
    vendor_name: str
    project_name: str
    contract_value: Decimal
    currency: str
    start_date: date
    status: WorkOrderStatus = WorkOrderStatus.DRAFT
    vendor_email: str | None = None
    vendor_phone: str | None = None
    project_description: str | None = None
    end_date: date | None = None
    notes: str | None = None
    published_at: datetime | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    payments: tuple[Payment, ...] = field(default_factory=tuple)

    @property
    def is_draft(self) -> bool:
        return self.status is WorkOrderStatus.DRAFT


@dataclass(frozen=True)
class VendorHistoryEntry:
    """A previously used vendor, for autocomplete."""
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class ProjectHistoryEntry:
    """A previously used project, for autocomplete."""
    name: str
    description: str | None = None
