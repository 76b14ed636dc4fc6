"""
Work Orders Module (``workorder_modules.work_orders``).

SPK issuance: header validation, payment term reconciliation, per-day
sequential numbering with collision retry, and the draft -> published
lifecycle.
"""

from workorder_modules.work_orders.models import (
    Payment,
    PaymentStatus,
    ProjectHistoryEntry,
    VendorHistoryEntry,
    WorkOrder,
    WorkOrderDraft,
    WorkOrderStatus,
)

__all__ = [
    "Payment",
    "PaymentStatus",
    "ProjectHistoryEntry",
    "VendorHistoryEntry",
    "WorkOrder",
    "WorkOrderDraft",
    "WorkOrderStatus",
]
