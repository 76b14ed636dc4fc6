"""
Vendor Domain Models.

Vendors and the read-only portal view a vendor sees through its access
token.
"""

from dataclasses import dataclass, field
from uuid import UUID

from workorder_modules.work_orders.models import WorkOrder


@dataclass(frozen=True)
class Vendor:
    """A vendor known to the system.  ``email`` is stored lower-cased."""
    id: UUID
    name: str
    email: str
    phone: str | None = None
    access_token: str | None = None


@dataclass(frozen=True)
class VendorPortalView:
    """What a vendor sees in the portal: its published work orders."""
    vendor: Vendor
    work_orders: tuple[WorkOrder, ...] = field(default_factory=tuple)
