"""
SQLAlchemy ORM persistence models for the Vendors module.

Invariants enforced
-------------------
* ``email`` is unique and stored lower-cased, so lookups are
  case-insensitive.
* ``access_token`` is unique when set.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workorder_kernel.db.base import TrackedBase


class VendorModel(TrackedBase):
    """
    A vendor and its portal access token.

    Maps to the ``Vendor`` DTO in ``workorder_modules.vendors.models``.
    """

    __tablename__ = "vendors"

    __table_args__ = (
        UniqueConstraint("email", name="uq_vendor_email"),
        UniqueConstraint("access_token", name="uq_vendor_access_token"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    access_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    def to_dto(self):
        from workorder_modules.vendors.models import Vendor

        return Vendor(
            id=self.id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            access_token=self.access_token,
        )

    def __repr__(self) -> str:
        return f"<VendorModel {self.email}>"
