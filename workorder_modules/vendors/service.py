"""
Vendor Access Service (``workorder_modules.vendors.service``).

Responsibility
--------------
Issues and resolves vendor portal access tokens and builds the read-only
portal view a vendor sees: its own published work orders and their
payment status.

Architecture position
---------------------
**Modules layer**.  Used directly by the portal entry point and, with
``auto_commit=False``, by ``WorkOrderService`` so that vendor records are
written in the same transaction as the work order.

Invariants enforced
-------------------
* Vendor emails are stored lower-cased; every lookup is case-insensitive.
* Portal views contain ``published`` work orders only.  Drafts are never
  exposed through a token.
* A token is issued once per vendor and reused afterwards.

Failure modes
-------------
* Unknown or empty token on ``portal_for_token``  ->
  ``InvalidVendorTokenError``.
* Unexpected exception  -> session rolled back (when this service owns the
  transaction), exception re-raised.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from workorder_config.schema import WorkOrderSettings
from workorder_kernel.domain.clock import Clock, SystemClock
from workorder_kernel.exceptions import InvalidVendorTokenError
from workorder_kernel.logging_config import get_logger
from workorder_modules.vendors.models import Vendor, VendorPortalView
from workorder_modules.vendors.orm import VendorModel
from workorder_modules.work_orders.models import WorkOrderStatus
from workorder_modules.work_orders.orm import WorkOrderModel

logger = get_logger("modules.vendors.service")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class VendorAccessService:
    """
    Vendor records, portal tokens and the portal view.

    Contract
    --------
    * ``token_factory`` is called with ``settings.vendor_token_bytes`` and
      must return a URL-safe string.  Defaults to ``secrets.token_urlsafe``.
    * With ``auto_commit=True`` every writing method commits on success and
      rolls back on failure.  With ``auto_commit=False`` the caller owns the
      transaction and this service only flushes.
    """

    def __init__(
        self,
        session: Session,
        settings: WorkOrderSettings,
        clock: Clock | None = None,
        token_factory: Callable[[int], str] | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._token_factory = token_factory or secrets.token_urlsafe
        self._auto_commit = auto_commit

    # =========================================================================
    # Tokens
    # =========================================================================

    def get_or_create_token(
        self,
        email: str,
        name: str,
        phone: str | None = None,
        actor: str = "system",
    ) -> str:
        """Return the vendor's access token, creating vendor and token if absent."""
        try:
            vendor = self._ensure_vendor(email, name, phone, actor)
            if self._auto_commit:
                self._session.commit()
            return vendor.access_token
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def _ensure_vendor(
        self, email: str, name: str, phone: str | None, actor: str,
    ) -> VendorModel:
        normalized = normalize_email(email)
        if not normalized:
            raise ValueError("Vendor email is required to issue an access token")

        now = self._clock.now()
        vendor = self._session.execute(
            select(VendorModel).where(VendorModel.email == normalized)
        ).scalar_one_or_none()

        if vendor is None:
            vendor = VendorModel(
                name=name.strip() or normalized,
                email=normalized,
                phone=phone,
                created_by=actor,
                created_at=now,
                updated_at=now,
            )
            self._session.add(vendor)
            logger.info("vendor_created", extra={"vendor_email": normalized})
        elif phone and not vendor.phone:
            vendor.phone = phone
            vendor.updated_by = actor
            vendor.updated_at = now

        if not vendor.access_token:
            vendor.access_token = self._token_factory(self._settings.vendor_token_bytes)
            vendor.updated_by = actor
            vendor.updated_at = now
            logger.info("vendor_token_issued", extra={"vendor_email": normalized})

        self._session.flush()
        return vendor

    def resolve_token(self, token: str | None) -> Vendor | None:
        """Return the vendor owning ``token``, or None."""
        if not token or not token.strip():
            return None
        vendor = self._session.execute(
            select(VendorModel).where(VendorModel.access_token == token.strip())
        ).scalar_one_or_none()
        return vendor.to_dto() if vendor is not None else None

    # =========================================================================
    # Portal
    # =========================================================================

    def portal_for_token(self, token: str | None) -> VendorPortalView:
        """
        Build the portal view for ``token``.

        Raises:
            InvalidVendorTokenError: token is empty or unknown.
        """
        vendor = self.resolve_token(token)
        if vendor is None:
            logger.warning("vendor_token_rejected")
            raise InvalidVendorTokenError()

        rows = self._session.execute(
            select(WorkOrderModel)
            .where(
                func.lower(WorkOrderModel.vendor_email) == vendor.email,
                WorkOrderModel.status == WorkOrderStatus.PUBLISHED.value,
            )
            .order_by(
                WorkOrderModel.created_at.desc(),
                WorkOrderModel.work_order_number.desc(),
            )
        ).scalars().all()

        logger.info(
            "vendor_portal_accessed",
            extra={"vendor_email": vendor.email, "work_order_count": len(rows)},
        )
        return VendorPortalView(
            vendor=vendor,
            work_orders=tuple(row.to_dto() for row in rows),
        )

    def portal_url(self, token: str) -> str:
        base = self._settings.vendor_portal_base_url.rstrip("/")
        return f"{base}/vendor?token={token}"
