"""Vendors Module -- vendor records, portal access tokens and portal view."""

from workorder_modules.vendors.models import Vendor, VendorPortalView

__all__ = ["Vendor", "VendorPortalView"]
