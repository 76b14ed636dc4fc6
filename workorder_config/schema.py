"""
Configuration Schema (``workorder_config.schema``).

Frozen dataclasses describing every setting the system reads.  Field
defaults mirror ``defaults.yaml``; instances are produced by
``workorder_config.loader`` and handed to services by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from workorder_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True)
class MailSettings:
    """SMTP delivery settings.  No host means log-only mode."""

    host: str | None = None
    port: int = 587
    use_tls: bool = True
    username: str | None = None
    password: str | None = None
    from_email: str = "no-reply@localhost"
    from_name: str = "SPK Creator"


@dataclass(frozen=True)
class WorkOrderSettings:
    """
    Runtime settings for work order issuance and payment tracking.

    Guarantees:
        - Tolerances are Decimal, never float.
        - ``supported_currencies`` holds upper-case ISO 4217 codes.
    """

    database_url: str = "sqlite+pysqlite:///workorders.db"

    # Numbering
    number_prefix: str = "ELX/SPK"
    sequence_width: int = 3
    max_allocation_attempts: int = 5

    # Payment term reconciliation
    amount_tolerance: Decimal = Decimal("0.01")
    percentage_tolerance: Decimal = Decimal("0.01")

    # Contract currency
    default_currency: str = "IDR"
    supported_currencies: tuple[str, ...] = ("IDR", "USD", "SGD", "EUR", "MYR")

    # Calendar day used for numbering and due-date checks
    business_utc_offset_hours: int = 7

    # Vendor portal
    vendor_portal_base_url: str = "http://localhost:3000"
    vendor_token_bytes: int = 24

    # Notifications
    slack_webhook_url: str | None = None
    slack_timeout_seconds: int = 10
    mail: MailSettings = field(default_factory=MailSettings)

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.number_prefix or self.number_prefix.endswith("/"):
            raise ValueError(
                f"number_prefix must be non-empty without a trailing '/': "
                f"{self.number_prefix!r}"
            )
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be at least 1")
        if self.max_allocation_attempts < 1:
            raise ValueError("max_allocation_attempts must be at least 1")
        if self.amount_tolerance <= 0 or self.percentage_tolerance <= 0:
            raise ValueError("tolerances must be positive")
        for code in self.supported_currencies:
            if CurrencyRegistry.validate(code) != code:
                raise ValueError(f"supported_currencies must be upper-case: {code!r}")
        if self.default_currency not in self.supported_currencies:
            raise ValueError(
                f"default_currency {self.default_currency} is not in "
                f"supported_currencies"
            )
        if not -12 <= self.business_utc_offset_hours <= 14:
            raise ValueError("business_utc_offset_hours must be within -12..14")
        if self.vendor_token_bytes < 16:
            raise ValueError("vendor_token_bytes must be at least 16")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log_level {self.log_level!r}")

    @property
    def business_utc_offset(self) -> timedelta:
        return timedelta(hours=self.business_utc_offset_hours)
