"""Currency -- ISO 4217 registry for work order contract values."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str


class CurrencyRegistry:
    """Registry of ISO 4217 currencies a work order may be issued in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "CNY": CurrencyInfo("CNY", 2, "Yuan Renminbi"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is known."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information."""
        if not code:
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()

        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")

        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")

        return normalized
