"""Pure domain helpers: clock and currency registry."""

from workorder_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workorder_kernel.domain.currency import CurrencyInfo, CurrencyRegistry

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "CurrencyInfo",
    "CurrencyRegistry",
]
