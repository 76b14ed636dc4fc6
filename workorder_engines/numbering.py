"""
Work Order Number Allocator (``workorder_engines.numbering``).

Responsibility
--------------
Produce the next work order number for a calendar day from the numbers
already issued for that day.  Numbers have the shape::

    {prefix}/{YYYYMMDD}/{seq}        e.g. ELX/SPK/20260121/003

``seq`` starts at 1 per day, is the maximum existing suffix plus one (not
the count plus one), and is zero-padded to three digits.  Sequences beyond
999 are written in full (``1000``).

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO database,
ZERO clock reads.  ``today`` is always a parameter.

Invariants enforced
-------------------
* Deterministic: the same ``today`` and ``existing_numbers`` always give
  the same number.
* Suffixes that do not parse as a plain non-negative integer are ignored.
  They neither block allocation nor count as 0.
* The caller scopes ``existing_numbers`` to ``today``; entries from other
  days are not filtered out here.

Failure modes
-------------
* None intrinsic.  The result is only unique under external
  serialization: two callers reading the same snapshot compute the same
  number.  The persistence layer enforces uniqueness and retries with a
  refreshed read (see ``WorkOrderService``).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from workorder_engines.tracer import traced_engine

DEFAULT_PREFIX = "ELX/SPK"
DEFAULT_SEQUENCE_WIDTH = 3
_SEPARATOR = "/"


@dataclass(frozen=True)
class AllocatedNumber:
    """A work order number split into its three segments."""

    prefix: str
    date_segment: str
    sequence: int
    width: int = DEFAULT_SEQUENCE_WIDTH

    @property
    def scope(self) -> str:
        return f"{self.prefix}{_SEPARATOR}{self.date_segment}"

    @property
    def value(self) -> str:
        return f"{self.scope}{_SEPARATOR}{str(self.sequence).zfill(self.width)}"

    def __str__(self) -> str:
        return self.value


def format_date_segment(today: date) -> str:
    """Format ``today`` as the ``YYYYMMDD`` date segment."""
    return today.strftime("%Y%m%d")


def number_scope(prefix: str, today: date) -> str:
    """Return ``{prefix}/{YYYYMMDD}``, the shared head of today's numbers."""
    return f"{prefix}{_SEPARATOR}{format_date_segment(today)}"


def parse_sequence_suffix(number: str) -> int | None:
    """Extract the numeric suffix of a work order number.

    Returns None when the last ``/``-separated segment is not a plain
    ASCII digit string.
    """
    suffix = number.rsplit(_SEPARATOR, 1)[-1].strip()
    if not suffix or not suffix.isascii() or not suffix.isdigit():
        return None
    return int(suffix)


@traced_engine(
    "numbering", "1.0", fingerprint_fields=("today", "existing_numbers", "prefix"),
)
def allocate_work_order_number(
    today: date,
    existing_numbers: Iterable[str],
    prefix: str = DEFAULT_PREFIX,
    width: int = DEFAULT_SEQUENCE_WIDTH,
) -> AllocatedNumber:
    """Allocate the next work order number for ``today``.

    Args:
        today: Calendar day the number is issued on (caller-supplied clock).
        existing_numbers: Numbers already issued for ``today``.
        prefix: Leading segment(s), e.g. ``"ELX/SPK"``.
        width: Minimum digits of the sequence segment.

    Returns:
        AllocatedNumber whose ``value`` is the number string.
    """
    if width < 1:
        raise ValueError(f"width must be positive, got {width}")

    suffixes = [
        seq for seq in (parse_sequence_suffix(n) for n in existing_numbers)
        if seq is not None
    ]
    next_sequence = max(suffixes) + 1 if suffixes else 1

    return AllocatedNumber(
        prefix=prefix,
        date_segment=format_date_segment(today),
        sequence=next_sequence,
        width=width,
    )
