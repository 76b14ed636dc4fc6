"""
Payment Term Reconciler (``workorder_engines.payment_terms``).

Responsibility
--------------
Resolve each installment of a work order against its contract value and
decide whether the installment set reconciles:

* ``PercentageTerm``  -> ``contract_value * clamp(percentage, 0, 100) / 100``
* ``FixedAmountTerm`` -> ``amount``

A set is valid when the resolved amounts sum to the contract value within
``amount_tolerance`` (0.01 of the currency unit).  A set made only of
percentage terms must additionally sum to 100% within
``percentage_tolerance``; that check runs first so the operator sees
"total must equal 100%" rather than the generic amount mismatch.  Mixed
sets are checked on amounts only.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O.  Called live while a
term set is being edited and again, authoritatively, before persistence.

Invariants enforced
-------------------
* Decimal-only arithmetic.  Resolved amounts are not rounded.
* Check order: empty set, per-term structure (name, order, duplicate
  order), negative fixed amounts, then totals.  The first failure wins.

Failure modes
-------------
* Expected validation outcomes are returned in ``TermSetValidation``.
* Programmer errors raise: a negative contract value (``ValueError``), an
  object that is not a payment term (``TypeError``), or an unparseable
  term mapping in ``term_from_dict`` (``ValueError``).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from workorder_engines.tracer import traced_engine

DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")
DEFAULT_PERCENTAGE_TOLERANCE = Decimal("0.01")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class InputMode(str, Enum):
    """How the operator expressed an installment."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class TermFailureCode(str, Enum):
    """Reasons a term set is rejected."""

    EMPTY_TERM_SET = "EMPTY_TERM_SET"
    EMPTY_NAME = "EMPTY_NAME"
    INVALID_ORDER = "INVALID_ORDER"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    PERCENTAGE_TOTAL_MISMATCH = "PERCENTAGE_TOTAL_MISMATCH"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class PercentageTerm:
    """An installment expressed as a share of the contract value."""

    name: str
    order: int
    percentage: Decimal
    due_date: date | None = None
    description: str | None = None

    @property
    def input_mode(self) -> InputMode:
        return InputMode.PERCENTAGE


@dataclass(frozen=True)
class FixedAmountTerm:
    """An installment expressed as a fixed monetary amount."""

    name: str
    order: int
    amount: Decimal
    due_date: date | None = None
    description: str | None = None

    @property
    def input_mode(self) -> InputMode:
        return InputMode.FIXED_AMOUNT


PaymentTerm = PercentageTerm | FixedAmountTerm


@dataclass(frozen=True)
class ResolvedTerm:
    """A payment term paired with its resolved monetary amount."""

    term: PaymentTerm
    amount: Decimal

    @property
    def percentage(self) -> Decimal | None:
        """The clamped percentage, for percentage terms only."""
        if isinstance(self.term, PercentageTerm):
            return clamp_percentage(self.term.percentage)
        return None


@dataclass(frozen=True)
class TermSetFailure:
    """Why a term set was rejected.

    ``term_index`` is the 0-based position of the offending term for
    per-term failures; ``total`` and ``expected`` are set for the two
    total-mismatch failures.
    """

    code: TermFailureCode
    message: str
    term_index: int | None = None
    total: Decimal | None = None
    expected: Decimal | None = None


@dataclass(frozen=True)
class TermSetValidation:
    """Outcome of ``validate_term_set``."""

    expected_amount: Decimal
    resolved: tuple[ResolvedTerm, ...] = ()
    total_amount: Decimal = _ZERO
    total_percentage: Decimal | None = None
    failure: TermSetFailure | None = None

    @property
    def is_valid(self) -> bool:
        return self.failure is None

    @property
    def remaining(self) -> Decimal:
        """Contract value not yet covered by the resolved terms."""
        return self.expected_amount - self.total_amount


# ============================================================================
# Resolution
# ============================================================================


def clamp_percentage(percentage: Decimal) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    return min(_HUNDRED, max(_ZERO, percentage))


def resolve_term(contract_value: Decimal, term: PaymentTerm) -> Decimal:
    """Resolve a single term to its monetary amount.

    Out-of-range percentages are clamped, not rejected.  Fixed amounts are
    returned as given; ``validate_term_set`` rejects negative ones.
    """
    if isinstance(term, PercentageTerm):
        return contract_value * clamp_percentage(term.percentage) / _HUNDRED
    if isinstance(term, FixedAmountTerm):
        return term.amount
    raise TypeError(f"Unsupported payment term type: {type(term).__name__}")


def _structural_failure(terms: Sequence[PaymentTerm]) -> TermSetFailure | None:
    seen_orders: dict[int, int] = {}
    for index, term in enumerate(terms):
        if not isinstance(term, (PercentageTerm, FixedAmountTerm)):
            raise TypeError(f"Unsupported payment term type: {type(term).__name__}")
        if not term.name or not term.name.strip():
            return TermSetFailure(
                code=TermFailureCode.EMPTY_NAME,
                message=f"Payment term {index + 1} must have a name",
                term_index=index,
            )
        if term.order < 1:
            return TermSetFailure(
                code=TermFailureCode.INVALID_ORDER,
                message=(
                    f"Payment term {index + 1} has order {term.order}; "
                    f"order must start at 1"
                ),
                term_index=index,
            )
        if term.order in seen_orders:
            return TermSetFailure(
                code=TermFailureCode.DUPLICATE_ORDER,
                message=(
                    f"Payment term {index + 1} repeats order {term.order} "
                    f"of term {seen_orders[term.order] + 1}"
                ),
                term_index=index,
            )
        seen_orders[term.order] = index
    return None


@traced_engine(
    "payment_terms", "1.0", fingerprint_fields=("contract_value", "terms"),
)
def validate_term_set(
    contract_value: Decimal,
    terms: Sequence[PaymentTerm],
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    percentage_tolerance: Decimal = DEFAULT_PERCENTAGE_TOLERANCE,
) -> TermSetValidation:
    """Resolve every term and check that the set reconciles.

    Args:
        contract_value: Non-negative contract value of the work order.
        terms: Proposed installments.
        amount_tolerance: Allowed absolute gap between total and contract value.
        percentage_tolerance: Allowed gap between a percentage-only total and 100.

    Returns:
        TermSetValidation; ``failure`` is None when the set is valid.
    """
    if contract_value is None or contract_value < 0:
        raise ValueError(f"contract_value must be non-negative, got {contract_value}")

    if not terms:
        return TermSetValidation(
            expected_amount=contract_value,
            failure=TermSetFailure(
                code=TermFailureCode.EMPTY_TERM_SET,
                message="At least one payment term required",
                total=_ZERO,
                expected=contract_value,
            ),
        )

    failure = _structural_failure(terms)
    if failure is not None:
        return TermSetValidation(expected_amount=contract_value, failure=failure)

    for index, term in enumerate(terms):
        if isinstance(term, FixedAmountTerm) and term.amount < 0:
            return TermSetValidation(
                expected_amount=contract_value,
                failure=TermSetFailure(
                    code=TermFailureCode.NEGATIVE_AMOUNT,
                    message=(
                        f"Payment term {index + 1} amount must not be negative, "
                        f"got {term.amount}"
                    ),
                    term_index=index,
                ),
            )

    resolved = tuple(
        ResolvedTerm(term=term, amount=resolve_term(contract_value, term))
        for term in terms
    )
    total_amount = sum((r.amount for r in resolved), _ZERO)

    total_percentage: Decimal | None = None
    if all(isinstance(term, PercentageTerm) for term in terms):
        total_percentage = sum((r.percentage for r in resolved), _ZERO)
        if abs(total_percentage - _HUNDRED) >= percentage_tolerance:
            return TermSetValidation(
                expected_amount=contract_value,
                resolved=resolved,
                total_amount=total_amount,
                total_percentage=total_percentage,
                failure=TermSetFailure(
                    code=TermFailureCode.PERCENTAGE_TOTAL_MISMATCH,
                    message=f"Total must equal 100%, got {total_percentage}%",
                    total=total_percentage,
                    expected=_HUNDRED,
                ),
            )

    if abs(total_amount - contract_value) >= amount_tolerance:
        return TermSetValidation(
            expected_amount=contract_value,
            resolved=resolved,
            total_amount=total_amount,
            total_percentage=total_percentage,
            failure=TermSetFailure(
                code=TermFailureCode.TOTAL_MISMATCH,
                message=(
                    f"Total must equal contract value {contract_value}, "
                    f"got {total_amount}"
                ),
                total=total_amount,
                expected=contract_value,
            ),
        )

    return TermSetValidation(
        expected_amount=contract_value,
        resolved=resolved,
        total_amount=total_amount,
        total_percentage=total_percentage,
    )


# ============================================================================
# Construction from loose input
# ============================================================================


def _to_decimal(value: Any, field: str, index: int) -> Decimal:
    if value is None or value == "":
        raise ValueError(f"Payment term {index + 1}: {field} is required")
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(
            f"Payment term {index + 1}: {field} is not a number: {value!r}"
        ) from e
    if not number.is_finite():
        raise ValueError(
            f"Payment term {index + 1}: {field} must be finite, got {value!r}"
        )
    return number


def _to_order(value: Any, index: int) -> int:
    if value is None or value == "":
        return index + 1
    number = _to_decimal(value, "order", index)
    if number != number.to_integral_value():
        raise ValueError(
            f"Payment term {index + 1}: order must be a whole number, got {value!r}"
        )
    return int(number)


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def term_from_dict(data: Mapping[str, Any], index: int = 0) -> PaymentTerm:
    """Build a typed payment term from a loose mapping.

    Recognized keys: ``name``, ``order`` (defaults to ``index + 1``),
    ``input_mode`` (``percentage`` | ``fixed_amount``), ``percentage`` or
    ``amount``, ``due_date`` (date or ISO string), ``description``.

    Raises:
        ValueError: Unknown input mode, or the mode's value is missing or
            not a number, or ``order`` is not a whole number.
    """
    raw_mode = data.get("input_mode", InputMode.PERCENTAGE.value)
    try:
        mode = InputMode(raw_mode)
    except ValueError as e:
        raise ValueError(
            f"Payment term {index + 1}: unknown input mode {raw_mode!r}"
        ) from e

    name = str(data.get("name") or "")
    order = _to_order(data.get("order"), index)
    due_date = _to_date(data.get("due_date"))
    description = data.get("description") or None

    if mode is InputMode.PERCENTAGE:
        return PercentageTerm(
            name=name,
            order=order,
            percentage=_to_decimal(data.get("percentage"), "percentage", index),
            due_date=due_date,
            description=description,
        )
    return FixedAmountTerm(
        name=name,
        order=order,
        amount=_to_decimal(data.get("amount"), "amount", index),
        due_date=due_date,
        description=description,
    )
