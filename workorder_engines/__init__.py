"""
Module: workorder_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    workorder_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    MUST NOT import workorder_modules, workorder_services or workorder_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in as explicit parameters.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from workorder_engines import allocate_work_order_number, validate_term_set
"""

from workorder_engines.numbering import (
    DEFAULT_PREFIX,
    DEFAULT_SEQUENCE_WIDTH,
    AllocatedNumber,
    allocate_work_order_number,
    format_date_segment,
    number_scope,
    parse_sequence_suffix,
)
from workorder_engines.payment_terms import (
    DEFAULT_AMOUNT_TOLERANCE,
    DEFAULT_PERCENTAGE_TOLERANCE,
    FixedAmountTerm,
    InputMode,
    PaymentTerm,
    PercentageTerm,
    ResolvedTerm,
    TermFailureCode,
    TermSetFailure,
    TermSetValidation,
    clamp_percentage,
    resolve_term,
    term_from_dict,
    validate_term_set,
)

__all__ = [
    # numbering
    "DEFAULT_PREFIX",
    "DEFAULT_SEQUENCE_WIDTH",
    "AllocatedNumber",
    "allocate_work_order_number",
    "format_date_segment",
    "number_scope",
    "parse_sequence_suffix",
    # payment_terms
    "DEFAULT_AMOUNT_TOLERANCE",
    "DEFAULT_PERCENTAGE_TOLERANCE",
    "FixedAmountTerm",
    "InputMode",
    "PaymentTerm",
    "PercentageTerm",
    "ResolvedTerm",
    "TermFailureCode",
    "TermSetFailure",
    "TermSetValidation",
    "clamp_percentage",
    "resolve_term",
    "term_from_dict",
    "validate_term_set",
]
