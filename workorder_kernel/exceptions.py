"""
Typed exception hierarchy for the work order system.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from WorkOrderError:

    WorkOrderError (base)
    |
    +-- NotFoundError
    |   +-- WorkOrderNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidWorkOrderError
    |   +-- InvalidPaymentTermsError
    |
    +-- StateError
    |   +-- WorkOrderStateError
    |   +-- InvalidPaymentTransitionError
    |
    +-- ConcurrencyError
    |   +-- WorkOrderNumberConflictError
    |
    +-- AccessError
        +-- InvalidVendorTokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | WORK_ORDER_NOT_FOUND        | Work order ID doesn't exist
                | PAYMENT_NOT_FOUND           | Payment ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_WORK_ORDER          | Header field rejected (name, value, dates)
                | INVALID_PAYMENT_TERMS       | Term set does not reconcile
----------------|-----------------------------|-----------------------------------------
State           | INVALID_WORK_ORDER_STATE    | Operation not allowed in current status
                | INVALID_PAYMENT_TRANSITION  | Payment already in requested status
----------------|-----------------------------|-----------------------------------------
Concurrency     | WORK_ORDER_NUMBER_CONFLICT  | Number collisions outlasted the retries
----------------|-----------------------------|-----------------------------------------
Access          | INVALID_VENDOR_TOKEN        | Portal token unknown or empty

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        work_order = service.create_work_order(draft, terms, actor="admin")
    except InvalidPaymentTermsError as e:
        return {
            "error": e.code,
            "reason": e.failure_code,
            "total": e.total,
            "expected": e.expected,
        }
    except WorkOrderNumberConflictError:
        # "number already exists, please retry"
        ...

Expected validation outcomes of the pure engines are returned as values
(``TermSetValidation``), never raised.  The service layer converts an
invalid result into ``InvalidPaymentTermsError`` before anything is
persisted.
"""

from decimal import Decimal


class WorkOrderError(Exception):
    """
    Base exception for all work order errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORK_ORDER_ERROR"


# Not-found exceptions


class NotFoundError(WorkOrderError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class WorkOrderNotFoundError(NotFoundError):
    """Work order with given ID was not found."""

    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: str):
        self.work_order_id = work_order_id
        super().__init__(f"Work order not found: {work_order_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# Validation exceptions


class ValidationError(WorkOrderError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidWorkOrderError(ValidationError):
    """A work order header field was rejected."""

    code: str = "INVALID_WORK_ORDER"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid work order field {field}: {reason}")


class InvalidPaymentTermsError(ValidationError):
    """The payment term set does not reconcile with the contract value."""

    code: str = "INVALID_PAYMENT_TERMS"

    def __init__(
        self,
        failure_code: str,
        reason: str,
        total: Decimal | None = None,
        expected: Decimal | None = None,
        term_index: int | None = None,
    ):
        self.failure_code = failure_code
        self.reason = reason
        self.total = total
        self.expected = expected
        self.term_index = term_index
        super().__init__(f"Invalid payment terms ({failure_code}): {reason}")


# State exceptions


class StateError(WorkOrderError):
    """Base exception for operations not allowed in the current state."""

    code: str = "STATE_ERROR"


class WorkOrderStateError(StateError):
    """Operation is not allowed for the work order's current status."""

    code: str = "INVALID_WORK_ORDER_STATE"

    def __init__(self, work_order_id: str, status: str, operation: str):
        self.work_order_id = work_order_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} work order {work_order_id} in status '{status}'"
        )


class InvalidPaymentTransitionError(StateError):
    """Requested payment status change is not a transition."""

    code: str = "INVALID_PAYMENT_TRANSITION"

    def __init__(self, payment_id: str, from_status: str, to_status: str):
        self.payment_id = payment_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payment {payment_id} cannot move from '{from_status}' "
            f"to '{to_status}'"
        )


# Concurrency exceptions


class ConcurrencyError(WorkOrderError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class WorkOrderNumberConflictError(ConcurrencyError):
    """Every allocation attempt collided with an existing number."""

    code: str = "WORK_ORDER_NUMBER_CONFLICT"

    def __init__(self, last_number: str, attempts: int):
        self.last_number = last_number
        self.attempts = attempts
        super().__init__(
            f"Work order number {last_number} already exists after "
            f"{attempts} attempts, please retry"
        )


# Access exceptions


class AccessError(WorkOrderError):
    """Base exception for vendor portal access errors."""

    code: str = "ACCESS_ERROR"


class InvalidVendorTokenError(AccessError):
    """Vendor portal token is unknown or empty."""

    code: str = "INVALID_VENDOR_TOKEN"

    def __init__(self):
        super().__init__("Vendor access token is invalid")
