"""
Work Order Service (``workorder_modules.work_orders.service``).

Responsibility
--------------
Issues work orders (SPK): validates the header, reconciles the payment
term set, allocates a per-day sequential number, persists the work order
with its installments, and drives the draft -> published lifecycle.
Pure computation is delegated to ``workorder_engines``.

Architecture position
---------------------
**Modules layer** -- ``WorkOrderService`` is the sole public entry point
for work order issuance.  It composes the numbering and payment-term
engines, ``VendorAccessService`` (sharing the session, ``auto_commit=False``)
and a ``NotificationDispatcher``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on failure or exception).
* Work order numbers are unique.  The allocator reads the current numbers
  for today's scope; a collision at insert is detected through the
  ``uq_work_order_number`` constraint, rolled back and retried with a fresh
  read, up to ``max_allocation_attempts`` times.
* A term set is persisted only when ``validate_term_set`` accepts it.
* Only drafts can be edited, deleted or published.
* Notifications are dispatched after commit and never undo business state.

Failure modes
-------------
* Header field rejected  -> ``InvalidWorkOrderError``.
* Term set rejected  -> ``InvalidPaymentTermsError`` (nothing persisted).
* Every allocation attempt collided  -> ``WorkOrderNumberConflictError``.
* Unknown work order  -> ``WorkOrderNotFoundError``.
* Operation not allowed in the current status  -> ``WorkOrderStateError``.

Usage::

    service = WorkOrderService(session, settings, clock=clock)
    work_order = service.create_work_order(
        WorkOrderDraft(
            vendor_name="PT Maju", project_name="Warehouse fit-out",
            contract_value=Decimal("150000000"), start_date=date(2026, 2, 1),
            vendor_email="finance@maju.co.id",
        ),
        terms=[
            {"name": "Down Payment", "percentage": "30"},
            {"name": "Progress", "percentage": "40"},
            {"name": "Final", "percentage": "30"},
        ],
        actor="admin@company.com",
    )
    service.publish(work_order.id, actor="admin@company.com", send_email=True)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import fields, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workorder_config.schema import WorkOrderSettings
from workorder_engines import (
    FixedAmountTerm,
    InputMode,
    PaymentTerm,
    PercentageTerm,
    TermSetValidation,
    allocate_work_order_number,
    number_scope,
    term_from_dict,
    validate_term_set,
)
from workorder_kernel.domain.clock import Clock, SystemClock
from workorder_kernel.domain.currency import CurrencyRegistry
from workorder_kernel.exceptions import (
    InvalidPaymentTermsError,
    InvalidWorkOrderError,
    WorkOrderNotFoundError,
    WorkOrderNumberConflictError,
    WorkOrderStateError,
)
from workorder_kernel.logging_config import LogContext, get_logger
from workorder_modules.vendors.service import VendorAccessService
from workorder_modules.work_orders.models import (
    ProjectHistoryEntry,
    VendorHistoryEntry,
    WorkOrder,
    WorkOrderDraft,
    WorkOrderStatus,
)
from workorder_modules.work_orders.orm import PaymentModel, WorkOrderModel
from workorder_services import NotificationDispatcher, build_dispatcher

logger = get_logger("modules.work_orders.service")

TermInput = PaymentTerm | Mapping[str, Any]

_DRAFT_FIELDS = frozenset(f.name for f in fields(WorkOrderDraft))

# Numeric(38, 9) leaves 29 digits before the decimal point
_MAX_INTEGER_DIGITS = 29


def _is_number_conflict(exc: IntegrityError) -> bool:
    return "work_order_number" in str(exc.orig)


def _terms_error(validation: TermSetValidation) -> InvalidPaymentTermsError:
    failure = validation.failure
    return InvalidPaymentTermsError(
        failure_code=failure.code.value,
        reason=failure.message,
        total=failure.total,
        expected=failure.expected,
        term_index=failure.term_index,
    )


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class WorkOrderService:
    """
    Issues and manages work orders.

    Contract
    --------
    * Every public method returns frozen DTOs (``WorkOrder``), never ORM rows.
    * "Today" is the calendar date of ``clock.now()`` at
      ``settings.business_utc_offset``.

    Guarantees
    ----------
    * Session is committed only on success; otherwise rolled back and the
      exception re-raised.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT authenticate ``actor``; it is recorded as given.
    * Does NOT render PDFs.
    """

    def __init__(
        self,
        session: Session,
        settings: WorkOrderSettings,
        clock: Clock | None = None,
        notifier: NotificationDispatcher | None = None,
        vendor_service: VendorAccessService | None = None,
    ):
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._notifier = notifier or build_dispatcher(settings)
        # Shares our session and transaction
        self._vendors = vendor_service or VendorAccessService(
            session, settings, clock=self._clock, auto_commit=False,
        )

    def _today(self) -> date:
        return self._clock.today(self._settings.business_utc_offset)

    # =========================================================================
    # Numbering
    # =========================================================================

    def _existing_numbers(self, scope: str) -> list[str]:
        """Numbers already issued under ``scope`` (``PREFIX/YYYYMMDD``)."""
        return list(
            self._session.execute(
                select(WorkOrderModel.work_order_number).where(
                    WorkOrderModel.work_order_number.startswith(
                        f"{scope}/", autoescape=True,
                    )
                )
            ).scalars()
        )

    def preview_number(self) -> str:
        """Next number for today given the current store state.  Not reserved."""
        today = self._today()
        scope = number_scope(self._settings.number_prefix, today)
        return str(
            allocate_work_order_number(
                today,
                self._existing_numbers(scope),
                prefix=self._settings.number_prefix,
                width=self._settings.sequence_width,
            )
        )

    def _insert_with_number(self, build: Any) -> WorkOrderModel:
        """Allocate a number and insert ``build(number)``, retrying collisions."""
        prefix = self._settings.number_prefix
        attempts = self._settings.max_allocation_attempts
        last_number = ""

        for attempt in range(1, attempts + 1):
            today = self._today()
            allocated = allocate_work_order_number(
                today,
                self._existing_numbers(number_scope(prefix, today)),
                prefix=prefix,
                width=self._settings.sequence_width,
            )
            last_number = str(allocated)
            model = build(last_number)
            self._session.add(model)
            try:
                self._session.flush()
            except IntegrityError as exc:
                self._session.rollback()
                if not _is_number_conflict(exc):
                    raise
                logger.warning(
                    "work_order_number_conflict_retry",
                    extra={
                        "work_order_number": last_number,
                        "attempt": attempt,
                        "max_attempts": attempts,
                    },
                )
                continue
            return model

        logger.error(
            "work_order_number_conflict_exhausted",
            extra={"work_order_number": last_number, "attempts": attempts},
        )
        raise WorkOrderNumberConflictError(last_number, attempts)

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate_draft(self, draft: WorkOrderDraft) -> str:
        """Check header fields; return the effective currency code."""
        if not draft.vendor_name or not draft.vendor_name.strip():
            raise InvalidWorkOrderError("vendor_name", "must not be empty")
        if not draft.project_name or not draft.project_name.strip():
            raise InvalidWorkOrderError("project_name", "must not be empty")
        if not isinstance(draft.contract_value, Decimal):
            raise InvalidWorkOrderError("contract_value", "must be a Decimal")
        if not draft.contract_value.is_finite() or draft.contract_value < 0:
            raise InvalidWorkOrderError(
                "contract_value", f"must be non-negative, got {draft.contract_value}",
            )
        if draft.contract_value.adjusted() >= _MAX_INTEGER_DIGITS:
            raise InvalidWorkOrderError(
                "contract_value", f"exceeds {_MAX_INTEGER_DIGITS} integer digits",
            )
        if draft.start_date is None:
            raise InvalidWorkOrderError("start_date", "is required")
        if draft.end_date is not None and draft.end_date < draft.start_date:
            raise InvalidWorkOrderError(
                "end_date",
                f"{draft.end_date} precedes start_date {draft.start_date}",
            )
        if draft.vendor_email is not None and draft.vendor_email.strip():
            if "@" not in draft.vendor_email:
                raise InvalidWorkOrderError("vendor_email", "is not an email address")

        currency = (draft.currency or self._settings.default_currency).upper()
        if (
            currency not in self._settings.supported_currencies
            or not CurrencyRegistry.is_valid(currency)
        ):
            raise InvalidWorkOrderError("currency", f"unsupported currency {currency}")
        return currency

    def _coerce_terms(self, terms: Sequence[TermInput]) -> list[PaymentTerm]:
        coerced: list[PaymentTerm] = []
        for index, term in enumerate(terms):
            if isinstance(term, (PercentageTerm, FixedAmountTerm)):
                coerced.append(term)
                continue
            try:
                coerced.append(term_from_dict(term, index))
            except ValueError as exc:
                raise InvalidPaymentTermsError(
                    failure_code="INVALID_TERM_INPUT",
                    reason=str(exc),
                    term_index=index,
                ) from exc
        return coerced

    def _reconcile(
        self, contract_value: Decimal, terms: Sequence[TermInput],
    ) -> TermSetValidation:
        validation = validate_term_set(
            contract_value,
            self._coerce_terms(terms),
            amount_tolerance=self._settings.amount_tolerance,
            percentage_tolerance=self._settings.percentage_tolerance,
        )
        if not validation.is_valid:
            logger.info(
                "payment_terms_rejected",
                extra={
                    "failure_code": validation.failure.code.value,
                    "total": validation.failure.total,
                    "expected": validation.failure.expected,
                    "term_index": validation.failure.term_index,
                },
            )
            raise _terms_error(validation)
        return validation

    # =========================================================================
    # Create / update / delete drafts
    # =========================================================================

    def create_work_order(
        self,
        draft: WorkOrderDraft,
        terms: Sequence[TermInput],
        actor: str,
    ) -> WorkOrder:
        """
        Validate, number and persist a new draft work order.

        ``terms`` may mix typed ``PaymentTerm`` values and loose mappings
        accepted by ``term_from_dict``.
        """
        try:
            currency = self._validate_draft(draft)
            validation = self._reconcile(draft.contract_value, terms)
            now = self._clock.now()
            vendor_email = _blank_to_none(draft.vendor_email)

            def build(number: str) -> WorkOrderModel:
                model = WorkOrderModel(
                    work_order_number=number,
                    vendor_name=draft.vendor_name.strip(),
                    vendor_email=vendor_email,
                    vendor_phone=_blank_to_none(draft.vendor_phone),
                    project_name=draft.project_name.strip(),
                    project_description=_blank_to_none(draft.project_description),
                    contract_value=draft.contract_value,
                    currency=currency,
                    start_date=draft.start_date,
                    end_date=draft.end_date,
                    status=WorkOrderStatus.DRAFT.value,
                    notes=_blank_to_none(draft.notes),
                    created_by=actor,
                    created_at=now,
                    updated_at=now,
                )
                model.payments = [
                    PaymentModel.from_resolved(r, created_by=actor, created_at=now)
                    for r in validation.resolved
                ]
                return model

            model = self._insert_with_number(build)

            if vendor_email:
                self._vendors.get_or_create_token(
                    vendor_email, model.vendor_name, model.vendor_phone, actor=actor,
                )

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        with LogContext.bind(actor=actor, work_order_id=str(model.id)):
            logger.info(
                "work_order_created",
                extra={
                    "work_order_number": model.work_order_number,
                    "contract_value": model.contract_value,
                    "currency": model.currency,
                    "term_count": len(model.payments),
                },
            )
        return model.to_dto()

    def update_draft(
        self,
        work_order_id: UUID,
        actor: str,
        changes: Mapping[str, Any],
        terms: Sequence[TermInput] | None = None,
    ) -> WorkOrder:
        """
        Edit a draft's header and, optionally, replace its payment terms.

        When ``contract_value`` changes without new ``terms``, the existing
        installments are re-resolved against the new value and must still
        reconcile.
        """
        try:
            model = self._get_model(work_order_id)
            self._require_draft(model, "update")

            unknown = sorted(set(changes) - _DRAFT_FIELDS)
            if unknown:
                raise InvalidWorkOrderError(unknown[0], "field cannot be updated")

            draft = replace(self._draft_of(model), **dict(changes))
            currency = self._validate_draft(draft)

            validation = None
            value_changed = draft.contract_value != model.contract_value
            if terms is not None or value_changed:
                source = terms if terms is not None else self._terms_of(model)
                validation = self._reconcile(draft.contract_value, source)

            now = self._clock.now()
            model.vendor_name = draft.vendor_name.strip()
            model.vendor_email = _blank_to_none(draft.vendor_email)
            model.vendor_phone = _blank_to_none(draft.vendor_phone)
            model.project_name = draft.project_name.strip()
            model.project_description = _blank_to_none(draft.project_description)
            model.contract_value = draft.contract_value
            model.currency = currency
            model.start_date = draft.start_date
            model.end_date = draft.end_date
            model.notes = _blank_to_none(draft.notes)
            model.updated_by = actor
            model.updated_at = now

            if validation is not None:
                model.payments.clear()
                # Old rows must be gone before new rows reuse their term_order
                self._session.flush()
                model.payments.extend(
                    PaymentModel.from_resolved(r, created_by=actor, created_at=now)
                    for r in validation.resolved
                )

            if model.vendor_email:
                self._vendors.get_or_create_token(
                    model.vendor_email, model.vendor_name, model.vendor_phone,
                    actor=actor,
                )

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "work_order_updated",
            extra={
                "work_order_id": str(model.id),
                "work_order_number": model.work_order_number,
                "fields": sorted(changes),
                "terms_replaced": validation is not None,
            },
        )
        return model.to_dto()

    def delete_draft(self, work_order_id: UUID) -> None:
        """Delete a draft and its installments."""
        try:
            model = self._get_model(work_order_id)
            self._require_draft(model, "delete")
            number = model.work_order_number
            self._session.delete(model)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "work_order_deleted",
            extra={"work_order_id": str(work_order_id), "work_order_number": number},
        )

    # =========================================================================
    # Publish
    # =========================================================================

    def publish(
        self,
        work_order_id: UUID,
        actor: str,
        send_email: bool = False,
    ) -> WorkOrder:
        """
        Move a draft to ``published`` and notify.

        Chat is always notified.  The vendor is emailed, with its portal
        link, only when ``send_email`` is set and the work order has a
        vendor email.
        """
        portal_url = None
        try:
            model = self._get_model(work_order_id)
            self._require_draft(model, "publish")

            now = self._clock.now()
            model.status = WorkOrderStatus.PUBLISHED.value
            model.published_at = now
            model.updated_by = actor
            model.updated_at = now

            if send_email and model.vendor_email:
                token = self._vendors.get_or_create_token(
                    model.vendor_email, model.vendor_name, model.vendor_phone,
                    actor=actor,
                )
                portal_url = self._vendors.portal_url(token)

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        work_order = model.to_dto()
        logger.info(
            "work_order_published",
            extra={
                "work_order_id": str(work_order.id),
                "work_order_number": work_order.work_order_number,
                "actor": actor,
                "send_email": send_email,
            },
        )
        self._notifier.work_order_published(
            work_order,
            email_to=work_order.vendor_email if send_email else None,
            portal_url=portal_url,
        )
        return work_order

    # =========================================================================
    # Queries
    # =========================================================================

    def get_work_order(self, work_order_id: UUID) -> WorkOrder:
        return self._get_model(work_order_id).to_dto()

    def list_work_orders(
        self, status: WorkOrderStatus | None = None,
    ) -> list[WorkOrder]:
        """All work orders, newest first, optionally filtered by status."""
        stmt = select(WorkOrderModel).order_by(
            WorkOrderModel.created_at.desc(),
            WorkOrderModel.work_order_number.desc(),
        )
        if status is not None:
            stmt = stmt.where(WorkOrderModel.status == WorkOrderStatus(status).value)
        return [row.to_dto() for row in self._session.execute(stmt).scalars()]

    def vendor_history(self) -> list[VendorHistoryEntry]:
        """Distinct vendors by name (case-insensitive), most recent first."""
        rows = self._session.execute(
            select(
                WorkOrderModel.vendor_name,
                WorkOrderModel.vendor_email,
                WorkOrderModel.vendor_phone,
            ).order_by(WorkOrderModel.created_at.desc())
        ).all()
        seen: set[str] = set()
        entries = []
        for name, email, phone in rows:
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            entries.append(VendorHistoryEntry(name=name, email=email, phone=phone))
        return entries

    def project_history(self) -> list[ProjectHistoryEntry]:
        """Distinct projects by name (case-insensitive), most recent first."""
        rows = self._session.execute(
            select(
                WorkOrderModel.project_name,
                WorkOrderModel.project_description,
            ).order_by(WorkOrderModel.created_at.desc())
        ).all()
        seen: set[str] = set()
        entries = []
        for name, description in rows:
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)
            entries.append(ProjectHistoryEntry(name=name, description=description))
        return entries

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_model(self, work_order_id: UUID) -> WorkOrderModel:
        model = self._session.get(WorkOrderModel, work_order_id)
        if model is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        return model

    @staticmethod
    def _require_draft(model: WorkOrderModel, operation: str) -> None:
        if model.status != WorkOrderStatus.DRAFT.value:
            raise WorkOrderStateError(str(model.id), model.status, operation)

    @staticmethod
    def _draft_of(model: WorkOrderModel) -> WorkOrderDraft:
        return WorkOrderDraft(
            vendor_name=model.vendor_name,
            project_name=model.project_name,
            contract_value=model.contract_value,
            start_date=model.start_date,
            vendor_email=model.vendor_email,
            vendor_phone=model.vendor_phone,
            project_description=model.project_description,
            currency=model.currency,
            end_date=model.end_date,
            notes=model.notes,
        )

    @staticmethod
    def _terms_of(model: WorkOrderModel) -> list[PaymentTerm]:
        terms: list[PaymentTerm] = []
        for payment in model.payments:
            if payment.input_mode == InputMode.PERCENTAGE.value:
                terms.append(PercentageTerm(
                    name=payment.term_name,
                    order=payment.term_order,
                    percentage=payment.percentage,
                    due_date=payment.due_date,
                    description=payment.description,
                ))
            else:
                terms.append(FixedAmountTerm(
                    name=payment.term_name,
                    order=payment.term_order,
                    amount=payment.amount,
                    due_date=payment.due_date,
                    description=payment.description,
                ))
        return terms
