"""
Tests for WorkOrderService: creation, numbering with collision retry,
draft editing, publication and history queries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from workorder_config.schema import WorkOrderSettings
from workorder_engines import FixedAmountTerm, InputMode, PercentageTerm
from workorder_kernel.exceptions import (
    InvalidPaymentTermsError,
    InvalidWorkOrderError,
    WorkOrderNotFoundError,
    WorkOrderNumberConflictError,
    WorkOrderStateError,
)
from workorder_modules.vendors.orm import VendorModel
from workorder_modules.work_orders.models import PaymentStatus, WorkOrderStatus
from workorder_modules.work_orders.orm import PaymentModel, WorkOrderModel
from workorder_modules.work_orders.service import WorkOrderService
from workorder_services import DeliveryResult

ACTOR = "admin@company.com"


class StaleReadWorkOrderService(WorkOrderService):
    """Simulates a concurrent writer: the first reads miss existing numbers."""

    def __init__(self, *args, stale_reads: int = 1, **kwargs):
        super().__init__(*args, **kwargs)
        self.stale_reads = stale_reads

    def _existing_numbers(self, scope):
        if self.stale_reads > 0:
            self.stale_reads -= 1
            return []
        return super()._existing_numbers(scope)


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


# ============================================================================
# Creation
# ============================================================================


class TestCreateWorkOrder:
    """Tests for create_work_order."""

    def test_creates_draft_with_resolved_payments(
        self, work_order_service, make_draft, standard_terms,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)

        assert wo.work_order_number == "ELX/SPK/20260121/001"
        assert wo.status is WorkOrderStatus.DRAFT
        assert wo.currency == "IDR"
        assert wo.created_by == ACTOR
        assert [p.term_order for p in wo.payments] == [1, 2, 3]
        assert [p.amount for p in wo.payments] == [
            Decimal("30000000"), Decimal("40000000"), Decimal("30000000"),
        ]
        assert all(p.status is PaymentStatus.PENDING for p in wo.payments)
        assert wo.payments[0].input_mode is InputMode.PERCENTAGE
        assert wo.payments[0].percentage == Decimal("30")
        assert wo.payments[0].due_date == date(2026, 2, 1)

    def test_sequence_increments_per_day(
        self, work_order_service, make_draft, standard_terms, clock,
    ):
        first = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        second = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        clock.advance(24 * 3600)
        next_day = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)

        assert first.work_order_number == "ELX/SPK/20260121/001"
        assert second.work_order_number == "ELX/SPK/20260121/002"
        assert next_day.work_order_number == "ELX/SPK/20260122/001"

    def test_day_follows_business_offset(
        self, work_order_service, make_draft, standard_terms, clock,
    ):
        """18:00 UTC on the 21st is the 22nd at UTC+7."""
        clock.advance(15 * 3600)
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        assert wo.work_order_number == "ELX/SPK/20260122/001"

    def test_typed_and_mixed_terms(self, work_order_service, make_draft):
        terms = [
            PercentageTerm(name="DP", order=1, percentage=Decimal("50")),
            {"name": "Final", "input_mode": "fixed_amount", "amount": "50000000"},
        ]
        wo = work_order_service.create_work_order(make_draft(), terms, ACTOR)
        assert wo.payments[1].input_mode is InputMode.FIXED_AMOUNT
        assert wo.payments[1].percentage is None
        assert wo.payments[1].amount == Decimal("50000000")

    def test_default_and_explicit_currency(
        self, work_order_service, make_draft, standard_terms,
    ):
        wo = work_order_service.create_work_order(
            make_draft(currency="usd"), standard_terms, ACTOR,
        )
        assert wo.currency == "USD"

    def test_creates_vendor_with_token(
        self, session, work_order_service, make_draft, standard_terms,
    ):
        work_order_service.create_work_order(
            make_draft(vendor_email="Finance@MajuJaya.co.id"), standard_terms, ACTOR,
        )
        vendor = session.execute(select(VendorModel)).scalar_one()
        assert vendor.email == "finance@majujaya.co.id"
        assert vendor.access_token

    def test_no_vendor_without_email(
        self, session, work_order_service, make_draft, standard_terms,
    ):
        work_order_service.create_work_order(
            make_draft(vendor_email=None), standard_terms, ACTOR,
        )
        assert _count(session, VendorModel) == 0

    def test_logs_creation(
        self, work_order_service, make_draft, standard_terms, captured_logs,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        created = [r for r in captured_logs() if r["message"] == "work_order_created"]
        assert created[0]["work_order_number"] == wo.work_order_number
        assert created[0]["actor"] == ACTOR
        assert created[0]["work_order_id"] == str(wo.id)


class TestCreateValidation:
    """Rejected input persists nothing."""

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"vendor_name": "  "}, "vendor_name"),
            ({"project_name": ""}, "project_name"),
            ({"contract_value": Decimal("-1")}, "contract_value"),
            ({"contract_value": 100}, "contract_value"),
            ({"contract_value": Decimal("1e29")}, "contract_value"),
            ({"currency": "XYZ"}, "currency"),
            ({"currency": "JPY"}, "currency"),
            ({"end_date": date(2026, 1, 1)}, "end_date"),
            ({"vendor_email": "not-an-email"}, "vendor_email"),
        ],
    )
    def test_invalid_header(
        self, session, work_order_service, make_draft, standard_terms, overrides, field,
    ):
        with pytest.raises(InvalidWorkOrderError) as exc_info:
            work_order_service.create_work_order(make_draft(**overrides), standard_terms, ACTOR)
        assert exc_info.value.field == field
        assert _count(session, WorkOrderModel) == 0

    def test_percentage_mismatch(self, session, work_order_service, make_draft):
        terms = [{"name": "DP", "percentage": "50"}, {"name": "Final", "percentage": "40"}]
        with pytest.raises(InvalidPaymentTermsError) as exc_info:
            work_order_service.create_work_order(make_draft(), terms, ACTOR)

        err = exc_info.value
        assert err.code == "INVALID_PAYMENT_TERMS"
        assert err.failure_code == "PERCENTAGE_TOTAL_MISMATCH"
        assert err.total == Decimal("90")
        assert _count(session, WorkOrderModel) == 0
        assert _count(session, PaymentModel) == 0

    def test_amount_mismatch_reports_totals(self, work_order_service, make_draft):
        terms = [
            FixedAmountTerm(name="A", order=1, amount=Decimal("40000000")),
            FixedAmountTerm(name="B", order=2, amount=Decimal("40000000")),
        ]
        with pytest.raises(InvalidPaymentTermsError) as exc_info:
            work_order_service.create_work_order(make_draft(), terms, ACTOR)
        assert exc_info.value.failure_code == "TOTAL_MISMATCH"
        assert exc_info.value.total == Decimal("80000000")
        assert exc_info.value.expected == Decimal("100000000")

    def test_empty_terms(self, work_order_service, make_draft):
        with pytest.raises(InvalidPaymentTermsError) as exc_info:
            work_order_service.create_work_order(make_draft(), [], ACTOR)
        assert exc_info.value.failure_code == "EMPTY_TERM_SET"

    def test_unparseable_term(self, work_order_service, make_draft):
        with pytest.raises(InvalidPaymentTermsError) as exc_info:
            work_order_service.create_work_order(
                make_draft(), [{"name": "DP", "percentage": "lots"}], ACTOR,
            )
        assert exc_info.value.failure_code == "INVALID_TERM_INPUT"
        assert exc_info.value.term_index == 0


# ============================================================================
# Numbering under contention
# ============================================================================


class TestNumberCollisionRetry:
    """A stale read collides on insert and is retried with a fresh read."""

    def test_stale_read_retried(
        self, session, settings, clock, notifier, work_order_service,
        make_draft, standard_terms, captured_logs,
    ):
        work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        racer = StaleReadWorkOrderService(
            session, settings, clock=clock, notifier=notifier, stale_reads=1,
        )

        wo = racer.create_work_order(make_draft(), standard_terms, ACTOR)

        assert wo.work_order_number == "ELX/SPK/20260121/002"
        assert len(wo.payments) == 3
        retries = [
            r for r in captured_logs()
            if r["message"] == "work_order_number_conflict_retry"
        ]
        assert retries[0]["work_order_number"] == "ELX/SPK/20260121/001"
        assert retries[0]["attempt"] == 1

    def test_exhaustion_raises_conflict(
        self, session, clock, notifier, work_order_service, make_draft, standard_terms,
    ):
        work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        settings = WorkOrderSettings(max_allocation_attempts=3)
        racer = StaleReadWorkOrderService(
            session, settings, clock=clock, notifier=notifier, stale_reads=99,
        )

        with pytest.raises(WorkOrderNumberConflictError) as exc_info:
            racer.create_work_order(make_draft(), standard_terms, ACTOR)

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_number == "ELX/SPK/20260121/001"
        assert "please retry" in str(exc_info.value)
        assert _count(session, WorkOrderModel) == 1

    def test_preview_does_not_reserve(
        self, work_order_service, make_draft, standard_terms,
    ):
        assert work_order_service.preview_number() == "ELX/SPK/20260121/001"
        assert work_order_service.preview_number() == "ELX/SPK/20260121/001"
        work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        assert work_order_service.preview_number() == "ELX/SPK/20260121/002"

    def test_custom_prefix_scopes_numbers(
        self, session, clock, notifier, make_draft, standard_terms,
    ):
        service = WorkOrderService(
            session, WorkOrderSettings(number_prefix="ACME/WO"), clock=clock, notifier=notifier,
        )
        wo = service.create_work_order(make_draft(), standard_terms, ACTOR)
        assert wo.work_order_number == "ACME/WO/20260121/001"


# ============================================================================
# Draft editing
# ============================================================================


class TestUpdateDraft:
    """Tests for update_draft."""

    def test_header_change(self, work_order_service, make_draft, standard_terms, clock):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        clock.advance(60)

        updated = work_order_service.update_draft(
            wo.id, "editor@company.com", {"project_name": "Warehouse Phase 2", "notes": "rev"},
        )

        assert updated.project_name == "Warehouse Phase 2"
        assert updated.notes == "rev"
        assert updated.work_order_number == wo.work_order_number
        assert [p.id for p in updated.payments] == [p.id for p in wo.payments]

    def test_contract_value_change_re_resolves_percentages(
        self, work_order_service, make_draft, standard_terms,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        updated = work_order_service.update_draft(
            wo.id, ACTOR, {"contract_value": Decimal("200000000")},
        )
        assert [p.amount for p in updated.payments] == [
            Decimal("60000000"), Decimal("80000000"), Decimal("60000000"),
        ]

    def test_contract_value_change_breaking_fixed_terms_rejected(
        self, work_order_service, make_draft,
    ):
        terms = [{"name": "Lump sum", "input_mode": "fixed_amount", "amount": "100000000"}]
        wo = work_order_service.create_work_order(make_draft(), terms, ACTOR)

        with pytest.raises(InvalidPaymentTermsError):
            work_order_service.update_draft(
                wo.id, ACTOR, {"contract_value": Decimal("120000000")},
            )
        assert work_order_service.get_work_order(wo.id).contract_value == Decimal("100000000")

    def test_replace_terms(self, work_order_service, make_draft, standard_terms):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        updated = work_order_service.update_draft(
            wo.id, ACTOR, {},
            terms=[{"name": "DP", "percentage": "50"}, {"name": "Final", "percentage": "50"}],
        )
        assert [p.term_name for p in updated.payments] == ["DP", "Final"]
        assert [p.term_order for p in updated.payments] == [1, 2]

    def test_unknown_field_rejected(self, work_order_service, make_draft, standard_terms):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        with pytest.raises(InvalidWorkOrderError) as exc_info:
            work_order_service.update_draft(wo.id, ACTOR, {"work_order_number": "X"})
        assert exc_info.value.field == "work_order_number"

    def test_published_cannot_be_updated(self, work_order_service, create_published):
        wo = create_published()
        with pytest.raises(WorkOrderStateError) as exc_info:
            work_order_service.update_draft(wo.id, ACTOR, {"notes": "late"})
        assert exc_info.value.operation == "update"


class TestDeleteDraft:
    """Tests for delete_draft."""

    def test_deletes_draft_and_payments(
        self, session, work_order_service, make_draft, standard_terms,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        work_order_service.delete_draft(wo.id)

        assert _count(session, WorkOrderModel) == 0
        assert _count(session, PaymentModel) == 0
        with pytest.raises(WorkOrderNotFoundError):
            work_order_service.get_work_order(wo.id)

    def test_published_cannot_be_deleted(self, work_order_service, create_published):
        wo = create_published()
        with pytest.raises(WorkOrderStateError):
            work_order_service.delete_draft(wo.id)

    def test_unknown_id(self, work_order_service):
        with pytest.raises(WorkOrderNotFoundError):
            work_order_service.delete_draft(uuid4())


# ============================================================================
# Publish
# ============================================================================


class TestPublish:
    """Tests for publish."""

    def test_publish_notifies_chat_only(
        self, work_order_service, make_draft, standard_terms, chat, mailer,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        published = work_order_service.publish(wo.id, ACTOR)

        assert published.status is WorkOrderStatus.PUBLISHED
        assert published.published_at is not None
        assert len(chat.messages) == 1
        assert wo.work_order_number in chat.messages[0]
        assert mailer.sent == []

    def test_publish_notifies_for_largest_contract_value(
        self, work_order_service, make_draft, standard_terms, chat,
    ):
        draft = make_draft(contract_value=Decimal("1e28"))
        wo = work_order_service.create_work_order(draft, standard_terms, ACTOR)

        published = work_order_service.publish(wo.id, ACTOR)

        assert published.status is WorkOrderStatus.PUBLISHED
        assert len(chat.messages) == 1
        assert wo.work_order_number in chat.messages[0]

    def test_publish_with_email_includes_portal_link(
        self, session, work_order_service, make_draft, standard_terms, mailer,
    ):
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        work_order_service.publish(wo.id, ACTOR, send_email=True)

        token = session.execute(select(VendorModel.access_token)).scalar_one()
        to, subject, body = mailer.sent[0]
        assert to == "finance@majujaya.co.id"
        assert wo.work_order_number in subject
        assert f"http://localhost:3000/vendor?token={token}" in body

    def test_send_email_without_vendor_email(
        self, work_order_service, make_draft, standard_terms, mailer,
    ):
        wo = work_order_service.create_work_order(
            make_draft(vendor_email=None), standard_terms, ACTOR,
        )
        work_order_service.publish(wo.id, ACTOR, send_email=True)
        assert mailer.sent == []

    def test_publish_twice_rejected(self, work_order_service, create_published):
        wo = create_published()
        with pytest.raises(WorkOrderStateError) as exc_info:
            work_order_service.publish(wo.id, ACTOR)
        assert exc_info.value.status == "published"

    def test_notification_failure_keeps_publication(
        self, work_order_service, make_draft, standard_terms, chat,
    ):
        chat.result = DeliveryResult.failed("HTTP 500")
        wo = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        work_order_service.publish(wo.id, ACTOR)
        assert work_order_service.get_work_order(wo.id).status is WorkOrderStatus.PUBLISHED

    def test_unknown_id(self, work_order_service):
        with pytest.raises(WorkOrderNotFoundError):
            work_order_service.publish(uuid4(), ACTOR)


# ============================================================================
# Queries
# ============================================================================


class TestQueries:
    """Tests for listing and history."""

    def test_list_newest_first_and_filter(
        self, work_order_service, make_draft, standard_terms, clock,
    ):
        first = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        clock.advance(60)
        second = work_order_service.create_work_order(make_draft(), standard_terms, ACTOR)
        work_order_service.publish(first.id, ACTOR)

        assert [w.id for w in work_order_service.list_work_orders()] == [second.id, first.id]
        assert [
            w.id for w in work_order_service.list_work_orders(WorkOrderStatus.PUBLISHED)
        ] == [first.id]
        assert [w.id for w in work_order_service.list_work_orders("draft")] == [second.id]

    def test_vendor_history_distinct_case_insensitive(
        self, work_order_service, make_draft, standard_terms, clock,
    ):
        work_order_service.create_work_order(
            make_draft(vendor_name="PT Maju Jaya", vendor_phone="111"), standard_terms, ACTOR,
        )
        clock.advance(60)
        work_order_service.create_work_order(
            make_draft(vendor_name="pt maju jaya", vendor_phone="222"), standard_terms, ACTOR,
        )
        clock.advance(60)
        work_order_service.create_work_order(
            make_draft(vendor_name="CV Sinar", vendor_email=None), standard_terms, ACTOR,
        )

        history = work_order_service.vendor_history()

        assert [v.name for v in history] == ["CV Sinar", "pt maju jaya"]
        assert history[1].phone == "222"

    def test_project_history(self, work_order_service, make_draft, standard_terms, clock):
        work_order_service.create_work_order(
            make_draft(project_name="Fit-out", project_description="old"), standard_terms, ACTOR,
        )
        clock.advance(60)
        work_order_service.create_work_order(
            make_draft(project_name="FIT-OUT", project_description="new"), standard_terms, ACTOR,
        )

        history = work_order_service.project_history()

        assert len(history) == 1
        assert history[0].description == "new"
