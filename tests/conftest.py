"""
Pytest fixtures for the work order test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on emitted JSON log records
- A fresh SQLite in-memory database and session per test
- A DeterministicClock and default settings
- Fake notification gateways and wired services
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from workorder_config.schema import WorkOrderSettings
from workorder_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from workorder_kernel.domain.clock import DeterministicClock
from workorder_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workorder_modules.payments.service import PaymentService
from workorder_modules.vendors.service import VendorAccessService
from workorder_modules.work_orders.models import WorkOrderDraft
from workorder_modules.work_orders.service import WorkOrderService
from workorder_services.notifications import DeliveryResult, NotificationDispatcher

TEST_ACTOR = "admin@company.com"

# 2026-01-21 03:00 UTC is 2026-01-21 10:00 in UTC+7
TEST_NOW = datetime(2026, 1, 21, 3, 0, 0, tzinfo=timezone.utc)
TEST_TODAY = date(2026, 1, 21)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workorder logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, work_order_service):
            work_order_service.create_work_order(...)
            logs = captured_logs()
            assert any(r["message"] == "work_order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workorder")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database with every table created."""
    eng = init_engine_from_url("sqlite+pysqlite:///:memory:")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def settings():
    return WorkOrderSettings(database_url="sqlite+pysqlite:///:memory:")


class FakeChatGateway:
    """Records chat messages instead of posting them."""

    def __init__(self, result: DeliveryResult | None = None):
        self.messages: list[str] = []
        self.result = result or DeliveryResult.delivered()

    def post_message(self, text: str) -> DeliveryResult:
        self.messages.append(text)
        return self.result


class FakeEmailGateway:
    """Records emails instead of sending them."""

    def __init__(self, result: DeliveryResult | None = None):
        self.sent: list[tuple[str, str, str]] = []
        self.result = result or DeliveryResult.delivered()

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        self.sent.append((to, subject, body))
        return self.result


@pytest.fixture
def chat():
    return FakeChatGateway()


@pytest.fixture
def mailer():
    return FakeEmailGateway()


@pytest.fixture
def notifier(chat, mailer):
    return NotificationDispatcher(chat=chat, email=mailer)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def work_order_service(session, settings, clock, notifier):
    return WorkOrderService(session, settings, clock=clock, notifier=notifier)


@pytest.fixture
def payment_service(session, settings, clock, notifier):
    return PaymentService(session, settings, clock=clock, notifier=notifier)


@pytest.fixture
def vendor_service(session, settings, clock):
    counter = iter(range(1, 1000))
    return VendorAccessService(
        session,
        settings,
        clock=clock,
        token_factory=lambda nbytes: f"token-{next(counter):04d}",
    )


@pytest.fixture
def make_draft():
    """Factory for a valid ``WorkOrderDraft`` with overridable fields."""

    def _make(**overrides) -> WorkOrderDraft:
        fields = {
            "vendor_name": "PT Maju Jaya",
            "project_name": "Warehouse Fit-out",
            "contract_value": Decimal("100000000"),
            "start_date": date(2026, 2, 1),
            "vendor_email": "finance@majujaya.co.id",
            "vendor_phone": "+62 21 555 0100",
        }
        fields.update(overrides)
        return WorkOrderDraft(**fields)

    return _make


@pytest.fixture
def standard_terms():
    """Down payment / progress / final split of 30 / 40 / 30."""
    return [
        {"name": "Down Payment", "percentage": "30", "due_date": "2026-02-01"},
        {"name": "Progress Payment", "percentage": "40", "due_date": "2026-03-01"},
        {"name": "Final Payment", "percentage": "30", "due_date": "2026-04-01"},
    ]


@pytest.fixture
def create_published(work_order_service, make_draft, standard_terms):
    """Create and publish a work order; returns the published DTO."""

    def _create(**overrides):
        draft = make_draft(**overrides)
        created = work_order_service.create_work_order(draft, standard_terms, TEST_ACTOR)
        return work_order_service.publish(created.id, TEST_ACTOR)

    return _create
