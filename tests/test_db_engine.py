"""Tests for engine initialization and session_scope (workorder_kernel/db/engine.py)."""

import pytest
from sqlalchemy import func, select

from workorder_kernel.db.engine import (
    get_engine,
    get_session,
    reset_engine,
    session_scope,
)
from workorder_modules.vendors.orm import VendorModel


def _vendor(email: str) -> VendorModel:
    return VendorModel(
        name="PT Maju Jaya", email=email, access_token=f"tok-{email}", created_by="test",
    )


def _vendor_count() -> int:
    with session_scope() as session:
        return session.execute(select(func.count()).select_from(VendorModel)).scalar_one()


class TestSessionScope:
    """Commit-or-rollback semantics."""

    def test_commits_on_success(self, engine):
        with session_scope() as session:
            session.add(_vendor("a@vendor.test"))
        assert _vendor_count() == 1

    def test_rolls_back_and_reraises(self, engine):
        with pytest.raises(RuntimeError, match="boom"):
            with session_scope() as session:
                session.add(_vendor("a@vendor.test"))
                session.flush()
                raise RuntimeError("boom")
        assert _vendor_count() == 0

    def test_unique_violation_surfaces(self, engine):
        from sqlalchemy.exc import IntegrityError

        with session_scope() as session:
            session.add(_vendor("a@vendor.test"))
        with pytest.raises(IntegrityError):
            with session_scope() as session:
                session.add(VendorModel(
                    name="Dup", email="a@vendor.test", access_token="x", created_by="test",
                ))
        assert _vendor_count() == 1


class TestEngineLifecycle:
    """Initialization guards."""

    def test_sqlite_memory_shared_across_sessions(self, engine):
        assert get_engine() is engine
        first, second = get_session(), get_session()
        first.add(_vendor("a@vendor.test"))
        first.commit()
        assert second.execute(select(VendorModel.email)).scalar_one() == "a@vendor.test"
        first.close()
        second.close()

    def test_uninitialized_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_session()
        with pytest.raises(RuntimeError):
            get_engine()
