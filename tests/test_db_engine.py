"""Tests for engine setup and the session_scope transaction boundary."""

import pytest
from sqlalchemy import select

from waqf_kernel.db.engine import get_session_factory, session_scope
from waqf_kernel.models.sequence import SequenceCounter
from waqf_kernel.services.sequence_service import SequenceService


def _counter_value(name: str) -> int | None:
    with get_session_factory()() as s:
        return s.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()


def test_session_scope_commits(db_engine):
    with session_scope() as s:
        SequenceService(s).next_value("scope_test")

    assert _counter_value("scope_test") == 1


def test_session_scope_rolls_back_and_reraises(db_engine):
    with pytest.raises(RuntimeError, match="boom"):
        with session_scope() as s:
            SequenceService(s).next_value("scope_rollback")
            raise RuntimeError("boom")

    assert _counter_value("scope_rollback") is None


def test_sqlite_foreign_keys_enabled(db_engine):
    if db_engine.dialect.name != "sqlite":
        pytest.skip("SQLite pragma")
    with db_engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
