"""
PeriodLockManager -- per-fiscal-period mutual exclusion.

Responsibility:
    Serializes distribution execution and year-end closing for one fiscal
    period.  Different periods never contend.

Architecture position:
    Kernel > Services.  Used by DistributionExecutionCoordinator and
    FiscalYearClosingReconciler.

Invariants enforced:
    - At most one holder per fiscal period inside this process: a keyed
      mutex acquired with a bounded wait.
    - Across processes: the fiscal period row is locked with
      SELECT ... FOR UPDATE; on PostgreSQL the wait is bounded by
      ``SET LOCAL lock_timeout``.
    - The in-process lock is released on every exit path of the
      ``hold()`` context manager.

Failure modes:
    - ExecutionInProgressError when either lock is not obtained within
      the timeout.  Callers may retry; the engine does not.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from waqf_kernel.exceptions import ExecutionInProgressError, PeriodNotFoundError
from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.fiscal_period import FiscalPeriod

logger = get_logger("services.period_lock")

# One mutex per fiscal period id seen by this process, kept for the life of
# the process: a waiter may still hold a reference after the holder leaves,
# so entries are never evicted.  Periods are yearly, so the map grows by one
# entry per fiscal year.
_registry: dict[str, threading.Lock] = {}
_registry_guard = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    """The process-wide mutex for ``key``, created on first use."""
    with _registry_guard:
        lock = _registry.get(key)
        if lock is None:
            lock = threading.Lock()
            _registry[key] = lock
        return lock


class PeriodLockManager:
    """
    Scoped, bounded-wait lock keyed by fiscal period id.

    Usage:
        locks = PeriodLockManager(timeout_seconds=5)
        with locks.hold(period_id):
            period = locks.lock_row(session, period_id)
            ...
    """

    def __init__(self, timeout_seconds: float = 5.0):
        if timeout_seconds < 0:
            raise ValueError("timeout_seconds must not be negative")
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def hold(self, fiscal_period_id: UUID) -> Iterator[None]:
        key = str(fiscal_period_id)
        lock = _lock_for(key)
        if not lock.acquire(timeout=self.timeout_seconds):
            logger.warning(
                "period_lock_timeout",
                extra={"fiscal_period_id": key, "timeout_seconds": self.timeout_seconds},
            )
            raise ExecutionInProgressError(key, self.timeout_seconds)
        logger.debug("period_lock_acquired", extra={"fiscal_period_id": key})
        try:
            yield
        finally:
            lock.release()
            logger.debug("period_lock_released", extra={"fiscal_period_id": key})

    def lock_row(self, session: Session, fiscal_period_id: UUID) -> FiscalPeriod:
        """Row-lock the fiscal period for the rest of the current transaction."""
        if session.get_bind().dialect.name == "postgresql":
            timeout_ms = int(self.timeout_seconds * 1000)
            session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
        try:
            period = session.execute(
                select(FiscalPeriod)
                .where(FiscalPeriod.id == fiscal_period_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except OperationalError as exc:
            logger.warning(
                "period_row_lock_timeout",
                extra={"fiscal_period_id": str(fiscal_period_id)},
            )
            raise ExecutionInProgressError(
                str(fiscal_period_id), self.timeout_seconds
            ) from exc
        if period is None:
            raise PeriodNotFoundError(str(fiscal_period_id))
        return period
