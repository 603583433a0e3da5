"""
Module: waqf_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal periods and their year-end
    closing records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - period_code is unique.
    - start_date <= end_date (check constraint).
    - One closing record per period (unique fiscal_period_id).
    - closing_corpus_minor is written once, by the closing reconciler,
      together with status=closed.

Audit relevance:
    FiscalPeriodClosing preserves every figure used to compute the closing
    corpus so the roll-forward can be re-derived later.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from waqf_kernel.db.base import TrackedBase, UUIDString


class PeriodStatus(str, Enum):
    """Lifecycle status of a fiscal period. A closed period never reopens."""

    OPEN = "open"
    CLOSED = "closed"


class FiscalPeriod(TrackedBase):
    """
    Fiscal year for distribution and ledger control.

    Contract:
        A period carries the corpus forward: opening_corpus_minor is set when
        the period is created (or carried into from its predecessor) and
        closing_corpus_minor when it is closed.

    Guarantees:
        - period_code is unique (uq_period_code).
        - carried_from_period_id points at the period whose close produced
          this period's opening corpus.

    Non-goals:
        - Overlap between periods is checked by PeriodService, not here.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("period_code", name="uq_period_code"),
        CheckConstraint("start_date <= end_date", name="ck_period_dates"),
        Index("idx_period_dates", "start_date", "end_date"),
        Index("idx_period_status", "status"),
    )

    # e.g. "FY2025"
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Inclusive boundaries
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        default=PeriodStatus.OPEN,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    opening_corpus_minor: Mapped[int] = mapped_column(default=0, nullable=False)

    closing_corpus_minor: Mapped[int | None] = mapped_column(nullable=True)

    carried_from_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=True,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.period_code}: {self.status_str}>"

    @property
    def status_str(self) -> str:
        if isinstance(self.status, PeriodStatus):
            return self.status.value
        return self.status

    @property
    def is_open(self) -> bool:
        return self.status_str == PeriodStatus.OPEN.value

    @property
    def is_closed(self) -> bool:
        return self.status_str == PeriodStatus.CLOSED.value

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


class FiscalPeriodClosing(TrackedBase):
    """
    Year-end closing record.

    One row per closed period with the revenue, expense, net income,
    corpus deductions and corpus figures used by the close, and the id of
    the closing journal entry.
    """

    __tablename__ = "fiscal_period_closings"

    __table_args__ = (
        UniqueConstraint("fiscal_period_id", name="uq_closing_period"),
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    next_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    closing_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    closing_date: Mapped[date] = mapped_column(Date, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    total_revenue_minor: Mapped[int] = mapped_column(nullable=False)
    total_expenses_minor: Mapped[int] = mapped_column(nullable=False)
    net_income_minor: Mapped[int] = mapped_column(nullable=False)
    corpus_deductions_minor: Mapped[int] = mapped_column(nullable=False)
    opening_corpus_minor: Mapped[int] = mapped_column(nullable=False)
    closing_corpus_minor: Mapped[int] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<FiscalPeriodClosing period={self.fiscal_period_id}>"
