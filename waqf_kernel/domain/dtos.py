"""
Data transfer objects passed between the engines and the journal writer.

These are pure, immutable records with no ORM dependency.  The engines
produce ``JournalEntryDraft`` values; ``JournalWriter`` persists them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from waqf_kernel.domain.values import Currency, Money


class LineSide(str, Enum):
    """Side of a journal line."""

    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class JournalLineSpec:
    """One line of a draft entry; exactly one side carries the amount."""

    account_code: str
    side: LineSide
    amount: Money
    memo: str | None = None


@dataclass(frozen=True)
class JournalEntryDraft:
    """
    A balanced journal entry ready to be written.

    Guarantees:
        - Built only by JournalEntryBuilder, which rejects unbalanced drafts.
    """

    event_name: str
    template_version: int
    currency: Currency
    entry_date: date
    reference_type: str
    reference_id: str
    lines: tuple[JournalLineSpec, ...]
    parent_reference_id: str | None = None
    description: str | None = None

    @property
    def total_debits(self) -> Money:
        return Money.total(
            (l.amount for l in self.lines if l.side == LineSide.DEBIT), self.currency
        )

    @property
    def total_credits(self) -> Money:
        return Money.total(
            (l.amount for l in self.lines if l.side == LineSide.CREDIT), self.currency
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Read-only view of a fiscal period."""

    id: UUID
    period_code: str
    start_date: date
    end_date: date
    status: str
    opening_corpus: Money
    closing_corpus: Money | None

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    def contains(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date
