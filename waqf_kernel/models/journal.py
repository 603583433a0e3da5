"""
Module: waqf_kernel.models.journal
Responsibility: ORM persistence for double-entry journal entries and lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entry_number is unique (JV-YYYY-NNNNNN).
    - Each line carries exactly one non-zero side (check constraint).
    - sum(debit) == sum(credit) per entry -- enforced by JournalWriter
      before flush and re-checked by selectors.
    - Entries and lines are append-only; see db/immutability.py.

Audit relevance:
    reference_type / reference_id link every entry to the business object
    that produced it; parent_reference_id groups the per-movement entries
    of one distribution.
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
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waqf_kernel.db.base import TrackedBase, UUIDString


class JournalEntryStatus(str, Enum):
    """Journal entries are written posted; there is no draft stage in the ledger."""

    POSTED = "posted"


class JournalEntry(TrackedBase):
    """
    Balanced journal entry header.

    Contract:
        Produced only through JournalWriter from a JournalEntryDraft that the
        JournalEntryBuilder has verified as balanced.

    Guarantees:
        - entry_number unique.
        - fiscal_period_id names the period the entry is dated in.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        Index("idx_journal_period", "fiscal_period_id"),
        Index("idx_journal_reference", "reference_type", "reference_id"),
        Index("idx_journal_parent", "parent_reference_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    event_name: Mapped[str] = mapped_column(String(100), nullable=False)

    template_version: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)

    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)

    parent_reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        default=JournalEntryStatus.POSTED,
        nullable=False,
    )

    posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.event_name}>"

    @property
    def total_debits(self) -> int:
        return sum(line.debit_minor for line in self.lines)

    @property
    def total_credits(self) -> int:
        return sum(line.credit_minor for line in self.lines)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    One debit or credit line of a journal entry.

    Guarantees:
        - Exactly one of debit_minor / credit_minor is positive, the other 0.
        - line_seq gives a deterministic order within the entry.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint(
            "(debit_minor > 0 AND credit_minor = 0) OR "
            "(debit_minor = 0 AND credit_minor > 0)",
            name="ck_line_one_side",
        ),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("accounts.code"),
        nullable=False,
    )

    debit_minor: Mapped[int] = mapped_column(default=0, nullable=False)

    credit_minor: Mapped[int] = mapped_column(default=0, nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        side = "Dr" if self.debit_minor else "Cr"
        return f"<JournalLine {side} {self.account_code} {self.debit_minor or self.credit_minor}>"
