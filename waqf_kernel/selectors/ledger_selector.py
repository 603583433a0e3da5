"""
LedgerSelector -- read-only ledger aggregates.

Trial balances and revenue / expense totals are computed from journal
lines at query time and never stored.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from waqf_kernel.models.account import Account, AccountType
from waqf_kernel.models.journal import JournalEntry, JournalLine
from waqf_kernel.selectors.base import BaseSelector

@dataclass(frozen=True)
class TrialBalanceRow:
    """One account's totals within a period."""

    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: int
    credit_total: int

    @property
    def balance(self) -> int:
        """Net balance (debits - credits) in minor units."""
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector):
    """Ledger queries scoped to a fiscal period."""

    def __init__(self, session: Session):
        super().__init__(session)

    def trial_balance(
        self,
        fiscal_period_id: UUID,
        exclude_events: tuple[str, ...] = (),
    ) -> list[TrialBalanceRow]:
        """Per-account debit/credit totals, ordered by account code."""
        query = (
            select(
                Account.code,
                Account.name,
                Account.account_type,
                func.coalesce(func.sum(JournalLine.debit_minor), 0).label("debit_total"),
                func.coalesce(func.sum(JournalLine.credit_minor), 0).label("credit_total"),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_code == Account.code)
            .where(JournalEntry.fiscal_period_id == fiscal_period_id)
            .group_by(Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        if exclude_events:
            query = query.where(JournalEntry.event_name.not_in(exclude_events))

        return [
            TrialBalanceRow(
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                debit_total=int(row.debit_total),
                credit_total=int(row.credit_total),
            )
            for row in self.session.execute(query).all()
        ]

    def revenue_and_expenses(
        self,
        fiscal_period_id: UUID,
        exclude_events: tuple[str, ...] = (),
    ) -> tuple[int, int]:
        """
        Total revenue and total expenses of a period in minor units.

        Revenue is credits minus debits on revenue accounts; expenses are
        debits minus credits on expense accounts.  Entries of
        ``exclude_events`` (the closing entry) are left out.
        """
        revenue = 0
        expenses = 0
        for row in self.trial_balance(fiscal_period_id, exclude_events):
            if row.account_type == AccountType.REVENUE:
                revenue += row.credit_total - row.debit_total
            elif row.account_type == AccountType.EXPENSE:
                expenses += row.debit_total - row.credit_total
        return revenue, expenses

    def period_totals(self, fiscal_period_id: UUID) -> tuple[int, int]:
        """(total debits, total credits) across every entry of the period."""
        row = self.session.execute(
            select(
                func.coalesce(func.sum(JournalLine.debit_minor), 0),
                func.coalesce(func.sum(JournalLine.credit_minor), 0),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.fiscal_period_id == fiscal_period_id)
        ).one()
        return int(row[0]), int(row[1])

    def entries_for_parent(self, parent_reference_id: str) -> list[JournalEntry]:
        return list(
            self.session.execute(
                select(JournalEntry)
                .where(JournalEntry.parent_reference_id == parent_reference_id)
                .order_by(JournalEntry.entry_number)
            ).scalars()
        )

    def entries_for_reference(self, reference_type: str, reference_id: str) -> list[JournalEntry]:
        return list(
            self.session.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.reference_type == reference_type,
                    JournalEntry.reference_id == reference_id,
                )
                .order_by(JournalEntry.entry_number)
            ).scalars()
        )
