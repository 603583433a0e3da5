"""
waqf_services.closing_reconciler -- Fiscal year closing.

Responsibility:
    Compute a period's net income and corpus roll-forward, post the closing
    entry that moves revenue and expense balances into the corpus account,
    record the closing, open (or adopt) the next period with the closing
    corpus as its opening corpus, and close the period.

Architecture position:
    Services -- orchestration over LedgerSelector, DistributionSelector,
    JournalEntryBuilder, JournalWriter and PeriodService.

Invariants enforced:
    - closing_corpus = opening_corpus + corpus_deductions + net_income,
      where corpus_deductions counts EXECUTED and PUBLISHED distributions
      only.
    - A closed period is never closed again; its closing_corpus does not
      change (PeriodAlreadyClosedError).
    - Closing holds the same per-period lock as distribution execution, so
      the two never interleave for one period.
    - The closing entry, the closing record, the next period and the status
      change commit together.

Failure modes:
    - PeriodNotFoundError, PeriodAlreadyClosedError, ExecutionInProgressError.
    - InvalidAccountError when the corpus account is missing.

Audit relevance:
    FiscalPeriodClosing keeps every figure of the computation; PERIOD_CLOSED
    and PERIOD_OPENED audit events link the two periods.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from waqf_config.schema import WaqfConfig
from waqf_engines.journal_builder import JournalEntryBuilder
from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.domain.dtos import JournalLineSpec, LineSide
from waqf_kernel.domain.values import Currency, Money
from waqf_kernel.exceptions import PeriodAlreadyClosedError
from waqf_kernel.logging_config import LogContext, get_logger
from waqf_kernel.models.account import AccountType
from waqf_kernel.models.fiscal_period import FiscalPeriod, FiscalPeriodClosing
from waqf_kernel.selectors.distribution_selector import DistributionSelector
from waqf_kernel.selectors.ledger_selector import LedgerSelector, TrialBalanceRow
from waqf_kernel.services.auditor_service import AuditorService
from waqf_kernel.services.journal_writer import JournalWriter
from waqf_kernel.services.period_lock import PeriodLockManager
from waqf_kernel.services.period_service import PeriodService
from waqf_services.templates import ConfigTemplateProvider, TemplateProvider

logger = get_logger("services.closing")

CLOSING_TEMPLATE_VERSION = 1


@dataclass(frozen=True)
class ClosingSummary:
    """Figures of a (previewed or performed) year-end close."""

    fiscal_period_id: UUID
    period_code: str
    total_revenue: Money
    total_expenses: Money
    corpus_deductions: Money
    opening_corpus: Money
    closing_entry_number: str | None = None
    next_period_id: UUID | None = None

    @property
    def net_income(self) -> Money:
        return self.total_revenue - self.total_expenses

    @property
    def closing_corpus(self) -> Money:
        return self.opening_corpus + self.corpus_deductions + self.net_income

    def to_dict(self) -> dict[str, object]:
        return {
            "fiscal_period_id": str(self.fiscal_period_id),
            "period_code": self.period_code,
            "total_revenue_minor": self.total_revenue.minor_units,
            "total_expenses_minor": self.total_expenses.minor_units,
            "net_income_minor": self.net_income.minor_units,
            "corpus_deductions_minor": self.corpus_deductions.minor_units,
            "opening_corpus_minor": self.opening_corpus.minor_units,
            "closing_corpus_minor": self.closing_corpus.minor_units,
        }


def _closing_lines(
    rows: list[TrialBalanceRow], corpus_account: str, currency: Currency
) -> list[JournalLineSpec]:
    """Zero every revenue and expense balance against the corpus account."""
    lines: list[JournalLineSpec] = []
    net = 0
    for row in rows:
        if row.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
            continue
        balance = row.balance
        if balance == 0:
            continue
        # A debit balance is closed with a credit and vice versa
        side = LineSide.CREDIT if balance > 0 else LineSide.DEBIT
        lines.append(
            JournalLineSpec(
                account_code=row.account_code,
                side=side,
                amount=Money(abs(balance), currency),
                memo=f"Close {row.account_name}",
            )
        )
        net -= balance

    if net:
        lines.append(
            JournalLineSpec(
                account_code=corpus_account,
                side=LineSide.CREDIT if net > 0 else LineSide.DEBIT,
                amount=Money(abs(net), currency),
                memo="Net income to corpus",
            )
        )
    return lines


class FiscalYearClosingReconciler:
    """
    Closes fiscal periods and carries the corpus forward.

    Contract:
        ``preview()`` is read-only; ``close()`` commits once.
    Guarantees:
        - Closing an already closed period raises before any write.
    Non-goals:
        - Reopening periods.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: WaqfConfig,
        template_provider: TemplateProvider | None = None,
        clock: Clock | None = None,
        lock_manager: PeriodLockManager | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._builder = JournalEntryBuilder(
            template_provider or ConfigTemplateProvider(config)
        )
        self._clock = clock or SystemClock()
        self._locks = lock_manager or PeriodLockManager(
            config.distribution.lock_timeout_seconds
        )

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _summarize(self, session: Session, period: FiscalPeriod) -> ClosingSummary:
        currency = Currency(period.currency)
        revenue, expenses = LedgerSelector(session).revenue_and_expenses(
            period.id, exclude_events=(self._config.distribution.closing_event,)
        )
        corpus = DistributionSelector(session).corpus_deductions_minor(period.id)
        return ClosingSummary(
            fiscal_period_id=period.id,
            period_code=period.period_code,
            total_revenue=Money(revenue, currency),
            total_expenses=Money(expenses, currency),
            corpus_deductions=Money(corpus, currency),
            opening_corpus=Money(period.opening_corpus_minor, currency),
        )

    def preview(self, fiscal_period_id: UUID) -> ClosingSummary:
        """Closing figures as they would be computed now.  Writes nothing."""
        with self._session() as session:
            period = PeriodService(session, self._clock).get_period(fiscal_period_id)
            return self._summarize(session, period)

    def close(self, fiscal_period_id: UUID, actor_id: UUID) -> ClosingSummary:
        """
        Close the period and open its successor.

        Raises:
            PeriodAlreadyClosedError: the period is already closed.
            ExecutionInProgressError: a distribution or close holds the lock.
        """
        with self._session() as session:
            period = PeriodService(session, self._clock).get_period(fiscal_period_id)
            if period.is_closed:
                raise PeriodAlreadyClosedError(period.period_code)
            session.commit()

        with LogContext.bind(fiscal_period_id=fiscal_period_id, actor_id=actor_id), \
                self._locks.hold(fiscal_period_id), self._session() as session:
            summary = self._close_locked(session, fiscal_period_id, actor_id)

        logger.info("period_closing_completed", extra=summary.to_dict())
        return summary

    def _close_locked(
        self, session: Session, fiscal_period_id: UUID, actor_id: UUID
    ) -> ClosingSummary:
        periods = PeriodService(session, self._clock)
        period = self._locks.lock_row(session, fiscal_period_id)
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.period_code)

        summary = self._summarize(session, period)
        settings = self._config.distribution
        currency = Currency(period.currency)
        auditor = AuditorService(session, self._clock)

        rows = LedgerSelector(session).trial_balance(
            period.id, exclude_events=(settings.closing_event,)
        )
        lines = _closing_lines(rows, settings.corpus_account, currency)
        entry = None
        if lines:
            draft = self._builder.assemble(
                event_name=settings.closing_event,
                template_version=CLOSING_TEMPLATE_VERSION,
                lines=lines,
                entry_date=period.end_date,
                reference_type="fiscal_period_closing",
                reference_id=str(period.id),
                description=f"Year-end closing {period.period_code}",
            )
            entry = JournalWriter(session, self._clock, auditor).write(
                draft, period, actor_id
            )

        closing_corpus = summary.closing_corpus
        next_period = periods.carry_forward(period, closing_corpus, actor_id)
        session.add(
            FiscalPeriodClosing(
                fiscal_period_id=period.id,
                next_period_id=next_period.id,
                closing_entry_id=entry.id if entry is not None else None,
                closing_date=period.end_date,
                currency=currency.code,
                total_revenue_minor=summary.total_revenue.minor_units,
                total_expenses_minor=summary.total_expenses.minor_units,
                net_income_minor=summary.net_income.minor_units,
                corpus_deductions_minor=summary.corpus_deductions.minor_units,
                opening_corpus_minor=summary.opening_corpus.minor_units,
                closing_corpus_minor=closing_corpus.minor_units,
                created_by_id=actor_id,
            )
        )
        session.flush()
        periods.mark_closed(period, closing_corpus, actor_id)

        auditor.record_period_closed(
            period.id, period.period_code, closing_corpus.minor_units, actor_id
        )
        auditor.record_period_opened(
            next_period.id,
            next_period.period_code,
            next_period.opening_corpus_minor,
            actor_id,
        )
        session.commit()

        return ClosingSummary(
            fiscal_period_id=summary.fiscal_period_id,
            period_code=summary.period_code,
            total_revenue=summary.total_revenue,
            total_expenses=summary.total_expenses,
            corpus_deductions=summary.corpus_deductions,
            opening_corpus=summary.opening_corpus,
            closing_entry_number=entry.entry_number if entry is not None else None,
            next_period_id=next_period.id,
        )
