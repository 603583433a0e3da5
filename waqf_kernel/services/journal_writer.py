"""
JournalWriter -- persists balanced journal entry drafts.

Responsibility:
    Turns a JournalEntryDraft (built and balance-checked by
    JournalEntryBuilder) into JournalEntry / JournalLine rows with a JV-
    number, after checking accounts, period and balance once more.

Architecture position:
    Kernel > Services -- flush-only.  Called by the distribution
    coordinator, the closing reconciler and LedgerEventPoster.

Invariants enforced:
    - Debits == credits per entry (UnbalancedEntryError).
    - Every line references an existing, active account.
    - The entry date lies inside the entry's fiscal period and the period
      is open.
    - Entry numbers come from SequenceService (JV-YYYY-NNNNNN).

Failure modes:
    - UnbalancedEntryError, InvalidAccountError, ClosedPeriodError,
      ValueError (entry date outside the period, currency mismatch).

Audit relevance:
    Each posted entry produces a JOURNAL_POSTED audit event and a
    ``journal_entry_posted`` log record.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.domain.dtos import JournalEntryDraft, LineSide
from waqf_kernel.exceptions import InvalidAccountError, UnbalancedEntryError
from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.account import Account
from waqf_kernel.models.fiscal_period import FiscalPeriod
from waqf_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from waqf_kernel.services.auditor_service import AuditorService
from waqf_kernel.services.base import BaseService
from waqf_kernel.services.period_service import PeriodService
from waqf_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")


class JournalWriter(BaseService):
    """
    Writes journal entries.

    Contract:
        ``write()`` either flushes one complete entry with all its lines or
        raises before anything is added to the session.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)
        self._periods = PeriodService(session, self._clock)
        self._auditor = auditor or AuditorService(session, self._clock)

    def _validate_accounts(self, codes: set[str]) -> None:
        accounts = {
            a.code: a
            for a in self.session.execute(
                select(Account).where(Account.code.in_(codes))
            ).scalars()
        }
        for code in sorted(codes):
            account = accounts.get(code)
            if account is None:
                raise InvalidAccountError(code, "account not found")
            if not account.is_active:
                raise InvalidAccountError(code, "account is inactive")

    def write(
        self,
        draft: JournalEntryDraft,
        fiscal_period: FiscalPeriod,
        actor_id: UUID,
    ) -> JournalEntry:
        """Validate and persist ``draft`` in ``fiscal_period``."""
        if not draft.is_balanced:
            raise UnbalancedEntryError(
                draft.total_debits.minor_units,
                draft.total_credits.minor_units,
                draft.currency.code,
            )
        if draft.currency.code != fiscal_period.currency:
            raise ValueError(
                f"Entry currency {draft.currency} differs from period "
                f"currency {fiscal_period.currency}"
            )
        self._periods.require_open(fiscal_period, "post journal entry")
        if not fiscal_period.contains_date(draft.entry_date):
            raise ValueError(
                f"Entry date {draft.entry_date} is outside period "
                f"{fiscal_period.period_code}"
            )
        self._validate_accounts({line.account_code for line in draft.lines})

        entry_number = self._sequences.next_document_number(
            SequenceService.JOURNAL_PREFIX, draft.entry_date.year
        )
        entry = JournalEntry(
            entry_number=entry_number,
            entry_date=draft.entry_date,
            fiscal_period_id=fiscal_period.id,
            event_name=draft.event_name,
            template_version=draft.template_version,
            reference_type=draft.reference_type,
            reference_id=draft.reference_id,
            parent_reference_id=draft.parent_reference_id,
            description=draft.description,
            currency=draft.currency.code,
            status=JournalEntryStatus.POSTED,
            posted_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()

        for seq, spec in enumerate(draft.lines):
            is_debit = spec.side == LineSide.DEBIT
            self.session.add(
                JournalLine(
                    journal_entry_id=entry.id,
                    account_code=spec.account_code,
                    debit_minor=spec.amount.minor_units if is_debit else 0,
                    credit_minor=0 if is_debit else spec.amount.minor_units,
                    line_seq=seq,
                    memo=spec.memo,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()

        self._auditor.record_journal_posted(
            entry.id, entry_number, draft.event_name, actor_id
        )
        logger.info(
            "journal_entry_posted",
            extra={
                "entry_number": entry_number,
                "event_name": draft.event_name,
                "reference_type": draft.reference_type,
                "reference_id": draft.reference_id,
                "line_count": len(draft.lines),
                "amount_minor": draft.total_debits.minor_units,
            },
        )
        return entry
