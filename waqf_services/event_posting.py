"""
waqf_services.event_posting -- Template-driven posting of business events.

Responsibility:
    Post the journal entry of a single-amount business event (rent
    received, maintenance paid, ...) through its configured template, into
    the fiscal period that contains the entry date.

Architecture position:
    Services -- thin orchestration over JournalEntryBuilder and
    JournalWriter.  Distribution execution does not go through here; it
    posts its own entries inside its own transaction.

Failure modes:
    - TemplateNotFoundError, InvalidAccountError, ClosedPeriodError.
    - PeriodNotFoundError when no period contains the entry date, or the
      given period id does not exist.
    - ValueError when the entry date falls outside the given period.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from waqf_engines.journal_builder import JournalEntryBuilder
from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.domain.values import Money
from waqf_kernel.exceptions import PeriodNotFoundError
from waqf_kernel.logging_config import LogContext, get_logger
from waqf_kernel.services.journal_writer import JournalWriter
from waqf_kernel.services.period_service import PeriodService
from waqf_services.templates import TemplateProvider

logger = get_logger("services.event_posting")


class LedgerEventPoster:
    """Posts one business event per call and commits it."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        template_provider: TemplateProvider,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._builder = JournalEntryBuilder(template_provider)
        self._clock = clock or SystemClock()

    def post(
        self,
        event_name: str,
        amount: Money,
        reference_type: str,
        reference_id: str,
        actor_id: UUID,
        fiscal_period_id: UUID | None = None,
        entry_date: date | None = None,
        description: str | None = None,
    ) -> str:
        """Post ``event_name`` for ``amount``.

        Returns:
            The entry number (JV-YYYY-NNNNNN).
        """
        entry_date = entry_date or self._clock.today()
        session = self._session_factory()
        try:
            periods = PeriodService(session, self._clock)
            if fiscal_period_id is not None:
                period = periods.get_period(fiscal_period_id)
            else:
                period = periods.get_period_for_date(entry_date)
                if period is None:
                    raise PeriodNotFoundError(entry_date.isoformat())

            with LogContext.bind(fiscal_period_id=period.id, actor_id=actor_id):
                draft = self._builder.build(
                    event_name=event_name,
                    amount=amount,
                    entry_date=entry_date,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    description=description,
                )
                entry = JournalWriter(session, self._clock).write(draft, period, actor_id)
                session.commit()
                number = entry.entry_number
                logger.info(
                    "ledger_event_posted",
                    extra={"event_name": event_name, "entry_number": number},
                )
            return number
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
