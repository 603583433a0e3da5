"""
PeriodService -- fiscal period lifecycle.

Responsibility:
    Creates fiscal periods (rejecting overlaps), looks them up, validates
    that writes target an open period, marks a period closed, and finds or
    creates the period that follows a closed one.

Architecture position:
    Kernel > Services -- flush-only.  Year-end computations live in
    waqf_services.closing_reconciler, which calls this service.

Invariants enforced:
    - Date ranges of periods never overlap.
    - A closed period never reopens.
    - _get_period_for_update takes a row lock (FOR UPDATE) so concurrent
      closers see each other's committed status.

Failure modes:
    - PeriodNotFoundError, PeriodOverlapError, ClosedPeriodError,
      PeriodAlreadyClosedError.
"""

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.domain.dtos import FiscalPeriodInfo
from waqf_kernel.domain.values import Currency, Money
from waqf_kernel.exceptions import (
    ClosedPeriodError,
    PeriodAlreadyClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.fiscal_period import FiscalPeriod, PeriodStatus
from waqf_kernel.services.base import BaseService

logger = get_logger("services.period")


def _add_one_year(d: date) -> date:
    try:
        return d.replace(year=d.year + 1)
    except ValueError:
        # 29 February
        return d.replace(year=d.year + 1, day=28)


class PeriodService(BaseService):
    """
    Fiscal period management.

    Contract:
        All methods flush; none commit.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    @staticmethod
    def to_info(period: FiscalPeriod) -> FiscalPeriodInfo:
        currency = Currency(period.currency)
        return FiscalPeriodInfo(
            id=period.id,
            period_code=period.period_code,
            start_date=period.start_date,
            end_date=period.end_date,
            status=period.status_str,
            opening_corpus=Money(period.opening_corpus_minor, currency),
            closing_corpus=(
                Money(period.closing_corpus_minor, currency)
                if period.closing_corpus_minor is not None
                else None
            ),
        )

    def create_period(
        self,
        period_code: str,
        start_date: date,
        end_date: date,
        currency: str,
        actor_id: UUID,
        name: str | None = None,
        opening_corpus: Money | None = None,
        carried_from_period_id: UUID | None = None,
    ) -> FiscalPeriod:
        """
        Create a new open fiscal period.

        Raises:
            ValueError: start_date after end_date, or corpus currency differs.
            PeriodOverlapError: the range overlaps an existing period.
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )
        ccy = Currency(currency)
        opening = opening_corpus or Money.zero(ccy)
        if opening.currency != ccy:
            raise ValueError(
                f"opening corpus currency {opening.currency} differs from {ccy}"
            )

        self._validate_no_overlap(period_code, start_date, end_date)

        period = FiscalPeriod(
            period_code=period_code,
            name=name or period_code,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN,
            currency=ccy.code,
            opening_corpus_minor=opening.minor_units,
            carried_from_period_id=carried_from_period_id,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "opening_corpus_minor": opening.minor_units,
            },
        )
        return period

    def _validate_no_overlap(
        self,
        new_period_code: str,
        start_date: date,
        end_date: date,
    ) -> None:
        overlapping = self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            ).limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodOverlapError(new_period_code, overlapping.period_code)

    def get_period(self, period_id: UUID) -> FiscalPeriod:
        period = self.session.get(FiscalPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get_period_for_update(self, period_id: UUID) -> FiscalPeriod:
        """Load the period with a row lock and fresh column values."""
        period = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def get_period_by_code(self, period_code: str) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod).where(FiscalPeriod.period_code == period_code)
        ).scalar_one_or_none()

    def get_period_for_date(self, effective_date: date) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= effective_date,
                FiscalPeriod.end_date >= effective_date,
            )
        ).scalar_one_or_none()

    def require_open(self, period: FiscalPeriod, operation: str) -> None:
        if period.is_closed:
            logger.warning(
                "closed_period_violation",
                extra={"period_code": period.period_code, "operation": operation},
            )
            raise ClosedPeriodError(period.period_code, operation)

    def mark_closed(
        self, period: FiscalPeriod, closing_corpus: Money, actor_id: UUID
    ) -> None:
        """Set the closing corpus and close the period in one flush."""
        if period.is_closed:
            raise PeriodAlreadyClosedError(period.period_code)
        period.closing_corpus_minor = closing_corpus.minor_units
        period.status = PeriodStatus.CLOSED
        period.closed_at = self._clock.now()
        period.closed_by_id = actor_id
        self.session.flush()
        logger.info(
            "period_closed",
            extra={
                "period_code": period.period_code,
                "closing_corpus_minor": closing_corpus.minor_units,
            },
        )

    def next_period_bounds(self, period: FiscalPeriod) -> tuple[str, date, date]:
        """Code and dates of the one-year period that follows ``period``."""
        start = period.end_date + timedelta(days=1)
        end = _add_one_year(start) - timedelta(days=1)
        return f"FY{start.year}", start, end

    def carry_forward(
        self, period: FiscalPeriod, closing_corpus: Money, actor_id: UUID
    ) -> FiscalPeriod:
        """
        Make the period after ``period`` open with ``closing_corpus``.

        An existing open period starting the day after ``period`` ends is
        adopted (its opening corpus is overwritten); otherwise a one-year
        period is created.
        """
        code, start, end = self.next_period_bounds(period)
        existing = self.get_period_for_date(start)
        if existing is not None:
            self.require_open(existing, "carry corpus into")
            existing.opening_corpus_minor = closing_corpus.minor_units
            existing.carried_from_period_id = period.id
            existing.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "period_corpus_carried_forward",
                extra={
                    "from_period": period.period_code,
                    "to_period": existing.period_code,
                    "opening_corpus_minor": closing_corpus.minor_units,
                },
            )
            return existing

        if self.get_period_by_code(code) is not None:
            code = f"{code}-{start.isoformat()}"
        return self.create_period(
            period_code=code,
            start_date=start,
            end_date=end,
            currency=period.currency,
            actor_id=actor_id,
            opening_corpus=closing_corpus,
            carried_from_period_id=period.id,
        )
