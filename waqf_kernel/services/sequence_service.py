"""
SequenceService -- strictly increasing counters and document numbers.

Responsibility:
    Allocates audit sequence numbers and the human-readable document
    numbers of journal entries (JV-), payment vouchers (PV-) and transfer
    batches (BTF-).

Invariants enforced:
    - Values come from a locked counter row (SELECT ... FOR UPDATE); the
      aggregate max-plus-one pattern is never used.
    - Increments are transactional: a rolled-back transaction returns its
      numbers.

Failure modes:
    - IntegrityError if two transactions create the same counter row for
      the first time concurrently.  ReferenceDataLoader seeds the audit
      counter; per-year document counters are first created under the
      period lock.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    AUDIT_EVENT = "audit_event"

    JOURNAL_PREFIX = "JV"
    VOUCHER_PREFIX = "PV"
    TRANSFER_BATCH_PREFIX = "BTF"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """Lock the named counter, increment it, and return the new value (> 0)."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def ensure(self, sequence_name: str) -> None:
        """Create the counter row if it does not exist yet."""
        exists = self._session.execute(
            select(SequenceCounter.id).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        if exists is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=0))
            self._session.flush()

    def next_document_number(self, prefix: str, year: int) -> str:
        """Next number of a yearly document series, e.g. ``JV-2025-000042``."""
        value = self.next_value(f"{prefix}-{year}")
        return f"{prefix}-{year}-{value:06d}"
