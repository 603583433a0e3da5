"""
AuditorService -- tamper-evident audit trail.

Responsibility:
    Creates hash-chained AuditEvent rows for distribution state changes,
    journal postings and period lifecycle events, and verifies the chain.

Architecture position:
    Kernel > Services -- flush-only, the caller owns the transaction.

Invariants enforced:
    - seq comes from SequenceService, so events are strictly ordered.
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash).

Failure modes:
    - validate_chain() returns the seq of the first broken link, or None.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.logging_config import get_logger
from waqf_kernel.models.audit_event import AuditAction, AuditEvent
from waqf_kernel.services.base import BaseService
from waqf_kernel.services.sequence_service import SequenceService
from waqf_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


class AuditorService(BaseService):
    """
    Append-only audit recorder.

    Contract:
        Every public ``record_*`` method adds exactly one AuditEvent and
        flushes it.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self.session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        # The counter row lock serializes writers, so prev_hash is stable.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = payload or {}
        payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self.session.add(audit_event)
        self.session.flush()

        logger.debug(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    def record_distribution_created(
        self, distribution_id: UUID, actor_id: UUID, payload: dict[str, Any]
    ) -> AuditEvent:
        return self._create_audit_event(
            "DistributionRequest", distribution_id,
            AuditAction.DISTRIBUTION_CREATED, actor_id, payload,
        )

    def record_state_change(
        self,
        distribution_id: UUID,
        from_state: str,
        to_state: str,
        actor_id: UUID,
        detail: dict[str, Any] | None = None,
    ) -> AuditEvent:
        payload = {"from_state": from_state, "to_state": to_state}
        if detail:
            payload["detail"] = detail
        return self._create_audit_event(
            "DistributionRequest", distribution_id,
            AuditAction.DISTRIBUTION_STATE_CHANGED, actor_id, payload,
        )

    def record_distribution_executed(
        self, distribution_id: UUID, actor_id: UUID, summary: dict[str, Any]
    ) -> AuditEvent:
        return self._create_audit_event(
            "DistributionRequest", distribution_id,
            AuditAction.DISTRIBUTION_EXECUTED, actor_id, summary,
        )

    def record_distribution_failed(
        self, distribution_id: UUID, actor_id: UUID, failure_code: str, message: str
    ) -> AuditEvent:
        return self._create_audit_event(
            "DistributionRequest", distribution_id,
            AuditAction.DISTRIBUTION_FAILED, actor_id,
            {"failure_code": failure_code, "message": message},
        )

    def record_journal_posted(
        self, entry_id: UUID, entry_number: str, event_name: str, actor_id: UUID
    ) -> AuditEvent:
        return self._create_audit_event(
            "JournalEntry", entry_id, AuditAction.JOURNAL_POSTED, actor_id,
            {"entry_number": entry_number, "event_name": event_name},
        )

    def record_period_opened(
        self, period_id: UUID, period_code: str, opening_corpus_minor: int, actor_id: UUID
    ) -> AuditEvent:
        return self._create_audit_event(
            "FiscalPeriod", period_id, AuditAction.PERIOD_OPENED, actor_id,
            {"period_code": period_code, "opening_corpus_minor": opening_corpus_minor},
        )

    def record_period_closed(
        self, period_id: UUID, period_code: str, closing_corpus_minor: int, actor_id: UUID
    ) -> AuditEvent:
        return self._create_audit_event(
            "FiscalPeriod", period_id, AuditAction.PERIOD_CLOSED, actor_id,
            {"period_code": period_code, "closing_corpus_minor": closing_corpus_minor},
        )

    def get_trail(self, entity_id: UUID) -> list[AuditEvent]:
        return list(
            self.session.execute(
                select(AuditEvent)
                .where(AuditEvent.entity_id == entity_id)
                .order_by(AuditEvent.seq)
            ).scalars()
        )

    def validate_chain(self) -> int | None:
        """Return the seq of the first event whose hash or link is wrong, else None."""
        prev_hash: str | None = None
        for audit_event in self.session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars():
            expected = hash_audit_event(
                entity_type=audit_event.entity_type,
                entity_id=str(audit_event.entity_id),
                action=str(audit_event.action),
                payload_hash=hash_payload(audit_event.payload or {}),
                prev_hash=prev_hash,
            )
            if audit_event.prev_hash != prev_hash or audit_event.hash != expected:
                logger.error("audit_chain_broken", extra={"seq": audit_event.seq})
                return audit_event.seq
            prev_hash = audit_event.hash
        return None
