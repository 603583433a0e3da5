"""
Append-only, hash-chained audit trail.

Every distribution state change, journal posting and period close writes
one AuditEvent.  Rows are never updated or deleted (db/immutability.py).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from waqf_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Distribution lifecycle
    DISTRIBUTION_CREATED = "distribution_created"
    DISTRIBUTION_STATE_CHANGED = "distribution_state_changed"
    DISTRIBUTION_EXECUTED = "distribution_executed"
    DISTRIBUTION_FAILED = "distribution_failed"

    # Ledger
    JOURNAL_POSTED = "journal_posted"

    # Period lifecycle
    PERIOD_OPENED = "period_opened"
    PERIOD_CLOSED = "period_closed"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Guarantees:
        - seq is unique and strictly increasing.
        - hash = H(entity_type | entity_id | action | payload_hash | prev_hash).
        - prev_hash is None only for the genesis event.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # e.g. "DistributionRequest", "JournalEntry", "FiscalPeriod"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"
