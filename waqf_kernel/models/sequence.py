"""Named sequence counters for document numbers and audit ordering."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from waqf_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.  Row-level locking
    in SequenceService keeps values strictly increasing under concurrency.
    """

    __tablename__ = "sequence_counters"

    # e.g. "audit_event", "JV-2025"
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
