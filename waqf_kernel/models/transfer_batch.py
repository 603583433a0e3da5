"""
Bank transfer settlement batch.

One batch per executed distribution.  Totals are recomputed from the
included lines before the batch is written; exclusions are stored as
warning records, not errors.
"""

from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waqf_kernel.db.base import TrackedBase, UUIDString


class TransferBatch(TrackedBase):
    """Settlement batch header (BTF-YYYY-NNNNNN)."""

    __tablename__ = "transfer_batches"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_transfer_batch_number"),
        UniqueConstraint("distribution_id", name="uq_transfer_batch_distribution"),
    )

    batch_number: Mapped[str] = mapped_column(String(30), nullable=False)

    distribution_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_requests.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    total_amount_minor: Mapped[int] = mapped_column(nullable=False)

    total_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # [{"beneficiary_id": ..., "reason": "excluded_no_bank_details", ...}]
    exclusions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    lines: Mapped[list["TransferBatchLine"]] = relationship(
        back_populates="batch",
        order_by="TransferBatchLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<TransferBatch {self.batch_number} {self.total_count} lines>"


class TransferBatchLine(TrackedBase):
    """One bank transfer inside a batch."""

    __tablename__ = "transfer_batch_lines"

    __table_args__ = (
        Index("idx_transfer_line_batch", "batch_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transfer_batches.id"),
        nullable=False,
    )

    beneficiary_id: Mapped[str] = mapped_column(String(100), nullable=False)

    iban: Mapped[str] = mapped_column(String(34), nullable=False)

    amount_minor: Mapped[int] = mapped_column(nullable=False)

    reference: Mapped[str] = mapped_column(String(100), nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    batch: Mapped[TransferBatch] = relationship(back_populates="lines")
