"""
Module: waqf_kernel.models.distribution
Responsibility: ORM persistence for distribution requests and the artifacts
    an execution produces (deductions, allocation lines, payment vouchers).
Architecture position: Kernel > Models.  May import from db/base.py and
    waqf_kernel.exceptions only.

Invariants enforced:
    - State changes follow VALID_TRANSITIONS (validate_transition).
    - At most one request per fiscal period holds the period claim: the
      nullable unique column period_claim_id is set on entering EXECUTING
      and cleared on FAILED, so EXECUTING / EXECUTED / PUBLISHED requests
      are unique per period at the database level.
    - Artifacts are append-only and immutable once the request is EXECUTED
      (db/immutability.py).
    - The state column doubles as the mapper version column: an UPDATE
      written from a stale read of the request matches no row.

Failure modes:
    - InvalidStateTransitionError on a transition outside the table.
    - IntegrityError on uq_distribution_period_claim if two executions for
      one period race past the service-level check.
    - StaleDataError when the request changed state after it was read.

Audit relevance:
    simulation_snapshot / simulation_fingerprint preserve the exact preview
    that was approved; failure_code / failure_detail preserve why an
    execution stopped.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waqf_kernel.db.base import TrackedBase, UUIDString
from waqf_kernel.domain.roster import RecipientKind
from waqf_kernel.exceptions import InvalidStateTransitionError


class DistributionState(str, Enum):
    """Lifecycle state of a distribution request."""

    DRAFT = "draft"
    SIMULATED = "simulated"
    APPROVED = "approved"
    EXECUTING = "executing"
    EXECUTED = "executed"
    FAILED = "failed"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: dict[DistributionState, frozenset[DistributionState]] = {
    DistributionState.DRAFT: frozenset({
        DistributionState.SIMULATED, DistributionState.CANCELLED,
    }),
    DistributionState.SIMULATED: frozenset({
        DistributionState.SIMULATED, DistributionState.APPROVED,
        DistributionState.CANCELLED,
    }),
    DistributionState.APPROVED: frozenset({
        DistributionState.SIMULATED, DistributionState.EXECUTING,
        DistributionState.CANCELLED,
    }),
    DistributionState.EXECUTING: frozenset({
        DistributionState.EXECUTED, DistributionState.FAILED,
    }),
    DistributionState.FAILED: frozenset({
        DistributionState.EXECUTING, DistributionState.SIMULATED,
        DistributionState.CANCELLED,
    }),
    DistributionState.EXECUTED: frozenset({
        DistributionState.PUBLISHED,
    }),
    # Terminal states
    DistributionState.PUBLISHED: frozenset(),
    DistributionState.CANCELLED: frozenset(),
}

# States that own the one-per-period claim
SETTLED_STATES: frozenset[DistributionState] = frozenset({
    DistributionState.EXECUTING,
    DistributionState.EXECUTED,
    DistributionState.PUBLISHED,
})


class VoucherStatus(str, Enum):
    ISSUED = "issued"


class DistributionRequest(TrackedBase):
    """
    A request to distribute one gross amount for one fiscal period.

    Contract:
        Created in DRAFT by DistributionExecutionCoordinator and moved through
        the state table only by that coordinator.

    Guarantees:
        - gross_minor is a non-negative integer in ``currency`` minor units.
        - policy is the JSON form of DistributionPolicy.
        - approved_fingerprint equals the simulation_fingerprint at approval.

    Non-goals:
        - The roster is not stored here; it is read from the roster provider
          at simulation and execution time and captured in the snapshot.
    """

    __tablename__ = "distribution_requests"

    __table_args__ = (
        UniqueConstraint("period_claim_id", name="uq_distribution_period_claim"),
        Index("idx_distribution_period", "fiscal_period_id"),
        Index("idx_distribution_state", "state"),
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    # Set to fiscal_period_id while EXECUTING / EXECUTED / PUBLISHED
    period_claim_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    gross_minor: Mapped[int] = mapped_column(nullable=False)

    policy: Mapped[dict] = mapped_column(JSON, nullable=False)

    state: Mapped[DistributionState] = mapped_column(
        String(20),
        default=DistributionState.DRAFT,
        nullable=False,
    )

    # Every UPDATE carries ``WHERE state = <state as read>``; a row moved by
    # another session in the meantime raises StaleDataError on flush.
    __mapper_args__ = {
        "version_id_col": state,
        "version_id_generator": False,
    }

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Latest simulation preview
    simulation_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    simulation_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    simulated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Approval gate outcome
    approved_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Execution
    execution_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    executed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    heirs_pool_minor: Mapped[int | None] = mapped_column(nullable=True)
    no_heirs_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    failure_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure_detail: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Visibility to heirs
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    deductions: Mapped[list["DistributionDeduction"]] = relationship(
        back_populates="distribution",
        order_by="DistributionDeduction.line_seq",
    )

    allocation_lines: Mapped[list["AllocationLine"]] = relationship(
        back_populates="distribution",
        order_by="AllocationLine.line_seq",
    )

    vouchers: Mapped[list["PaymentVoucher"]] = relationship(
        back_populates="distribution",
        order_by="PaymentVoucher.voucher_number",
    )

    def __repr__(self) -> str:
        return f"<DistributionRequest {self.id} {self.state_str}>"

    @property
    def state_enum(self) -> DistributionState:
        if isinstance(self.state, DistributionState):
            return self.state
        return DistributionState(self.state)

    @property
    def state_str(self) -> str:
        return self.state_enum.value

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.state_enum]

    @property
    def is_settled(self) -> bool:
        """True once money has moved (or is moving) for this request."""
        return self.state_enum in SETTLED_STATES

    def validate_transition(self, target: DistributionState) -> None:
        """Raise InvalidStateTransitionError unless current -> target is allowed."""
        allowed = VALID_TRANSITIONS.get(self.state_enum, frozenset())
        if target not in allowed:
            raise InvalidStateTransitionError(
                "DistributionRequest", self.state_str, DistributionState(target).value
            )


class DistributionDeduction(TrackedBase):
    """One deduction taken off the gross of an executed distribution."""

    __tablename__ = "distribution_deductions"

    __table_args__ = (
        UniqueConstraint("distribution_id", "label", name="uq_deduction_label"),
    )

    distribution_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_requests.id"),
        nullable=False,
    )

    # custodian, charity, corpus, development, maintenance, reserve
    label: Mapped[str] = mapped_column(String(30), nullable=False)

    percentage: Mapped[Decimal] = mapped_column(nullable=False)

    amount_minor: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    distribution: Mapped[DistributionRequest] = relationship(back_populates="deductions")


class AllocationLine(TrackedBase):
    """
    Amount allocated to one recipient by an executed distribution.

    Guarantees:
        - The amounts of a distribution's lines sum to its heirs_pool_minor.
        - share_fraction records the exact fraction of the pool used
          ("n/d"), so the split can be re-derived.
    """

    __tablename__ = "allocation_lines"

    __table_args__ = (
        UniqueConstraint("distribution_id", "beneficiary_id", name="uq_allocation_beneficiary"),
        Index("idx_allocation_beneficiary", "beneficiary_id"),
    )

    distribution_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_requests.id"),
        nullable=False,
    )

    beneficiary_id: Mapped[str] = mapped_column(String(100), nullable=False)

    relationship_class: Mapped[str | None] = mapped_column(String(20), nullable=True)

    recipient_kind: Mapped[RecipientKind] = mapped_column(String(20), nullable=False)

    amount_minor: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    share_fraction: Mapped[str] = mapped_column(String(80), nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    distribution: Mapped[DistributionRequest] = relationship(back_populates="allocation_lines")

    def __repr__(self) -> str:
        return f"<AllocationLine {self.beneficiary_id} {self.amount_minor}>"


class PaymentVoucher(TrackedBase):
    """Payment voucher issued for one non-zero heir allocation."""

    __tablename__ = "payment_vouchers"

    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_voucher_number"),
        Index("idx_voucher_distribution", "distribution_id"),
    )

    voucher_number: Mapped[str] = mapped_column(String(30), nullable=False)

    distribution_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("distribution_requests.id"),
        nullable=False,
    )

    allocation_line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("allocation_lines.id"),
        nullable=False,
    )

    beneficiary_id: Mapped[str] = mapped_column(String(100), nullable=False)

    amount_minor: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[VoucherStatus] = mapped_column(
        String(20),
        default=VoucherStatus.ISSUED,
        nullable=False,
    )

    distribution: Mapped[DistributionRequest] = relationship(back_populates="vouchers")
