"""DistributionSelector -- read models over distribution requests and artifacts."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from waqf_kernel.exceptions import DistributionNotFoundError
from waqf_kernel.models.distribution import (
    SETTLED_STATES,
    AllocationLine,
    DistributionDeduction,
    DistributionRequest,
    DistributionState,
    PaymentVoucher,
)
from waqf_kernel.models.journal import JournalEntry
from waqf_kernel.models.transfer_batch import TransferBatch
from waqf_kernel.selectors.base import BaseSelector
from waqf_kernel.selectors.ledger_selector import LedgerSelector

CORPUS_LABEL = "corpus"


@dataclass(frozen=True)
class DistributionArtifacts:
    """Everything an execution produced for one request."""

    request: DistributionRequest
    deductions: list[DistributionDeduction]
    allocation_lines: list[AllocationLine]
    vouchers: list[PaymentVoucher]
    journal_entries: list[JournalEntry]
    transfer_batch: TransferBatch | None

    @property
    def allocated_minor(self) -> int:
        return sum(line.amount_minor for line in self.allocation_lines)

    @property
    def deducted_minor(self) -> int:
        return sum(d.amount_minor for d in self.deductions)


class DistributionSelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, distribution_id: UUID) -> DistributionRequest:
        request = self.session.get(DistributionRequest, distribution_id)
        if request is None:
            raise DistributionNotFoundError(str(distribution_id))
        return request

    def get_for_update(self, distribution_id: UUID) -> DistributionRequest:
        """Re-read the request with a row lock and fresh column values."""
        request = self.session.execute(
            select(DistributionRequest)
            .where(DistributionRequest.id == distribution_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise DistributionNotFoundError(str(distribution_id))
        return request

    def settled_for_period(
        self, fiscal_period_id: UUID, exclude_id: UUID | None = None
    ) -> DistributionRequest | None:
        """The request that holds the period (executing, executed or published)."""
        query = select(DistributionRequest).where(
            DistributionRequest.fiscal_period_id == fiscal_period_id,
            DistributionRequest.state.in_([s.value for s in SETTLED_STATES]),
        )
        if exclude_id is not None:
            query = query.where(DistributionRequest.id != exclude_id)
        return self.session.execute(query.limit(1)).scalar_one_or_none()

    def list_for_period(self, fiscal_period_id: UUID) -> list[DistributionRequest]:
        return list(
            self.session.execute(
                select(DistributionRequest)
                .where(DistributionRequest.fiscal_period_id == fiscal_period_id)
                .order_by(DistributionRequest.created_at)
            ).scalars()
        )

    def corpus_deductions_minor(self, fiscal_period_id: UUID) -> int:
        """Corpus retention of executed and published distributions of a period."""
        total = self.session.execute(
            select(func.coalesce(func.sum(DistributionDeduction.amount_minor), 0))
            .join(
                DistributionRequest,
                DistributionDeduction.distribution_id == DistributionRequest.id,
            )
            .where(
                DistributionRequest.fiscal_period_id == fiscal_period_id,
                DistributionRequest.state.in_([
                    DistributionState.EXECUTED.value,
                    DistributionState.PUBLISHED.value,
                ]),
                DistributionDeduction.label == CORPUS_LABEL,
            )
        ).scalar_one()
        return int(total)

    def artifacts(self, distribution_id: UUID) -> DistributionArtifacts:
        request = self.get(distribution_id)
        deductions = list(
            self.session.execute(
                select(DistributionDeduction)
                .where(DistributionDeduction.distribution_id == distribution_id)
                .order_by(DistributionDeduction.line_seq)
            ).scalars()
        )
        lines = list(
            self.session.execute(
                select(AllocationLine)
                .where(AllocationLine.distribution_id == distribution_id)
                .order_by(AllocationLine.line_seq)
            ).scalars()
        )
        vouchers = list(
            self.session.execute(
                select(PaymentVoucher)
                .where(PaymentVoucher.distribution_id == distribution_id)
                .order_by(PaymentVoucher.voucher_number)
            ).scalars()
        )
        batch = self.session.execute(
            select(TransferBatch).where(TransferBatch.distribution_id == distribution_id)
        ).scalar_one_or_none()
        entries = LedgerSelector(self.session).entries_for_parent(str(distribution_id))
        return DistributionArtifacts(
            request=request,
            deductions=deductions,
            allocation_lines=lines,
            vouchers=vouchers,
            journal_entries=entries,
            transfer_batch=batch,
        )
