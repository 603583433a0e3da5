"""ORM models for the waqf kernel."""

from waqf_kernel.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    Account,
    AccountType,
    NormalBalance,
)
from waqf_kernel.models.audit_event import AuditAction, AuditEvent
from waqf_kernel.models.distribution import (
    SETTLED_STATES,
    VALID_TRANSITIONS,
    AllocationLine,
    DistributionDeduction,
    DistributionRequest,
    DistributionState,
    PaymentVoucher,
    RecipientKind,
    VoucherStatus,
)
from waqf_kernel.models.fiscal_period import (
    FiscalPeriod,
    FiscalPeriodClosing,
    PeriodStatus,
)
from waqf_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from waqf_kernel.models.sequence import SequenceCounter
from waqf_kernel.models.transfer_batch import TransferBatch, TransferBatchLine

__all__ = [
    "Account",
    "AccountType",
    "AllocationLine",
    "AuditAction",
    "AuditEvent",
    "DistributionDeduction",
    "DistributionRequest",
    "DistributionState",
    "FiscalPeriod",
    "FiscalPeriodClosing",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "NORMAL_BALANCE_BY_TYPE",
    "NormalBalance",
    "PaymentVoucher",
    "PeriodStatus",
    "RecipientKind",
    "SETTLED_STATES",
    "SequenceCounter",
    "TransferBatch",
    "TransferBatchLine",
    "VALID_TRANSITIONS",
    "VoucherStatus",
]
