"""
Module: waqf_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    waqf_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import waqf_kernel/domain, waqf_kernel.exceptions and
    waqf_config.schema.  MUST NOT import waqf_services.

Invariants enforced:
    - Purity: engines never read the clock or the database; dates are
      passed in by the services.
    - Exact arithmetic: all amounts are Money in integer minor units.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``waqf_engines.tracer``), emitting WAQF_ENGINE_TRACE log records
    with engine name, version, input fingerprint and duration.
"""

from waqf_engines.deductions import (
    DEDUCTION_ORDER,
    DeductionLine,
    DeductionPipeline,
    DeductionResult,
)
from waqf_engines.journal_builder import JournalEntryBuilder, TemplateSource
from waqf_engines.shares import (
    AllocatedShare,
    AllocationOutcome,
    ShareAllocationCalculator,
)
from waqf_engines.tracer import compute_input_fingerprint, traced_engine
from waqf_engines.transfer_batch import (
    EXCLUDED_NO_BANK_DETAILS,
    EXCLUDED_ZERO_AMOUNT,
    BankTransferBatchGenerator,
    TransferBatchResult,
    TransferExclusion,
    TransferLine,
)

__all__ = [
    # Deductions
    "DEDUCTION_ORDER",
    "DeductionLine",
    "DeductionPipeline",
    "DeductionResult",
    # Shares
    "AllocatedShare",
    "AllocationOutcome",
    "ShareAllocationCalculator",
    # Journal
    "JournalEntryBuilder",
    "TemplateSource",
    # Transfer batch
    "EXCLUDED_NO_BANK_DETAILS",
    "EXCLUDED_ZERO_AMOUNT",
    "BankTransferBatchGenerator",
    "TransferBatchResult",
    "TransferExclusion",
    "TransferLine",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
