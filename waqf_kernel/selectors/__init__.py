"""Read-only query layer."""

from waqf_kernel.selectors.distribution_selector import (
    DistributionArtifacts,
    DistributionSelector,
)
from waqf_kernel.selectors.ledger_selector import LedgerSelector, TrialBalanceRow

__all__ = [
    "DistributionArtifacts",
    "DistributionSelector",
    "LedgerSelector",
    "TrialBalanceRow",
]
