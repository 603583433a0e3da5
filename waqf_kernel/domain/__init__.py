"""
Pure domain layer.

This module contains pure value objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from waqf_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from waqf_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from waqf_kernel.domain.dtos import (
    FiscalPeriodInfo,
    JournalEntryDraft,
    JournalLineSpec,
    LineSide,
)
from waqf_kernel.domain.policy import DeductionRates, DistributionPolicy, PolicyKind
from waqf_kernel.domain.roster import (
    BeneficiaryShare,
    RecipientKind,
    RelationshipClass,
    compute_need_score,
)
from waqf_kernel.domain.values import Currency, Money, round_ratio, to_fraction

__all__ = [
    # Value objects
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Money",
    "round_ratio",
    "to_fraction",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Policy and roster
    "BeneficiaryShare",
    "DeductionRates",
    "DistributionPolicy",
    "PolicyKind",
    "RecipientKind",
    "RelationshipClass",
    "compute_need_score",
    # DTOs
    "FiscalPeriodInfo",
    "JournalEntryDraft",
    "JournalLineSpec",
    "LineSide",
]
