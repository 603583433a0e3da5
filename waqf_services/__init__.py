"""
waqf_services -- Stateful orchestration over the engines and the kernel.

Responsibility:
    Runs the distribution lifecycle, year-end closing and template-driven
    ledger postings.  Owns sessions, commits, locks and the clock.

Architecture position:
    Outermost layer.  May import waqf_kernel, waqf_engines and
    waqf_config.  Nothing imports waqf_services.
"""

from waqf_services.closing_reconciler import ClosingSummary, FiscalYearClosingReconciler
from waqf_services.distribution_coordinator import (
    DistributionExecutionCoordinator,
    ExecutionResult,
    SimulationResult,
)
from waqf_services.event_posting import LedgerEventPoster
from waqf_services.notifications import (
    DISTRIBUTION_EXECUTED,
    DISTRIBUTION_PUBLISHED,
    DomainEvent,
    EventPublisher,
    InMemoryEventPublisher,
    NullEventPublisher,
)
from waqf_services.roster import RosterProvider, StaticRosterProvider
from waqf_services.templates import ConfigTemplateProvider, TemplateProvider

__all__ = [
    "ClosingSummary",
    "ConfigTemplateProvider",
    "DISTRIBUTION_EXECUTED",
    "DISTRIBUTION_PUBLISHED",
    "DistributionExecutionCoordinator",
    "DomainEvent",
    "EventPublisher",
    "ExecutionResult",
    "FiscalYearClosingReconciler",
    "InMemoryEventPublisher",
    "LedgerEventPoster",
    "NullEventPublisher",
    "RosterProvider",
    "SimulationResult",
    "StaticRosterProvider",
    "TemplateProvider",
]
