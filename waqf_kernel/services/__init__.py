"""Kernel services: flush-only building blocks used by the orchestrators."""

from waqf_kernel.services.auditor_service import AuditorService
from waqf_kernel.services.journal_writer import JournalWriter
from waqf_kernel.services.period_lock import PeriodLockManager
from waqf_kernel.services.period_service import PeriodService
from waqf_kernel.services.reference_data_loader import ReferenceDataLoader
from waqf_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditorService",
    "JournalWriter",
    "PeriodLockManager",
    "PeriodService",
    "ReferenceDataLoader",
    "SequenceService",
]
