"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Money that has moved must leave a permanent trail.  Once a distribution is
executed its journal entries, allocation lines, deductions, vouchers and
transfer batch are facts: they are corrected by new entries, never edited
or deleted.  Closed fiscal periods are frozen the same way.

SQLAlchemy fires events before UPDATE/DELETE statements reach the
database.  The listeners below inspect those events and raise
ImmutabilityViolationError (or ClosedPeriodError) before any SQL is sent:

    session.flush()
         |
         v
    [before_flush]   --> new artifacts in a closed period? --> ClosedPeriodError
         |
         v
    [before_update]  --> protected field changed?          --> ImmutabilityViolationError
         |
         v
    [before_delete]  --> always                            --> ImmutabilityViolationError

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | Rule
-----------------------|-----------------------------------------------------
JournalEntry           | No field changes, no deletes
JournalLine            | No field changes, no deletes
AuditEvent             | No field changes, no deletes
AllocationLine         | Amount/recipient/fraction frozen, no deletes
DistributionDeduction  | Amount/label/percentage frozen, no deletes
PaymentVoucher         | Number/recipient/amount frozen, no deletes
TransferBatch(+Line)   | Totals/lines frozen, no deletes
DistributionRequest    | No deletes (cancellation is a state change)
FiscalPeriod           | Frozen once closed, no deletes

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from waqf_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # create_tables() calls this

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from waqf_kernel.exceptions import ClosedPeriodError, ImmutabilityViolationError
from waqf_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> set[str]:
    """Column attributes with pending changes on ``target``."""
    state = inspect(target)
    changed: set[str] = set()
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.add(attr.key)
    return changed - _AUDIT_METADATA


def _reject(target, reason: str) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation",
        extra={
            "entity_type": entity_type,
            "entity_id": str(getattr(target, "id", "")),
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(getattr(target, "id", "")), reason)


def _frozen_fields_check(protected: frozenset[str] | None):
    """Build a before_update listener rejecting changes to ``protected``
    (every column when ``protected`` is None)."""

    def _check(mapper, connection, target):
        changed = _changed_fields(target)
        if protected is not None:
            changed &= protected
        if changed:
            _reject(target, f"fields are immutable: {', '.join(sorted(changed))}")

    return _check


def _reject_delete(mapper, connection, target):
    _reject(target, "records are append-only and cannot be deleted")


def _check_fiscal_period_update(mapper, connection, target):
    """Closed periods are frozen; the closing flush itself is allowed."""
    status_history = inspect(target).attrs["status"].history
    if status_history.deleted:
        previous = status_history.deleted[0]
        was_closed = getattr(previous, "value", previous) == "closed"
    else:
        was_closed = target.is_closed
    if was_closed and _changed_fields(target):
        _reject(target, "period is closed")


def _check_new_artifacts_in_closed_period(session: Session, flush_context, instances):
    from waqf_kernel.models.distribution import DistributionRequest
    from waqf_kernel.models.fiscal_period import FiscalPeriod
    from waqf_kernel.models.journal import JournalEntry

    for obj in list(session.new):
        if not isinstance(obj, (JournalEntry, DistributionRequest)):
            continue
        with session.no_autoflush:
            period = session.get(FiscalPeriod, obj.fiscal_period_id)
        if period is not None and period.is_closed:
            operation = (
                "post journal entry"
                if isinstance(obj, JournalEntry)
                else "create distribution"
            )
            raise ClosedPeriodError(period.period_code, operation)


def _listeners():
    from waqf_kernel.models.audit_event import AuditEvent
    from waqf_kernel.models.distribution import (
        AllocationLine,
        DistributionDeduction,
        DistributionRequest,
        PaymentVoucher,
    )
    from waqf_kernel.models.fiscal_period import FiscalPeriod, FiscalPeriodClosing
    from waqf_kernel.models.journal import JournalEntry, JournalLine
    from waqf_kernel.models.transfer_batch import TransferBatch, TransferBatchLine

    frozen_all = _frozen_fields_check(None)
    return [
        (JournalEntry, "before_update", frozen_all),
        (JournalLine, "before_update", frozen_all),
        (AuditEvent, "before_update", frozen_all),
        (FiscalPeriodClosing, "before_update", frozen_all),
        (TransferBatchLine, "before_update", frozen_all),
        (
            AllocationLine,
            "before_update",
            _frozen_fields_check(frozenset({
                "distribution_id", "beneficiary_id", "recipient_kind",
                "amount_minor", "currency", "share_fraction",
            })),
        ),
        (
            DistributionDeduction,
            "before_update",
            _frozen_fields_check(frozenset({
                "distribution_id", "label", "percentage", "amount_minor", "currency",
            })),
        ),
        (
            PaymentVoucher,
            "before_update",
            _frozen_fields_check(frozenset({
                "voucher_number", "distribution_id", "beneficiary_id",
                "amount_minor", "currency",
            })),
        ),
        (
            TransferBatch,
            "before_update",
            _frozen_fields_check(frozenset({
                "batch_number", "distribution_id", "total_amount_minor",
                "total_count", "currency",
            })),
        ),
        (FiscalPeriod, "before_update", _check_fiscal_period_update),
        (JournalEntry, "before_delete", _reject_delete),
        (JournalLine, "before_delete", _reject_delete),
        (AuditEvent, "before_delete", _reject_delete),
        (AllocationLine, "before_delete", _reject_delete),
        (DistributionDeduction, "before_delete", _reject_delete),
        (PaymentVoucher, "before_delete", _reject_delete),
        (TransferBatch, "before_delete", _reject_delete),
        (TransferBatchLine, "before_delete", _reject_delete),
        (DistributionRequest, "before_delete", _reject_delete),
        (FiscalPeriod, "before_delete", _reject_delete),
        (FiscalPeriodClosing, "before_delete", _reject_delete),
    ]


_registered: list = []


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    if _registered:
        return
    for target, identifier, fn in _listeners():
        event.listen(target, identifier, fn)
        _registered.append((target, identifier, fn))
    event.listen(Session, "before_flush", _check_new_artifacts_in_closed_period)
    _registered.append((Session, "before_flush", _check_new_artifacts_in_closed_period))
    logger.debug("immutability_listeners_registered", extra={"count": len(_registered)})


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    while _registered:
        target, identifier, fn = _registered.pop()
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
