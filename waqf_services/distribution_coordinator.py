"""
waqf_services.distribution_coordinator -- Distribution lifecycle orchestration.

Responsibility:
    Drive a DistributionRequest through simulate -> approve -> execute ->
    publish.  Composes DeductionPipeline, ShareAllocationCalculator,
    JournalEntryBuilder and BankTransferBatchGenerator with the kernel
    services that persist their output.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  The only
    layer that opens sessions, commits and reads the clock.  Each public
    operation runs in its own session from the injected session factory.

Invariants enforced:
    - State changes follow VALID_TRANSITIONS on DistributionRequest.
    - Execution recomputes the simulation and refuses to proceed when its
      fingerprint differs from the approved one (StaleApprovalError).
    - Execution is serialized per fiscal period by PeriodLockManager; the
      lock is held until the terminal state (executed or failed) is
      committed.
    - At most one request per period is EXECUTING / EXECUTED / PUBLISHED:
      checked under the lock and backed by uq_distribution_period_claim.
    - Every artifact of one execution (journal entries, deductions,
      allocation lines, vouchers, transfer batch) is written in a single
      transaction and committed together with the EXECUTED state, or not
      at all.
    - A failed execution leaves the request FAILED with failure_code and
      failure_detail, never EXECUTING, whichever collaborator raised.  The
      roster is read once per attempt and reused for the failure record.
    - State changes are written from a row-locked re-read of the request and
      guarded by its state column, so a concurrent transition is never
      overwritten.
    - Re-executing an EXECUTED / PUBLISHED request is a no-op returning the
      existing artifacts.

Failure modes:
    - DistributionNotFoundError, InvalidStateTransitionError.
    - ExecutionInProgressError: the period lock was not acquired in time.
      The request is unchanged.
    - PeriodAlreadyDistributedError: another request holds the period.
    - StaleApprovalError, PolicyError, InvalidRosterError,
      AllocationConservationError, TemplateNotFoundError,
      UnbalancedEntryError, InvalidAccountError, ClosedPeriodError: raised
      during execution; the request is moved to FAILED first.

Audit relevance:
    Every transition writes a hash-chained AuditEvent.  failure_detail
    keeps the error attributes and the full input snapshot (gross, policy,
    roster), enough to reproduce the computation offline.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.orm import Session

from waqf_config.schema import (
    DEDUCTION_EVENT_PREFIX,
    FALLBACK_PAYMENT_EVENT,
    HEIR_PAYMENT_EVENT,
    WaqfConfig,
)
from waqf_engines.deductions import DeductionPipeline, DeductionResult
from waqf_engines.journal_builder import JournalEntryBuilder
from waqf_engines.shares import AllocationOutcome, ShareAllocationCalculator
from waqf_engines.transfer_batch import BankTransferBatchGenerator, TransferExclusion
from waqf_kernel.domain.clock import Clock, SystemClock
from waqf_kernel.domain.policy import DeductionRates, DistributionPolicy, PolicyKind
from waqf_kernel.domain.roster import BeneficiaryShare, RecipientKind
from waqf_kernel.domain.values import Currency, Money
from waqf_kernel.exceptions import (
    AllocationConservationError,
    InvalidStateTransitionError,
    PeriodAlreadyDistributedError,
    StaleApprovalError,
    WaqfKernelError,
)
from waqf_kernel.logging_config import LogContext, get_logger
from waqf_kernel.models.distribution import (
    AllocationLine,
    DistributionDeduction,
    DistributionRequest,
    DistributionState,
    PaymentVoucher,
    VoucherStatus,
)
from waqf_kernel.models.fiscal_period import FiscalPeriod
from waqf_kernel.models.transfer_batch import TransferBatch, TransferBatchLine
from waqf_kernel.selectors.distribution_selector import (
    DistributionArtifacts,
    DistributionSelector,
)
from waqf_kernel.services.auditor_service import AuditorService
from waqf_kernel.services.journal_writer import JournalWriter
from waqf_kernel.services.period_lock import PeriodLockManager
from waqf_kernel.services.period_service import PeriodService
from waqf_kernel.services.sequence_service import SequenceService
from waqf_kernel.utils.hashing import hash_payload
from waqf_services.notifications import (
    DISTRIBUTION_EXECUTED,
    DISTRIBUTION_PUBLISHED,
    DomainEvent,
    EventPublisher,
    NullEventPublisher,
)
from waqf_services.roster import RosterProvider
from waqf_services.templates import ConfigTemplateProvider, TemplateProvider

logger = get_logger("services.distribution")

_FINAL_STATES = (DistributionState.EXECUTED, DistributionState.PUBLISHED)


@dataclass(frozen=True)
class SimulationResult:
    """
    One deterministic computation of a request.

    Guarantees:
        - ``fingerprint`` is the SHA-256 of ``snapshot`` (canonical JSON).
        - sum(deductions) + sum(allocation lines) == gross.
    """

    distribution_id: UUID
    gross: Money
    deductions: DeductionResult
    allocation: AllocationOutcome
    snapshot: dict[str, Any]
    fingerprint: str

    @property
    def heirs_pool(self) -> Money:
        return self.deductions.heirs_pool


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of ``execute``; ``already_executed`` marks the no-op path."""

    distribution_id: UUID
    state: DistributionState
    already_executed: bool
    journal_entry_numbers: tuple[str, ...]
    voucher_numbers: tuple[str, ...]
    transfer_batch_number: str | None
    transfer_total_minor: int
    transfer_count: int
    exclusions: tuple[dict[str, Any], ...]


def _clamp(d: date, start: date, end: date) -> date:
    return max(start, min(d, end))


class DistributionExecutionCoordinator:
    """
    Orchestrates the distribution state machine.

    Contract:
        Receives the session factory, configuration, roster provider and
        optional collaborators (template provider, event publisher, clock,
        lock manager) via constructor injection.
    Guarantees:
        - Each public method commits its own work or leaves the database
          unchanged (apart from the FAILED record of a failed execution).
        - Domain events are published only after the commit they describe.
    Non-goals:
        - Does not authorize approvals; ``approve`` records the decision of
          the external approval gate.
        - Does not retry failed executions.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: WaqfConfig,
        roster_provider: RosterProvider,
        template_provider: TemplateProvider | None = None,
        event_publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        lock_manager: PeriodLockManager | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._roster = roster_provider
        self._templates = template_provider or ConfigTemplateProvider(config)
        self._events = event_publisher or NullEventPublisher()
        self._clock = clock or SystemClock()
        self._locks = lock_manager or PeriodLockManager(
            config.distribution.lock_timeout_seconds
        )
        self._deductions = DeductionPipeline()
        self._shares = ShareAllocationCalculator()
        self._builder = JournalEntryBuilder(self._templates)
        self._batches = BankTransferBatchGenerator(
            prefix=config.bank_identifier.prefix,
            length=config.bank_identifier.length,
        )

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @staticmethod
    def _commit_transition(
        session: Session, distribution_id: UUID, target: DistributionState
    ) -> None:
        """Commit a state change written from the request as last read.

        Another session that moved the request first makes the guarded
        UPDATE match nothing; that surfaces as an invalid transition from
        the state actually committed.
        """
        try:
            session.commit()
        except StaleDataError as exc:
            session.rollback()
            current = DistributionSelector(session).get_for_update(distribution_id)
            raise InvalidStateTransitionError(
                "DistributionRequest", current.state_str, target.value
            ) from exc

    # -- Policy ------------------------------------------------------------

    def default_policy(self, kind: PolicyKind = PolicyKind.SHARIAH) -> DistributionPolicy:
        """Policy built from the configured default rates and spouse fraction."""
        settings = self._config.distribution
        return DistributionPolicy(
            kind=kind,
            rates=DeductionRates.from_dict(settings.default_rates),
            spouse_fraction=settings.spouse_fraction,
        )

    # -- Create ------------------------------------------------------------

    def create_request(
        self,
        fiscal_period_id: UUID,
        gross: Money,
        actor_id: UUID,
        policy: DistributionPolicy | None = None,
        description: str | None = None,
    ) -> UUID:
        """Create a DRAFT request for ``gross`` in an open period."""
        if gross.is_negative:
            raise ValueError(f"Gross amount must not be negative: {gross!r}")
        policy = policy or self.default_policy()
        policy.validate()

        with self._session() as session:
            periods = PeriodService(session, self._clock)
            period = periods.get_period(fiscal_period_id)
            periods.require_open(period, "create distribution")
            if gross.currency.code != period.currency:
                raise ValueError(
                    f"Gross currency {gross.currency} differs from period "
                    f"currency {period.currency}"
                )

            request = DistributionRequest(
                fiscal_period_id=period.id,
                currency=gross.currency.code,
                gross_minor=gross.minor_units,
                policy=policy.to_dict(),
                state=DistributionState.DRAFT,
                description=description,
                created_by_id=actor_id,
            )
            session.add(request)
            session.flush()
            AuditorService(session, self._clock).record_distribution_created(
                request.id,
                actor_id,
                {
                    "fiscal_period_id": str(period.id),
                    "gross_minor": gross.minor_units,
                    "currency": gross.currency.code,
                    "policy_kind": policy.kind.value,
                },
            )
            session.commit()
            request_id = request.id

        logger.info(
            "distribution_created",
            extra={
                "distribution_id": str(request_id),
                "fiscal_period_id": str(fiscal_period_id),
                "gross_minor": gross.minor_units,
                "policy_kind": policy.kind.value,
            },
        )
        return request_id

    # -- Simulate ----------------------------------------------------------

    def _compute(
        self, request: DistributionRequest, roster: Sequence[BeneficiaryShare]
    ) -> SimulationResult:
        policy = DistributionPolicy.from_dict(request.policy)
        gross = Money.from_minor(request.gross_minor, Currency(request.currency))

        deductions = self._deductions.apply(gross=gross, policy=policy)
        allocation = self._shares.allocate(
            pool=deductions.heirs_pool,
            roster=roster,
            policy=policy,
            fallback_recipient_id=self._config.distribution.fallback_recipient_id,
        )

        settled = deductions.total_deducted + allocation.total_allocated
        if settled != gross:
            raise AllocationConservationError(
                gross.minor_units, settled.minor_units, gross.currency.code
            )

        computed = {
            "gross_minor": gross.minor_units,
            "currency": gross.currency.code,
            "policy": request.policy,
            "deductions": deductions.to_dict(),
            "allocation": allocation.to_dict(),
        }
        # Roster metadata (names, bank details) is kept for reproduction but
        # does not make an approval stale unless it changes the numbers.
        snapshot = dict(computed, roster=[b.to_dict() for b in roster])
        return SimulationResult(
            distribution_id=request.id,
            gross=gross,
            deductions=deductions,
            allocation=allocation,
            snapshot=snapshot,
            fingerprint=hash_payload(computed),
        )

    def simulate(self, distribution_id: UUID, actor_id: UUID) -> SimulationResult:
        """
        Compute and store a non-binding preview.

        Repeatable.  Re-simulating an APPROVED or FAILED request withdraws
        the approval.
        """
        with self._session() as session, LogContext.bind(distribution_id=distribution_id):
            selector = DistributionSelector(session)
            request = selector.get(distribution_id)
            request.validate_transition(DistributionState.SIMULATED)

            roster = self._roster.get_eligible_beneficiaries(request.fiscal_period_id)
            result = self._compute(request, roster)

            # The request may have moved while the roster was read.
            request = selector.get_for_update(distribution_id)
            request.validate_transition(DistributionState.SIMULATED)

            previous = request.state_str
            request.simulation_snapshot = result.snapshot
            request.simulation_fingerprint = result.fingerprint
            request.simulated_at = self._clock.now()
            request.approved_fingerprint = None
            request.approved_by_id = None
            request.approved_at = None
            request.state = DistributionState.SIMULATED
            request.updated_by_id = actor_id
            AuditorService(session, self._clock).record_state_change(
                request.id, previous, DistributionState.SIMULATED.value, actor_id,
                {"fingerprint": result.fingerprint},
            )
            self._commit_transition(session, distribution_id, DistributionState.SIMULATED)

            logger.info(
                "distribution_simulated",
                extra={
                    "from_state": previous,
                    "fingerprint": result.fingerprint,
                    "heirs_pool_minor": result.heirs_pool.minor_units,
                    "line_count": len(result.allocation.lines),
                    "no_heirs_fallback": result.allocation.no_heirs_fallback,
                },
            )
        return result

    # -- Approve / cancel --------------------------------------------------

    def approve(self, distribution_id: UUID, approver_id: UUID) -> str:
        """Record the external approval of the current simulation.

        Returns:
            The approved fingerprint.
        """
        with self._session() as session, LogContext.bind(
            distribution_id=distribution_id, actor_id=approver_id
        ):
            request = DistributionSelector(session).get_for_update(distribution_id)
            # SIMULATED is the only state with an APPROVED edge
            request.validate_transition(DistributionState.APPROVED)

            request.approved_fingerprint = request.simulation_fingerprint
            request.approved_by_id = approver_id
            request.approved_at = self._clock.now()
            request.state = DistributionState.APPROVED
            request.updated_by_id = approver_id
            AuditorService(session, self._clock).record_state_change(
                request.id,
                DistributionState.SIMULATED.value,
                DistributionState.APPROVED.value,
                approver_id,
                {"fingerprint": request.approved_fingerprint},
            )
            self._commit_transition(session, distribution_id, DistributionState.APPROVED)
            fingerprint = request.approved_fingerprint

        logger.info("distribution_approved", extra={"fingerprint": fingerprint})
        return fingerprint

    def cancel(
        self, distribution_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> None:
        """Cancel a request that has not started executing."""
        with self._session() as session, LogContext.bind(distribution_id=distribution_id):
            request = DistributionSelector(session).get_for_update(distribution_id)
            request.validate_transition(DistributionState.CANCELLED)

            previous = request.state_str
            request.state = DistributionState.CANCELLED
            request.cancelled_at = self._clock.now()
            request.updated_by_id = actor_id
            AuditorService(session, self._clock).record_state_change(
                request.id, previous, DistributionState.CANCELLED.value, actor_id,
                {"reason": reason} if reason else None,
            )
            self._commit_transition(session, distribution_id, DistributionState.CANCELLED)

        logger.info("distribution_cancelled", extra={"from_state": previous})

    # -- Execute -----------------------------------------------------------

    def execute(self, distribution_id: UUID, actor_id: UUID) -> ExecutionResult:
        """
        Execute an APPROVED (or retry a FAILED) request exactly once.

        Raises:
            ExecutionInProgressError: the period lock is held elsewhere.
            PeriodAlreadyDistributedError: another request holds the period.
            StaleApprovalError: inputs changed since approval (request FAILED).
        """
        with self._session() as session:
            request = DistributionSelector(session).get(distribution_id)
            if request.state_enum in _FINAL_STATES:
                return self._existing_result(session, request)
            if request.state_enum != DistributionState.EXECUTING:
                # A concurrent run is settled under the lock below.
                request.validate_transition(DistributionState.EXECUTING)
            period_id = request.fiscal_period_id
            # No open transaction may be held while waiting for the lock.
            session.commit()

        with LogContext.bind(
            distribution_id=distribution_id,
            fiscal_period_id=period_id,
            actor_id=actor_id,
        ), self._locks.hold(period_id):
            with self._session() as session:
                started = self._begin_execution(session, distribution_id, period_id, actor_id)
                if isinstance(started, ExecutionResult):
                    return started

            with self._session() as session:
                roster: tuple[BeneficiaryShare, ...] | None = None
                try:
                    roster = tuple(self._roster.get_eligible_beneficiaries(period_id))
                    result = self._run_execution(
                        session, distribution_id, period_id, actor_id, roster
                    )
                except Exception as exc:
                    session.rollback()
                    self._record_failure(session, distribution_id, exc, actor_id, roster)
                    raise

        self._events.publish(
            DomainEvent(
                name=DISTRIBUTION_EXECUTED,
                distribution_id=distribution_id,
                fiscal_period_id=period_id,
                occurred_at=self._clock.now(),
                payload={
                    "journal_entry_count": len(result.journal_entry_numbers),
                    "transfer_batch_number": result.transfer_batch_number,
                },
            )
        )
        return result

    def _begin_execution(
        self,
        session: Session,
        distribution_id: UUID,
        period_id: UUID,
        actor_id: UUID,
    ) -> ExecutionResult | None:
        """Under the lock: re-check state and claim the period (EXECUTING)."""
        selector = DistributionSelector(session)
        period = self._locks.lock_row(session, period_id)
        request = selector.get_for_update(distribution_id)

        if request.state_enum in _FINAL_STATES:
            logger.info("distribution_execute_noop", extra={"state": request.state_str})
            return self._existing_result(session, request)
        request.validate_transition(DistributionState.EXECUTING)
        PeriodService(session, self._clock).require_open(period, "execute distribution")

        other = selector.settled_for_period(period_id, exclude_id=request.id)
        if other is not None:
            logger.warning(
                "distribution_period_already_claimed",
                extra={"existing_distribution_id": str(other.id)},
            )
            raise PeriodAlreadyDistributedError(str(period_id), str(other.id))

        previous = request.state_str
        request.state = DistributionState.EXECUTING
        request.period_claim_id = period_id
        request.execution_attempts = (request.execution_attempts or 0) + 1
        request.failure_code = None
        request.failure_detail = None
        request.updated_by_id = actor_id
        AuditorService(session, self._clock).record_state_change(
            request.id, previous, DistributionState.EXECUTING.value, actor_id,
            {"attempt": request.execution_attempts},
        )
        try:
            self._commit_transition(session, distribution_id, DistributionState.EXECUTING)
        except IntegrityError as exc:
            session.rollback()
            other = DistributionSelector(session).settled_for_period(
                period_id, exclude_id=distribution_id
            )
            raise PeriodAlreadyDistributedError(
                str(period_id), str(other.id) if other else "unknown"
            ) from exc

        logger.info(
            "distribution_state_changed",
            extra={"from_state": previous, "to_state": DistributionState.EXECUTING.value},
        )
        return None

    def _run_execution(
        self,
        session: Session,
        distribution_id: UUID,
        period_id: UUID,
        actor_id: UUID,
        roster: Sequence[BeneficiaryShare],
    ) -> ExecutionResult:
        period = self._locks.lock_row(session, period_id)
        request = DistributionSelector(session).get_for_update(distribution_id)

        simulation = self._compute(request, roster)
        if simulation.fingerprint != request.approved_fingerprint:
            logger.warning(
                "distribution_approval_stale",
                extra={
                    "approved_fingerprint": request.approved_fingerprint,
                    "current_fingerprint": simulation.fingerprint,
                },
            )
            raise StaleApprovalError(
                str(distribution_id),
                request.approved_fingerprint or "",
                simulation.fingerprint,
            )

        result = self._write_artifacts(session, request, period, simulation, actor_id)

        request.state = DistributionState.EXECUTED
        request.heirs_pool_minor = simulation.heirs_pool.minor_units
        request.no_heirs_fallback = simulation.allocation.no_heirs_fallback
        request.executed_at = self._clock.now()
        request.executed_by_id = actor_id
        request.updated_by_id = actor_id
        auditor = AuditorService(session, self._clock)
        auditor.record_state_change(
            request.id,
            DistributionState.EXECUTING.value,
            DistributionState.EXECUTED.value,
            actor_id,
        )
        auditor.record_distribution_executed(
            request.id,
            actor_id,
            {
                "fingerprint": simulation.fingerprint,
                "gross_minor": simulation.gross.minor_units,
                "heirs_pool_minor": simulation.heirs_pool.minor_units,
                "journal_entry_numbers": list(result.journal_entry_numbers),
                "transfer_batch_number": result.transfer_batch_number,
                "no_heirs_fallback": simulation.allocation.no_heirs_fallback,
            },
        )
        session.commit()

        logger.info(
            "distribution_executed",
            extra={
                "journal_entry_count": len(result.journal_entry_numbers),
                "voucher_count": len(result.voucher_numbers),
                "transfer_batch_number": result.transfer_batch_number,
                "transfer_total_minor": result.transfer_total_minor,
                "excluded_count": len(result.exclusions),
            },
        )
        return result

    def _write_artifacts(
        self,
        session: Session,
        request: DistributionRequest,
        period: FiscalPeriod,
        simulation: SimulationResult,
        actor_id: UUID,
    ) -> ExecutionResult:
        """Journal entries, deductions, allocation lines, vouchers and batch."""
        auditor = AuditorService(session, self._clock)
        writer = JournalWriter(session, self._clock, auditor)
        sequences = SequenceService(session)
        entry_date = _clamp(self._clock.today(), period.start_date, period.end_date)
        parent = str(request.id)
        currency = simulation.gross.currency.code

        entry_numbers: list[str] = []
        for seq, deduction in enumerate(simulation.deductions.lines):
            entry_id = None
            if deduction.amount.is_positive:
                draft = self._builder.build(
                    event_name=DEDUCTION_EVENT_PREFIX + deduction.label,
                    amount=deduction.amount,
                    entry_date=entry_date,
                    reference_type="distribution_deduction",
                    reference_id=f"{parent}:{deduction.label}",
                    parent_reference_id=parent,
                )
                entry = writer.write(draft, period, actor_id)
                entry_numbers.append(entry.entry_number)
                entry_id = entry.id
            session.add(
                DistributionDeduction(
                    distribution_id=request.id,
                    label=deduction.label,
                    percentage=deduction.percentage,
                    amount_minor=deduction.amount.minor_units,
                    currency=currency,
                    line_seq=seq,
                    journal_entry_id=entry_id,
                    created_by_id=actor_id,
                )
            )

        voucher_numbers: list[str] = []
        for seq, share in enumerate(simulation.allocation.lines):
            entry_id = None
            is_heir = share.recipient_kind == RecipientKind.HEIR
            if share.amount.is_positive:
                draft = self._builder.build(
                    event_name=HEIR_PAYMENT_EVENT if is_heir else FALLBACK_PAYMENT_EVENT,
                    amount=share.amount,
                    entry_date=entry_date,
                    reference_type="allocation_line",
                    reference_id=f"{parent}:{share.beneficiary_id}",
                    parent_reference_id=parent,
                )
                entry = writer.write(draft, period, actor_id)
                entry_numbers.append(entry.entry_number)
                entry_id = entry.id

            fraction = share.share_fraction
            line = AllocationLine(
                distribution_id=request.id,
                beneficiary_id=share.beneficiary_id,
                relationship_class=share.relationship.value if share.relationship else None,
                recipient_kind=share.recipient_kind.value,
                amount_minor=share.amount.minor_units,
                currency=currency,
                share_fraction=f"{fraction.numerator}/{fraction.denominator}",
                line_seq=seq,
                journal_entry_id=entry_id,
                created_by_id=actor_id,
            )
            session.add(line)
            session.flush()

            if is_heir and share.amount.is_positive:
                number = sequences.next_document_number(
                    SequenceService.VOUCHER_PREFIX, entry_date.year
                )
                session.add(
                    PaymentVoucher(
                        voucher_number=number,
                        distribution_id=request.id,
                        allocation_line_id=line.id,
                        beneficiary_id=share.beneficiary_id,
                        amount_minor=share.amount.minor_units,
                        currency=currency,
                        status=VoucherStatus.ISSUED.value,
                        created_by_id=actor_id,
                    )
                )
                voucher_numbers.append(number)

        batch_number = sequences.next_document_number(
            SequenceService.TRANSFER_BATCH_PREFIX, entry_date.year
        )
        batch = self._batches.generate(
            payments=simulation.allocation.lines,
            currency=simulation.gross.currency,
            reference_prefix=batch_number,
        )
        exclusions = tuple(e.to_dict() for e in batch.exclusions)
        batch_row = TransferBatch(
            batch_number=batch_number,
            distribution_id=request.id,
            currency=currency,
            total_amount_minor=batch.total_amount.minor_units,
            total_count=batch.total_count,
            exclusions=list(exclusions),
            created_by_id=actor_id,
        )
        session.add(batch_row)
        session.flush()
        for seq, transfer in enumerate(batch.lines):
            session.add(
                TransferBatchLine(
                    batch_id=batch_row.id,
                    beneficiary_id=transfer.beneficiary_id,
                    iban=transfer.iban,
                    amount_minor=transfer.amount.minor_units,
                    reference=transfer.reference,
                    line_seq=seq,
                    created_by_id=actor_id,
                )
            )
        session.flush()
        self._log_exclusions(batch.warnings)

        return ExecutionResult(
            distribution_id=request.id,
            state=DistributionState.EXECUTED,
            already_executed=False,
            journal_entry_numbers=tuple(entry_numbers),
            voucher_numbers=tuple(voucher_numbers),
            transfer_batch_number=batch_number,
            transfer_total_minor=batch.total_amount.minor_units,
            transfer_count=batch.total_count,
            exclusions=exclusions,
        )

    @staticmethod
    def _log_exclusions(warnings: Sequence[TransferExclusion]) -> None:
        for warning in warnings:
            logger.warning(
                "distribution_payment_excluded",
                extra={
                    "beneficiary_id": warning.beneficiary_id,
                    "reason": warning.reason,
                    "amount_minor": warning.amount.minor_units,
                },
            )

    def _record_failure(
        self,
        session: Session,
        distribution_id: UUID,
        exc: Exception,
        actor_id: UUID,
        roster: Sequence[BeneficiaryShare] | None,
    ) -> None:
        """Move the request from EXECUTING to FAILED with the cause.

        Uses the roster captured by this attempt (None when reading it was
        what failed) and never calls a collaborator again.  When the full
        detail cannot be built or stored, FAILED is committed with the
        error type and message only.
        """
        code = exc.code if isinstance(exc, WaqfKernelError) else type(exc).__name__
        minimal = {"error_type": type(exc).__name__, "message": str(exc)}
        try:
            request = DistributionSelector(session).get_for_update(distribution_id)
            detail = dict(minimal, **self._failure_snapshot(request, exc, roster))
            self._write_failure(session, distribution_id, code, detail, exc, actor_id)
        except Exception:
            session.rollback()
            logger.exception(
                "distribution_failure_detail_dropped", extra={"failure_code": code}
            )
            detail = minimal
            self._write_failure(session, distribution_id, code, detail, exc, actor_id)

        logger.error(
            "distribution_execution_failed",
            extra={"failure_code": code, "failure_detail": detail},
        )

    @staticmethod
    def _failure_snapshot(
        request: DistributionRequest,
        exc: Exception,
        roster: Sequence[BeneficiaryShare] | None,
    ) -> dict[str, Any]:
        return {
            "attributes": exc.details() if isinstance(exc, WaqfKernelError) else {},
            "input_snapshot": {
                "gross_minor": request.gross_minor,
                "currency": request.currency,
                "policy": request.policy,
                "roster": None if roster is None else [b.to_dict() for b in roster],
                "approved_fingerprint": request.approved_fingerprint,
            },
        }

    def _write_failure(
        self,
        session: Session,
        distribution_id: UUID,
        code: str,
        detail: dict[str, Any],
        exc: Exception,
        actor_id: UUID,
    ) -> None:
        request = DistributionSelector(session).get_for_update(distribution_id)
        request.state = DistributionState.FAILED
        request.period_claim_id = None
        request.failure_code = code
        request.failure_detail = detail
        request.updated_by_id = actor_id
        auditor = AuditorService(session, self._clock)
        auditor.record_state_change(
            request.id,
            DistributionState.EXECUTING.value,
            DistributionState.FAILED.value,
            actor_id,
            {"failure_code": code},
        )
        auditor.record_distribution_failed(request.id, actor_id, code, str(exc))
        session.commit()

    def _existing_result(
        self, session: Session, request: DistributionRequest
    ) -> ExecutionResult:
        artifacts = DistributionSelector(session).artifacts(request.id)
        batch = artifacts.transfer_batch
        return ExecutionResult(
            distribution_id=request.id,
            state=request.state_enum,
            already_executed=True,
            journal_entry_numbers=tuple(e.entry_number for e in artifacts.journal_entries),
            voucher_numbers=tuple(v.voucher_number for v in artifacts.vouchers),
            transfer_batch_number=batch.batch_number if batch else None,
            transfer_total_minor=batch.total_amount_minor if batch else 0,
            transfer_count=batch.total_count if batch else 0,
            exclusions=tuple(batch.exclusions) if batch else (),
        )

    # -- Publish / read ----------------------------------------------------

    def publish(self, distribution_id: UUID, actor_id: UUID) -> bool:
        """
        Make an executed distribution visible downstream.

        Idempotent and money-neutral.

        Returns:
            True when this call published it, False when it already was.
        """
        with self._session() as session, LogContext.bind(distribution_id=distribution_id):
            request = DistributionSelector(session).get_for_update(distribution_id)
            if request.state_enum == DistributionState.PUBLISHED:
                return False
            request.validate_transition(DistributionState.PUBLISHED)

            request.state = DistributionState.PUBLISHED
            request.is_published = True
            request.published_at = self._clock.now()
            request.updated_by_id = actor_id
            AuditorService(session, self._clock).record_state_change(
                request.id,
                DistributionState.EXECUTED.value,
                DistributionState.PUBLISHED.value,
                actor_id,
            )
            self._commit_transition(session, distribution_id, DistributionState.PUBLISHED)
            period_id = request.fiscal_period_id

        logger.info("distribution_published")
        self._events.publish(
            DomainEvent(
                name=DISTRIBUTION_PUBLISHED,
                distribution_id=distribution_id,
                fiscal_period_id=period_id,
                occurred_at=self._clock.now(),
            )
        )
        return True

    def get_request(self, distribution_id: UUID) -> DistributionRequest:
        with self._session() as session:
            return DistributionSelector(session).get(distribution_id)

    def get_artifacts(self, distribution_id: UUID) -> DistributionArtifacts:
        """Everything the execution produced, loaded for use after the session."""
        with self._session() as session:
            artifacts = DistributionSelector(session).artifacts(distribution_id)
            for entry in artifacts.journal_entries:
                _ = entry.lines
            if artifacts.transfer_batch is not None:
                _ = artifacts.transfer_batch.lines
            return artifacts
