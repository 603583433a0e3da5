"""
Tests for DistributionExecutionCoordinator.

Covers the request lifecycle end to end against a real database:
- create -> simulate -> approve -> execute -> publish
- Artifacts: journal entries, deductions, allocation lines, vouchers, batch
- Exactly-once execution and idempotent re-execution
- Stale approvals, failure recording and retry
- One settled distribution per fiscal period
- Closed periods
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from waqf_config.schema import HEIR_PAYMENT_EVENT
from waqf_kernel.domain.policy import DeductionRates, DistributionPolicy, PolicyKind
from waqf_kernel.domain.roster import RelationshipClass
from waqf_kernel.domain.values import Money
from waqf_kernel.exceptions import (
    ClosedPeriodError,
    DistributionNotFoundError,
    InvalidStateTransitionError,
    PeriodAlreadyDistributedError,
    PeriodNotFoundError,
    StaleApprovalError,
    TemplateNotFoundError,
)
from waqf_kernel.models.distribution import DistributionState
from waqf_kernel.selectors.ledger_selector import LedgerSelector
from waqf_kernel.services.auditor_service import AuditorService
from waqf_services.closing_reconciler import FiscalYearClosingReconciler
from waqf_services.distribution_coordinator import DistributionExecutionCoordinator
from waqf_services.notifications import DISTRIBUTION_EXECUTED, DISTRIBUTION_PUBLISHED
from waqf_services.templates import ConfigTemplateProvider
from tests.helpers import APPROVER_ID, TEST_ACTOR_ID, heir, standard_roster

GROSS_MINOR = 100_000_000  # 1,000,000.00 SAR


class _TemplatesWithout:
    """Config templates minus one event."""

    def __init__(self, config, missing: str):
        self._inner = ConfigTemplateProvider(config)
        self._missing = missing

    def get_journal_template(self, event_name):
        if event_name == self._missing:
            return None
        return self._inner.get_journal_template(event_name)


class TestCreateRequest:
    def test_created_in_draft_with_default_policy(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000000", "SAR"), TEST_ACTOR_ID
        )
        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.DRAFT
        assert request.gross_minor == GROSS_MINOR
        assert request.policy["kind"] == "shariah"
        assert request.policy["rates"]["custodian_pct"] == "10"

    def test_negative_gross_rejected(self, coordinator, fiscal_period_id):
        with pytest.raises(ValueError):
            coordinator.create_request(fiscal_period_id, Money(-1, "SAR"), TEST_ACTOR_ID)

    def test_currency_must_match_period(self, coordinator, fiscal_period_id):
        with pytest.raises(ValueError, match="currency"):
            coordinator.create_request(fiscal_period_id, Money.of("10", "AED"), TEST_ACTOR_ID)

    def test_unknown_period(self, coordinator, seeded):
        with pytest.raises(PeriodNotFoundError):
            coordinator.create_request(uuid4(), Money.of("10", "SAR"), TEST_ACTOR_ID)

    def test_unknown_request(self, coordinator, seeded):
        with pytest.raises(DistributionNotFoundError):
            coordinator.simulate(uuid4(), TEST_ACTOR_ID)


class TestSimulateAndApprove:
    def test_simulation_matches_known_scenario(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000000", "SAR"), TEST_ACTOR_ID
        )
        result = coordinator.simulate(distribution_id, TEST_ACTOR_ID)

        assert result.heirs_pool == Money.of("750000", "SAR")
        amounts = {l.beneficiary_id: l.amount.minor_units for l in result.allocation.lines}
        assert amounts == {
            "D1": 13_125_000,
            "S1": 26_250_000,
            "S2": 26_250_000,
            "W1": 9_375_000,
        }
        assert len(result.fingerprint) == 64
        assert result.snapshot["roster"][0]["beneficiary_id"] == "D1"

        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.SIMULATED
        assert request.simulation_fingerprint == result.fingerprint

    def test_simulation_is_repeatable(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1234.57", "SAR"), TEST_ACTOR_ID
        )
        first = coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        second = coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        assert first.fingerprint == second.fingerprint

    def test_approve_records_fingerprint(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000", "SAR"), TEST_ACTOR_ID
        )
        simulated = coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        fingerprint = coordinator.approve(distribution_id, APPROVER_ID)

        assert fingerprint == simulated.fingerprint
        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.APPROVED
        assert request.approved_by_id == APPROVER_ID

    def test_resimulation_withdraws_approval(self, coordinator, approved_distribution):
        distribution_id = approved_distribution()
        coordinator.simulate(distribution_id, TEST_ACTOR_ID)

        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.SIMULATED
        assert request.approved_fingerprint is None

    def test_approve_requires_simulation(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000", "SAR"), TEST_ACTOR_ID
        )
        with pytest.raises(InvalidStateTransitionError) as exc:
            coordinator.approve(distribution_id, APPROVER_ID)
        assert exc.value.from_state == "draft"
        assert exc.value.to_state == "approved"

    def test_execute_requires_approval(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000", "SAR"), TEST_ACTOR_ID
        )
        coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        with pytest.raises(InvalidStateTransitionError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert coordinator.get_request(distribution_id).state_enum == DistributionState.SIMULATED


class TestExecute:
    def test_full_lifecycle_artifacts(self, coordinator, approved_distribution, session_factory):
        distribution_id = approved_distribution()
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert result.state == DistributionState.EXECUTED
        assert not result.already_executed
        # four deductions + four heir payments
        assert result.journal_entry_numbers == tuple(
            f"JV-2025-{n:06d}" for n in range(1, 9)
        )
        assert result.voucher_numbers == tuple(f"PV-2025-{n:06d}" for n in range(1, 5))
        assert result.transfer_batch_number == "BTF-2025-000001"
        assert result.transfer_total_minor == 75_000_000
        assert result.transfer_count == 4
        assert result.exclusions == ()

        artifacts = coordinator.get_artifacts(distribution_id)
        assert artifacts.request.state_enum == DistributionState.EXECUTED
        assert artifacts.request.heirs_pool_minor == 75_000_000
        assert [d.label for d in artifacts.deductions] == [
            "custodian", "charity", "corpus", "development",
        ]
        assert artifacts.deducted_minor + artifacts.allocated_minor == GROSS_MINOR
        assert all(entry.is_balanced for entry in artifacts.journal_entries)
        assert {v.beneficiary_id for v in artifacts.vouchers} == {"D1", "S1", "S2", "W1"}
        assert [l.reference for l in artifacts.transfer_batch.lines] == [
            f"BTF-2025-000001-{n:04d}" for n in range(1, 5)
        ]

        with session_factory() as s:
            debits, credits = LedgerSelector(s).period_totals(artifacts.request.fiscal_period_id)
        assert debits == credits == GROSS_MINOR

    def test_heir_entries_post_to_distribution_accounts(
        self, coordinator, approved_distribution
    ):
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)

        artifacts = coordinator.get_artifacts(distribution_id)
        heir_entries = [e for e in artifacts.journal_entries if e.event_name == HEIR_PAYMENT_EVENT]
        assert len(heir_entries) == 4
        for entry in heir_entries:
            codes = sorted((l.account_code, l.debit_minor > 0) for l in entry.lines)
            assert codes == [("2.1.1", False), ("5.1.1", True)]
            assert entry.entry_date.isoformat() == "2025-06-15"
            assert entry.parent_reference_id == str(distribution_id)

    def test_execute_publishes_event_after_commit(
        self, coordinator, approved_distribution, events
    ):
        seen_states = []
        events.subscribe(
            DISTRIBUTION_EXECUTED,
            lambda e: seen_states.append(coordinator.get_request(e.distribution_id).state_enum),
        )
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert events.names() == [DISTRIBUTION_EXECUTED]
        assert seen_states == [DistributionState.EXECUTED]
        assert events.published[0].payload["journal_entry_count"] == 8

    def test_re_execute_is_noop(self, coordinator, approved_distribution, events):
        distribution_id = approved_distribution()
        first = coordinator.execute(distribution_id, TEST_ACTOR_ID)
        second = coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert second.already_executed
        assert second.journal_entry_numbers == first.journal_entry_numbers
        assert second.voucher_numbers == first.voucher_numbers
        assert second.transfer_batch_number == first.transfer_batch_number
        assert events.names() == [DISTRIBUTION_EXECUTED]
        assert coordinator.get_request(distribution_id).execution_attempts == 1

    def test_zero_gross_executes_without_entries(self, coordinator, approved_distribution):
        distribution_id = approved_distribution(gross="0")
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert result.journal_entry_numbers == ()
        assert result.voucher_numbers == ()
        assert result.transfer_count == 0

    def test_missing_bank_details_excluded_from_batch(
        self, coordinator, approved_distribution, roster_provider
    ):
        roster = [b for b in standard_roster() if b.beneficiary_id != "D1"]
        roster.append(heir("D1", RelationshipClass.DAUGHTER, "2", bank=None))
        roster_provider.set_roster(roster)

        distribution_id = approved_distribution()
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert result.transfer_count == 3
        assert result.transfer_total_minor == 75_000_000 - 13_125_000
        [excluded] = result.exclusions
        assert excluded["beneficiary_id"] == "D1"
        assert excluded["reason"] == "excluded_no_bank_details"
        # the heir is still paid in the ledger and gets a voucher
        assert len(result.voucher_numbers) == 4

    def test_no_heirs_routes_to_fallback(self, coordinator, approved_distribution, roster_provider):
        roster_provider.set_roster([heir("X1", RelationshipClass.OTHER)])
        distribution_id = approved_distribution()
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert result.voucher_numbers == ()
        assert result.transfer_count == 0
        assert result.exclusions[0]["reason"] == "skipped_fallback_recipient"

        artifacts = coordinator.get_artifacts(distribution_id)
        assert artifacts.request.no_heirs_fallback
        [line] = artifacts.allocation_lines
        assert line.beneficiary_id == "charity"
        assert line.amount_minor == 75_000_000

    def test_equal_policy(self, coordinator, approved_distribution):
        policy = DistributionPolicy(
            kind=PolicyKind.EQUAL,
            rates=DeductionRates(custodian_pct=Decimal("10")),
        )
        distribution_id = approved_distribution(gross="1000", policy=policy)
        coordinator.execute(distribution_id, TEST_ACTOR_ID)

        artifacts = coordinator.get_artifacts(distribution_id)
        assert [(l.beneficiary_id, l.amount_minor) for l in artifacts.allocation_lines] == [
            ("D1", 22_500), ("S1", 22_500), ("S2", 22_500), ("W1", 22_500),
        ]

    def test_audit_chain_intact_after_execution(
        self, coordinator, approved_distribution, session_factory
    ):
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)
        coordinator.publish(distribution_id, TEST_ACTOR_ID)

        with session_factory() as s:
            auditor = AuditorService(s)
            assert auditor.validate_chain() is None
            actions = [e.action for e in auditor.get_trail(distribution_id)]
        assert actions[0] == "distribution_created"
        assert "distribution_executed" in actions
        assert actions.count("distribution_state_changed") == 5


class TestStaleApproval:
    def test_roster_change_fails_execution(
        self, coordinator, approved_distribution, roster_provider
    ):
        distribution_id = approved_distribution()
        roster_provider.set_roster(
            [b for b in standard_roster() if b.beneficiary_id != "S2"]
        )

        with pytest.raises(StaleApprovalError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)

        artifacts = coordinator.get_artifacts(distribution_id)
        request = artifacts.request
        assert request.state_enum == DistributionState.FAILED
        assert request.failure_code == "STALE_APPROVAL"
        assert request.period_claim_id is None
        detail = request.failure_detail
        assert detail["error_type"] == "StaleApprovalError"
        assert detail["input_snapshot"]["gross_minor"] == GROSS_MINOR
        assert [b["beneficiary_id"] for b in detail["input_snapshot"]["roster"]] == [
            "D1", "S1", "W1",
        ]
        assert artifacts.journal_entries == []
        assert artifacts.allocation_lines == []
        assert artifacts.transfer_batch is None

    def test_reapproval_after_stale_failure(
        self, coordinator, approved_distribution, roster_provider
    ):
        distribution_id = approved_distribution()
        roster_provider.set_roster(standard_roster()[:3])
        with pytest.raises(StaleApprovalError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)

        coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        coordinator.approve(distribution_id, APPROVER_ID)
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert result.state == DistributionState.EXECUTED
        request = coordinator.get_request(distribution_id)
        assert request.execution_attempts == 2
        assert request.failure_code is None

    def test_bank_detail_change_does_not_invalidate(
        self, coordinator, approved_distribution, roster_provider
    ):
        distribution_id = approved_distribution()
        roster = [b for b in standard_roster() if b.beneficiary_id != "W1"]
        roster.append(heir("W1", RelationshipClass.SPOUSE, "3", bank="SA" + "9" * 22))
        roster_provider.set_roster(roster)

        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert result.state == DistributionState.EXECUTED
        artifacts = coordinator.get_artifacts(distribution_id)
        ibans = {l.beneficiary_id: l.iban for l in artifacts.transfer_batch.lines}
        assert ibans["W1"] == "SA" + "9" * 22


class TestExecutionFailure:
    def test_failure_rolls_back_every_artifact(
        self,
        approved_distribution,
        session_factory,
        config,
        roster_provider,
        clock,
        lock_manager,
    ):
        distribution_id = approved_distribution()
        broken = DistributionExecutionCoordinator(
            session_factory,
            config,
            roster_provider,
            template_provider=_TemplatesWithout(config, HEIR_PAYMENT_EVENT),
            clock=clock,
            lock_manager=lock_manager,
        )

        with pytest.raises(TemplateNotFoundError):
            broken.execute(distribution_id, TEST_ACTOR_ID)

        artifacts = broken.get_artifacts(distribution_id)
        assert artifacts.request.state_enum == DistributionState.FAILED
        assert artifacts.request.failure_code == "TEMPLATE_NOT_FOUND"
        assert artifacts.request.failure_detail["attributes"] == {
            "event_name": HEIR_PAYMENT_EVENT,
        }
        # deduction entries were posted before the failure and rolled back
        assert artifacts.journal_entries == []
        assert artifacts.deductions == []

        with session_factory() as s:
            assert LedgerSelector(s).period_totals(artifacts.request.fiscal_period_id) == (0, 0)
            assert AuditorService(s).validate_chain() is None

    def test_retry_after_failure(
        self,
        coordinator,
        approved_distribution,
        session_factory,
        config,
        roster_provider,
        clock,
        lock_manager,
        captured_logs,
    ):
        distribution_id = approved_distribution()
        broken = DistributionExecutionCoordinator(
            session_factory,
            config,
            roster_provider,
            template_provider=_TemplatesWithout(config, "distribution.deduction.charity"),
            clock=clock,
            lock_manager=lock_manager,
        )
        with pytest.raises(TemplateNotFoundError):
            broken.execute(distribution_id, TEST_ACTOR_ID)

        failures = [r for r in captured_logs() if r["message"] == "distribution_execution_failed"]
        assert failures and failures[0]["failure_code"] == "TEMPLATE_NOT_FOUND"
        assert failures[0]["distribution_id"] == str(distribution_id)

        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert result.state == DistributionState.EXECUTED
        # sequence numbers of the rolled-back attempt are reused
        assert result.journal_entry_numbers[0] == "JV-2025-000001"

class _FlakyRoster:
    """Serves the wrapped roster; raises ``error`` once when ``fail_next`` is set."""

    def __init__(self, inner, error: Exception):
        self._inner = inner
        self._error = error
        self.fail_next = False
        self.calls = 0

    def get_eligible_beneficiaries(self, fiscal_period_id):
        self.calls += 1
        if self.fail_next:
            self.fail_next = False
            raise self._error
        return self._inner.get_eligible_beneficiaries(fiscal_period_id)


class TestRosterProviderFailure:
    @pytest.fixture
    def flaky(self, roster_provider):
        return _FlakyRoster(roster_provider, ConnectionError("roster service unreachable"))

    @pytest.fixture
    def flaky_coordinator(self, session_factory, config, flaky, events, clock, lock_manager, seeded):
        return DistributionExecutionCoordinator(
            session_factory,
            config,
            flaky,
            event_publisher=events,
            clock=clock,
            lock_manager=lock_manager,
        )

    def _approved(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("1000000", "SAR"), TEST_ACTOR_ID
        )
        coordinator.simulate(distribution_id, TEST_ACTOR_ID)
        coordinator.approve(distribution_id, APPROVER_ID)
        return distribution_id

    def test_provider_error_ends_failed(self, flaky_coordinator, flaky, fiscal_period_id):
        distribution_id = self._approved(flaky_coordinator, fiscal_period_id)
        calls_before = flaky.calls
        flaky.fail_next = True

        with pytest.raises(ConnectionError):
            flaky_coordinator.execute(distribution_id, TEST_ACTOR_ID)

        # the failure record does not ask the provider again
        assert flaky.calls == calls_before + 1
        request = flaky_coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.FAILED
        assert request.period_claim_id is None
        assert request.failure_code == "ConnectionError"
        assert request.failure_detail["message"] == "roster service unreachable"
        assert request.failure_detail["input_snapshot"]["roster"] is None
        assert flaky_coordinator.get_artifacts(distribution_id).journal_entries == []

    def test_retry_after_provider_error(self, flaky_coordinator, flaky, fiscal_period_id):
        distribution_id = self._approved(flaky_coordinator, fiscal_period_id)
        flaky.fail_next = True
        with pytest.raises(ConnectionError):
            flaky_coordinator.execute(distribution_id, TEST_ACTOR_ID)

        result = flaky_coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert result.state == DistributionState.EXECUTED
        assert not result.already_executed
        request = flaky_coordinator.get_request(distribution_id)
        assert request.execution_attempts == 2
        assert request.period_claim_id == fiscal_period_id

    def test_failure_snapshot_keeps_captured_roster(
        self, session_factory, config, flaky, clock, lock_manager, seeded, fiscal_period_id
    ):
        coordinator = DistributionExecutionCoordinator(
            session_factory,
            config,
            flaky,
            template_provider=_TemplatesWithout(config, HEIR_PAYMENT_EVENT),
            clock=clock,
            lock_manager=lock_manager,
        )
        distribution_id = self._approved(coordinator, fiscal_period_id)

        with pytest.raises(TemplateNotFoundError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)

        roster = coordinator.get_request(distribution_id).failure_detail["input_snapshot"]["roster"]
        assert [b["beneficiary_id"] for b in roster] == [
            b.beneficiary_id for b in standard_roster()
        ]



class TestOnePerPeriod:
    def test_second_request_rejected(self, coordinator, approved_distribution):
        first = approved_distribution()
        second = approved_distribution(gross="500")
        coordinator.execute(first, TEST_ACTOR_ID)

        with pytest.raises(PeriodAlreadyDistributedError) as exc:
            coordinator.execute(second, TEST_ACTOR_ID)

        assert exc.value.existing_distribution_id == str(first)
        request = coordinator.get_request(second)
        assert request.state_enum == DistributionState.APPROVED
        assert request.execution_attempts == 0

    def test_other_period_unaffected(self, coordinator, approved_distribution, create_period):
        fy2026 = create_period("FY2026", date(2026, 1, 1), date(2026, 12, 31))
        coordinator.execute(approved_distribution(), TEST_ACTOR_ID)
        result = coordinator.execute(approved_distribution(period_id=fy2026), TEST_ACTOR_ID)
        assert result.state == DistributionState.EXECUTED
        # entry date clamped into the 2026 period
        artifacts = coordinator.get_artifacts(result.distribution_id)
        assert artifacts.journal_entries[0].entry_date.isoformat() == "2026-01-01"

    def test_cancelled_request_does_not_hold_period(self, coordinator, approved_distribution):
        first = approved_distribution()
        coordinator.cancel(first, TEST_ACTOR_ID, reason="duplicate")
        result = coordinator.execute(approved_distribution(), TEST_ACTOR_ID)
        assert result.state == DistributionState.EXECUTED


class TestCancelAndPublish:
    def test_cancel_draft(self, coordinator, fiscal_period_id):
        distribution_id = coordinator.create_request(
            fiscal_period_id, Money.of("10", "SAR"), TEST_ACTOR_ID
        )
        coordinator.cancel(distribution_id, TEST_ACTOR_ID)
        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.CANCELLED
        assert request.cancelled_at is not None

    def test_cancel_after_execution_rejected(self, coordinator, approved_distribution):
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)
        with pytest.raises(InvalidStateTransitionError):
            coordinator.cancel(distribution_id, TEST_ACTOR_ID)

    def test_cancelled_cannot_execute(self, coordinator, approved_distribution):
        distribution_id = approved_distribution()
        coordinator.cancel(distribution_id, TEST_ACTOR_ID)
        with pytest.raises(InvalidStateTransitionError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)

    def test_publish_is_idempotent(self, coordinator, approved_distribution, events):
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)

        assert coordinator.publish(distribution_id, TEST_ACTOR_ID) is True
        assert coordinator.publish(distribution_id, TEST_ACTOR_ID) is False
        assert events.names() == [DISTRIBUTION_EXECUTED, DISTRIBUTION_PUBLISHED]

        request = coordinator.get_request(distribution_id)
        assert request.state_enum == DistributionState.PUBLISHED
        assert request.is_published

    def test_publish_requires_execution(self, coordinator, approved_distribution):
        with pytest.raises(InvalidStateTransitionError):
            coordinator.publish(approved_distribution(), TEST_ACTOR_ID)

    def test_execute_published_is_noop(self, coordinator, approved_distribution):
        distribution_id = approved_distribution()
        coordinator.execute(distribution_id, TEST_ACTOR_ID)
        coordinator.publish(distribution_id, TEST_ACTOR_ID)
        result = coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert result.already_executed
        assert result.state == DistributionState.PUBLISHED


class TestClosedPeriod:
    def test_create_rejected_in_closed_period(
        self, coordinator, fiscal_period_id, session_factory, config, clock
    ):
        FiscalYearClosingReconciler(session_factory, config, clock=clock).close(
            fiscal_period_id, TEST_ACTOR_ID
        )
        with pytest.raises(ClosedPeriodError):
            coordinator.create_request(fiscal_period_id, Money.of("10", "SAR"), TEST_ACTOR_ID)

    def test_execute_rejected_after_close(
        self, coordinator, approved_distribution, fiscal_period_id, session_factory, config, clock
    ):
        distribution_id = approved_distribution()
        FiscalYearClosingReconciler(session_factory, config, clock=clock).close(
            fiscal_period_id, TEST_ACTOR_ID
        )
        with pytest.raises(ClosedPeriodError):
            coordinator.execute(distribution_id, TEST_ACTOR_ID)
        assert coordinator.get_request(distribution_id).state_enum == DistributionState.APPROVED
