"""
Typed Exception Hierarchy for the Waqf Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Distribution and ledger failures must be handled precisely. Callers catch
by type, never by message text, and every failure that reaches a
distribution request is persisted as ``failure_code`` plus the structured
attributes of the exception.

Every exception here:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA as instance attributes

Example:
    try:
        coordinator.execute(request_id, actor_id)
    except StaleApprovalError as e:
        api_response(code=e.code, distribution=e.distribution_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WaqfKernelError (base)
    |
    +-- PolicyError
    |
    +-- AllocationError
    |   +-- InvalidRosterError
    |   +-- AllocationConservationError
    |
    +-- DistributionError
    |   +-- DistributionNotFoundError
    |   +-- InvalidStateTransitionError
    |   +-- StaleApprovalError
    |   +-- PeriodAlreadyDistributedError
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- TemplateNotFoundError
    |   +-- InvalidAccountError
    |
    +-- PeriodError
    |   +-- ClosedPeriodError
    |   +-- PeriodNotFoundError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodOverlapError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ConcurrencyError
    |   +-- ExecutionInProgressError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                          | When Raised
--------------|-------------------------------|---------------------------------------
Policy        | POLICY_ERROR                  | Deduction rate < 0, > 100, or sum > 100
Allocation    | INVALID_ROSTER                | Bad weights / custom percentages
              | ALLOCATION_CONSERVATION       | Allocated sum != pool (internal bug)
Distribution  | DISTRIBUTION_NOT_FOUND        | Unknown request id
              | INVALID_STATE_TRANSITION      | Transition not in the state table
              | STALE_APPROVAL                | Inputs changed after approval
              | PERIOD_ALREADY_DISTRIBUTED    | Second distribution in one period
Posting       | UNBALANCED_ENTRY              | Debits != Credits
              | TEMPLATE_NOT_FOUND            | No journal template for event
              | INVALID_ACCOUNT               | Unknown or inactive account code
Period        | CLOSED_PERIOD                 | Writing into a closed period
              | PERIOD_NOT_FOUND              | Unknown fiscal period
              | PERIOD_ALREADY_CLOSED         | Second year-end close
              | PERIOD_OVERLAP                | New period overlaps an existing one
Currency      | INVALID_CURRENCY              | Not an ISO 4217 code
              | CURRENCY_MISMATCH             | Arithmetic across currencies
Concurrency   | EXECUTION_IN_PROGRESS         | Period lock not acquired in time
Immutability  | IMMUTABILITY_VIOLATION        | Edit/delete of a settled artifact
Configuration | CONFIGURATION_INVALID         | YAML config failed validation

The engine never retries internally. ``ExecutionInProgressError`` is the
only error a caller may reasonably retry.

===============================================================================
"""


class WaqfKernelError(Exception):
    """
    Base exception for all waqf kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "WAQF_KERNEL_ERROR"

    def details(self) -> dict:
        """Structured attributes of this error, for persistence and logs."""
        out: dict = {}
        for key, val in vars(self).items():
            if key.startswith("_"):
                continue
            if val is None or isinstance(val, (str, int, bool, list, dict)):
                out[key] = val
            else:
                out[key] = str(val)
        return out


# Policy


class PolicyError(WaqfKernelError):
    """Distribution policy parameters are invalid."""

    code: str = "POLICY_ERROR"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid policy {field}={value}: {reason}")


# Allocation


class AllocationError(WaqfKernelError):
    """Base class for share allocation errors."""

    code: str = "ALLOCATION_ERROR"


class InvalidRosterError(AllocationError):
    """Roster weights or percentages cannot produce an allocation."""

    code: str = "INVALID_ROSTER"

    def __init__(self, reason: str, beneficiary_id: str | None = None):
        self.reason = reason
        self.beneficiary_id = beneficiary_id
        suffix = f" (beneficiary {beneficiary_id})" if beneficiary_id else ""
        super().__init__(f"Invalid roster: {reason}{suffix}")


class AllocationConservationError(AllocationError):
    """Allocated amounts do not sum to the amount being allocated."""

    code: str = "ALLOCATION_CONSERVATION"

    def __init__(self, expected: int, actual: int, currency: str):
        self.expected = expected
        self.actual = actual
        self.currency = currency
        super().__init__(
            f"Allocation does not conserve {currency}: "
            f"expected {expected} minor units, allocated {actual}"
        )


# Distribution lifecycle


class DistributionError(WaqfKernelError):
    """Base class for distribution request errors."""

    code: str = "DISTRIBUTION_ERROR"


class DistributionNotFoundError(DistributionError):
    """No distribution request exists with the given id."""

    code: str = "DISTRIBUTION_NOT_FOUND"

    def __init__(self, distribution_id: str):
        self.distribution_id = distribution_id
        super().__init__(f"Distribution request not found: {distribution_id}")


class InvalidStateTransitionError(DistributionError):
    """Requested state change is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity_type: str, from_state: str, to_state: str):
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid {entity_type} transition: {from_state} -> {to_state}"
        )


class StaleApprovalError(DistributionError):
    """Simulation inputs changed between approval and execution."""

    code: str = "STALE_APPROVAL"

    def __init__(
        self,
        distribution_id: str,
        approved_fingerprint: str,
        current_fingerprint: str,
    ):
        self.distribution_id = distribution_id
        self.approved_fingerprint = approved_fingerprint
        self.current_fingerprint = current_fingerprint
        super().__init__(
            f"Approval of distribution {distribution_id} is stale: "
            f"approved {approved_fingerprint}, current {current_fingerprint}"
        )


class PeriodAlreadyDistributedError(DistributionError):
    """Another distribution already executed for this fiscal period."""

    code: str = "PERIOD_ALREADY_DISTRIBUTED"

    def __init__(self, fiscal_period_id: str, existing_distribution_id: str):
        self.fiscal_period_id = fiscal_period_id
        self.existing_distribution_id = existing_distribution_id
        super().__init__(
            f"Fiscal period {fiscal_period_id} already has distribution "
            f"{existing_distribution_id}"
        )


# Posting


class PostingError(WaqfKernelError):
    """Base class for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: int, credits: int, currency: str):
        self.debits = debits
        self.credits = credits
        self.currency = currency
        super().__init__(
            f"Unbalanced entry in {currency}: debits={debits}, credits={credits}"
        )


class TemplateNotFoundError(PostingError):
    """No journal template is registered for the event."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"No journal template for event: {event_name}")


class InvalidAccountError(PostingError):
    """Account code is unknown or cannot be posted to."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid account {account_code}: {reason}")


# Fiscal periods


class PeriodError(WaqfKernelError):
    """Base class for fiscal period errors."""

    code: str = "PERIOD_ERROR"


class ClosedPeriodError(PeriodError):
    """Attempted to write into a closed period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_code: str, operation: str):
        self.period_code = period_code
        self.operation = operation
        super().__init__(f"Cannot {operation} in closed period {period_code}")


class PeriodNotFoundError(PeriodError):
    """No fiscal period matches the given reference."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"Fiscal period not found: {period_ref}")


class PeriodAlreadyClosedError(PeriodError):
    """Period is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Period {period_code} is already closed")


class PeriodOverlapError(PeriodError):
    """New period date range overlaps an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {new_period_code} overlaps existing period {existing_period_code}"
        )


# Currency


class CurrencyError(WaqfKernelError):
    """Base class for currency errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a known ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Amounts in different currencies were combined."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


# Concurrency


class ConcurrencyError(WaqfKernelError):
    """Base class for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ExecutionInProgressError(ConcurrencyError):
    """The period lock could not be acquired within the bounded wait."""

    code: str = "EXECUTION_IN_PROGRESS"

    def __init__(self, fiscal_period_id: str, timeout_seconds: float):
        self.fiscal_period_id = fiscal_period_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Fiscal period {fiscal_period_id} is locked by another execution "
            f"(waited {timeout_seconds}s)"
        )


# Immutability


class ImmutabilityError(WaqfKernelError):
    """Base class for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Journal entries, journal lines, executed allocation lines, transfer
    batches and audit events are never edited or deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(WaqfKernelError):
    """Configuration set failed validation."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            f"Configuration invalid ({len(errors)} error(s)): " + "; ".join(errors)
        )
