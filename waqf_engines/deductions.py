"""
Module: waqf_engines.deductions
Responsibility:
    Split a gross distributable amount into the percentage deductions
    (custodian fee, charity, corpus retention, development, maintenance,
    reserve) and the residual heirs' pool.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import waqf_kernel/domain.

Invariants enforced:
    - Every deduction is computed against the ORIGINAL gross amount, never
      against a running remainder.
    - Deductions are rounded down, so their sum never exceeds the gross.
    - heirs_pool = gross - sum(deductions), computed once.
    - sum(deductions) + heirs_pool == gross, checked after every run.

Failure modes:
    - PolicyError on a negative rate, a rate above 100 or a rate sum above
      100 (raised when the DeductionRates are built or re-validated here).
    - ValueError on a negative gross amount.
    - AllocationConservationError if the conservation check fails.

Audit relevance:
    Deduction lines are persisted with the distribution and each becomes
    its own journal entry.

Usage:
    from waqf_engines.deductions import DeductionPipeline

    result = DeductionPipeline().apply(gross=Money.of("10000", "SAR"), policy=policy)
    result.heirs_pool
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from waqf_engines.tracer import traced_engine
from waqf_kernel.domain.policy import DistributionPolicy
from waqf_kernel.domain.values import Money
from waqf_kernel.exceptions import AllocationConservationError
from waqf_kernel.logging_config import get_logger

logger = get_logger("engines.deductions")

# Application order; also the persisted line order.
DEDUCTION_ORDER: tuple[tuple[str, str], ...] = (
    ("custodian", "custodian_pct"),
    ("charity", "charity_pct"),
    ("corpus", "corpus_pct"),
    ("development", "development_pct"),
    ("maintenance", "maintenance_pct"),
    ("reserve", "reserve_pct"),
)


@dataclass(frozen=True)
class DeductionLine:
    """One deduction taken off the gross."""

    label: str
    percentage: Decimal
    amount: Money

    def to_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "percentage": str(self.percentage),
            "amount_minor": self.amount.minor_units,
        }


@dataclass(frozen=True)
class DeductionResult:
    """
    Output of the deduction pipeline.

    Guarantees:
        - ``total_deducted + heirs_pool == gross``.
        - ``lines`` follow DEDUCTION_ORDER; zero-rate labels are omitted.
    """

    gross: Money
    lines: tuple[DeductionLine, ...]
    heirs_pool: Money

    @property
    def total_deducted(self) -> Money:
        return Money.total((line.amount for line in self.lines), self.gross.currency)

    def amount_for(self, label: str) -> Money:
        for line in self.lines:
            if line.label == label:
                return line.amount
        return Money.zero(self.gross.currency)

    def to_dict(self) -> dict[str, object]:
        return {
            "gross_minor": self.gross.minor_units,
            "lines": [line.to_dict() for line in self.lines],
            "heirs_pool_minor": self.heirs_pool.minor_units,
        }


class DeductionPipeline:
    """
    Applies the policy's deduction rates to a gross amount.

    Contract:
        Pure function of (gross, policy).  Same inputs, same output.
    Non-goals:
        - Does not decide who receives a deduction; the journal templates
          map each label to its accounts.
    """

    @traced_engine("deductions", "1.0", fingerprint_fields=("gross", "policy"))
    def apply(self, *, gross: Money, policy: DistributionPolicy) -> DeductionResult:
        if gross.is_negative:
            raise ValueError(f"Gross amount must not be negative: {gross!r}")
        policy.rates.validate()

        rates = policy.rates.as_dict()
        lines: list[DeductionLine] = []
        for label, rate_field in DEDUCTION_ORDER:
            rate = rates[rate_field]
            if rate == 0:
                continue
            lines.append(
                DeductionLine(
                    label=label,
                    percentage=rate,
                    amount=gross.percentage_of(rate, rounding=ROUND_DOWN),
                )
            )

        deducted = Money.total((line.amount for line in lines), gross.currency)
        heirs_pool = gross - deducted
        if heirs_pool.is_negative or deducted + heirs_pool != gross:
            raise AllocationConservationError(
                gross.minor_units,
                deducted.minor_units + heirs_pool.minor_units,
                gross.currency.code,
            )

        logger.debug(
            "deductions_applied",
            extra={
                "gross_minor": gross.minor_units,
                "deducted_minor": deducted.minor_units,
                "heirs_pool_minor": heirs_pool.minor_units,
                "line_count": len(lines),
            },
        )
        return DeductionResult(gross=gross, lines=tuple(lines), heirs_pool=heirs_pool)
