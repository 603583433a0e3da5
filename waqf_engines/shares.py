"""
Module: waqf_engines.shares
Responsibility:
    Allocate the heirs' pool across the beneficiary roster under one of the
    policy kinds: shariah, equal, need_weighted, custom or hybrid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import waqf_kernel/domain and waqf_kernel.exceptions.

Invariants enforced:
    - Dispatch is an explicit ``match`` over PolicyKind; one function per kind.
    - Every split goes through Money.allocate_proportionally (largest
      remainder, ties by ascending beneficiary id).
    - sum(line amounts) == heirs_pool, checked unconditionally.
    - Output order is ascending beneficiary id, so identical inputs give
      identical line sets.

Failure modes:
    - InvalidRosterError: duplicate ids, missing/negative/all-zero weights,
      custom percentages not summing to 100, no eligible beneficiaries
      under a non-shariah kind.
    - AllocationConservationError: the post-condition fails.

Audit relevance:
    Each line carries the exact fraction of the pool it represents, so an
    auditor can re-derive every amount offline.  Shariah runs with no heirs
    are routed to the fallback recipient and flagged ``no_heirs_fallback``.

Usage:
    from waqf_engines.shares import ShareAllocationCalculator

    outcome = ShareAllocationCalculator().allocate(
        pool=Money.of("7500", "SAR"),
        roster=roster,
        policy=policy,
        fallback_recipient_id="charity",
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP
from fractions import Fraction

from waqf_engines.tracer import traced_engine
from waqf_kernel.domain.policy import DistributionPolicy, PolicyKind
from waqf_kernel.domain.roster import BeneficiaryShare, RecipientKind, RelationshipClass
from waqf_kernel.domain.values import Money, to_fraction
from waqf_kernel.exceptions import AllocationConservationError, InvalidRosterError
from waqf_kernel.logging_config import get_logger

logger = get_logger("engines.shares")

SON_WEIGHT = 2
DAUGHTER_WEIGHT = 1
_DESCENDANTS = (RelationshipClass.SON, RelationshipClass.DAUGHTER)


@dataclass(frozen=True)
class AllocatedShare:
    """Amount allocated to one recipient."""

    beneficiary_id: str
    relationship: RelationshipClass | None
    recipient_kind: RecipientKind
    amount: Money
    share_fraction: Fraction
    bank_identifier: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "beneficiary_id": self.beneficiary_id,
            "relationship": self.relationship.value if self.relationship else None,
            "recipient_kind": self.recipient_kind.value,
            "amount_minor": self.amount.minor_units,
            "share_fraction": f"{self.share_fraction.numerator}/{self.share_fraction.denominator}",
        }


@dataclass(frozen=True)
class AllocationOutcome:
    """
    Result of one allocation run.

    Guarantees:
        - ``sum(line.amount) == pool``.
        - ``skipped`` lists roster ids that took no part (ineligible, or not
          heirs under the shariah kind), in ascending order.
    """

    pool: Money
    policy_kind: PolicyKind
    lines: tuple[AllocatedShare, ...]
    skipped: tuple[str, ...] = ()
    no_heirs_fallback: bool = False

    @property
    def total_allocated(self) -> Money:
        return Money.total((line.amount for line in self.lines), self.pool.currency)

    def to_dict(self) -> dict[str, object]:
        return {
            "pool_minor": self.pool.minor_units,
            "policy_kind": self.policy_kind.value,
            "lines": [line.to_dict() for line in self.lines],
            "skipped": list(self.skipped),
            "no_heirs_fallback": self.no_heirs_fallback,
        }


def _share(
    b: BeneficiaryShare, amount: Money, fraction: Fraction
) -> AllocatedShare:
    return AllocatedShare(
        beneficiary_id=b.beneficiary_id,
        relationship=b.relationship,
        recipient_kind=RecipientKind.HEIR,
        amount=amount,
        share_fraction=fraction,
        bank_identifier=b.bank_identifier,
    )


def _split(
    pool: Money, members: Sequence[BeneficiaryShare], weights: Sequence[Fraction]
) -> list[AllocatedShare]:
    """Largest-remainder split of ``pool`` with exact share fractions."""
    amounts = pool.allocate_proportionally(
        list(weights), keys=[m.beneficiary_id for m in members]
    )
    total = sum(weights, Fraction(0))
    return [
        _share(m, amt, w / total) for m, amt, w in zip(members, amounts, weights)
    ]


def _required_weights(members: Sequence[BeneficiaryShare], kind: str) -> list[Fraction]:
    weights: list[Fraction] = []
    for m in members:
        if m.weight is None:
            raise InvalidRosterError(f"{kind} weight missing", m.beneficiary_id)
        w = to_fraction(m.weight)
        if w < 0:
            raise InvalidRosterError(f"{kind} weight must not be negative", m.beneficiary_id)
        weights.append(w)
    return weights


class ShareAllocationCalculator:
    """
    Allocates an heirs' pool across a roster.

    Contract:
        Pure function of (pool, roster, policy, fallback_recipient_id).
    Guarantees:
        - Conservation: the lines always sum to the pool.
        - Determinism: output sorted by beneficiary id.
    Non-goals:
        - Does not decide eligibility; the roster provider sets the flag and
          this engine only honours it.
    """

    @traced_engine(
        "shares", "1.0", fingerprint_fields=("pool", "roster", "policy", "fallback_recipient_id")
    )
    def allocate(
        self,
        *,
        pool: Money,
        roster: Sequence[BeneficiaryShare],
        policy: DistributionPolicy,
        fallback_recipient_id: str,
    ) -> AllocationOutcome:
        if pool.is_negative:
            raise ValueError(f"Heirs pool must not be negative: {pool!r}")

        seen: set[str] = set()
        for b in roster:
            if b.beneficiary_id in seen:
                raise InvalidRosterError("duplicate beneficiary id", b.beneficiary_id)
            seen.add(b.beneficiary_id)

        ordered = sorted(roster, key=lambda b: b.beneficiary_id)
        eligible = [b for b in ordered if b.is_eligible]
        ineligible = [b.beneficiary_id for b in ordered if not b.is_eligible]

        match policy.kind:
            case PolicyKind.SHARIAH:
                outcome = self._allocate_shariah(pool, eligible, policy, fallback_recipient_id)
            case PolicyKind.EQUAL:
                outcome = self._allocate_equal(pool, eligible)
            case PolicyKind.NEED_WEIGHTED:
                outcome = self._allocate_need_weighted(pool, eligible)
            case PolicyKind.CUSTOM:
                outcome = self._allocate_custom(pool, eligible)
            case PolicyKind.HYBRID:
                outcome = self._allocate_hybrid(pool, eligible, policy, fallback_recipient_id)
            case _:
                raise ValueError(f"Unknown policy kind: {policy.kind}")

        allocated = outcome.total_allocated
        if allocated != pool:
            logger.error(
                "share_allocation_conservation_failed",
                extra={
                    "pool_minor": pool.minor_units,
                    "allocated_minor": allocated.minor_units,
                    "policy_kind": policy.kind.value,
                },
            )
            raise AllocationConservationError(
                pool.minor_units, allocated.minor_units, pool.currency.code
            )

        skipped = tuple(sorted(set(ineligible) | set(outcome.skipped)))
        result = AllocationOutcome(
            pool=pool,
            policy_kind=policy.kind,
            lines=outcome.lines,
            skipped=skipped,
            no_heirs_fallback=outcome.no_heirs_fallback,
        )
        logger.debug(
            "shares_allocated",
            extra={
                "policy_kind": policy.kind.value,
                "pool_minor": pool.minor_units,
                "line_count": len(result.lines),
                "skipped_count": len(skipped),
                "no_heirs_fallback": result.no_heirs_fallback,
            },
        )
        return result

    # -- Shariah -----------------------------------------------------------

    def _allocate_shariah(
        self,
        pool: Money,
        eligible: list[BeneficiaryShare],
        policy: DistributionPolicy,
        fallback_recipient_id: str,
    ) -> AllocationOutcome:
        spouses = [b for b in eligible if b.relationship == RelationshipClass.SPOUSE]
        descendants = [b for b in eligible if b.relationship in _DESCENDANTS]
        non_heirs = tuple(
            b.beneficiary_id
            for b in eligible
            if b.relationship not in (RelationshipClass.SPOUSE, *_DESCENDANTS)
        )

        if not spouses and not descendants:
            logger.warning(
                "shares_no_heirs_fallback",
                extra={
                    "pool_minor": pool.minor_units,
                    "fallback_recipient_id": fallback_recipient_id,
                },
            )
            return AllocationOutcome(
                pool=pool,
                policy_kind=PolicyKind.SHARIAH,
                lines=(self._fallback_line(pool, fallback_recipient_id),),
                skipped=non_heirs,
                no_heirs_fallback=True,
            )

        lines = self._shariah_lines(pool, spouses, descendants, policy.spouse_fraction)
        return AllocationOutcome(
            pool=pool,
            policy_kind=PolicyKind.SHARIAH,
            lines=tuple(sorted(lines, key=lambda l: l.beneficiary_id)),
            skipped=non_heirs,
        )

    def _shariah_lines(
        self,
        pool: Money,
        spouses: list[BeneficiaryShare],
        descendants: list[BeneficiaryShare],
        spouse_fraction: Fraction,
    ) -> list[AllocatedShare]:
        if not descendants:
            return _split(pool, spouses, [Fraction(1)] * len(spouses))

        desc_weights = [
            Fraction(SON_WEIGHT if d.relationship == RelationshipClass.SON else DAUGHTER_WEIGHT)
            for d in descendants
        ]
        if not spouses:
            return _split(pool, descendants, desc_weights)

        # Spouses first; descendants take the remainder 2:1.
        spouse_total = pool.multiply_by_fraction(spouse_fraction, rounding=ROUND_HALF_UP)
        descendant_total = pool - spouse_total

        lines: list[AllocatedShare] = []
        spouse_amounts = spouse_total.allocate_proportionally(
            [1] * len(spouses), keys=[s.beneficiary_id for s in spouses]
        )
        for s, amount in zip(spouses, spouse_amounts):
            lines.append(_share(s, amount, spouse_fraction / len(spouses)))

        desc_amounts = descendant_total.allocate_proportionally(
            desc_weights, keys=[d.beneficiary_id for d in descendants]
        )
        weight_total = sum(desc_weights, Fraction(0))
        for d, amount, w in zip(descendants, desc_amounts, desc_weights):
            lines.append(_share(d, amount, (1 - spouse_fraction) * w / weight_total))
        return lines

    @staticmethod
    def _fallback_line(pool: Money, fallback_recipient_id: str) -> AllocatedShare:
        return AllocatedShare(
            beneficiary_id=fallback_recipient_id,
            relationship=None,
            recipient_kind=RecipientKind.FALLBACK,
            amount=pool,
            share_fraction=Fraction(1),
        )

    # -- Weighted kinds ----------------------------------------------------

    def _allocate_equal(
        self, pool: Money, eligible: list[BeneficiaryShare]
    ) -> AllocationOutcome:
        if not eligible:
            raise InvalidRosterError("no eligible beneficiaries")
        lines = _split(pool, eligible, [Fraction(1)] * len(eligible))
        return AllocationOutcome(pool=pool, policy_kind=PolicyKind.EQUAL, lines=tuple(lines))

    def _allocate_need_weighted(
        self, pool: Money, eligible: list[BeneficiaryShare]
    ) -> AllocationOutcome:
        if not eligible:
            raise InvalidRosterError("no eligible beneficiaries")
        weights = _required_weights(eligible, "need")
        if not any(w > 0 for w in weights):
            raise InvalidRosterError("at least one need weight must be positive")
        lines = _split(pool, eligible, weights)
        return AllocationOutcome(
            pool=pool, policy_kind=PolicyKind.NEED_WEIGHTED, lines=tuple(lines)
        )

    def _allocate_custom(
        self, pool: Money, eligible: list[BeneficiaryShare]
    ) -> AllocationOutcome:
        if not eligible:
            raise InvalidRosterError("no eligible beneficiaries")
        weights = _required_weights(eligible, "custom percentage")
        total = sum(weights, Fraction(0))
        if total != 100:
            raise InvalidRosterError(
                f"custom percentages must sum to 100, got {total}"
            )
        lines = _split(pool, eligible, weights)
        return AllocationOutcome(pool=pool, policy_kind=PolicyKind.CUSTOM, lines=tuple(lines))

    # -- Hybrid ------------------------------------------------------------

    def _allocate_hybrid(
        self,
        pool: Money,
        eligible: list[BeneficiaryShare],
        policy: DistributionPolicy,
        fallback_recipient_id: str,
    ) -> AllocationOutcome:
        """Blend of the exact shariah and need fractions, re-split once."""
        shariah = self._allocate_shariah(pool, eligible, policy, fallback_recipient_id)
        if shariah.no_heirs_fallback:
            return AllocationOutcome(
                pool=pool,
                policy_kind=PolicyKind.HYBRID,
                lines=shariah.lines,
                skipped=shariah.skipped,
                no_heirs_fallback=True,
            )

        heirs = [b for b in eligible if b.beneficiary_id not in shariah.skipped]
        need_weights = _required_weights(heirs, "need")
        need_total = sum(need_weights, Fraction(0))
        if need_total == 0:
            raise InvalidRosterError("at least one need weight must be positive")

        shariah_fraction = {l.beneficiary_id: l.share_fraction for l in shariah.lines}
        sw = to_fraction(policy.hybrid_shariah_weight)
        nw = to_fraction(policy.hybrid_need_weight)
        blended = [
            sw * shariah_fraction[h.beneficiary_id] + nw * w / need_total
            for h, w in zip(heirs, need_weights)
        ]
        lines = _split(pool, heirs, blended)
        return AllocationOutcome(
            pool=pool,
            policy_kind=PolicyKind.HYBRID,
            lines=tuple(lines),
            skipped=shariah.skipped,
        )
