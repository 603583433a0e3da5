"""
Policy -- Distribution policy value objects.

Responsibility:
    Defines how a distributable amount is cut up: the deduction rates taken
    off the gross before heirs are paid, and the kind of heir allocation.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Consumed by waqf_engines.deductions
    and waqf_engines.shares; serialized onto DistributionRequest rows.

Invariants enforced:
    - Every deduction rate lies in [0, 100] and the rates sum to <= 100.
    - Rates are Decimal, never float.
    - Hybrid blend weights are non-negative and sum to exactly 1.
    - The spouse fraction lies in [0, 1].

Failure modes:
    - PolicyError on any violated invariant (raised at construction).
    - TypeError when a float is supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any

from waqf_kernel.domain.values import to_fraction
from waqf_kernel.exceptions import PolicyError

_HUNDRED = Decimal("100")


class PolicyKind(str, Enum):
    """How the heirs' pool is divided."""

    SHARIAH = "shariah"
    EQUAL = "equal"
    NEED_WEIGHTED = "need_weighted"
    CUSTOM = "custom"
    HYBRID = "hybrid"


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, float):
        raise TypeError(f"{name} must not be a float: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except ArithmeticError as e:
        raise PolicyError(name, str(value), "not a number") from e


@dataclass(frozen=True)
class DeductionRates:
    """
    Percent rates deducted from the gross before heirs are paid.

    Contract:
        custodian (nazer), charity (khairi), corpus retention and development
        are the standard deductions; maintenance and reserve are optional
        and default to zero.

    Guarantees:
        - All rates are Decimal in [0, 100] and their sum is <= 100.
    """

    custodian_pct: Decimal = Decimal("0")
    charity_pct: Decimal = Decimal("0")
    corpus_pct: Decimal = Decimal("0")
    development_pct: Decimal = Decimal("0")
    maintenance_pct: Decimal = Decimal("0")
    reserve_pct: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        for f in fields(self):
            object.__setattr__(self, f.name, _to_decimal(f.name, getattr(self, f.name)))
        self.validate()

    def validate(self) -> None:
        """Raise PolicyError if any rate or the rate total is out of range."""
        for name, rate in self.as_dict().items():
            if rate < 0:
                raise PolicyError(name, str(rate), "rate must not be negative")
            if rate > _HUNDRED:
                raise PolicyError(name, str(rate), "rate must not exceed 100")
        if self.total > _HUNDRED:
            raise PolicyError(
                "deduction_rates", str(self.total), "rates must sum to at most 100"
            )

    @property
    def total(self) -> Decimal:
        return sum(self.as_dict().values(), Decimal("0"))

    def as_dict(self) -> dict[str, Decimal]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_dict(self) -> dict[str, str]:
        return {name: str(rate) for name, rate in self.as_dict().items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeductionRates:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise PolicyError("deduction_rates", ",".join(sorted(unknown)), "unknown rate")
        return cls(**{k: Decimal(str(v)) for k, v in data.items()})


@dataclass(frozen=True)
class DistributionPolicy:
    """
    Complete policy for one distribution run.

    Contract:
        ``kind`` selects the allocation strategy; ``rates`` the deductions.
        ``spouse_fraction`` is the collective spouse share under the shariah
        kind.  ``hybrid_shariah_weight`` / ``hybrid_need_weight`` blend the
        shariah and need-weighted allocations under the hybrid kind.

    Guarantees:
        - Validated at construction; an instance is always usable.
    """

    kind: PolicyKind
    rates: DeductionRates = field(default_factory=DeductionRates)
    spouse_fraction: Fraction = Fraction(1, 8)
    hybrid_shariah_weight: Decimal = Decimal("0.6")
    hybrid_need_weight: Decimal = Decimal("0.4")

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", PolicyKind(self.kind))
        object.__setattr__(self, "spouse_fraction", to_fraction(self.spouse_fraction))
        object.__setattr__(
            self,
            "hybrid_shariah_weight",
            _to_decimal("hybrid_shariah_weight", self.hybrid_shariah_weight),
        )
        object.__setattr__(
            self,
            "hybrid_need_weight",
            _to_decimal("hybrid_need_weight", self.hybrid_need_weight),
        )
        self.validate()

    def validate(self) -> None:
        self.rates.validate()
        if not 0 <= self.spouse_fraction <= 1:
            raise PolicyError(
                "spouse_fraction", str(self.spouse_fraction), "must lie in [0, 1]"
            )
        if self.hybrid_shariah_weight < 0 or self.hybrid_need_weight < 0:
            raise PolicyError(
                "hybrid_weights",
                f"{self.hybrid_shariah_weight}/{self.hybrid_need_weight}",
                "weights must not be negative",
            )
        if self.hybrid_shariah_weight + self.hybrid_need_weight != 1:
            raise PolicyError(
                "hybrid_weights",
                f"{self.hybrid_shariah_weight}/{self.hybrid_need_weight}",
                "weights must sum to 1",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "rates": self.rates.to_dict(),
            "spouse_fraction": str(self.spouse_fraction),
            "hybrid_shariah_weight": str(self.hybrid_shariah_weight),
            "hybrid_need_weight": str(self.hybrid_need_weight),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DistributionPolicy:
        return cls(
            kind=PolicyKind(data["kind"]),
            rates=DeductionRates.from_dict(data.get("rates", {})),
            spouse_fraction=Fraction(str(data.get("spouse_fraction", "1/8"))),
            hybrid_shariah_weight=Decimal(str(data.get("hybrid_shariah_weight", "0.6"))),
            hybrid_need_weight=Decimal(str(data.get("hybrid_need_weight", "0.4"))),
        )
