"""Roster -- beneficiary records supplied by the roster provider."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from waqf_kernel.domain.values import to_fraction


def _exact_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    to_fraction(value)  # rejects float
    return Decimal(str(value))


class RelationshipClass(str, Enum):
    """Relationship of a beneficiary to the endower."""

    SPOUSE = "spouse"
    SON = "son"
    DAUGHTER = "daughter"
    CUSTODIAN = "custodian"
    OTHER = "other"


class RecipientKind(str, Enum):
    """Who an allocation line pays."""

    HEIR = "heir"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class BeneficiaryShare:
    """
    One roster entry for a distribution run.

    ``weight`` is the need weight under need_weighted / hybrid policies and
    the percentage under the custom policy; other policies ignore it.
    Ineligible entries stay on the roster but are excluded from the run.
    """

    beneficiary_id: str
    relationship: RelationshipClass
    weight: Decimal | None = None
    is_eligible: bool = True
    bank_identifier: str | None = None
    display_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "relationship", RelationshipClass(self.relationship))
        if self.weight is not None and not isinstance(self.weight, Decimal):
            object.__setattr__(self, "weight", _exact_decimal(self.weight))

    def to_dict(self) -> dict[str, Any]:
        return {
            "beneficiary_id": self.beneficiary_id,
            "relationship": self.relationship.value,
            "weight": str(self.weight) if self.weight is not None else None,
            "is_eligible": self.is_eligible,
            "bank_identifier": self.bank_identifier,
            "display_name": self.display_name,
        }


def compute_need_score(family_size: int, monthly_income: Decimal | int) -> Decimal:
    """Need weight from household size and monthly income.

    One point per family member plus up to ten income points: ten with no
    income, one fewer per thousand of income, never below zero.
    """
    if family_size < 0:
        raise ValueError("family_size must not be negative")
    income = _exact_decimal(monthly_income)
    if income < 0:
        raise ValueError("monthly_income must not be negative")
    if income == 0:
        income_points = Decimal("10")
    else:
        income_points = max(Decimal("0"), Decimal("10") - income / Decimal("1000"))
    return Decimal(family_size) + income_points
