"""Shared constants and builders for the waqf test suite."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from waqf_kernel.domain.roster import BeneficiaryShare, RelationshipClass

TEST_ACTOR_ID = UUID("00000000-0000-4000-8000-000000000001")
APPROVER_ID = UUID("00000000-0000-4000-8000-000000000002")

FY2025_START = date(2025, 1, 1)
FY2025_END = date(2025, 12, 31)


def iban(n: int) -> str:
    """A well-formed SA identifier (2 letters + 22 digits)."""
    return f"SA{n:022d}"


def heir(
    beneficiary_id: str,
    relationship: RelationshipClass,
    weight: str | None = None,
    eligible: bool = True,
    bank: str | None = "auto",
) -> BeneficiaryShare:
    if bank == "auto":
        bank = iban(sum(ord(c) for c in beneficiary_id))
    return BeneficiaryShare(
        beneficiary_id,
        relationship,
        weight=Decimal(weight) if weight is not None else None,
        is_eligible=eligible,
        bank_identifier=bank,
    )


def standard_roster() -> list[BeneficiaryShare]:
    """One wife, two sons and one daughter, all with bank details."""
    return [
        heir("D1", RelationshipClass.DAUGHTER, "2"),
        heir("S1", RelationshipClass.SON, "1"),
        heir("S2", RelationshipClass.SON, "1"),
        heir("W1", RelationshipClass.SPOUSE, "3"),
    ]
