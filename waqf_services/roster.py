"""
waqf_services.roster -- Roster provider boundary.

The roster (beneficiary identity, relationship and eligibility) is owned
by an external system.  The coordinator only sees it through
``RosterProvider.get_eligible_beneficiaries(fiscal_period_id)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol
from uuid import UUID

from waqf_kernel.domain.roster import BeneficiaryShare


class RosterProvider(Protocol):
    """Protocol for the beneficiary roster of a fiscal period."""

    def get_eligible_beneficiaries(self, fiscal_period_id: UUID) -> Sequence[BeneficiaryShare]: ...


class StaticRosterProvider:
    """
    In-memory roster: one list shared by every period, with optional
    per-period overrides.  Entries can be replaced between calls, which is
    how a roster change between approval and execution is modelled.
    """

    def __init__(
        self,
        roster: Iterable[BeneficiaryShare] = (),
        by_period: dict[UUID, Iterable[BeneficiaryShare]] | None = None,
    ) -> None:
        self._default: list[BeneficiaryShare] = list(roster)
        self._by_period: dict[UUID, list[BeneficiaryShare]] = {
            k: list(v) for k, v in (by_period or {}).items()
        }

    def get_eligible_beneficiaries(self, fiscal_period_id: UUID) -> Sequence[BeneficiaryShare]:
        return tuple(self._by_period.get(fiscal_period_id, self._default))

    def set_roster(
        self, roster: Iterable[BeneficiaryShare], fiscal_period_id: UUID | None = None
    ) -> None:
        if fiscal_period_id is None:
            self._default = list(roster)
        else:
            self._by_period[fiscal_period_id] = list(roster)
