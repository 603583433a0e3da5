"""
WaqfConfig schema.

Defines the human-authored, reviewable configuration of the engine: the
chart of accounts, the journal templates that map business events to
accounts, the distribution defaults and the bank identifier format.
YAML files are parsed into these types by the loader and checked by the
validator before anything else sees them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from fractions import Fraction

# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountDef:
    """One chart-of-accounts entry."""

    code: str
    name: str
    account_type: str  # asset, liability, equity, revenue, expense
    is_active: bool = True


# ---------------------------------------------------------------------------
# Journal templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TemplateSplit:
    """Share of one side of an entry that goes to one account."""

    account: str
    percentage: Decimal
    memo: str | None = None


@dataclass(frozen=True)
class JournalTemplate:
    """
    Maps one business event to balanced debit and credit splits.

    Each side's split percentages sum to 100, so both sides total the
    reference amount.
    """

    event_name: str
    version: int
    debits: tuple[TemplateSplit, ...]
    credits: tuple[TemplateSplit, ...]
    description: str | None = None

    @property
    def accounts(self) -> tuple[str, ...]:
        return tuple(s.account for s in self.debits + self.credits)


# ---------------------------------------------------------------------------
# Distribution settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DistributionSettings:
    """Defaults applied when a request does not override them."""

    currency: str = "SAR"
    default_rates: dict[str, Decimal] = field(default_factory=dict)
    spouse_fraction: Fraction = Fraction(1, 8)
    fallback_recipient_id: str = "charity"
    lock_timeout_seconds: float = 5.0
    closing_event: str = "fiscal_period.closing"
    corpus_account: str = "3.1.1"


@dataclass(frozen=True)
class BankIdentifierFormat:
    """IBAN-style identifier check: country prefix plus fixed length."""

    prefix: str = "SA"
    length: int = 24


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WaqfConfig:
    """Complete, validated configuration."""

    config_id: str
    version: int
    accounts: tuple[AccountDef, ...]
    templates: dict[str, JournalTemplate]
    distribution: DistributionSettings
    bank_identifier: BankIdentifierFormat
    checksum: str = ""

    @property
    def account_codes(self) -> frozenset[str]:
        return frozenset(a.code for a in self.accounts)

    def account(self, code: str) -> AccountDef | None:
        for a in self.accounts:
            if a.code == code:
                return a
        return None


# Events the distribution coordinator posts; every one needs a template.
DEDUCTION_EVENT_PREFIX = "distribution.deduction."
HEIR_PAYMENT_EVENT = "distribution.heir_payment"
FALLBACK_PAYMENT_EVENT = "distribution.fallback_payment"
DEDUCTION_LABELS = ("custodian", "charity", "corpus", "development", "maintenance", "reserve")
DISTRIBUTION_EVENTS: tuple[str, ...] = (
    *(DEDUCTION_EVENT_PREFIX + label for label in DEDUCTION_LABELS),
    HEIR_PAYMENT_EVENT,
    FALLBACK_PAYMENT_EVENT,
)
