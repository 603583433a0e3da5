"""
Configuration Validator (``waqf_config.validator``).

Responsibility
--------------
Validates a parsed ``WaqfConfig`` before it is handed to the engine.

Invariants enforced
-------------------
* Account codes are unique and account types are known.
* Every template side has at least one split, each split percentage is
  positive, and each side sums to exactly 100.
* Every split references an account in the chart.
* Every distribution event has a template.
* Default deduction rates are known rate names, each in [0, 100],
  summing to at most 100.
* The corpus account exists and is an equity account.
* The bank identifier length fits an IBAN (prefix + up to 34 characters).

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  configuration MUST NOT be used.
* Warnings (inactive accounts referenced by templates) are reported but
  do not block loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from waqf_config.schema import DISTRIBUTION_EVENTS, WaqfConfig
from waqf_kernel.domain.policy import DeductionRates
from waqf_kernel.exceptions import PolicyError

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})
_HUNDRED = Decimal("100")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WaqfConfig) -> ConfigValidationResult:
    """Validate a configuration; never raises."""
    result = ConfigValidationResult()
    _validate_accounts(config, result)
    _validate_templates(config, result)
    _validate_distribution(config, result)

    fmt = config.bank_identifier
    if not fmt.prefix.isalpha() or len(fmt.prefix) != 2:
        result.add_error(f"bank_identifier.prefix must be two letters: {fmt.prefix!r}")
    if not len(fmt.prefix) < fmt.length <= 34:
        result.add_error(f"bank_identifier.length out of range: {fmt.length}")
    return result


def _validate_accounts(config: WaqfConfig, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for account in config.accounts:
        if account.code in seen:
            result.add_error(f"Duplicate account code: {account.code}")
        seen.add(account.code)
        if account.account_type not in _ACCOUNT_TYPES:
            result.add_error(
                f"Account {account.code} has unknown type {account.account_type!r}"
            )


def _validate_templates(config: WaqfConfig, result: ConfigValidationResult) -> None:
    codes = config.account_codes
    for name in DISTRIBUTION_EVENTS:
        if name not in config.templates:
            result.add_error(f"Missing template for distribution event {name}")
    for name, template in sorted(config.templates.items()):
        for side_name, splits in (("debit", template.debits), ("credit", template.credits)):
            if not splits:
                result.add_error(f"Template {name}: {side_name} side has no splits")
                continue
            total = sum((s.percentage for s in splits), Decimal("0"))
            if total != _HUNDRED:
                result.add_error(
                    f"Template {name}: {side_name} splits sum to {total}, expected 100"
                )
            for split in splits:
                if split.percentage <= 0:
                    result.add_error(
                        f"Template {name}: {side_name} split to {split.account} "
                        f"must be positive"
                    )
                if split.account not in codes:
                    result.add_error(
                        f"Template {name}: unknown account {split.account}"
                    )
                    continue
                account = config.account(split.account)
                if account is not None and not account.is_active:
                    result.add_warning(
                        f"Template {name}: account {split.account} is inactive"
                    )


def _validate_distribution(config: WaqfConfig, result: ConfigValidationResult) -> None:
    settings = config.distribution
    try:
        DeductionRates.from_dict(settings.default_rates)
    except PolicyError as e:
        result.add_error(f"distribution.default_rates: {e}")

    if not 0 <= settings.spouse_fraction <= 1:
        result.add_error(
            f"distribution.spouse_fraction out of range: {settings.spouse_fraction}"
        )
    if settings.lock_timeout_seconds < 0:
        result.add_error("distribution.lock_timeout_seconds must not be negative")

    corpus = config.account(settings.corpus_account)
    if corpus is None:
        result.add_error(f"Corpus account {settings.corpus_account} is not in the chart")
    elif corpus.account_type != "equity":
        result.add_error(f"Corpus account {settings.corpus_account} must be equity")
