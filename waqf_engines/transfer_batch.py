"""
Module: waqf_engines.transfer_batch
Responsibility:
    Convert the heir payments of an executed distribution into a bank
    transfer batch: validated identifiers, per-line references and
    file-level totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The coordinator persists
    the result as TransferBatch / TransferBatchLine rows.

Invariants enforced:
    - Identifiers are normalized (spaces removed, uppercased) and checked
      by country prefix and total length only; checksum validation is the
      bank's concern.
    - total_amount == sum(line.amount) and total_count == len(lines),
      recomputed from the included lines and never carried over.
    - Fallback (charity) payments are not bank transfers and are skipped.

Failure modes:
    - None for bad identifiers: such lines are excluded and reported as
      ``excluded_no_bank_details`` warnings.  Zero amounts are excluded as
      ``excluded_zero_amount``.
    - CurrencyMismatchError if payments mix currencies.

Audit relevance:
    Exclusions are kept on the batch, so every heir payment is accounted
    for either as a transfer line or as a warning.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from waqf_engines.shares import AllocatedShare
from waqf_engines.tracer import traced_engine
from waqf_kernel.domain.roster import RecipientKind
from waqf_kernel.domain.values import Currency, Money
from waqf_kernel.exceptions import CurrencyMismatchError
from waqf_kernel.logging_config import get_logger

logger = get_logger("engines.transfer_batch")

EXCLUDED_NO_BANK_DETAILS = "excluded_no_bank_details"
EXCLUDED_ZERO_AMOUNT = "excluded_zero_amount"
SKIPPED_FALLBACK = "skipped_fallback_recipient"


def normalize_identifier(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = "".join(value.split()).upper()
    return cleaned or None


def is_valid_identifier(value: str | None, prefix: str, length: int) -> bool:
    """Prefix + fixed length + alphanumeric check on a normalized identifier."""
    if not value:
        return False
    return len(value) == length and value.startswith(prefix) and value.isalnum()


@dataclass(frozen=True)
class TransferLine:
    beneficiary_id: str
    iban: str
    amount: Money
    reference: str


@dataclass(frozen=True)
class TransferExclusion:
    """A payment left out of the batch, with the reason."""

    beneficiary_id: str
    reason: str
    amount: Money
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "beneficiary_id": self.beneficiary_id,
            "reason": self.reason,
            "amount_minor": self.amount.minor_units,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class TransferBatchResult:
    """
    Batch ready to persist.

    Guarantees:
        - ``total_amount`` and ``total_count`` describe ``lines`` exactly.
    """

    currency: Currency
    lines: tuple[TransferLine, ...]
    exclusions: tuple[TransferExclusion, ...]
    total_amount: Money
    total_count: int

    @property
    def warnings(self) -> tuple[TransferExclusion, ...]:
        return tuple(e for e in self.exclusions if e.reason == EXCLUDED_NO_BANK_DETAILS)


class BankTransferBatchGenerator:
    """
    Builds a transfer batch from allocated shares.

    Contract:
        Pure function of (payments, reference_prefix, format).
    """

    def __init__(self, prefix: str = "SA", length: int = 24):
        self.prefix = prefix.upper()
        self.length = length

    @traced_engine(
        "transfer_batch", "1.0", fingerprint_fields=("payments", "reference_prefix")
    )
    def generate(
        self,
        *,
        payments: Sequence[AllocatedShare],
        currency: Currency,
        reference_prefix: str,
    ) -> TransferBatchResult:
        lines: list[TransferLine] = []
        exclusions: list[TransferExclusion] = []

        for payment in payments:
            if payment.amount.currency != currency:
                raise CurrencyMismatchError(currency.code, payment.amount.currency.code)
            if payment.recipient_kind == RecipientKind.FALLBACK:
                exclusions.append(
                    TransferExclusion(payment.beneficiary_id, SKIPPED_FALLBACK, payment.amount)
                )
                continue
            if payment.amount.is_zero:
                exclusions.append(
                    TransferExclusion(payment.beneficiary_id, EXCLUDED_ZERO_AMOUNT, payment.amount)
                )
                continue
            iban = normalize_identifier(payment.bank_identifier)
            if not is_valid_identifier(iban, self.prefix, self.length):
                detail = "missing" if iban is None else f"invalid format ({len(iban)} chars)"
                logger.warning(
                    "transfer_line_excluded",
                    extra={
                        "beneficiary_id": payment.beneficiary_id,
                        "reason": EXCLUDED_NO_BANK_DETAILS,
                        "detail": detail,
                    },
                )
                exclusions.append(
                    TransferExclusion(
                        payment.beneficiary_id,
                        EXCLUDED_NO_BANK_DETAILS,
                        payment.amount,
                        detail,
                    )
                )
                continue
            lines.append(
                TransferLine(
                    beneficiary_id=payment.beneficiary_id,
                    iban=iban,
                    amount=payment.amount,
                    reference=f"{reference_prefix}-{len(lines) + 1:04d}",
                )
            )

        total = Money.total((line.amount for line in lines), currency)
        return TransferBatchResult(
            currency=currency,
            lines=tuple(lines),
            exclusions=tuple(exclusions),
            total_amount=total,
            total_count=len(lines),
        )
