"""
Module: waqf_engines.journal_builder
Responsibility:
    Turn a business event plus a reference amount into a balanced
    JournalEntryDraft using the event's journal template.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Templates come from a
    TemplateSource (the configuration in production); drafts are persisted
    by waqf_kernel.services.journal_writer.JournalWriter.

Invariants enforced:
    - Each template side is split with Money.allocate_proportionally, so
      both sides total exactly the reference amount.
    - Zero-amount lines are dropped; a line carries exactly one side.
    - Every draft is balance-checked before it is returned.

Failure modes:
    - TemplateNotFoundError when no template matches the event.
    - UnbalancedEntryError when a draft fails debit == credit.  With
      proportional splits this should never happen; the check stays.
    - ValueError on a non-positive amount or an empty line set.

Audit relevance:
    Drafts carry the template version that produced them, and the
    distribution id as parent reference when built for an execution.

Usage:
    from waqf_engines.journal_builder import JournalEntryBuilder

    builder = JournalEntryBuilder(template_provider)
    draft = builder.build(
        event_name="rental_payment.received",
        amount=Money.of("1150", "SAR"),
        entry_date=date(2025, 3, 1),
        reference_type="rent_payment",
        reference_id="RP-001",
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol

from waqf_config.schema import JournalTemplate, TemplateSplit
from waqf_engines.tracer import traced_engine
from waqf_kernel.domain.dtos import JournalEntryDraft, JournalLineSpec, LineSide
from waqf_kernel.domain.values import Money
from waqf_kernel.exceptions import TemplateNotFoundError, UnbalancedEntryError
from waqf_kernel.logging_config import get_logger

logger = get_logger("engines.journal_builder")


class TemplateSource(Protocol):
    """Anything that can look up a journal template by event name."""

    def get_journal_template(self, event_name: str) -> JournalTemplate | None: ...


def _split_side(
    amount: Money, splits: Sequence[TemplateSplit], side: LineSide
) -> list[JournalLineSpec]:
    parts = amount.allocate_proportionally(
        [s.percentage for s in splits], keys=[s.account for s in splits]
    )
    return [
        JournalLineSpec(account_code=s.account, side=side, amount=part, memo=s.memo)
        for s, part in zip(splits, parts)
        if not part.is_zero
    ]


class JournalEntryBuilder:
    """
    Builds balanced journal entry drafts from templates.

    Contract:
        ``build()`` maps a single-amount event through its template;
        ``assemble()`` wraps explicit lines (the closing entry) under the
        same balance guard.
    Non-goals:
        - Does not persist, number or date-check entries; JournalWriter does.
    """

    def __init__(self, templates: TemplateSource):
        self._templates = templates

    def template_for(self, event_name: str) -> JournalTemplate:
        template = self._templates.get_journal_template(event_name)
        if template is None:
            logger.error("journal_template_not_found", extra={"event_name": event_name})
            raise TemplateNotFoundError(event_name)
        return template

    @traced_engine(
        "journal_builder", "1.0", fingerprint_fields=("event_name", "amount", "reference_id")
    )
    def build(
        self,
        *,
        event_name: str,
        amount: Money,
        entry_date: date,
        reference_type: str,
        reference_id: str,
        parent_reference_id: str | None = None,
        description: str | None = None,
    ) -> JournalEntryDraft:
        """Build one draft for ``amount`` using the event's template."""
        if not amount.is_positive:
            raise ValueError(f"Journal amount must be positive: {amount!r}")
        template = self.template_for(event_name)

        lines = _split_side(amount, template.debits, LineSide.DEBIT)
        lines += _split_side(amount, template.credits, LineSide.CREDIT)

        return self.assemble(
            event_name=event_name,
            template_version=template.version,
            lines=lines,
            entry_date=entry_date,
            reference_type=reference_type,
            reference_id=reference_id,
            parent_reference_id=parent_reference_id,
            description=description or template.description,
        )

    def assemble(
        self,
        *,
        event_name: str,
        template_version: int,
        lines: Sequence[JournalLineSpec],
        entry_date: date,
        reference_type: str,
        reference_id: str,
        parent_reference_id: str | None = None,
        description: str | None = None,
    ) -> JournalEntryDraft:
        """Wrap explicit lines in a draft after checking debit == credit."""
        if not lines:
            raise ValueError(f"Journal entry for {event_name} has no lines")
        currency = lines[0].amount.currency
        for line in lines:
            if not line.amount.is_positive:
                raise ValueError(
                    f"Journal line on {line.account_code} must be positive: {line.amount!r}"
                )

        draft = JournalEntryDraft(
            event_name=event_name,
            template_version=template_version,
            currency=currency,
            entry_date=entry_date,
            reference_type=reference_type,
            reference_id=reference_id,
            lines=tuple(lines),
            parent_reference_id=parent_reference_id,
            description=description,
        )
        if not draft.is_balanced:
            logger.error(
                "journal_entry_unbalanced",
                extra={
                    "event_name": event_name,
                    "reference_id": reference_id,
                    "debits_minor": draft.total_debits.minor_units,
                    "credits_minor": draft.total_credits.minor_units,
                },
            )
            raise UnbalancedEntryError(
                draft.total_debits.minor_units,
                draft.total_credits.minor_units,
                currency.code,
            )
        return draft
