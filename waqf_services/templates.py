"""
waqf_services.templates -- Journal template provider.

``TemplateProvider.get_journal_template(event_name)`` is the read-only
boundary to the chart-of-accounts configuration.  The default provider
serves the templates of the active ``WaqfConfig``.
"""

from __future__ import annotations

from typing import Protocol

from waqf_config.schema import JournalTemplate, WaqfConfig


class TemplateProvider(Protocol):
    """Protocol for versioned journal templates."""

    def get_journal_template(self, event_name: str) -> JournalTemplate | None: ...


class ConfigTemplateProvider:
    """Templates from a validated configuration."""

    def __init__(self, config: WaqfConfig) -> None:
        self._templates = dict(config.templates)

    def get_journal_template(self, event_name: str) -> JournalTemplate | None:
        return self._templates.get(event_name)

    @property
    def event_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._templates))
