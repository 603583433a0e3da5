"""
waqf_services.notifications -- Outbound domain events.

Responsibility:
    Emit ``distribution_executed`` and ``distribution_published`` after the
    state change is committed.  The engine never waits for delivery.

Failure modes:
    - A subscriber that raises is logged and skipped; the remaining
      subscribers still run and the caller's operation is not affected.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from waqf_kernel.logging_config import get_logger

logger = get_logger("services.notifications")

DISTRIBUTION_EXECUTED = "distribution_executed"
DISTRIBUTION_PUBLISHED = "distribution_published"


@dataclass(frozen=True)
class DomainEvent:
    """Notification payload; plain JSON-compatible values only."""

    name: str
    distribution_id: UUID
    fiscal_period_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class EventPublisher(Protocol):
    def publish(self, event: DomainEvent) -> None: ...


class NullEventPublisher:
    """Drops every event."""

    def publish(self, event: DomainEvent) -> None:
        logger.debug("domain_event_dropped", extra={"event_name": event.name})


class InMemoryEventPublisher:
    """
    Synchronous in-process bus.

    Keeps every published event in ``published`` (for inspection) and calls
    subscribers registered for the event name or for ``"*"``.
    """

    def __init__(self) -> None:
        self.published: list[DomainEvent] = []
        self._subscribers: dict[str, list[Callable[[DomainEvent], None]]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Callable[[DomainEvent], None]) -> None:
        self._subscribers[event_name].append(handler)

    def publish(self, event: DomainEvent) -> None:
        self.published.append(event)
        logger.info(
            "domain_event_published",
            extra={
                "event_name": event.name,
                "distribution_id": str(event.distribution_id),
            },
        )
        for handler in self._subscribers[event.name] + self._subscribers["*"]:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "domain_event_subscriber_failed",
                    extra={"event_name": event.name},
                )

    def names(self) -> list[str]:
        return [e.name for e in self.published]
