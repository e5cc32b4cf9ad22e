"""
Domain events and notification dispatch.

Use cases return the events they produced; the api layer publishes them after
the operation has committed. Delivery failures never undo the operation, they
come back as warning strings.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Set

from collection_backend.domain.models import DomainEvent

logger = logging.getLogger(__name__)

ROUTE_ASSIGNED = "route_assigned"
ROUTE_STARTED = "route_started"
ROUTE_COMPLETED = "route_completed"
ROUTE_CANCELLED = "route_cancelled"
ROUTE_REOPENED = "route_reopened"
BIN_COLLECTED = "bin_collected"
ISSUE_REPORTED = "issue_reported"


def make_event(
    kind: str,
    route_id: str,
    recipient_id: Optional[str],
    now: Optional[datetime] = None,
    **payload,
) -> DomainEvent:
    return DomainEvent(
        kind=kind,
        route_id=route_id,
        recipient_id=recipient_id,
        occurred_at=now or datetime.now(timezone.utc),
        payload=payload,
    )


class NotificationDispatcher(Protocol):
    """Subscriber interface; implemented by the notification collaborator."""

    def dispatch(self, event: DomainEvent) -> None:
        ...


class LoggingDispatcher:
    """Default subscriber: writes each event to the log."""

    def dispatch(self, event: DomainEvent) -> None:
        target = event.recipient_id or "admins"
        logger.info("[%s] route=%s -> %s %s", event.kind, event.route_id, target, event.payload)


@dataclass
class DeliveryReport:
    warnings: List[str] = field(default_factory=list)
    failed_kinds: Set[str] = field(default_factory=set)

    def delivered(self, kind: str) -> bool:
        return kind not in self.failed_kinds


class EventBus:
    def __init__(self, subscribers: Optional[List[NotificationDispatcher]] = None) -> None:
        self._subscribers: List[NotificationDispatcher] = list(subscribers or [])

    def subscribe(self, dispatcher: NotificationDispatcher) -> None:
        self._subscribers.append(dispatcher)

    def publish(self, events: List[DomainEvent]) -> DeliveryReport:
        """Deliver events to every subscriber. One warning per failed delivery."""
        report = DeliveryReport()
        for event in events:
            for sub in self._subscribers:
                try:
                    sub.dispatch(event)
                except Exception as e:
                    logger.warning(
                        "Notification dispatch failed for %s on route %s: %s",
                        event.kind,
                        event.route_id,
                        e,
                    )
                    report.warnings.append(f"{event.kind} notification failed: {e}")
                    report.failed_kinds.add(event.kind)
        return report
