"""Outbox record: an order event waiting to be published.

Records are written in the same unit of work as the Order events they
mirror, so an event is staged for publication if and only if the order
change was persisted.
"""

import json
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.reflection import declared_fields
from shared.events.ordering import EventEnvelope

from ordering.domain import ordering


class OutboxStatus(Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"


def _jsonable(value):
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def event_payload(event) -> dict:
    """Public fields of a domain event as a JSON-compatible dict."""
    return {
        name: _jsonable(getattr(event, name, None))
        for name in declared_fields(event)
        if not name.startswith("_")
    }


@ordering.aggregate
class OutboxRecord:
    event_id = Identifier(identifier=True)
    order_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    event_type = String(required=True, max_length=100)
    payload = Text(required=True)  # JSON
    occurred_at = DateTime(required=True)
    status = String(
        choices=OutboxStatus,
        default=OutboxStatus.PENDING.value,
    )
    attempts = Integer(default=0)
    last_error = Text()
    created_at = DateTime()
    published_at = DateTime()

    @classmethod
    def for_event(cls, event, occurred_at=None) -> "OutboxRecord":
        payload = event_payload(event)
        return cls(
            event_id=payload["event_id"],
            order_id=payload["order_id"],
            sequence=payload["sequence"],
            event_type=type(event).__name__,
            payload=json.dumps(payload),
            occurred_at=occurred_at or datetime.now(UTC),
            created_at=datetime.now(UTC),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == OutboxStatus.PENDING.value

    def to_envelope(self) -> EventEnvelope:
        return EventEnvelope(
            event_id=str(self.event_id),
            event_type=self.event_type,
            order_id=str(self.order_id),
            sequence=self.sequence,
            timestamp=self.occurred_at,
            payload=json.loads(self.payload),
        )

    def mark_published(self) -> None:
        self.status = OutboxStatus.PUBLISHED.value
        self.attempts = (self.attempts or 0) + 1
        self.last_error = None
        self.published_at = datetime.now(UTC)

    def mark_failed(self, error: str) -> None:
        self.attempts = (self.attempts or 0) + 1
        self.last_error = error
