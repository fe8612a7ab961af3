"""Published contract of the Order write side.

Every event leaves the write side wrapped in an ``EventEnvelope``. The
envelope is what travels over the channel; its ``payload`` carries the event
fields. Consumers (the order_views projector, notifications, recommendations)
rebuild the typed event from the payload with ``contract_event``.

The event classes below are the consumer-facing shapes. They are registered
as external events by each consuming domain with matching ``__type__``
strings. The source-of-truth events are in src/ordering/order/events.py.
"""

from datetime import datetime
from typing import Any

from protean.core.event import BaseEvent
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.reflection import declared_fields
from pydantic import BaseModel, ConfigDict, Field


class EventEnvelope(BaseModel):
    """Wire record of one published order event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str
    order_id: str
    sequence: int = Field(ge=1)
    timestamp: datetime
    payload: dict[str, Any] = Field(default_factory=dict)


class OrderCreated(BaseEvent):
    """A new order was placed. Carries the full item list."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    order_number = String(required=True)
    items = Text(required=True)  # JSON list of {product_id, quantity, unit_price}
    total_amount = String(required=True)  # decimal string
    currency = String(default="USD")
    shipping_address = Text(required=True)
    billing_address = Text(required=True)
    notes = Text()
    created_at = DateTime(required=True)


class OrderStatusUpdated(BaseEvent):
    """The order moved along its lifecycle."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True)
    order_id = Identifier(required=True)
    old_status = String(required=True)
    new_status = String(required=True)
    reason = Text()
    updated_by = String()
    estimated_delivery = DateTime()
    updated_at = DateTime(required=True)


class OrderCancelled(BaseEvent):
    """The order was cancelled before payment settled."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = Text(required=True)
    refund_requested = Boolean(default=False)
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


class OrderPaymentConfirmed(BaseEvent):
    """Payment for the full order total was confirmed; the order is PAID."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True)
    order_id = Identifier(required=True)
    payment_id = String(required=True)
    amount = String(required=True)  # decimal string
    payment_method = String()
    previous_status = String(required=True)
    confirmed_at = DateTime(required=True)


CONTRACT_EVENTS = {
    cls.__name__: cls
    for cls in (OrderCreated, OrderStatusUpdated, OrderCancelled, OrderPaymentConfirmed)
}


def contract_event(envelope: EventEnvelope) -> BaseEvent | None:
    """Typed event for an envelope, or None for event types this contract does not know.

    Unknown payload keys are ignored so that producers can add fields
    without breaking consumers.
    """
    cls = CONTRACT_EVENTS.get(envelope.event_type)
    if cls is None:
        return None

    fields = declared_fields(cls)
    values = {key: value for key, value in envelope.payload.items() if key in fields}
    return cls(**values)
