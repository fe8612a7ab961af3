"""Domain events for the Order aggregate.

Events are the only way Order state changes. They are:
- appended to the event store and replayed through @apply to rebuild the aggregate
- staged in the outbox in the same unit of work, then published to the read side

Every event carries a unique ``event_id`` (consumers dedup on it) and the
order-local ``sequence`` it was raised at (consumers order on it).
Money travels as decimal strings.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderCreated:
    """A new order was placed in PENDING status."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    items = Text(required=True)  # JSON: list of {product_id, quantity, unit_price}
    total_amount = String(required=True, max_length=50)
    currency = String(max_length=3, default="USD")
    shipping_address = Text(required=True)
    billing_address = Text(required=True)
    notes = Text()
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusUpdated:
    """The order moved one step along the lifecycle table."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    order_id = Identifier(required=True)
    old_status = String(required=True, max_length=30)
    new_status = String(required=True, max_length=30)
    reason = Text()
    updated_by = String(max_length=255)
    estimated_delivery = DateTime()
    updated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before payment settled."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    order_id = Identifier(required=True)
    previous_status = String(required=True, max_length=30)
    reason = Text(required=True)
    refund_requested = Boolean(default=False)
    cancelled_by = String(max_length=255)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentConfirmed:
    """Payment matching the order total was confirmed; the order is now PAID."""

    __version__ = 1

    event_id = Identifier(required=True)
    sequence = Integer(required=True, min_value=1)
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    amount = String(required=True, max_length=50)
    payment_method = String(max_length=50)
    previous_status = String(required=True, max_length=30)
    confirmed_at = DateTime(required=True)
