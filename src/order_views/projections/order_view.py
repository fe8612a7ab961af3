"""Order projections: the denormalised order record plus projector bookkeeping."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from order_views.domain import order_views


@order_views.projection
class OrderView:
    """One order as the read side serves it. Keyed by order id, never deleted."""

    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    user_email = String(max_length=255)
    user_name = String(max_length=255)
    status = String(required=True, max_length=30)
    total_amount = String(required=True, max_length=50)  # decimal string
    total_value = Float()  # sort key for total_amount
    currency = String(max_length=3, default="USD")
    item_count = Integer(default=0)
    items = Text()  # JSON: list of {product_id, quantity, unit_price}
    shipping_address = Text()
    billing_address = Text()
    notes = Text()
    payment_status = String(max_length=30)
    payment_id = String(max_length=255)
    payment_method = String(max_length=50)
    paid_amount = String(max_length=50)
    refund_requested = Boolean(default=False)
    cancellation_reason = Text()
    estimated_delivery = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    last_sequence = Integer(default=0)
    last_event_id = Identifier()
    projected_at = DateTime()


@order_views.projection
class ProcessedEvent:
    """An event already applied to the views; replays of it are ignored."""

    event_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    sequence = Integer(required=True)
    event_type = String(max_length=100)
    processed_at = DateTime()


@order_views.projection
class ParkedEvent:
    """An event that arrived before an earlier one of the same order."""

    event_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    sequence = Integer(required=True)
    envelope = Text(required=True)  # JSON
    parked_at = DateTime()
