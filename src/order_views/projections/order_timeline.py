"""Order timeline — human-readable history of one order, for tracking."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from order_views.domain import order_views


@order_views.projection
class OrderTimelineEntry:
    entry_id = Identifier(identifier=True, required=True)  # the event id
    order_id = Identifier(required=True)
    sequence = Integer(required=True)
    event_type = String(required=True, max_length=100)
    status = String(max_length=30)
    description = Text()
    occurred_at = DateTime()
