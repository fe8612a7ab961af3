"""Order cancellation — command and handler."""

from datetime import UTC, datetime
from uuid import uuid4

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.persistence import load_order, save_order


@ordering.command(part_of="Order")
class CancelOrder:
    command_id = Identifier(default=lambda: str(uuid4()))
    issued_at = DateTime(default=lambda: datetime.now(UTC))
    user_id = Identifier()
    order_id = Identifier(required=True)
    reason = Text(required=True)
    refund_requested = Boolean(default=False)
    cancelled_by = String(max_length=255)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        order.cancel(
            reason=command.reason,
            refund_requested=command.refund_requested,
            cancelled_by=command.cancelled_by or command.user_id,
        )
        return save_order(order)
