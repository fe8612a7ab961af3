"""Order status updates — command and handler.

Any move along the lifecycle table, including administrative ones such as
PAID → PREPARING or SHIPPED → DELIVERED.
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean import handle
from protean.fields import DateTime, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.persistence import load_order, save_order
from ordering.order.status import OrderStatus


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    command_id = Identifier(default=lambda: str(uuid4()))
    issued_at = DateTime(default=lambda: datetime.now(UTC))
    user_id = Identifier()
    order_id = Identifier(required=True)
    new_status = String(required=True, choices=OrderStatus)
    reason = Text()
    updated_by = String(max_length=255)
    estimated_delivery = DateTime()


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = load_order(command.order_id)
        order.transition_to(
            OrderStatus(command.new_status),
            reason=command.reason,
            updated_by=command.updated_by or command.user_id,
            estimated_delivery=command.estimated_delivery,
        )
        return save_order(order)
