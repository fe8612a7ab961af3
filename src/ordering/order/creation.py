"""Order creation — command and handler."""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean import handle
from protean.fields import DateTime, Identifier, String, Text

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.persistence import save_order


@ordering.command(part_of="Order")
class CreateOrder:
    command_id = Identifier(default=lambda: str(uuid4()))
    issued_at = DateTime(default=lambda: datetime.now(UTC))
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of validated item dicts
    shipping_address = Text(required=True)
    billing_address = Text(required=True)
    notes = Text()
    currency = String(max_length=3, default="USD")


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items

        order = Order.create(
            user_id=command.user_id,
            items=items,
            shipping_address=command.shipping_address,
            billing_address=command.billing_address,
            notes=command.notes,
            currency=command.currency or "USD",
        )
        return save_order(order)
