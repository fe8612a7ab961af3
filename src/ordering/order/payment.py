"""Order payment confirmation — command and handler.

The payment itself is settled elsewhere; this records that a payment for
exactly the order total arrived and moves the order to PAID.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from protean import handle
from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.persistence import load_order, save_order


@ordering.command(part_of="Order")
class ConfirmOrderPayment:
    command_id = Identifier(default=lambda: str(uuid4()))
    issued_at = DateTime(default=lambda: datetime.now(UTC))
    user_id = Identifier()
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    amount = String(required=True, max_length=50)  # decimal string
    payment_method = String(max_length=50)


@ordering.command_handler(part_of=Order)
class ConfirmOrderPaymentHandler:
    @handle(ConfirmOrderPayment)
    def confirm_payment(self, command):
        order = load_order(command.order_id)
        order.confirm_payment(
            payment_id=command.payment_id,
            amount=Decimal(command.amount),
            payment_method=command.payment_method,
            confirmed_by=command.user_id,
        )
        return save_order(order)
