"""Order aggregate (Event Sourced), the authoritative record of one order.

All state changes are raised as events and applied through @apply handlers,
so replaying an order's stream rebuilds it exactly. Transitions are checked
against the table in ``ordering.order.status`` before any event is raised:
an illegal command leaves the aggregate untouched.

Items and ``total_amount`` are fixed by OrderCreated and never recomputed.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from protean import apply
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderPaymentConfirmed,
    OrderStatusUpdated,
)
from ordering.order.status import OrderStatus
from ordering.order.validation import (
    compute_total,
    ensure_amount_matches,
    ensure_cancellable,
    ensure_transition,
)


def generate_order_number(now: datetime | None = None) -> str:
    """Human-readable, time-ordered order number: ORD-20260117093000-4F2A9C."""
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d%H%M%S}-{uuid4().hex[:6].upper()}"


def _event_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line item, priced at the moment the order was placed."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = String(required=True, max_length=50)  # decimal string

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.unit_price)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@ordering.aggregate(is_event_sourced=True)
class Order:
    user_id = Identifier(required=True)
    order_number = String(max_length=50)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    total_amount = String(max_length=50)  # decimal string
    currency = String(max_length=3, default="USD")
    shipping_address = Text()
    billing_address = Text()
    notes = Text()
    cancellation_reason = Text()
    refund_requested = Boolean(default=False)
    payment_id = String(max_length=255)
    payment_method = String(max_length=50)
    paid_amount = String(max_length=50)
    estimated_delivery = DateTime()
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    revision = Integer(default=0)  # sequence of the last applied event

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        items,
        shipping_address,
        billing_address,
        notes=None,
        currency="USD",
    ):
        """Place a new order.

        Args:
            user_id: The owner of the order.
            items: Validated line items, dicts with product_id, quantity
                   and unit_price (decimal string).
            shipping_address: Non-empty address text.
            billing_address: Non-empty address text.
            notes: Optional free text.
        """
        now = datetime.now(UTC)

        # Pre-generate item IDs for deterministic replay
        items_with_ids = [{**item, "id": str(uuid4())} for item in items]

        order = cls._create_new()
        order.raise_(
            OrderCreated(
                event_id=_event_id(),
                sequence=1,
                order_id=str(order.id),
                user_id=str(user_id),
                order_number=generate_order_number(now),
                items=json.dumps(items_with_ids),
                total_amount=str(compute_total(items)),
                currency=currency,
                shipping_address=shipping_address,
                billing_address=billing_address,
                notes=notes,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def total(self) -> Decimal:
        return Decimal(self.total_amount)

    def _next_sequence(self) -> int:
        return (self.revision or 0) + 1

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def transition_to(self, target, reason=None, updated_by=None, estimated_delivery=None):
        """Move one step along the transition table."""
        current = self.current_status
        ensure_transition(current, target)

        self.raise_(
            OrderStatusUpdated(
                event_id=_event_id(),
                sequence=self._next_sequence(),
                order_id=str(self.id),
                old_status=current.value,
                new_status=target.value,
                reason=reason,
                updated_by=updated_by,
                estimated_delivery=estimated_delivery,
                updated_at=datetime.now(UTC),
            )
        )

    def cancel(self, reason, refund_requested=False, cancelled_by=None):
        current = self.current_status
        ensure_cancellable(current)

        self.raise_(
            OrderCancelled(
                event_id=_event_id(),
                sequence=self._next_sequence(),
                order_id=str(self.id),
                previous_status=current.value,
                reason=reason,
                refund_requested=bool(refund_requested),
                cancelled_by=cancelled_by,
                cancelled_at=datetime.now(UTC),
            )
        )

    def confirm_payment(self, payment_id, amount: Decimal, payment_method=None, confirmed_by=None):
        """Record a payment for the full total and move the order to PAID.

        A CONFIRMED order passes through PAYMENT_PROCESSING first, so the
        stream always records single legal steps.
        """
        ensure_amount_matches(self.total, amount)

        current = self.current_status
        if current == OrderStatus.CONFIRMED:
            ensure_transition(current, OrderStatus.PAYMENT_PROCESSING)
            ensure_transition(OrderStatus.PAYMENT_PROCESSING, OrderStatus.PAID)
            self.transition_to(
                OrderStatus.PAYMENT_PROCESSING,
                reason=f"Payment {payment_id} received",
                updated_by=confirmed_by,
            )
            current = OrderStatus.PAYMENT_PROCESSING
        else:
            ensure_transition(current, OrderStatus.PAID)

        self.raise_(
            OrderPaymentConfirmed(
                event_id=_event_id(),
                sequence=self._next_sequence(),
                order_id=str(self.id),
                payment_id=payment_id,
                amount=str(amount),
                payment_method=payment_method,
                previous_status=current.value,
                confirmed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_created(self, event: OrderCreated):
        self.id = event.order_id
        self.user_id = event.user_id
        self.order_number = event.order_number
        self.status = OrderStatus.PENDING.value
        self.total_amount = event.total_amount
        self.currency = event.currency or "USD"
        self.shipping_address = event.shipping_address
        self.billing_address = event.billing_address
        self.notes = event.notes
        self.created_at = event.created_at
        self.updated_at = event.created_at
        self.revision = event.sequence

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]

    @apply
    def _on_status_updated(self, event: OrderStatusUpdated):
        self.status = event.new_status
        self.updated_at = event.updated_at
        self.revision = event.sequence

        if event.estimated_delivery:
            self.estimated_delivery = event.estimated_delivery

        new_status = OrderStatus(event.new_status)
        if new_status == OrderStatus.DELIVERED:
            self.completed_at = event.updated_at
        elif new_status == OrderStatus.CANCELLED:
            self.cancelled_at = event.updated_at
            self.cancellation_reason = event.reason

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = event.reason
        self.refund_requested = bool(event.refund_requested)
        self.cancelled_at = event.cancelled_at
        self.updated_at = event.cancelled_at
        self.revision = event.sequence

    @apply
    def _on_payment_confirmed(self, event: OrderPaymentConfirmed):
        self.status = OrderStatus.PAID.value
        self.payment_id = event.payment_id
        self.payment_method = event.payment_method
        self.paid_amount = event.amount
        self.updated_at = event.confirmed_at
        self.revision = event.sequence
