"""Tests for the Order aggregate: creation, totals, sequencing, cancellation and payment."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from ordering.order.events import OrderCancelled, OrderCreated, OrderPaymentConfirmed, OrderStatusUpdated
from ordering.order.order import Order, OrderItem, generate_order_number
from ordering.order.status import OrderStatus
from shared.errors import AmountMismatch, InvalidTransition

ITEMS = [
    {"product_id": "p1", "quantity": 2, "unit_price": "10.00"},
    {"product_id": "p2", "quantity": 1, "unit_price": "5.00"},
]


def _make_order(**overrides):
    kwargs = {
        "user_id": "u1",
        "items": ITEMS,
        "shipping_address": "1 Main St",
        "billing_address": "2 Side St",
    }
    kwargs.update(overrides)
    return Order.create(**kwargs)


def _advance(order, *statuses):
    for status in statuses:
        order.transition_to(status)
    order._events.clear()
    return order


class TestOrderNumber:
    def test_format(self):
        number = generate_order_number()
        prefix, stamp, suffix = number.split("-")
        assert prefix == "ORD"
        assert len(stamp) == 14 and stamp.isdigit()
        assert len(suffix) == 6

    def test_numbers_are_unique(self):
        assert len({generate_order_number() for _ in range(50)}) == 50


class TestOrderCreation:
    def test_new_order_is_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value

    def test_total_is_exact(self):
        order = _make_order()
        assert order.total == Decimal("25.00")
        assert order.total_amount == "25.00"

    def test_items_are_kept(self):
        order = _make_order()
        assert len(order.items) == 2
        assert all(isinstance(item, OrderItem) for item in order.items)
        assert sum((item.line_total for item in order.items), Decimal("0")) == Decimal("25.00")

    def test_order_number_assigned(self):
        assert _make_order().order_number.startswith("ORD-")

    def test_raises_order_created_with_sequence_one(self):
        order = _make_order(notes="Ring twice")
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderCreated)
        assert event.sequence == 1
        assert event.order_id == str(order.id)
        assert event.notes == "Ring twice"
        assert [i["product_id"] for i in json.loads(event.items)] == ["p1", "p2"]
        assert order.revision == 1

    def test_timestamps_set(self):
        order = _make_order()
        assert order.created_at is not None
        assert order.updated_at == order.created_at


class TestSequencing:
    def test_each_event_takes_the_next_sequence(self):
        order = _make_order()
        order.transition_to(OrderStatus.CONFIRMED)
        order.transition_to(OrderStatus.PAYMENT_PROCESSING)
        assert [e.sequence for e in order._events] == [1, 2, 3]
        assert order.revision == 3

    def test_event_ids_are_unique(self):
        order = _make_order()
        order.transition_to(OrderStatus.CONFIRMED)
        assert len({e.event_id for e in order._events}) == 2


class TestStatusUpdate:
    def test_shipped_with_estimated_delivery(self):
        order = _advance(
            _make_order(),
            OrderStatus.CONFIRMED,
            OrderStatus.PAYMENT_PROCESSING,
            OrderStatus.PAID,
            OrderStatus.PREPARING,
        )
        eta = datetime(2030, 1, 5, tzinfo=UTC)
        order.transition_to(OrderStatus.SHIPPED, reason="Handed to carrier", estimated_delivery=eta)

        assert order.estimated_delivery == eta
        event = order._events[0]
        assert isinstance(event, OrderStatusUpdated)
        assert event.reason == "Handed to carrier"

    def test_delivered_sets_completed_at(self):
        order = _advance(
            _make_order(),
            OrderStatus.CONFIRMED,
            OrderStatus.PAYMENT_PROCESSING,
            OrderStatus.PAID,
            OrderStatus.PREPARING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        assert order.completed_at is not None


class TestCancellation:
    def test_cancel_records_reason_and_refund_flag(self):
        order = _make_order()
        order._events.clear()

        order.cancel("Found it cheaper", refund_requested=True, cancelled_by="u1")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Found it cheaper"
        assert order.refund_requested is True
        assert order.cancelled_at is not None
        event = order._events[0]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "PENDING"


class TestPaymentConfirmation:
    def test_from_payment_processing(self):
        order = _advance(_make_order(), OrderStatus.CONFIRMED, OrderStatus.PAYMENT_PROCESSING)

        order.confirm_payment("pay-1", Decimal("25.00"), payment_method="card")

        assert order.status == OrderStatus.PAID.value
        assert order.payment_id == "pay-1"
        assert order.paid_amount == "25.00"
        assert [type(e) for e in order._events] == [OrderPaymentConfirmed]

    def test_from_confirmed_passes_through_payment_processing(self):
        order = _advance(_make_order(), OrderStatus.CONFIRMED)

        order.confirm_payment("pay-1", Decimal("25"))

        assert order.status == OrderStatus.PAID.value
        assert [type(e) for e in order._events] == [OrderStatusUpdated, OrderPaymentConfirmed]
        assert order._events[0].new_status == "PAYMENT_PROCESSING"
        assert [e.sequence for e in order._events] == [3, 4]

    def test_amount_must_match_total(self):
        order = _advance(_make_order(), OrderStatus.CONFIRMED, OrderStatus.PAYMENT_PROCESSING)

        with pytest.raises(AmountMismatch):
            order.confirm_payment("pay-1", Decimal("24.99"))

        assert order.status == OrderStatus.PAYMENT_PROCESSING.value
        assert order._events == []

    def test_pending_order_cannot_be_paid(self):
        order = _make_order()
        order._events.clear()

        with pytest.raises(InvalidTransition):
            order.confirm_payment("pay-1", Decimal("25.00"))

        assert order._events == []

