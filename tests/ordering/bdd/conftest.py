"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import Order
from ordering.order.status import OrderStatus
from pytest_bdd import given, parsers, then

# Shortest legal path from PENDING to each status
_PATHS = {
    "PENDING": [],
    "CONFIRMED": ["CONFIRMED"],
    "PAYMENT_PROCESSING": ["CONFIRMED", "PAYMENT_PROCESSING"],
    "PAID": ["CONFIRMED", "PAYMENT_PROCESSING", "PAID"],
    "PREPARING": ["CONFIRMED", "PAYMENT_PROCESSING", "PAID", "PREPARING"],
    "SHIPPED": ["CONFIRMED", "PAYMENT_PROCESSING", "PAID", "PREPARING", "SHIPPED"],
    "DELIVERED": ["CONFIRMED", "PAYMENT_PROCESSING", "PAID", "PREPARING", "SHIPPED", "DELIVERED"],
    "CANCELLED": ["CANCELLED"],
    "REFUNDED": ["CONFIRMED", "PAYMENT_PROCESSING", "PAID", "REFUNDED"],
}


@pytest.fixture()
def error():
    """Container for the error raised by a When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an order for user "{user_id}" with items:'), target_fixture="order")
def _(user_id, datatable):
    header, *rows = datatable
    items = [dict(zip(header, row, strict=True)) for row in rows]
    for item in items:
        item["quantity"] = int(item["quantity"])

    order = Order.create(
        user_id=user_id,
        items=items,
        shipping_address="1 Main St, Springfield",
        billing_address="1 Main St, Springfield",
    )
    order._events.clear()
    return order


@given(parsers.cfparse('the order reached "{status}"'), target_fixture="order")
def _(order, status):
    for step in _PATHS[status]:
        order.transition_to(OrderStatus(step))
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('the order total is "{total}"'))
def _(order, total):
    assert order.total_amount == total


@then("the order is terminal")
def _(order):
    assert order.current_status.is_terminal


@then(parsers.cfparse("the order recorded {count:d} new events"))
def _(order, count):
    assert len(order._events) == count
