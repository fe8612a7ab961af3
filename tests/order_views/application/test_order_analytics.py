"""Per-user analytics and store-wide statistics."""

from datetime import UTC, datetime, timedelta

import pytest
from shared.errors import InvalidQuery


def _items(price):
    return [{"product_id": "p1", "quantity": 1, "unit_price": price}]


@pytest.fixture()
def orders(commands, place_order):
    """u1: one paid order of 25.00 and two pending ones; u2: one pending order."""
    paid = place_order(items=_items("25.00")).order_id
    commands.update_order_status(paid, "CONFIRMED")
    commands.confirm_order_payment(paid, "pay-1", "25.00")
    place_order(items=_items("10.00"))
    place_order(items=_items("7.00"))
    place_order(user_id="u2", items=_items("50.00"))
    return paid


def _today():
    return datetime.now(UTC).date()


class TestOrderAnalytics:
    def test_revenue_counts_only_paid_or_delivered(self, queries, orders):
        analytics = queries.get_order_analytics("u1", _today() - timedelta(days=1), _today())

        assert analytics["order_count"] == 3
        assert analytics["total_revenue"] == "25.00"

    def test_average_is_revenue_over_all_orders_rounded_half_up(self, queries, orders):
        analytics = queries.get_order_analytics("u1", _today(), _today())
        assert analytics["average_order_value"] == "8.33"

    def test_time_series(self, queries, orders):
        analytics = queries.get_order_analytics("u1", _today(), _today())

        assert analytics["time_series"] == [
            {"period": _today().isoformat(), "order_count": 3, "revenue": "25.00"},
        ]

    def test_group_by_month(self, queries, orders):
        analytics = queries.get_order_analytics("u1", _today(), _today(), group_by="month")
        assert [p["period"] for p in analytics["time_series"]] == [f"{_today():%Y-%m}"]

    def test_empty_range(self, queries, orders):
        past = _today() - timedelta(days=30)

        analytics = queries.get_order_analytics("u1", past, past)

        assert analytics["order_count"] == 0
        assert analytics["total_revenue"] == "0.00"
        assert analytics["average_order_value"] == "0.00"
        assert analytics["time_series"] == []

    def test_invalid_grouping(self, queries):
        with pytest.raises(InvalidQuery) as exc:
            queries.get_order_analytics("u1", _today(), _today(), group_by="year")
        assert exc.value.field == "group_by"


class TestOrderStatistics:
    def test_store_wide_figures(self, queries, orders):
        stats = queries.get_order_statistics(period="last7days")

        assert stats["order_count"] == 4
        assert stats["total_revenue"] == "25.00"
        assert stats["average_order_value"] == "6.25"
        assert stats["status_breakdown"]["PAID"] == 1
        assert stats["status_breakdown"]["PENDING"] == 3
        assert stats["status_breakdown"]["DELIVERED"] == 0

    def test_today(self, queries, orders):
        assert queries.get_order_statistics(period="today")["order_count"] == 4

    def test_unknown_period(self, queries):
        with pytest.raises(InvalidQuery) as exc:
            queries.get_order_statistics(period="forever")
        assert exc.value.field == "period"
