"""OrderQueryHandler: listings, detail, ownership and tracking."""

from datetime import UTC, datetime, timedelta

import pytest
from shared.errors import AccessDenied, InvalidQuery, OrderNotFound


def _items(price):
    return [{"product_id": "p1", "quantity": 1, "unit_price": price}]


@pytest.fixture()
def three_orders(place_order):
    """Orders of u1 totalling 10, 30 and 20, plus one order of u2."""
    ids = [place_order(items=_items(price)).order_id for price in ("10.00", "30.00", "20.00")]
    other = place_order(user_id="u2", items=_items("99.00")).order_id
    return ids, other


class TestUserOrders:
    def test_only_own_orders(self, queries, three_orders):
        ids, other = three_orders

        page = queries.get_user_orders("u1")

        assert page["total_count"] == 3
        assert {o["order_id"] for o in page["items"]} == set(ids)
        assert other not in {o["order_id"] for o in page["items"]}
        assert page["page"] == 0
        assert page["size"] == 20

    def test_sort_by_total(self, queries, three_orders):
        page = queries.get_user_orders("u1", sort_by="total_amount", sort_direction="ASC")
        assert [o["total_amount"] for o in page["items"]] == ["10.00", "20.00", "30.00"]

        page = queries.get_user_orders("u1", sort_by="totalAmount", sort_direction="desc")
        assert [o["total_amount"] for o in page["items"]] == ["30.00", "20.00", "10.00"]

    def test_newest_first_by_default(self, queries, three_orders):
        items = queries.get_user_orders("u1")["items"]
        created = [o["created_at"] for o in items]
        assert created == sorted(created, reverse=True)

    def test_pagination(self, queries, three_orders):
        first = queries.get_user_orders("u1", page=0, size=2, sort_by="total_amount", sort_direction="ASC")
        second = queries.get_user_orders("u1", page=1, size=2, sort_by="total_amount", sort_direction="ASC")

        assert [o["total_amount"] for o in first["items"]] == ["10.00", "20.00"]
        assert [o["total_amount"] for o in second["items"]] == ["30.00"]
        assert first["total_count"] == second["total_count"] == 3

    def test_page_past_the_end_is_empty(self, queries, three_orders):
        page = queries.get_user_orders("u1", page=5, size=2)
        assert page["items"] == []
        assert page["total_count"] == 3

    def test_status_filter(self, commands, queries, three_orders):
        ids, _ = three_orders
        commands.update_order_status(ids[0], "CONFIRMED")

        page = queries.get_user_orders("u1", status_filter=["confirmed"])

        assert [o["order_id"] for o in page["items"]] == [ids[0]]

    def test_date_range(self, queries, three_orders):
        today = datetime.now(UTC).date()

        assert queries.get_user_orders("u1", from_date=today, to_date=today)["total_count"] == 3
        assert queries.get_user_orders("u1", to_date=today - timedelta(days=1))["total_count"] == 0

    def test_consistency_block(self, queries, three_orders):
        consistency = queries.get_user_orders("u1")["consistency"]

        assert consistency["model"] == "eventual"
        assert consistency["as_of"] >= consistency["projected_at"]

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"page": -1}, "page"),
            ({"size": 0}, "size"),
            ({"size": 101}, "size"),
            ({"sort_by": "price"}, "sort_by"),
            ({"sort_direction": "UP"}, "sort_direction"),
            ({"status_filter": ["LOST"]}, "status_filter"),
            ({"from_date": datetime(2030, 1, 2, tzinfo=UTC), "to_date": datetime(2030, 1, 1, tzinfo=UTC)}, "from_date"),
        ],
    )
    def test_invalid_query(self, queries, kwargs, field):
        with pytest.raises(InvalidQuery) as exc:
            queries.get_user_orders("u1", **kwargs)
        assert exc.value.field == field


class TestAdminOrders:
    def test_sees_every_order(self, queries, three_orders):
        page = queries.get_orders_for_admin()
        assert page["total_count"] == 4
        assert page["size"] == 50

    def test_search_by_order_number(self, queries, place_order):
        target = place_order()
        place_order()

        page = queries.get_orders_for_admin(search_term=target.order_number[-6:].lower())

        assert [o["order_id"] for o in page["items"]] == [target.order_id]

    def test_search_by_email(self, container, queries, place_order):
        container.users.remember("u2", email="Bob@Example.com")
        place_order()
        bob = place_order(user_id="u2").order_id

        page = queries.get_orders_for_admin(search_term="bob@")

        assert [o["order_id"] for o in page["items"]] == [bob]

    def test_status_filter(self, commands, queries, three_orders):
        ids, _ = three_orders
        commands.cancel_order(ids[1], "Duplicate order")

        page = queries.get_orders_for_admin(status="CANCELLED")

        assert [o["order_id"] for o in page["items"]] == [ids[1]]


class TestSingleOrder:
    def test_owner_gets_detail(self, queries, place_order, sample_items):
        result = place_order()

        order = queries.get_order_by_id(result.order_id, "u1")

        assert order["order_number"] == result.order_number
        assert order["total_amount"] == "25.00"
        assert order["items"] == [
            {"product_id": "p1", "quantity": 2, "unit_price": "10.00"},
            {"product_id": "p2", "quantity": 1, "unit_price": "5.00"},
        ]
        assert order["consistency"]["model"] == "eventual"

    def test_other_user_is_denied(self, queries, place_order):
        order_id = place_order().order_id
        with pytest.raises(AccessDenied):
            queries.get_order_by_id(order_id, "u2")

    def test_admin_query_bypasses_ownership(self, queries, place_order):
        order_id = place_order().order_id
        assert queries.get_order_for_admin(order_id)["user_id"] == "u1"

    def test_unknown_order(self, queries):
        with pytest.raises(OrderNotFound):
            queries.get_order_by_id("missing", "u1")


class TestTracking:
    def test_confirmed_order_progress(self, commands, queries, place_order):
        order_id = place_order().order_id
        commands.update_order_status(order_id, "CONFIRMED")

        tracking = queries.get_order_tracking(order_id, "u1")

        assert tracking["status"] == "CONFIRMED"
        assert tracking["progress"] == 25
        assert tracking["tracking_status"] == "Order confirmed, preparing for shipment"
        assert [e["status"] for e in tracking["events"]] == ["PENDING", "CONFIRMED"]

    def test_without_events(self, queries, place_order):
        order_id = place_order().order_id
        tracking = queries.get_order_tracking(order_id, "u1", include_events=False)
        assert "events" not in tracking
        assert tracking["progress"] == 10

    def test_other_user_is_denied(self, queries, place_order):
        order_id = place_order().order_id
        with pytest.raises(AccessDenied):
            queries.get_order_tracking(order_id, "u2")
