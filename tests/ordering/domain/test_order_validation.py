"""Tests for command payload validation."""

from decimal import Decimal

import pytest
from ordering.order.status import OrderStatus
from ordering.order.validation import (
    MAX_REASON_LENGTH,
    compute_total,
    optional_text,
    parse_amount,
    parse_status,
    require_text,
    to_decimal,
    validate_addresses,
    validate_items,
)
from shared.errors import EmptyOrder, InvalidItem, ValidationError


class TestItems:
    def test_normalises_prices_to_decimal_strings(self):
        items = validate_items([{"product_id": " p1 ", "quantity": 2, "unit_price": 10}])
        assert items == [{"product_id": "p1", "quantity": 2, "unit_price": "10"}]

    def test_total(self):
        items = validate_items(
            [
                {"product_id": "p1", "quantity": 2, "unit_price": "10.00"},
                {"product_id": "p2", "quantity": 1, "unit_price": "5.00"},
            ]
        )
        assert compute_total(items) == Decimal("25.00")

    def test_float_prices_do_not_drift(self):
        items = validate_items([{"product_id": "p1", "quantity": 3, "unit_price": 0.1}])
        assert compute_total(items) == Decimal("0.3")

    def test_total_is_exact_for_the_largest_accepted_lines(self):
        line = {"product_id": "p1", "quantity": 999_999, "unit_price": "999999999999.99"}
        items = validate_items([line] * 1_000)

        assert compute_total(items) == Decimal("999998999999990000010")

    def test_trailing_zeros_beyond_cents_are_accepted(self):
        items = validate_items([{"product_id": "p1", "quantity": 1, "unit_price": "10.000"}])
        assert items[0]["unit_price"] == "10.000"

    @pytest.mark.parametrize("items", [[], None])
    def test_empty_order(self, items):
        with pytest.raises(EmptyOrder) as exc:
            validate_items(items)
        assert exc.value.field == "items"

    @pytest.mark.parametrize(
        "item, field, constraint",
        [
            ({"quantity": 1, "unit_price": "1"}, "items[0].product_id", "required"),
            ({"product_id": "  ", "quantity": 1, "unit_price": "1"}, "items[0].product_id", "required"),
            ({"product_id": "p", "quantity": 0, "unit_price": "1"}, "items[0].quantity", "positive_integer"),
            ({"product_id": "p", "quantity": -2, "unit_price": "1"}, "items[0].quantity", "positive_integer"),
            ({"product_id": "p", "quantity": 1.5, "unit_price": "1"}, "items[0].quantity", "positive_integer"),
            ({"product_id": "p", "quantity": True, "unit_price": "1"}, "items[0].quantity", "positive_integer"),
            ({"product_id": "p", "quantity": 1, "unit_price": "0"}, "items[0].unit_price", "positive_decimal"),
            ({"product_id": "p", "quantity": 1, "unit_price": "-3"}, "items[0].unit_price", "positive_decimal"),
            ({"product_id": "p", "quantity": 1, "unit_price": "abc"}, "items[0].unit_price", "positive_decimal"),
            ({"product_id": "p", "quantity": 1}, "items[0].unit_price", "positive_decimal"),
            ({"product_id": "p", "quantity": 1_000_001, "unit_price": "1"}, "items[0].quantity", "max=1000000"),
            ({"product_id": "p", "quantity": 1, "unit_price": "0.001"}, "items[0].unit_price", "max_scale=2"),
            ({"product_id": "p", "quantity": 1, "unit_price": 0.1 + 0.2}, "items[0].unit_price", "max_scale=2"),
            (
                {"product_id": "p", "quantity": 1, "unit_price": "1234567890123"},
                "items[0].unit_price",
                "max_integer_digits=12",
            ),
        ],
    )
    def test_invalid_item(self, item, field, constraint):
        with pytest.raises(InvalidItem) as exc:
            validate_items([item])
        assert exc.value.field == field
        assert exc.value.constraint == constraint

    def test_reports_the_offending_index(self):
        with pytest.raises(InvalidItem) as exc:
            validate_items(
                [
                    {"product_id": "p1", "quantity": 1, "unit_price": "1"},
                    {"product_id": "p2", "quantity": 0, "unit_price": "1"},
                ]
            )
        assert exc.value.index == 1


class TestDecimals:
    @pytest.mark.parametrize("value", [None, True, "nan", "Infinity", "", "1,5"])
    def test_not_a_number(self, value):
        assert to_decimal(value) is None

    def test_parse_amount(self):
        assert parse_amount("25.00") == Decimal("25.00")

    @pytest.mark.parametrize("value", ["0", "-1", "x", None])
    def test_parse_amount_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            parse_amount(value)
        assert exc.value.field == "amount"


class TestText:
    def test_required(self):
        with pytest.raises(ValidationError) as exc:
            require_text("   ", "reason", MAX_REASON_LENGTH)
        assert exc.value.constraint == "non_empty"

    def test_too_long(self):
        with pytest.raises(ValidationError) as exc:
            require_text("x" * (MAX_REASON_LENGTH + 1), "reason", MAX_REASON_LENGTH)
        assert exc.value.constraint == f"max_length={MAX_REASON_LENGTH}"

    def test_optional_blank_is_none(self):
        assert optional_text("  ", "notes", 10) is None

    def test_addresses_required(self):
        with pytest.raises(ValidationError) as exc:
            validate_addresses("1 Main St", "")
        assert exc.value.field == "billing_address"


class TestStatusParsing:
    def test_case_insensitive(self):
        assert parse_status("shipped") is OrderStatus.SHIPPED

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            parse_status("LOST")
        assert exc.value.field == "new_status"
