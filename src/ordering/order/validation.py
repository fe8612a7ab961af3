"""Pure validation of order command payloads and lifecycle transitions.

Nothing here touches persistence. Every failure names the offending field
and the constraint it broke so that a caller can correct its input.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Any

from shared.errors import (
    AmountMismatch,
    EmptyOrder,
    IllegalCancellation,
    InvalidItem,
    InvalidTransition,
    ValidationError,
)

from ordering.order.status import CANCELLABLE_STATES, OrderStatus, can_transition

MAX_ADDRESS_LENGTH = 1000
MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 500
MAX_QUANTITY = 1_000_000
MAX_PRICE_DIGITS = 12
PRICE_SCALE = 2
CENT = Decimal("0.01")

# Room for any sum of capped lines; Inexact is trapped so nothing is rounded.
TOTAL_PRECISION = 60


def to_decimal(value: Any) -> Decimal | None:
    """Decimal for ints, decimal strings and floats; None when not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def validate_items(items: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    """Check line items and return them normalised.

    Quantities become ints and unit prices decimal strings, in input order.
    """
    items = list(items or [])
    if not items:
        raise EmptyOrder()

    normalised = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidItem(index, "item", "object", item)

        product_id = item.get("product_id")
        if product_id is None or not str(product_id).strip():
            raise InvalidItem(index, "product_id", "required", product_id)

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidItem(index, "quantity", "positive_integer", quantity)
        if quantity > MAX_QUANTITY:
            raise InvalidItem(index, "quantity", f"max={MAX_QUANTITY}", quantity)

        unit_price = to_decimal(item.get("unit_price"))
        if unit_price is None or unit_price <= 0:
            raise InvalidItem(index, "unit_price", "positive_decimal", item.get("unit_price"))
        if unit_price.adjusted() >= MAX_PRICE_DIGITS:
            raise InvalidItem(index, "unit_price", f"max_integer_digits={MAX_PRICE_DIGITS}", item.get("unit_price"))
        if unit_price != unit_price.quantize(CENT):
            raise InvalidItem(index, "unit_price", f"max_scale={PRICE_SCALE}", item.get("unit_price"))

        normalised.append(
            {
                "product_id": str(product_id).strip(),
                "quantity": quantity,
                "unit_price": str(unit_price),
            }
        )

    return normalised


def compute_total(items: Iterable[Mapping[str, Any]]) -> Decimal:
    """Σ(quantity × unit_price), exact. Raises decimal.Inexact rather than round."""
    with localcontext() as ctx:
        ctx.prec = TOTAL_PRECISION
        ctx.traps[Inexact] = True
        return sum(
            (Decimal(int(item["quantity"])) * Decimal(str(item["unit_price"])) for item in items),
            Decimal("0"),
        )


def require_text(value: Any, field: str, max_length: int) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required", field=field, constraint="non_empty")
    if len(text) > max_length:
        raise ValidationError(
            f"{field} exceeds {max_length} characters",
            field=field,
            constraint=f"max_length={max_length}",
        )
    return text


def optional_text(value: Any, field: str, max_length: int) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_text(value, field, max_length)


def validate_addresses(shipping_address: Any, billing_address: Any) -> tuple[str, str]:
    return (
        require_text(shipping_address, "shipping_address", MAX_ADDRESS_LENGTH),
        require_text(billing_address, "billing_address", MAX_ADDRESS_LENGTH),
    )


def parse_status(value: Any, field: str = "new_status") -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unknown order status {value!r}",
            field=field,
            constraint="one of " + ", ".join(s.value for s in OrderStatus),
        ) from None


def ensure_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def ensure_cancellable(current: OrderStatus) -> None:
    if current not in CANCELLABLE_STATES:
        raise IllegalCancellation(current, CANCELLABLE_STATES)


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    amount = to_decimal(value)
    if amount is None or amount <= 0:
        raise ValidationError(f"{field} must be a positive decimal", field=field, constraint="positive_decimal")
    return amount


def ensure_amount_matches(expected: Decimal, actual: Decimal) -> None:
    if actual != expected:
        raise AmountMismatch(expected, actual)
