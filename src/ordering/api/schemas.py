"""Pydantic request/response schemas for the Ordering command API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Business rules (non-empty items, positive
quantities and prices, known statuses) are left to the command validator
so that callers get the same typed errors whichever entry point they use.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class OrderItemSchema(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal


class CreateOrderRequest(BaseModel):
    items: list[OrderItemSchema] = []
    shipping_address: str
    billing_address: str
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"product_id": "p1", "quantity": 2, "unit_price": "10.00"},
                        {"product_id": "p2", "quantity": 1, "unit_price": "5.00"},
                    ],
                    "shipping_address": "1 Main St, Springfield",
                    "billing_address": "1 Main St, Springfield",
                    "notes": "Leave at the door",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = None
    estimated_delivery: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str
    refund_requested: bool = False


class ConfirmPaymentRequest(BaseModel):
    payment_id: str
    amount: Decimal
    payment_method: str | None = None


class CommandResponse(BaseModel):
    command_id: str
    order_id: str
    order_number: str | None = None
    status: str
    event_ids: list[str] = []
    published: bool = False
