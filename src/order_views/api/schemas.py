"""Pydantic response schemas for the order views API."""

from datetime import datetime

from pydantic import BaseModel


class Consistency(BaseModel):
    model: str = "eventual"
    as_of: datetime
    projected_at: datetime | None = None


class OrderItemView(BaseModel):
    product_id: str
    quantity: int
    unit_price: str


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    user_email: str | None = None
    user_name: str | None = None
    status: str
    total_amount: str
    currency: str | None = "USD"
    item_count: int = 0
    items: list[OrderItemView] = []
    shipping_address: str | None = None
    billing_address: str | None = None
    notes: str | None = None
    payment_status: str | None = None
    payment_id: str | None = None
    payment_method: str | None = None
    paid_amount: str | None = None
    refund_requested: bool = False
    cancellation_reason: str | None = None
    estimated_delivery: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    last_sequence: int = 0


class OrderDetailResponse(OrderResponse):
    consistency: Consistency


class OrderPage(BaseModel):
    items: list[OrderResponse]
    total_count: int
    page: int
    size: int
    consistency: Consistency


class TimelineEvent(BaseModel):
    event_type: str
    status: str | None = None
    description: str | None = None
    occurred_at: datetime | None = None


class TrackingResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    tracking_status: str
    progress: int
    estimated_delivery: datetime | None = None
    updated_at: datetime | None = None
    events: list[TimelineEvent] | None = None
    consistency: Consistency


class TimeSeriesPoint(BaseModel):
    period: str
    order_count: int
    revenue: str


class AnalyticsResponse(BaseModel):
    user_id: str
    from_date: datetime | None = None
    to_date: datetime | None = None
    group_by: str
    order_count: int
    total_revenue: str
    average_order_value: str
    time_series: list[TimeSeriesPoint]
    consistency: Consistency


class StatisticsResponse(BaseModel):
    period: str
    from_date: datetime
    to_date: datetime
    group_by: str
    order_count: int
    total_revenue: str
    average_order_value: str
    time_series: list[TimeSeriesPoint]
    status_breakdown: dict[str, int]
    consistency: Consistency
