"""FastAPI routes for the order views (read side)."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from shared.http import UserContext, admin_user, current_user

from order_views.api.schemas import (
    AnalyticsResponse,
    OrderDetailResponse,
    OrderPage,
    StatisticsResponse,
    TrackingResponse,
)
from order_views.queries import OrderQueryHandler

view_router = APIRouter(prefix="/orders", tags=["order views"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_query_handler(request: Request) -> OrderQueryHandler:
    return request.app.state.container.query_handler


# ---------------------------------------------------------------------------
# Customer queries
# ---------------------------------------------------------------------------
@view_router.get("", response_model=OrderPage)
def list_my_orders(
    page: int = 0,
    size: int = 20,
    sort_by: str = "created_at",
    sort_direction: str = "DESC",
    status: list[str] | None = Query(default=None),
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    user: UserContext = Depends(current_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_user_orders(
        user.user_id,
        page=page,
        size=size,
        sort_by=sort_by,
        sort_direction=sort_direction,
        status_filter=status,
        from_date=from_date,
        to_date=to_date,
    )


@view_router.get("/analytics", response_model=AnalyticsResponse)
def my_order_analytics(
    from_date: datetime,
    to_date: datetime,
    group_by: str = "day",
    user: UserContext = Depends(current_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_order_analytics(user.user_id, from_date, to_date, group_by=group_by)


@view_router.get("/{order_id}", response_model=OrderDetailResponse)
def get_my_order(
    order_id: str,
    user: UserContext = Depends(current_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_order_by_id(order_id, user.user_id)


@view_router.get("/{order_id}/tracking", response_model=TrackingResponse)
def track_my_order(
    order_id: str,
    include_events: bool = True,
    user: UserContext = Depends(current_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_order_tracking(order_id, user.user_id, include_events=include_events)


# ---------------------------------------------------------------------------
# Admin queries
# ---------------------------------------------------------------------------
@admin_router.get("", response_model=OrderPage)
def list_orders(
    page: int = 0,
    size: int = 50,
    status: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_direction: str = "DESC",
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    _: UserContext = Depends(admin_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_orders_for_admin(
        page=page,
        size=size,
        status=status,
        search_term=search,
        sort_by=sort_by,
        sort_direction=sort_direction,
        from_date=from_date,
        to_date=to_date,
    )


@admin_router.get("/statistics", response_model=StatisticsResponse)
def order_statistics(
    period: str = "last30days",
    group_by: str = "day",
    _: UserContext = Depends(admin_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_order_statistics(period=period, group_by=group_by)


@admin_router.get("/{order_id}", response_model=OrderDetailResponse)
def get_order(
    order_id: str,
    _: UserContext = Depends(admin_user),
    queries: OrderQueryHandler = Depends(get_query_handler),
):
    return queries.get_order_for_admin(order_id)
