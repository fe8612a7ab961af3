"""Read-side queries over the order views.

Every query runs against the order_views store only, is bounded by
``query_timeout`` and reports how fresh its data is: results carry a
``consistency`` block (``model`` is always ``eventual``; ``as_of`` is when
the read happened; ``projected_at`` is when the newest returned view was
last updated). A view that trails the write side is served as is.

Pages are zero-based and shaped ``{items, total_count, page, size}``.
"""

import json
from collections import Counter, defaultdict
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError
from shared.deadline import run_with_timeout
from shared.errors import AccessDenied, InvalidQuery, OrderNotFound
from shared.querying import scan
from shared.settings import Settings

from order_views.projections.order_timeline import OrderTimelineEntry
from order_views.projections.order_view import OrderView
from order_views.tracking import phrase_for, progress_for

logger = structlog.get_logger(__name__)

STATUSES = (
    "PENDING",
    "CONFIRMED",
    "PAYMENT_PROCESSING",
    "PAID",
    "PREPARING",
    "SHIPPED",
    "DELIVERED",
    "CANCELLED",
    "REFUNDED",
)
REVENUE_STATUSES = frozenset({"PAID", "DELIVERED"})

SORT_FIELDS = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "total_amount": "total_value",
    "totalAmount": "total_value",
    "order_number": "order_number",
    "orderNumber": "order_number",
    "status": "status",
}
GROUPINGS = ("day", "week", "month")
PERIODS = {
    "today": 0,
    "last7days": 7,
    "last30days": 30,
    "last90days": 90,
}
MAX_PAGE_SIZE = 100
CENTS = Decimal("0.01")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _aware(value, end_of_day=False):
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end_of_day else time.min)
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _money(amount: Decimal) -> str:
    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def _bucket(moment: datetime, group_by: str) -> str:
    day = moment.astimezone(UTC).date()
    if group_by == "week":
        return (day - timedelta(days=day.weekday())).isoformat()
    if group_by == "month":
        return f"{day:%Y-%m}"
    return day.isoformat()


def order_to_dict(view: OrderView) -> dict:
    return {
        "order_id": str(view.order_id),
        "order_number": view.order_number,
        "user_id": str(view.user_id),
        "user_email": view.user_email,
        "user_name": view.user_name,
        "status": view.status,
        "total_amount": view.total_amount,
        "currency": view.currency,
        "item_count": view.item_count,
        "items": json.loads(view.items) if view.items else [],
        "shipping_address": view.shipping_address,
        "billing_address": view.billing_address,
        "notes": view.notes,
        "payment_status": view.payment_status,
        "payment_id": view.payment_id,
        "payment_method": view.payment_method,
        "paid_amount": view.paid_amount,
        "refund_requested": bool(view.refund_requested),
        "cancellation_reason": view.cancellation_reason,
        "estimated_delivery": view.estimated_delivery,
        "created_at": view.created_at,
        "updated_at": view.updated_at,
        "completed_at": view.completed_at,
        "cancelled_at": view.cancelled_at,
        "last_sequence": view.last_sequence,
    }


def _consistency(views) -> dict:
    projected = [v.projected_at for v in views if v.projected_at is not None]
    return {
        "model": "eventual",
        "as_of": datetime.now(UTC),
        "projected_at": max(projected) if projected else None,
    }


def _check_paging(page, size) -> None:
    if not isinstance(page, int) or page < 0:
        raise InvalidQuery("page must be a non-negative integer", field="page", constraint=">= 0")
    if not isinstance(size, int) or not 1 <= size <= MAX_PAGE_SIZE:
        raise InvalidQuery(
            f"size must be between 1 and {MAX_PAGE_SIZE}",
            field="size",
            constraint=f"1..{MAX_PAGE_SIZE}",
        )


def _sort_key(sort_by: str) -> str:
    try:
        return SORT_FIELDS[sort_by]
    except KeyError:
        raise InvalidQuery(
            f"Cannot sort by {sort_by!r}",
            field="sort_by",
            constraint="one of " + ", ".join(sorted(set(SORT_FIELDS))),
        ) from None


def _descending(sort_direction: str) -> bool:
    direction = (sort_direction or "DESC").upper()
    if direction not in ("ASC", "DESC"):
        raise InvalidQuery("sort_direction must be ASC or DESC", field="sort_direction", constraint="ASC|DESC")
    return direction == "DESC"


def _statuses(values, field="status_filter") -> set[str] | None:
    if not values:
        return None
    if isinstance(values, str):
        values = [values]
    statuses = {str(v).strip().upper() for v in values}
    unknown = statuses - set(STATUSES)
    if unknown:
        raise InvalidQuery(
            f"Unknown status {', '.join(sorted(unknown))}",
            field=field,
            constraint="one of " + ", ".join(STATUSES),
        )
    return statuses


def _date_range(from_date, to_date):
    start, end = _aware(from_date), _aware(to_date, end_of_day=True)
    if start and end and start > end:
        raise InvalidQuery("from_date must not be after to_date", field="from_date", constraint="<= to_date")
    return start, end


def _in_range(view: OrderView, start, end) -> bool:
    created = _aware(view.created_at)
    if start and (created is None or created < start):
        return False
    if end and (created is None or created > end):
        return False
    return True


def _paginate(views, page, size, sort_field, descending) -> tuple[list, int]:
    def key(view):
        value = getattr(view, sort_field)
        if isinstance(value, datetime):
            value = _aware(value)
        return (value is not None, value if value is not None else 0, str(view.order_id))

    ordered = sorted(views, key=key, reverse=descending)
    start = page * size
    return ordered[start : start + size], len(ordered)


def _summarise(views, group_by: str) -> dict:
    revenue_views = [v for v in views if v.status in REVENUE_STATUSES]
    total_revenue = sum((Decimal(v.total_amount) for v in revenue_views), Decimal("0"))
    order_count = len(views)
    average = total_revenue / order_count if order_count else Decimal("0")

    buckets: dict[str, dict] = defaultdict(lambda: {"order_count": 0, "revenue": Decimal("0")})
    for view in views:
        bucket = buckets[_bucket(_aware(view.created_at), group_by)]
        bucket["order_count"] += 1
        if view.status in REVENUE_STATUSES:
            bucket["revenue"] += Decimal(view.total_amount)

    return {
        "order_count": order_count,
        "total_revenue": _money(total_revenue),
        "average_order_value": _money(average),
        "time_series": [
            {"period": period, "order_count": data["order_count"], "revenue": _money(data["revenue"])}
            for period, data in sorted(buckets.items())
        ],
    }


# ---------------------------------------------------------------------------
# Query handler
# ---------------------------------------------------------------------------
class OrderQueryHandler:
    def __init__(self, domain: Domain, settings: Settings | None = None) -> None:
        self.domain = domain
        self.settings = settings or Settings()

    def _run(self, operation, fn, *args, **kwargs):
        def in_context():
            with self.domain.domain_context():
                return fn(*args, **kwargs)

        return run_with_timeout(operation, self.settings.query_timeout, in_context)

    def _views(self, **filters) -> list[OrderView]:
        return scan(self.domain.repository_for(OrderView), **filters)

    def _view(self, order_id) -> OrderView:
        try:
            return self.domain.repository_for(OrderView).get(str(order_id))
        except ObjectNotFoundError:
            raise OrderNotFound(str(order_id)) from None

    def _owned_view(self, order_id, user_id) -> OrderView:
        view = self._view(order_id)
        if str(view.user_id) != str(user_id):
            logger.warning("Order access denied", order_id=str(order_id), user_id=user_id)
            raise AccessDenied(str(order_id), user_id)
        return view

    # -------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------
    def get_user_orders(
        self,
        user_id,
        page=0,
        size=20,
        sort_by="created_at",
        sort_direction="DESC",
        status_filter=None,
        from_date=None,
        to_date=None,
    ) -> dict:
        _check_paging(page, size)
        sort_field = _sort_key(sort_by)
        descending = _descending(sort_direction)
        statuses = _statuses(status_filter)
        start, end = _date_range(from_date, to_date)

        def query():
            views = [
                v
                for v in self._views(user_id=str(user_id))
                if (statuses is None or v.status in statuses) and _in_range(v, start, end)
            ]
            items, total = _paginate(views, page, size, sort_field, descending)
            return {
                "items": [order_to_dict(v) for v in items],
                "total_count": total,
                "page": page,
                "size": size,
                "consistency": _consistency(items),
            }

        return self._run("get_user_orders", query)

    def get_orders_for_admin(
        self,
        page=0,
        size=50,
        status=None,
        search_term=None,
        sort_by="created_at",
        sort_direction="DESC",
        from_date=None,
        to_date=None,
    ) -> dict:
        """Every order, optionally narrowed by status, date range and a
        case-insensitive substring of the order number or user email."""
        _check_paging(page, size)
        sort_field = _sort_key(sort_by)
        descending = _descending(sort_direction)
        statuses = _statuses(status, field="status")
        start, end = _date_range(from_date, to_date)
        term = (search_term or "").strip().lower()

        def matches(view):
            if statuses is not None and view.status not in statuses:
                return False
            if term and term not in (view.order_number or "").lower() and term not in (view.user_email or "").lower():
                return False
            return _in_range(view, start, end)

        def query():
            views = [v for v in self._views() if matches(v)]
            items, total = _paginate(views, page, size, sort_field, descending)
            return {
                "items": [order_to_dict(v) for v in items],
                "total_count": total,
                "page": page,
                "size": size,
                "consistency": _consistency(items),
            }

        return self._run("get_orders_for_admin", query)

    # -------------------------------------------------------------------
    # Single order
    # -------------------------------------------------------------------
    def get_order_by_id(self, order_id, user_id) -> dict:
        """Order detail for its owner. Any other user gets AccessDenied, whatever their roles."""

        def query():
            view = self._owned_view(order_id, user_id)
            return {**order_to_dict(view), "consistency": _consistency([view])}

        return self._run("get_order_by_id", query)

    def get_order_for_admin(self, order_id) -> dict:
        def query():
            view = self._view(order_id)
            return {**order_to_dict(view), "consistency": _consistency([view])}

        return self._run("get_order_for_admin", query)

    def get_order_tracking(self, order_id, user_id, include_events=True) -> dict:
        def query():
            view = self._owned_view(order_id, user_id)
            tracking = {
                "order_id": str(view.order_id),
                "order_number": view.order_number,
                "status": view.status,
                "tracking_status": phrase_for(view.status),
                "progress": progress_for(view.status),
                "estimated_delivery": view.estimated_delivery,
                "updated_at": view.updated_at,
                "consistency": _consistency([view]),
            }
            if include_events:
                entries = scan(self.domain.repository_for(OrderTimelineEntry), order_id=str(view.order_id))
                tracking["events"] = [
                    {
                        "event_type": entry.event_type,
                        "status": entry.status,
                        "description": entry.description,
                        "occurred_at": entry.occurred_at,
                    }
                    for entry in sorted(entries, key=lambda e: e.sequence)
                ]
            return tracking

        return self._run("get_order_tracking", query)

    # -------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------
    def get_order_analytics(self, user_id, from_date, to_date, group_by="day") -> dict:
        """Order count, revenue from PAID/DELIVERED orders, average order value
        (revenue / order count, half-up to cents) and a time series."""
        if group_by not in GROUPINGS:
            raise InvalidQuery("group_by must be day, week or month", field="group_by", constraint="day|week|month")
        start, end = _date_range(from_date, to_date)

        def query():
            views = [v for v in self._views(user_id=str(user_id)) if _in_range(v, start, end)]
            return {
                "user_id": str(user_id),
                "from_date": start,
                "to_date": end,
                "group_by": group_by,
                **_summarise(views, group_by),
                "consistency": _consistency(views),
            }

        return self._run("get_order_analytics", query)

    def get_order_statistics(self, period="last30days", group_by="day") -> dict:
        """Store-wide figures over a rolling period, with a per-status breakdown."""
        if period not in PERIODS:
            raise InvalidQuery(
                f"Unknown period {period!r}",
                field="period",
                constraint="one of " + ", ".join(PERIODS),
            )
        if group_by not in GROUPINGS:
            raise InvalidQuery("group_by must be day, week or month", field="group_by", constraint="day|week|month")

        now = datetime.now(UTC)
        start = datetime.combine(now.date(), time.min, tzinfo=UTC) - timedelta(days=PERIODS[period])

        def query():
            views = [v for v in self._views() if _in_range(v, start, now)]
            counts = Counter(v.status for v in views)
            return {
                "period": period,
                "from_date": start,
                "to_date": now,
                "group_by": group_by,
                **_summarise(views, group_by),
                "status_breakdown": {status: counts.get(status, 0) for status in STATUSES},
                "consistency": _consistency(views),
            }

        return self._run("get_order_statistics", query)
