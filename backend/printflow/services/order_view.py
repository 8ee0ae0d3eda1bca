from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from printflow.models.order import (
    DailyCount,
    DashboardStats,
    Order,
    OrderFilters,
    OrderSorting,
    OrderStatus,
    PaymentState,
)

DATE_RANGES = ("all", "today", "yesterday", "thisWeek", "thisMonth")

SORT_KEYS: Dict[str, Callable[[Order], Any]] = {
    "order_number": lambda o: o.order_number,
    "created_at": lambda o: o.created_at,
    "updated_at": lambda o: o.updated_at,
    "file_name": lambda o: o.file_name,
    "page_count": lambda o: o.page_count,
    "total_price": lambda o: o.total_price,
    "order_status": lambda o: o.order_status.value,
    "userInfo.name": lambda o: o.user_info.name if o.user_info else None,
    "userInfo.email": lambda o: o.user_info.email if o.user_info else None,
    "payment.status": lambda o: o.payment.status.value if o.payment else None,
    "payment.date": lambda o: o.payment.date if o.payment else None,
}


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    # Backend timestamps may carry an offset; compare everything in local wall time.
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    for d in (day.day, 30, 29, 28):
        try:
            return day.replace(year=year, month=month, day=d)
        except ValueError:
            continue
    raise ValueError(f"no day before {day}")


def _in_range(created: Optional[datetime], date_range: str, now: datetime) -> bool:
    if date_range == "all":
        return True
    created = _naive(created)
    if created is None:
        return False
    today = datetime.combine(now.date(), time.min)
    if date_range == "today":
        return created >= today
    if date_range == "yesterday":
        return today - timedelta(days=1) <= created < today
    if date_range == "thisWeek":
        return created >= today - timedelta(days=7)
    if date_range == "thisMonth":
        return created >= datetime.combine(_month_before(today.date()), time.min)
    raise ValueError(f"unknown date range: {date_range}")


def _matches(order: Order, term: str) -> bool:
    fields = [order.order_number, order.file_name]
    if order.user_info is not None:
        fields.extend([order.user_info.name, order.user_info.email])
    return any(term in (f or "").lower() for f in fields)


def filter_orders(orders: List[Order], filters: OrderFilters, now: datetime = None) -> List[Order]:
    now = _naive(now) or datetime.now()
    if filters.status != "all":
        status = OrderStatus(filters.status)
        orders = [o for o in orders if o.order_status == status]
    if filters.date_range not in DATE_RANGES:
        raise ValueError(f"unknown date range: {filters.date_range}")
    if filters.date_range != "all":
        orders = [o for o in orders if _in_range(o.created_at, filters.date_range, now)]
    term = filters.search.strip().lower()
    if term:
        orders = [o for o in orders if _matches(o, term)]
    return list(orders)


def sort_orders(orders: List[Order], sorting: OrderSorting) -> List[Order]:
    """Stable sort; orders missing the field come first ascending, last descending."""
    if sorting.field not in SORT_KEYS:
        raise ValueError(f"cannot sort by {sorting.field}")
    key = SORT_KEYS[sorting.field]

    def sort_key(order: Order):
        value = key(order)
        if isinstance(value, datetime):
            value = _naive(value)
        if isinstance(value, str):
            value = value.lower()
        return (value is not None, value)

    return sorted(orders, key=sort_key, reverse=sorting.direction == "desc")


def toggle_sorting(current: OrderSorting, field: str) -> OrderSorting:
    if field not in SORT_KEYS:
        raise ValueError(f"cannot sort by {field}")
    direction = "desc" if current.field == field and current.direction == "asc" else "asc"
    return OrderSorting(field=field, direction=direction)


def apply_view(orders: List[Order], filters: OrderFilters, sorting: OrderSorting, now: datetime = None) -> List[Order]:
    return sort_orders(filter_orders(orders, filters, now), sorting)


def print_queue(orders: List[Order]) -> List[Order]:
    """Jobs still waiting at the printer, oldest first."""
    queue = [o for o in orders if o.order_status in (OrderStatus.PENDING, OrderStatus.PROCESSING)]
    return sort_orders(queue, OrderSorting(field="created_at", direction="asc"))


def summarize(orders: List[Order], today: date = None, recent: int = 5, days: int = 7) -> DashboardStats:
    today = today or date.today()
    created_days = [_naive(o.created_at).date() for o in orders if o.created_at is not None]
    revenue = sum(
        (o.total_price for o in orders if o.payment is not None and o.payment.status == PaymentState.COMPLETED),
        Decimal("0"),
    )
    daily = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        daily.append(DailyCount(date=day.isoformat(), count=created_days.count(day)))

    return DashboardStats(
        today_orders=created_days.count(today),
        pending_prints=sum(1 for o in orders if o.order_status == OrderStatus.PROCESSING),
        completed_orders=sum(1 for o in orders if o.order_status == OrderStatus.COMPLETED),
        total_revenue=revenue,
        recent_orders=sort_orders(orders, OrderSorting(field="created_at", direction="desc"))[:recent],
        daily_order_counts=daily,
    )
