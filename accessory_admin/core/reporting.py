# accessory_admin/core/reporting.py
"""
Order aggregation behind the analytics and dashboard screens.

The grouping functions are pure: they take an already-fetched order list
and return chart-ready rows. The async entry points at the bottom fetch
from Firestore and, unless disabled in config, swap in fixed mock data
when any read fails so the dashboard never renders empty.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from . import config
from .repositories import OrderRepository, ProductRepository, UserRepository

logger = logging.getLogger(__name__)

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_RANGE = "30d"
WEEKDAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
OTHER_CATEGORY = "Other"


class ReportUnavailable(Exception):
    """Raised instead of serving mock data when the fallback is disabled."""


# ------------- Date ranges ------------- #

@dataclass(frozen=True)
class DateRange:
    token: str
    start_date: datetime
    end_date: datetime

    @property
    def granularity(self) -> str:
        return "monthly" if self.end_date - self.start_date > timedelta(days=30) else "daily"

    def previous(self) -> "DateRange":
        span = self.end_date - self.start_date
        return DateRange(self.token, self.start_date - span, self.start_date)

    def as_dict(self) -> Dict[str, str]:
        return {
            "timeRange": self.token,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


def _one_year_before(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year - 1)
    except ValueError:  # Feb 29
        return moment.replace(year=moment.year - 1, day=28)


def resolve_date_range(time_range: Optional[str], now: Optional[datetime] = None) -> DateRange:
    """Map 7d/30d/90d/1y to concrete bounds ending at ``now``; anything else means 30d."""
    end = now or datetime.now(timezone.utc)
    if time_range == "1y":
        return DateRange("1y", _one_year_before(end), end)
    token = time_range if time_range in RANGE_DAYS else DEFAULT_RANGE
    return DateRange(token, end - timedelta(days=RANGE_DAYS[token]), end)


def report_timezone() -> tzinfo:
    if config.REPORT_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(config.REPORT_TIMEZONE)


def _localize(moment: datetime, tz: tzinfo) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def _total(order: Mapping[str, Any]) -> float:
    return float(order.get("total") or 0)


# ------------- Grouping ------------- #

def group_orders_by_date(
    orders: Sequence[Mapping[str, Any]],
    granularity: str = "daily",
    tz: Optional[tzinfo] = None,
) -> List[Dict[str, Any]]:
    tz = tz or report_timezone()
    key_format = "%Y-%m" if granularity == "monthly" else "%Y-%m-%d"
    grouped: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        created = order.get("createdAt")
        if created is None:
            continue
        key = _localize(created, tz).strftime(key_format)
        bucket = grouped.setdefault(key, {"date": key, "sales": 0.0, "orders": 0})
        bucket["sales"] += _total(order)
        bucket["orders"] += 1
    return [grouped[k] for k in sorted(grouped)]


def group_orders_by_category(
    orders: Sequence[Mapping[str, Any]],
    categories: Mapping[str, Optional[str]],
) -> List[Dict[str, Any]]:
    totals: Dict[str, float] = {}
    for order in orders:
        for item in order.get("items") or []:
            category = categories.get(item.get("productId")) or OTHER_CATEGORY
            revenue = float(item.get("price") or 0) * float(item.get("quantity") or 0)
            totals[category] = totals.get(category, 0.0) + revenue
    rows = [{"category": c, "sales": s} for c, s in totals.items()]
    return sorted(rows, key=lambda r: r["sales"], reverse=True)


def group_orders_by_day_of_week(
    orders: Sequence[Mapping[str, Any]],
    tz: Optional[tzinfo] = None,
) -> List[Dict[str, Any]]:
    tz = tz or report_timezone()
    grouped = {day: {"day": day, "sales": 0.0, "orders": 0} for day in WEEKDAYS}
    for order in orders:
        created = order.get("createdAt")
        if created is None:
            continue
        # datetime.weekday() is Monday=0; the chart starts on Sunday
        day = WEEKDAYS[(_localize(created, tz).weekday() + 1) % 7]
        grouped[day]["sales"] += _total(order)
        grouped[day]["orders"] += 1
    return list(grouped.values())


def calculate_change(current: float, previous: float) -> float:
    """Percent change rounded to 1 decimal; 0 when there is no previous value."""
    if not previous:
        return 0
    return round((current - previous) / previous * 100, 1)


def count_orders_by_status(orders: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    counts = Counter(o.get("status") or "pending" for o in orders)
    return [{"name": status.capitalize(), "value": n} for status, n in counts.items()]


def order_stats(orders: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    counts = Counter(o.get("status") or "pending" for o in orders)
    stats: Dict[str, Any] = {"total": len(orders)}
    for status in ("pending", "processing", "shipped", "delivered", "cancelled"):
        stats[status] = counts[status]
    stats["totalRevenue"] = sum(_total(o) for o in orders)
    return stats


def top_customers(orders: Sequence[Mapping[str, Any]], limit: int = 10) -> List[Dict[str, Any]]:
    customers: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        customer_id = order.get("customerId") or order.get("customerEmail") or "guest"
        entry = customers.setdefault(customer_id, {
            "id": customer_id,
            "name": order.get("customerName") or "Guest Customer",
            "totalOrders": 0,
            "totalSpent": 0.0,
        })
        entry["totalOrders"] += 1
        entry["totalSpent"] += _total(order)
    ranked = sorted(customers.values(), key=lambda c: c["totalSpent"], reverse=True)
    return ranked[:limit]


# ------------- Formatting & alerts ------------- #

def format_currency(value: Optional[float]) -> str:
    """Format a number as a short currency string, e.g. $1.2K, $3.4M."""
    symbol = config.CURRENCY_SYMBOL
    if value is None:
        return f"{symbol}0"
    abs_val = abs(value)
    if abs_val >= 1_000_000_000:
        return f"{symbol}{value/1_000_000_000:.1f}B"
    if abs_val >= 1_000_000:
        return f"{symbol}{value/1_000_000:.1f}M"
    if abs_val >= 1_000:
        return f"{symbol}{value/1_000:.1f}K"
    return f"{symbol}{value:,.2f}"


def format_number(value: Optional[float]) -> str:
    if value is None:
        return "0"
    abs_val = abs(value)
    if abs_val >= 1_000_000:
        return f"{value/1_000_000:.1f}M"
    if abs_val >= 1_000:
        return f"{value/1_000:.1f}K"
    return f"{int(value):d}"


def build_alert(change: float, metric_label: str, warn_threshold: float = 20.0) -> Optional[Dict[str, Any]]:
    """Banner for large swings; declines warn, gains are flagged as positive."""
    if change <= -warn_threshold:
        return {
            "level": "warning",
            "metric": metric_label,
            "message": f"{metric_label} is down {abs(change):.1f}% vs the previous period.",
        }
    if change >= warn_threshold:
        return {
            "level": "positive",
            "metric": metric_label,
            "message": f"{metric_label} is up {change:.1f}% vs the previous period.",
        }
    return None


# ------------- Mock data ------------- #

MOCK_CATEGORY_DATA = [
    {"category": "Interior", "sales": 45000.0},
    {"category": "Exterior", "sales": 38000.0},
    {"category": "Electronics", "sales": 32000.0},
    {"category": "Performance", "sales": 28000.0},
    {"category": "Maintenance", "sales": 22000.0},
]

MOCK_DAILY_DATA = [
    {"day": "Sun", "sales": 20000.0, "orders": 14},
    {"day": "Mon", "sales": 18000.0, "orders": 12},
    {"day": "Tue", "sales": 22000.0, "orders": 15},
    {"day": "Wed", "sales": 25000.0, "orders": 18},
    {"day": "Thu", "sales": 28000.0, "orders": 20},
    {"day": "Fri", "sales": 32000.0, "orders": 25},
    {"day": "Sat", "sales": 35000.0, "orders": 28},
]

MOCK_SUMMARY = {
    "totalRevenue": 125000.0,
    "totalOrders": 48,
    "averageOrderValue": 2604.17,
    "activeCustomers": 1250,
    "revenueChange": 12.5,
    "ordersChange": 8.3,
}

MOCK_DASHBOARD = {
    "totalRevenue": 125000.0,
    "totalOrders": 48,
    "totalUsers": 1250,
    "totalProducts": 156,
    "revenueChange": 12.5,
    "ordersChange": 8.3,
}

MOCK_ORDER_STATUS = [
    {"name": "Pending", "value": 12},
    {"name": "Processing", "value": 8},
    {"name": "Shipped", "value": 15},
    {"name": "Delivered", "value": 25},
    {"name": "Cancelled", "value": 3},
]

MOCK_TOP_PRODUCTS = [
    {"id": "1", "name": "Premium Car Seat Covers", "image": "", "category": "Interior", "sales": 145, "revenue": 725000.0},
    {"id": "2", "name": "LED Headlight Bulbs", "image": "", "category": "Lighting", "sales": 132, "revenue": 660000.0},
    {"id": "3", "name": "Car Phone Mount", "image": "", "category": "Electronics", "sales": 98, "revenue": 294000.0},
    {"id": "4", "name": "Floor Mats Set", "image": "", "category": "Interior", "sales": 87, "revenue": 435000.0},
    {"id": "5", "name": "Dash Camera", "image": "", "category": "Electronics", "sales": 76, "revenue": 912000.0},
]


def _bucket_keys(date_range: DateRange, tz: tzinfo) -> List[str]:
    start = _localize(date_range.start_date, tz).date()
    end = _localize(date_range.end_date, tz).date()
    if date_range.granularity == "monthly":
        keys = []
        year, month = start.year, start.month
        while (year, month) <= (end.year, end.month):
            keys.append(f"{year:04d}-{month:02d}")
            year, month = (year + 1, 1) if month == 12 else (year, month + 1)
        return keys
    return [(start + timedelta(days=i)).isoformat() for i in range((end - start).days + 1)]


def mock_trend_data(date_range: DateRange, tz: Optional[tzinfo] = None) -> List[Dict[str, Any]]:
    """Deterministic stand-in series covering every bucket of the range."""
    tz = tz or report_timezone()
    return [
        {"date": key, "sales": float(10000 + (i * 3700) % 40000), "orders": 5 + (i * 7) % 25}
        for i, key in enumerate(_bucket_keys(date_range, tz))
    ]


def fallback_to_mock(what: str, exc: Exception, mock: Any) -> Any:
    if not config.ANALYTICS_MOCK_FALLBACK:
        raise ReportUnavailable(f"{what} unavailable") from exc
    logger.exception("Error building %s, serving mock data", what)
    return mock


# ------------- Entry points ------------- #

async def fetch_orders_in_range(db, date_range: DateRange) -> List[Dict[str, Any]]:
    return await OrderRepository(db).list_in_range(date_range.start_date, date_range.end_date)


async def get_sales_report(db, time_range: Optional[str], now: Optional[datetime] = None) -> Dict[str, Any]:
    date_range = resolve_date_range(time_range, now)
    tz = report_timezone()
    report = {**date_range.as_dict(), "granularity": date_range.granularity}
    try:
        orders = await fetch_orders_in_range(db, date_range)
        categories = await ProductRepository(db).category_index()
    except Exception as e:
        return fallback_to_mock("sales report", e, {
            **report,
            "trend": mock_trend_data(date_range, tz),
            "byCategory": [dict(r) for r in MOCK_CATEGORY_DATA],
            "daily": [dict(r) for r in MOCK_DAILY_DATA],
            "isMock": True,
        })

    return {
        **report,
        "trend": group_orders_by_date(orders, date_range.granularity, tz),
        "byCategory": group_orders_by_category(orders, categories),
        "daily": group_orders_by_day_of_week(orders, tz),
        "isMock": False,
    }


def _summary_payload(values: Dict[str, Any]) -> Dict[str, Any]:
    alerts = [
        a for a in (
            build_alert(values["revenueChange"], "Revenue"),
            build_alert(values["ordersChange"], "Orders"),
        ) if a
    ]
    return {
        **values,
        "formatted": {
            "totalRevenue": format_currency(values["totalRevenue"]),
            "averageOrderValue": format_currency(values["averageOrderValue"]),
            "totalOrders": format_number(values["totalOrders"]),
        },
        "alerts": alerts,
    }


async def get_analytics_summary(db, time_range: Optional[str], now: Optional[datetime] = None) -> Dict[str, Any]:
    date_range = resolve_date_range(time_range, now)
    try:
        orders = await fetch_orders_in_range(db, date_range)
        previous = await fetch_orders_in_range(db, date_range.previous())
        active_customers = await UserRepository(db).count_active_customers()
    except Exception as e:
        return fallback_to_mock("analytics summary", e, {
            **date_range.as_dict(),
            **_summary_payload(dict(MOCK_SUMMARY)),
            "isMock": True,
        })

    revenue = sum(_total(o) for o in orders)
    prev_revenue = sum(_total(o) for o in previous)
    values = {
        "totalRevenue": revenue,
        "totalOrders": len(orders),
        "averageOrderValue": round(revenue / len(orders), 2) if orders else 0.0,
        "activeCustomers": active_customers,
        "previousRevenue": prev_revenue,
        "previousOrders": len(previous),
        "revenueChange": calculate_change(revenue, prev_revenue),
        "ordersChange": calculate_change(len(orders), len(previous)),
    }
    return {**date_range.as_dict(), **_summary_payload(values), "isMock": False}


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def get_dashboard_stats(db, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Current calendar month against the previous one, plus collection totals."""
    tz = report_timezone()
    now = _localize(now or datetime.now(timezone.utc), tz)
    this_month = _month_start(now)
    last_month = _month_start(this_month - timedelta(days=1))
    orders_repo = OrderRepository(db)
    try:
        current = await orders_repo.list_in_range(this_month, now)
        # range query is inclusive on both ends
        previous = await orders_repo.list_in_range(last_month, this_month - timedelta(microseconds=1))
        total_users = len(await UserRepository(db).fetch())
        total_products = len(await ProductRepository(db).fetch())
    except Exception as e:
        return fallback_to_mock("dashboard stats", e, {**MOCK_DASHBOARD, "isMock": True})

    revenue = sum(_total(o) for o in current)
    prev_revenue = sum(_total(o) for o in previous)
    return {
        "totalRevenue": revenue,
        "totalOrders": len(current),
        "totalUsers": total_users,
        "totalProducts": total_products,
        "revenueChange": calculate_change(revenue, prev_revenue),
        "ordersChange": calculate_change(len(current), len(previous)),
        "isMock": False,
    }


async def get_order_status_breakdown(db) -> Dict[str, Any]:
    try:
        orders = await OrderRepository(db).fetch()
    except Exception as e:
        return fallback_to_mock("order status breakdown", e, {
            "statuses": [dict(r) for r in MOCK_ORDER_STATUS],
            "isMock": True,
        })
    return {"statuses": count_orders_by_status(orders), "isMock": False}


async def get_top_products(db, limit: int = 5) -> Dict[str, Any]:
    """Most-reviewed products; review count stands in for units sold."""
    try:
        products = await ProductRepository(db).top_reviewed(limit)
    except Exception as e:
        return fallback_to_mock("top products", e, {
            "products": [dict(r) for r in MOCK_TOP_PRODUCTS[:limit]],
            "isMock": True,
        })
    rows = []
    for p in products:
        sales = int(p.get("totalReviews") or 0)
        rows.append({
            "id": p["id"],
            "name": p.get("name"),
            "image": (p.get("images") or [""])[0],
            "category": p.get("category"),
            "sales": sales,
            "revenue": float(p.get("price") or 0) * sales,
        })
    return {"products": rows, "isMock": False}
