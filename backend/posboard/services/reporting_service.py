# Overview: Service-layer operations for reporting; monthly revenue, estimates, dashboard.

"""
Revenue / Financial Aggregator

Every figure is a fresh reduction over orders fetched for its own window:
one query per month, no incremental or windowed state. Month windows are
[startOfMonth, endOfMonth] in the business timezone.

FINANCIAL ESTIMATE (placeholder business assumptions, not ledger figures):
    product_cost = (revenue - shipping_fees) * COST_RATIO_BPS / 10000
    gross_profit = revenue - product_cost
    net_profit   = gross_profit - FIXED_MONTHLY_EXPENSE
"""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, Mapping

from flask import current_app

from ..extensions import db
from ..models import Order, Product
from posboard.money import apply_bps, format_yen, percent_of, round_yen
from posboard.time_utils import (
    business_tz,
    end_of_day,
    month_bounds,
    parse_month,
    shift_months,
    start_of_day,
    to_local,
    to_utc_naive,
    to_utc_z,
    utcnow,
)


MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

SERIES_MONTHS = 6
DASHBOARD_DAYS = 7

DEFAULT_COST_RATIO_BPS = 5000
DEFAULT_FIXED_MONTHLY_EXPENSE = 50000


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


# =============================================================================
# MONTH NAVIGATION
# =============================================================================

def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_label(year: int, month: int) -> str:
    return MONTH_ABBR[month - 1]


def current_month(now: datetime, tz: tzinfo) -> tuple[int, int]:
    local_now = to_local(now, tz)
    return local_now.year, local_now.month


def clamp_month(selected: tuple[int, int], latest: tuple[int, int]) -> tuple[int, int]:
    """Never past the current month."""
    return min(selected, latest)


def navigate_month(selected: tuple[int, int], delta: int, latest: tuple[int, int]) -> tuple[int, int]:
    """Move the selected month by delta; forward moves stop at latest."""
    return clamp_month(shift_months(selected[0], selected[1], delta), latest)


def can_navigate_forward(selected: tuple[int, int], latest: tuple[int, int]) -> bool:
    return selected < latest


def resolve_month(value: str | None, now: datetime, tz: tzinfo) -> tuple[int, int]:
    """Parse ?month=YYYY-MM (default: current month), clamped to the current month."""
    latest = current_month(now, tz)
    try:
        selected = parse_month(value)
    except ValueError as exc:
        raise ReportError(str(exc)) from exc
    return clamp_month(selected or latest, latest)


def _navigation(selected: tuple[int, int], latest: tuple[int, int]) -> dict:
    previous = navigate_month(selected, -1, latest)
    following = navigate_month(selected, 1, latest)
    return {
        "month": month_key(*selected),
        "label": f"{month_label(*selected)} {selected[0]}",
        "previous_month": month_key(*previous),
        "next_month": month_key(*following) if can_navigate_forward(selected, latest) else None,
        "can_navigate_forward": can_navigate_forward(selected, latest),
    }


# =============================================================================
# AGGREGATION
# =============================================================================

def fetch_orders(start: datetime, end: datetime) -> list[dict]:
    """Orders with created_at in the inclusive window [start, end] (aware datetimes)."""
    rows = (
        db.session.query(Order)
        .filter(
            Order.created_at >= to_utc_naive(start),
            Order.created_at <= to_utc_naive(end),
        )
        .order_by(Order.created_at.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def aggregate_orders(orders: Iterable[Mapping[str, Any]]) -> dict:
    """Count and sums over orders; independent of enumeration order."""
    order_count = 0
    revenue_sum = 0
    shipping_fees = 0
    for order in orders:
        order_count += 1
        revenue_sum += order.get("total_price") or 0
        shipping_fees += order.get("shipping_fee") or 0
    return {
        "order_count": order_count,
        "revenue_sum": revenue_sum,
        "shipping_fees": shipping_fees,
    }


def _month_orders(year: int, month: int, tz: tzinfo) -> list[dict]:
    start, end = month_bounds(year, month, tz)
    return fetch_orders(start, end)


def monthly_sales(year: int, month: int, tz: tzinfo | None = None) -> dict:
    tz = tz or business_tz()
    totals = aggregate_orders(_month_orders(year, month, tz))
    count = totals["order_count"]
    revenue = totals["revenue_sum"]
    return {
        "month": month_key(year, month),
        "name": month_label(year, month),
        "order_count": count,
        "revenue_sum": revenue,
        "average_order_value": round_yen(revenue / count) if count else 0,
    }


def sales_series(year: int, month: int, months: int = SERIES_MONTHS, tz: tzinfo | None = None) -> list[dict]:
    """Trailing monthly buckets ending at (year, month), oldest first."""
    tz = tz or business_tz()
    series = []
    for back in range(months - 1, -1, -1):
        y, m = shift_months(year, month, -back)
        bucket = monthly_sales(y, m, tz)
        series.append({
            "name": bucket["name"],
            "month": bucket["month"],
            "order_count": bucket["order_count"],
            "revenue_sum": bucket["revenue_sum"],
        })
    return series


# =============================================================================
# FINANCIAL ESTIMATES
# =============================================================================

def estimate_financials(
    revenue: int,
    shipping_fees: int,
    cost_ratio_bps: int = DEFAULT_COST_RATIO_BPS,
    fixed_expense: int = DEFAULT_FIXED_MONTHLY_EXPENSE,
) -> dict:
    product_cost = apply_bps(revenue - shipping_fees, cost_ratio_bps)
    gross_profit = revenue - product_cost
    net_profit = gross_profit - fixed_expense
    return {
        "revenue": revenue,
        "shipping_fees": shipping_fees,
        "product_cost": product_cost,
        "gross_profit": gross_profit,
        "expenses": fixed_expense,
        "net_profit": net_profit,
        "product_cost_pct": percent_of(product_cost, revenue),
        "shipping_fees_pct": percent_of(shipping_fees, revenue),
        "expenses_pct": percent_of(fixed_expense, revenue),
    }


def _estimate_settings() -> tuple[int, int]:
    config = current_app.config
    return (
        int(config.get("COST_RATIO_BPS", DEFAULT_COST_RATIO_BPS)),
        int(config.get("FIXED_MONTHLY_EXPENSE", DEFAULT_FIXED_MONTHLY_EXPENSE)),
    )


def monthly_financials(year: int, month: int, tz: tzinfo | None = None) -> dict:
    tz = tz or business_tz()
    cost_ratio_bps, fixed_expense = _estimate_settings()
    totals = aggregate_orders(_month_orders(year, month, tz))
    estimate = estimate_financials(totals["revenue_sum"], totals["shipping_fees"], cost_ratio_bps, fixed_expense)
    estimate.update({
        "month": month_key(year, month),
        "name": month_label(year, month),
        "order_count": totals["order_count"],
    })
    return estimate


def financial_series(year: int, month: int, months: int = SERIES_MONTHS, tz: tzinfo | None = None) -> list[dict]:
    tz = tz or business_tz()
    series = []
    for back in range(months - 1, -1, -1):
        y, m = shift_months(year, month, -back)
        bucket = monthly_financials(y, m, tz)
        series.append({
            "name": bucket["name"],
            "month": bucket["month"],
            "revenue": bucket["revenue"],
            "shipping_fees": bucket["shipping_fees"],
            "gross_profit": bucket["gross_profit"],
            "net_profit": bucket["net_profit"],
        })
    return series


def _with_display(data: dict, keys: Iterable[str]) -> dict:
    for key in keys:
        data[f"{key}_display"] = format_yen(data[key])
    return data


# =============================================================================
# REPORTS
# =============================================================================

def sales_report(month: str | None = None, now: datetime | None = None) -> dict:
    tz = business_tz()
    now = now or utcnow()
    latest = current_month(now, tz)
    selected = resolve_month(month, now, tz)

    summary = _with_display(monthly_sales(*selected, tz=tz), ("revenue_sum", "average_order_value"))
    report = _navigation(selected, latest)
    report.update({
        "summary": summary,
        "series": sales_series(*selected, tz=tz),
    })
    return report


def financial_report(month: str | None = None, now: datetime | None = None) -> dict:
    tz = business_tz()
    now = now or utcnow()
    latest = current_month(now, tz)
    selected = resolve_month(month, now, tz)

    summary = _with_display(
        monthly_financials(*selected, tz=tz),
        ("revenue", "shipping_fees", "product_cost", "gross_profit", "expenses", "net_profit"),
    )
    report = _navigation(selected, latest)
    report.update({
        "summary": summary,
        "series": financial_series(*selected, tz=tz),
        "is_estimate": True,
    })
    return report


def unique_customers(orders: Iterable[Mapping[str, Any]]) -> int:
    """Distinct user_id, falling back to customer_email for guest orders."""
    seen = set()
    for order in orders:
        if order.get("user_id"):
            seen.add(("user", order["user_id"]))
        elif order.get("customer_email"):
            seen.add(("email", order["customer_email"]))
    return len(seen)


def sales_by_category(orders: Iterable[Mapping[str, Any]]) -> list[dict]:
    """Sum of price * quantity over order items, grouped by category."""
    totals: dict[str, int] = {}
    for order in orders:
        for item in order.get("items") or []:
            category = item.get("category")
            if not category:
                continue
            amount = (item.get("price") or 0) * (item.get("quantity") or 0)
            totals[category] = totals.get(category, 0) + amount
    return [{"name": name, "value": value} for name, value in sorted(totals.items())]


def pos_dashboard(now: datetime | None = None) -> dict:
    tz = business_tz()
    now = now or utcnow()
    today = to_local(now, tz).date()

    today_orders = fetch_orders(start_of_day(today, tz), end_of_day(today, tz))
    today_totals = aggregate_orders(today_orders)

    all_orders = [row.to_dict() for row in db.session.query(Order).all()]

    daily = []
    for back in range(DASHBOARD_DAYS - 1, -1, -1):
        day = today - timedelta(days=back)
        totals = aggregate_orders(fetch_orders(start_of_day(day, tz), end_of_day(day, tz)))
        daily.append({
            "name": WEEKDAY_ABBR[day.weekday()],
            "date": day.isoformat(),
            "sales": totals["revenue_sum"],
        })

    return {
        "generated_at": to_utc_z(now),
        "today_sales": today_totals["revenue_sum"],
        "today_sales_display": format_yen(today_totals["revenue_sum"]),
        "today_orders": today_totals["order_count"],
        "total_products": db.session.query(Product).count(),
        "total_customers": unique_customers(all_orders),
        "daily_sales": daily,
        "category_sales": sales_by_category(all_orders),
    }
