# Overview: Service-layer operations for transaction history; load, search, date buckets.

"""
Transaction History Reader

Loads every POS transaction newest first, then filters in memory. Both
filters are plain predicates and are recomputed from the full list on every
call, so a change to the search term, the bucket, or the underlying list
always yields a consistent result.

DATE BUCKETS (inclusive, day-aligned in the business timezone, anchored at now):
- all        no bound
- today      [startOfDay(now),        endOfDay(now)]
- yesterday  [startOfDay(now - 1d),   endOfDay(now - 1d)]
- week       [startOfDay(now - 7d),   endOfDay(now)]
- month      [startOfDay(now - 30d),  endOfDay(now)]
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, Mapping

from ..extensions import db
from ..models import PosTransaction
from posboard.time_utils import (
    business_tz,
    end_of_day,
    parse_iso_datetime,
    start_of_day,
    to_local,
    utcnow,
)


BUCKET_ALL = "all"
BUCKET_TODAY = "today"
BUCKET_YESTERDAY = "yesterday"
BUCKET_WEEK = "week"
BUCKET_MONTH = "month"

VALID_BUCKETS = [BUCKET_ALL, BUCKET_TODAY, BUCKET_YESTERDAY, BUCKET_WEEK, BUCKET_MONTH]

# Look-back in days for the rolling buckets
_BUCKET_SPANS = {
    BUCKET_TODAY: (0, 0),
    BUCKET_YESTERDAY: (1, 1),
    BUCKET_WEEK: (7, 0),
    BUCKET_MONTH: (30, 0),
}


class HistoryError(Exception):
    """Raised for unknown filters or missing transactions."""
    pass


@dataclass(frozen=True)
class HistoryFilters:
    search_term: str = ""
    date_filter: str = BUCKET_ALL

    def to_dict(self) -> dict:
        return {"search_term": self.search_term, "date_filter": self.date_filter}


def reduce_filters(filters: HistoryFilters, action: Mapping[str, Any]) -> HistoryFilters:
    """Pure reducer for the history screen's filter controls."""
    kind = action.get("type")
    if kind == "set_search":
        return replace(filters, search_term=str(action.get("value") or ""))
    if kind == "set_date_filter":
        bucket = action.get("value") or BUCKET_ALL
        if bucket not in VALID_BUCKETS:
            raise HistoryError(f"date_filter must be one of {VALID_BUCKETS}")
        return replace(filters, date_filter=bucket)
    raise HistoryError(f"Unknown filter action: {kind!r}")


# =============================================================================
# PREDICATES
# =============================================================================

def matches_search(transaction: Mapping[str, Any], term: str | None) -> bool:
    """Case-insensitive substring against customer name, id, or cashier name."""
    needle = (term or "").strip().lower()
    if not needle:
        return True
    fields = (
        transaction.get("customer_name"),
        transaction.get("id"),
        transaction.get("cashier_name"),
    )
    return any(value and needle in str(value).lower() for value in fields)


def bucket_interval(bucket: str, now: datetime, tz: tzinfo) -> tuple[datetime, datetime] | None:
    """
    Inclusive (start, end) as aware datetimes in tz, or None for "all".

    now may be aware or UTC-naive.
    """
    if bucket == BUCKET_ALL:
        return None
    if bucket not in _BUCKET_SPANS:
        raise HistoryError(f"date_filter must be one of {VALID_BUCKETS}")

    today = to_local(now, tz).date()
    start_back, end_back = _BUCKET_SPANS[bucket]
    return (
        start_of_day(today - timedelta(days=start_back), tz),
        end_of_day(today - timedelta(days=end_back), tz),
    )


def in_bucket(transaction: Mapping[str, Any], interval: tuple[datetime, datetime] | None, tz: tzinfo) -> bool:
    if interval is None:
        return True
    ts = parse_iso_datetime(transaction.get("timestamp"))
    if ts is None:
        return False
    local_ts = to_local(ts, tz)
    return interval[0] <= local_ts <= interval[1]


def filter_transactions(
    transactions: Iterable[Mapping[str, Any]],
    filters: HistoryFilters,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[Mapping[str, Any]]:
    """Apply search and date bucket conjunctively; input order is preserved."""
    tz = tz or business_tz()
    interval = bucket_interval(filters.date_filter, now or utcnow(), tz)
    return [
        txn for txn in transactions
        if matches_search(txn, filters.search_term) and in_bucket(txn, interval, tz)
    ]


# =============================================================================
# STORAGE
# =============================================================================

def load_transactions() -> list[dict]:
    rows = (
        db.session.query(PosTransaction)
        .order_by(PosTransaction.timestamp.desc(), PosTransaction.id.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def get_transaction(transaction_id: str) -> dict:
    txn = db.session.get(PosTransaction, transaction_id)
    if txn is None:
        raise HistoryError("Transaction not found")
    return txn.to_dict()


def transaction_history(filters: HistoryFilters, now: datetime | None = None) -> dict:
    transactions = load_transactions()
    filtered = filter_transactions(transactions, filters, now=now)
    return {
        "filters": filters.to_dict(),
        "items": filtered,
        "count": len(filtered),
        "total_count": len(transactions),
    }
