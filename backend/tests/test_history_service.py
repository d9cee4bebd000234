"""
Transaction history tests: search, date buckets, filter reducer.

All "now" values are UTC-naive; buckets are aligned to Asia/Tokyo days.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from posboard.models import PosTransaction
from posboard.services import history_service
from posboard.services.history_service import (
    HistoryError,
    HistoryFilters,
    bucket_interval,
    filter_transactions,
    matches_search,
    reduce_filters,
)


TOKYO = ZoneInfo("Asia/Tokyo")

# 2026-10-18 12:00 in Tokyo
NOW = datetime(2026, 10, 18, 3, 0)


def _txn(txn_id, timestamp, customer="Customer", cashier="hanako"):
    return {
        "id": txn_id,
        "timestamp": timestamp,
        "customer_name": customer,
        "cashier_name": cashier,
        "total": 1000,
    }


TRANSACTIONS = [
    _txn("a1b2c3d4e5", "2026-10-18T02:00:00Z", customer="Tanaka Yuki"),
    # 00:30 Tokyo on the 18th, still the 17th in UTC
    _txn("f6a7b8c9d0", "2026-10-17T15:30:00Z", customer="Sato"),
    _txn("1122334455", "2026-10-17T05:00:00Z", cashier="Admin"),
    _txn("6677889900", "2026-10-11T01:00:00Z"),
    _txn("aabbccddee", "2026-09-18T00:00:00Z"),
    _txn("ffeeddccbb", "2026-09-01T00:00:00Z"),
]


def _ids(items):
    return [t["id"] for t in items]


class TestSearch:

    @pytest.mark.parametrize(
        "term,expected",
        [
            ("tanaka", ["a1b2c3d4e5"]),
            ("SATO", ["f6a7b8c9d0"]),
            ("f6a7", ["f6a7b8c9d0"]),
            ("admin", ["1122334455"]),
            ("", _ids(TRANSACTIONS)),
            ("   ", _ids(TRANSACTIONS)),
            ("nobody", []),
        ],
    )
    def test_search_matches_customer_id_or_cashier(self, term, expected):
        filters = HistoryFilters(search_term=term)
        assert _ids(filter_transactions(TRANSACTIONS, filters, now=NOW, tz=TOKYO)) == expected

    def test_missing_fields_do_not_match(self):
        assert not matches_search({"id": "x"}, "tanaka")


class TestDateBuckets:

    @pytest.mark.parametrize(
        "bucket,expected",
        [
            ("all", _ids(TRANSACTIONS)),
            ("today", ["a1b2c3d4e5", "f6a7b8c9d0"]),
            ("yesterday", ["1122334455"]),
            ("week", ["a1b2c3d4e5", "f6a7b8c9d0", "1122334455", "6677889900"]),
            ("month", ["a1b2c3d4e5", "f6a7b8c9d0", "1122334455", "6677889900", "aabbccddee"]),
        ],
    )
    def test_bucket_membership(self, bucket, expected):
        filters = HistoryFilters(date_filter=bucket)
        assert _ids(filter_transactions(TRANSACTIONS, filters, now=NOW, tz=TOKYO)) == expected

    def test_now_is_in_today_week_and_month_but_not_yesterday(self):
        txn = _txn("now", "2026-10-18T03:00:00Z")
        for bucket in ("today", "week", "month"):
            assert filter_transactions([txn], HistoryFilters(date_filter=bucket), now=NOW, tz=TOKYO)
        assert not filter_transactions([txn], HistoryFilters(date_filter="yesterday"), now=NOW, tz=TOKYO)

    def test_intervals_are_day_aligned(self):
        start, end = bucket_interval("week", NOW, TOKYO)
        assert (start.year, start.month, start.day, start.hour) == (2026, 10, 11, 0)
        assert (end.day, end.hour, end.minute) == (18, 23, 59)

    def test_search_and_bucket_combine(self):
        filters = HistoryFilters(search_term="sato", date_filter="yesterday")
        assert filter_transactions(TRANSACTIONS, filters, now=NOW, tz=TOKYO) == []

    def test_unknown_bucket(self):
        with pytest.raises(HistoryError):
            bucket_interval("decade", NOW, TOKYO)


class TestFilterReducer:

    def test_set_search_and_bucket(self):
        filters = reduce_filters(HistoryFilters(), {"type": "set_search", "value": "tanaka"})
        filters = reduce_filters(filters, {"type": "set_date_filter", "value": "week"})

        assert filters == HistoryFilters(search_term="tanaka", date_filter="week")

    def test_empty_bucket_means_all(self):
        filters = reduce_filters(HistoryFilters(date_filter="today"), {"type": "set_date_filter", "value": ""})
        assert filters.date_filter == "all"

    @pytest.mark.parametrize(
        "action",
        [
            {"type": "set_date_filter", "value": "fortnight"},
            {"type": "sort"},
        ],
    )
    def test_rejects_unknown(self, action):
        with pytest.raises(HistoryError):
            reduce_filters(HistoryFilters(), action)


class TestTransactionHistory:

    def test_loads_newest_first_and_counts(self, db_session):
        for txn_id, ts in [("old", datetime(2026, 10, 1)), ("new", datetime(2026, 10, 18, 2))]:
            db_session.add(PosTransaction(
                id=txn_id,
                items=[{"product_id": 1, "name": "A", "price": 1000, "quantity": 1, "category": "Snacks"}],
                total=1000,
                cashier_name="hanako",
                customer_name="Customer",
                payment_method="Non-Cash",
                timestamp=ts,
            ))
        db_session.commit()

        result = history_service.transaction_history(HistoryFilters(date_filter="today"), now=NOW)

        assert _ids(result["items"]) == ["new"]
        assert result["count"] == 1
        assert result["total_count"] == 2
        assert result["filters"] == {"search_term": "", "date_filter": "today"}

    def test_get_missing_transaction(self, db_session):
        with pytest.raises(HistoryError):
            history_service.get_transaction("missing")
