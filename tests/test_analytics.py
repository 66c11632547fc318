"""
Tests for the snapshot service in engines/analytics.py.
"""

import json
from datetime import date, timedelta

import pandas as pd

from engines.analytics import AnalyticsService
from engines.guest_store import SqlBookingSource
from engines.snapshot import default_analytics
from utils.db_utils import insert_dataframe


class StubSource:
    """In-memory booking source that records the range it was asked for."""

    def __init__(self, bookings):
        self.bookings = bookings
        self.calls = []

    def get_bookings(self, dataset_id, start_date=None, end_date=None):
        self.calls.append((dataset_id, start_date, end_date))
        return self.bookings


def test_passes_range_to_source(make_booking):
    source = StubSource([make_booking(total_amount=250.0)])
    snapshot = AnalyticsService(source).get_analytics("ds-1", date(2025, 1, 1), date(2025, 12, 31))
    assert source.calls == [("ds-1", date(2025, 1, 1), date(2025, 12, 31))]
    assert snapshot.core_kpis.total_revenue == 250.0


def test_empty_dataset_gives_default_snapshot():
    snapshot = AnalyticsService(StubSource([])).get_analytics("missing")
    assert snapshot == default_analytics()
    assert snapshot.revenue_analytics.highest_revenue_day == {"date": "N/A", "amount": 0.0}


def test_snapshot_is_json_serialisable(make_booking):
    source = StubSource([make_booking(), make_booking(channel="Expedia", is_cancelled=True)])
    payload = json.loads(json.dumps(AnalyticsService(source).get_analytics("ds-1").to_dict(), default=str))
    assert payload["core_kpis"]["total_bookings"] == 2
    assert payload["channel_analytics"]["direct_booking_rate"] == 50


def test_reads_stored_bookings(store_engine, now):
    rows = [
        {"dataset_id": "hotel-a", "guest_name": f"Guest {i}", "channel": "Direct",
         "total_amount": amount, "adr": amount / 2, "arrival_date": now - timedelta(days=i),
         "length_of_stay": 2, "booking_status": "Confirmed", "is_cancelled": False}
        for i, amount in enumerate([100.0, 200.0, 300.0], start=1)
    ]
    rows.append(dict(rows[0], dataset_id="hotel-b", total_amount=999.0))
    insert_dataframe(pd.DataFrame(rows), "bookings", store_engine)

    service = AnalyticsService(SqlBookingSource(store_engine))
    snapshot = service.get_analytics("hotel-a")
    assert snapshot.core_kpis.total_bookings == 3
    assert snapshot.core_kpis.total_revenue == 600.0
    assert snapshot.channel_analytics.direct_booking_rate == 100

    recent = service.get_analytics("hotel-a", start_date=now - timedelta(days=2))
    assert recent.core_kpis.total_revenue == 300.0
