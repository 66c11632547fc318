"""
Shared pytest fixtures for the engine and store tests.
"""

from datetime import date, timedelta

import pytest

from engines.models import Booking
from utils.db_utils import create_schema, get_sqlalchemy_engine

NOW = date(2025, 6, 15)


@pytest.fixture
def now():
    """Fixed reference date for recency scoring."""
    return NOW


@pytest.fixture
def make_booking():
    """Factory for Booking records with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        arrival = overrides.pop("arrival_date", NOW - timedelta(days=10))
        los = overrides.pop("length_of_stay", 2)
        values = dict(
            booking_ref=f"BK{counter['n']:04d}",
            guest_name="John Smith",
            arrival_date=arrival,
            departure_date=arrival + timedelta(days=los) if arrival else None,
            booking_date=arrival - timedelta(days=20) if arrival else None,
            room_type="Standard",
            total_amount=100.0,
            adr=50.0,
            channel="Direct",
            booking_status="Confirmed",
            is_cancelled=False,
            length_of_stay=los,
            lead_time=20,
            adults=2,
            children=0,
            guest_country="GB",
            market_segment="Leisure",
            booking_id=str(counter["n"]),
            dataset_id="ds-1",
        )
        values.update(overrides)
        return Booking(**values)

    return _make


@pytest.fixture
def store_engine(tmp_path):
    """SQLAlchemy engine on a temporary SQLite file with the schema created."""
    engine = get_sqlalchemy_engine(f"sqlite:///{tmp_path / 'store.db'}")
    create_schema(engine)
    yield engine
    engine.dispose()
