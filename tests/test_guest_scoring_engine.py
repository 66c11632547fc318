"""
Tests for per-guest scoring in engines/guest_scoring_engine.py.
"""

from datetime import date, timedelta

import pytest

from engines.guest_scoring_engine import (
    GuestScoringEngine,
    ambassador_score,
    churn_band,
    churn_risk,
    clv_estimate,
    upsell_propensity,
)


@pytest.fixture
def engine():
    return GuestScoringEngine()


@pytest.fixture
def champion_bookings(make_booking, now):
    """One guest, six stays, last arrival 10 days ago, 3,000 revenue."""
    return [
        make_booking(guest_name="Maria Garcia", arrival_date=now - timedelta(days=10 + 30 * i),
                     total_amount=500.0)
        for i in range(6)
    ]


class TestChampionGuest:

    def test_rfm_components(self, engine, champion_bookings, now):
        guest = engine.score_guests(champion_bookings, "ds-1", now=now).guests[0]
        assert guest.recency_score == 5
        assert guest.frequency_score == 4
        assert guest.monetary_score == 4
        assert guest.rfm_score == 4

    def test_classification(self, engine, champion_bookings, now):
        guest = engine.score_guests(champion_bookings, "ds-1", now=now).guests[0]
        assert guest.lifecycle_stage == "champion"
        # rfm >= 4 with 6 bookings and 3,000 revenue meets the platinum clause
        assert guest.loyalty_tier == "platinum"

    def test_metrics(self, engine, champion_bookings, now):
        guest = engine.score_guests(champion_bookings, "ds-1", now=now).guests[0]
        assert guest.total_bookings == 6
        assert guest.total_revenue == 3000.0
        assert guest.average_spend == 500.0
        assert guest.last_booking_date == now - timedelta(days=10)
        assert guest.first_booking_date == now - timedelta(days=160)
        assert guest.travel_type == "couple"
        assert guest.guest_type == "leisure"

    def test_predictive_scores(self, engine, champion_bookings, now):
        guest = engine.score_guests(champion_bookings, "ds-1", now=now).guests[0]
        assert guest.clv_score == 6000.0          # 500 x 4 x (5/5) x 3
        assert guest.churn_risk_score == 10
        assert guest.retention_probability == 90
        assert guest.upsell_propensity == 80
        assert guest.ambassador_score == 80


class TestIdentity:

    def test_name_variants_collapse(self, engine, make_booking, now):
        bookings = [
            make_booking(guest_name="John Smith"),
            make_booking(guest_name="  john   smith "),
            make_booking(guest_name="JOHN SMITH"),
        ]
        result = engine.score_guests(bookings, "ds-1", now=now)
        assert len(result.guests) == 1
        assert result.guests[0].total_bookings == 3
        assert result.guests[0].name == "John Smith"
        assert len(result.stays) == 3

    def test_different_spellings_never_merge(self, engine, make_booking, now):
        bookings = [make_booking(guest_name="John Smith"), make_booking(guest_name="Jon Smith")]
        result = engine.score_guests(bookings, "ds-1", now=now)
        assert [g.normalized_name for g in result.guests] == ["john smith", "jon smith"]

    def test_guest_ids_are_deterministic(self, engine, make_booking, now):
        bookings = [make_booking(guest_name="Ana"), make_booking(guest_name="Ben")]
        first = engine.score_guests(bookings, "ds-1", now=now)
        second = engine.score_guests(bookings, "ds-1", now=now)
        assert [g.guest_id for g in first.guests] == [g.guest_id for g in second.guests]
        other = engine.score_guests(bookings, "ds-2", now=now)
        assert first.guests[0].guest_id != other.guests[0].guest_id


class TestRules:

    @pytest.mark.parametrize("bookings, recency, stage", [
        (1, 5, "first_timer"),
        (1, 3, "first_timer"),
        (1, 1, "churned"),
        (5, 4, "champion"),
        (5, 3, "loyal"),
        (3, 3, "loyal"),
        (2, 3, "returning"),
        (2, 2, "at_risk"),
        (6, 1, "at_risk"),
    ])
    def test_lifecycle(self, engine, bookings, recency, stage):
        assert engine.lifecycle_stage(bookings, recency) == stage

    @pytest.mark.parametrize("rfm, bookings, revenue, tier", [
        (4, 5, 2000, "platinum"),
        (4, 1, 100, "gold"),
        (2, 3, 1000, "gold"),
        (3, 1, 0, "silver"),
        (1, 2, 0, "silver"),
        (2, 1, 999, "bronze"),
    ])
    def test_loyalty(self, engine, rfm, bookings, revenue, tier):
        assert engine.loyalty_tier(rfm, bookings, revenue) == tier

    @pytest.mark.parametrize("days, score", [(0, 5), (30, 5), (31, 4), (90, 4), (180, 3), (365, 2), (366, 1)])
    def test_recency_breakpoints(self, engine, now, days, score):
        assert engine.recency_score(now - timedelta(days=days), now) == score

    def test_missing_arrival_scores_lowest_recency(self, engine, now):
        assert engine.recency_score(None, now) == 1


class TestScoreFunctions:

    def test_clv_caps_frequency(self):
        assert clv_estimate(100.0, 10, 5) == pytest.approx(1200.0)
        assert clv_estimate(100.0, 2, 1) == pytest.approx(120.0)

    def test_churn_is_clamped(self):
        assert churn_risk(1, 1, 100.0) == 100
        assert churn_risk(5, 5, 0.0) == 0

    def test_upsell_premium_room(self):
        assert upsell_propensity(400.0, 3, "Junior Suite", ("suite", "deluxe")) == 90
        assert upsell_propensity(100.0, 1, None, ("suite", "deluxe")) == 50

    def test_ambassador_cancellation_penalty(self):
        assert ambassador_score(5, 5, 25.0) == 80
        assert ambassador_score(1, 1, 50.0) == 0

    @pytest.mark.parametrize("score, band", [(0, "low"), (39, "low"), (40, "medium"), (69, "medium"), (70, "high")])
    def test_churn_bands(self, score, band):
        assert churn_band(score) == band

    def test_rfm_scores_tuple(self, engine, now):
        assert engine.rfm_scores(now - timedelta(days=10), now, 5, 2500.0) == (5, 4, 4, 4)


class TestBehaviour:

    def test_cancelled_stays(self, engine, make_booking, now):
        bookings = [
            make_booking(guest_name="Ana", total_amount=300.0),
            make_booking(guest_name="Ana", total_amount=900.0, is_cancelled=True),
        ]
        guest = engine.score_guests(bookings, "ds-1", now=now).guests[0]
        assert guest.total_revenue == 300.0
        assert guest.average_spend == 300.0
        assert guest.cancelled_bookings == 1
        assert guest.cancellation_rate == 50.0

    def test_weekend_ratio_and_stay_flags(self, engine, make_booking, now):
        bookings = [
            make_booking(guest_name="Ana", arrival_date=date(2025, 6, 13)),  # Friday
            make_booking(guest_name="Ana", arrival_date=date(2025, 6, 10)),  # Tuesday
        ]
        result = engine.score_guests(bookings, "ds-1", now=now)
        assert result.guests[0].weekend_ratio == 0.5
        assert [s.is_weekend for s in result.stays] == [True, False]

    def test_corporate_family_guest(self, engine, make_booking, now):
        bookings = [
            make_booking(guest_name="Ana", market_segment="Corporate", children=1),
            make_booking(guest_name="Ana", market_segment="Corporate", children=2),
        ]
        guest = engine.score_guests(bookings, "ds-1", now=now).guests[0]
        assert guest.guest_type == "corporate"
        assert guest.travel_type == "family"

    def test_ranges(self, engine, make_booking, now):
        bookings = [
            make_booking(guest_name=f"Guest {i % 7}", total_amount=50.0 * i,
                         arrival_date=now - timedelta(days=37 * i), is_cancelled=i % 5 == 0)
            for i in range(1, 40)
        ]
        for guest in engine.score_guests(bookings, "ds-1", now=now).guests:
            assert guest.rfm_score in {1, 2, 3, 4, 5}
            assert 0 <= guest.churn_risk_score <= 100
            assert guest.retention_probability == 100 - guest.churn_risk_score
            assert 0 <= guest.weekend_ratio <= 1
