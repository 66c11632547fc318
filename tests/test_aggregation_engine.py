"""
Tests for the single-pass rollups in engines/aggregation_engine.py.
"""

from datetime import date

import pytest

from engines.aggregation_engine import AggregationEngine, BookingAccumulator, DimensionRollup
from engines.analytics import calculate_comprehensive_analytics
from engines.identity import IdentityResolver
from engines.snapshot import default_analytics


@pytest.fixture
def mixed_bookings(make_booking):
    """Two Direct, two OTA (one cancelled), one Corporate booking."""
    return [
        make_booking(guest_name="Ana", channel="Direct", total_amount=200.0, adr=100.0,
                     arrival_date=date(2025, 1, 6), lead_time=2, market_segment="Leisure"),
        make_booking(guest_name="Ben", channel="Direct", total_amount=300.0, adr=150.0,
                     arrival_date=date(2025, 1, 10), lead_time=45, is_repeated_guest=True),
        make_booking(guest_name="Cat", channel="Booking.com", total_amount=400.0, adr=200.0,
                     arrival_date=date(2025, 2, 7), lead_time=20, guest_country="FR"),
        make_booking(guest_name="Dan", channel="Booking.com", total_amount=500.0, adr=250.0,
                     arrival_date=date(2025, 2, 8), lead_time=20, is_cancelled=True,
                     booking_status="Cancelled"),
        make_booking(guest_name="Ana", channel="Corporate", total_amount=100.0, adr=100.0,
                     arrival_date=date(2025, 2, 12), lead_time=100, market_segment="Corporate",
                     length_of_stay=1, adults=1),
    ]


class TestDimensionRollup:

    def test_counts_include_cancelled_revenue_does_not(self):
        rollup = DimensionRollup()
        rollup.add("Direct", 100.0, 50.0, False)
        rollup.add("Direct", 300.0, 70.0, True)
        assert rollup.bookings["Direct"] == 2
        assert rollup.revenue["Direct"] == 100.0
        assert rollup.cancellation_rates() == {"Direct": 50}
        assert rollup.average_adr() == {"Direct": 50.0}


class TestCoreKPIs:

    def test_scenario_all_direct(self, make_booking):
        bookings = [
            make_booking(total_amount=100.0, adr=80.0),
            make_booking(total_amount=200.0, adr=100.0),
            make_booking(total_amount=300.0, adr=120.0),
        ]
        snapshot = calculate_comprehensive_analytics(bookings)
        assert snapshot.core_kpis.total_revenue == 600.0
        assert snapshot.core_kpis.average_daily_rate == 100.0
        assert snapshot.core_kpis.cancellation_rate == 0
        assert snapshot.channel_analytics.direct_booking_rate == 100

    def test_conservation(self, mixed_bookings):
        result = AggregationEngine().aggregate(mixed_bookings)
        kpis = result.core_kpis
        assert kpis.total_bookings == kpis.confirmed_bookings + kpis.cancelled_bookings
        assert sum(result.revenue_analytics.revenue_by_channel.values()) == pytest.approx(1000.0)
        assert kpis.total_revenue == 1000.0

    def test_mixed_scalars(self, mixed_bookings):
        kpis = AggregationEngine().aggregate(mixed_bookings).core_kpis
        assert kpis.total_bookings == 5
        assert kpis.cancelled_bookings == 1
        assert kpis.cancellation_rate == 20
        assert kpis.repeat_guest_rate == 20
        assert kpis.average_daily_rate == 137.5       # (100 + 150 + 200 + 100) / 4
        assert kpis.revenue_per_booking == 250.0
        assert kpis.rev_par == 175.0                  # 250 * 0.7
        assert kpis.occupancy_rate == 56              # 4/5 * 100 * 0.7
        assert kpis.total_room_nights == 7
        assert kpis.average_lead_time == 37           # 187 / 5
        assert kpis.guests_served == 7

    def test_mappings_are_accepted(self):
        rows = [{"guestName": "A", "totalAmount": "120.50", "adr": "60.25",
                 "channel": "Direct", "arrivalDate": "2025-01-01", "lengthOfStay": 2}]
        kpis = AggregationEngine().aggregate(rows).core_kpis
        assert kpis.total_revenue == 120.5


class TestEmptyInput:

    def test_aggregate_returns_empty_defaults(self):
        result = AggregationEngine().aggregate([])
        defaults = default_analytics()
        assert result.is_empty
        assert result.accumulator.total_bookings == 0
        for category in ("core_kpis", "revenue_analytics", "booking_analytics", "guest_analytics",
                         "guest_performance_analytics", "cancellation_analytics",
                         "operational_analytics", "channel_analytics", "seasonality_analytics"):
            assert getattr(result, category) == getattr(defaults, category)

    def test_default_snapshot(self):
        snapshot = calculate_comprehensive_analytics([])
        assert snapshot == default_analytics()
        assert snapshot.core_kpis.total_revenue == 0
        assert snapshot.core_kpis.cancellation_rate == 0
        assert snapshot.revenue_analytics.revenue_by_channel == {}
        assert snapshot.booking_analytics.peak_booking_month == "N/A"
        assert snapshot.channel_analytics.best_performing_channel == "N/A"
        performance = snapshot.guest_performance_analytics
        assert performance.loyalty_metrics.loyalty_tier_distribution == []
        assert performance.spending_metrics.spend_distribution_percentiles == {
            "p25": 0.0, "p50": 0.0, "p75": 0.0, "p90": 0.0, "p99": 0.0}
        assert performance.segmentation_metrics.domestic_vs_international_mix == {
            "domestic": 0, "international": 0, "domestic_percent": 0}


class TestRevenueAndChannels:

    def test_commissions(self, mixed_bookings):
        revenue = AggregationEngine().aggregate(mixed_bookings).revenue_analytics
        # Direct 500 * 3%, Booking.com 400 * 18%, Corporate 100 * 5%
        assert revenue.commissions_paid == 92.0
        assert revenue.net_revenue_after_commissions == 908.0

    def test_growth_rate_latest_two_months(self, mixed_bookings):
        revenue = AggregationEngine().aggregate(mixed_bookings).revenue_analytics
        # January 500, February 500 (cancelled booking excluded)
        assert revenue.revenue_growth_rate == 0

    def test_highest_and_lowest_day(self, mixed_bookings):
        revenue = AggregationEngine().aggregate(mixed_bookings).revenue_analytics
        assert revenue.highest_revenue_day == {"date": "2025-02-07", "amount": 400.0}
        assert revenue.lowest_revenue_day == {"date": "2025-02-12", "amount": 100.0}

    def test_channel_mix_sorted_by_revenue(self, mixed_bookings):
        channel = AggregationEngine().aggregate(mixed_bookings).channel_analytics
        assert [row["channel"] for row in channel.channel_mix] == ["Direct", "Booking.com", "Corporate"]
        assert channel.best_performing_channel == "Direct"
        assert channel.worst_performing_channel == "Corporate"
        assert channel.direct_booking_rate == 40
        assert channel.ota_dependency_score == 40

    def test_direct_channel_needs_a_whole_name_match(self, make_booking):
        bookings = [make_booking(channel="Direct"), make_booking(channel="Indirect"),
                    make_booking(channel="direct ")]
        channel = AggregationEngine().aggregate(bookings).channel_analytics
        assert channel.direct_booking_rate == 67

    def test_channel_diversity_in_range(self, mixed_bookings):
        channel = AggregationEngine().aggregate(mixed_bookings).channel_analytics
        assert 0 <= channel.channel_diversity_index < 1


class TestBookingsAndCancellations:

    def test_lead_time_distribution(self, mixed_bookings):
        booking = AggregationEngine().aggregate(mixed_bookings).booking_analytics
        ranges = [row["range"] for row in booking.lead_time_distribution]
        assert ranges == ["1-3 Days", "2-4 Weeks", "1-2 Months", "3+ Months"]
        assert booking.last_minute_bookings_percent == 20
        assert booking.advance_bookings_percent == 40

    def test_peak_month_tie_goes_to_first_seen(self, make_booking):
        bookings = [
            make_booking(arrival_date=date(2025, 3, 3)),
            make_booking(arrival_date=date(2025, 1, 6)),
            make_booking(arrival_date=date(2025, 1, 7)),
            make_booking(arrival_date=date(2025, 3, 4)),
        ]
        booking = AggregationEngine().aggregate(bookings).booking_analytics
        assert booking.peak_booking_month == "March"
        assert booking.slowest_booking_month == "March"

    def test_cancellation_views(self, mixed_bookings):
        cancellation = AggregationEngine().aggregate(mixed_bookings).cancellation_analytics
        assert cancellation.cancellation_rate_by_channel["Booking.com"] == 50
        assert cancellation.revenue_lost_to_cancellations == 500.0
        assert cancellation.average_cancellation_lead_time == 20
        assert cancellation.high_risk_bookings_count == 2
        assert cancellation.low_risk_bookings_count == 3

    def test_cancellation_trend_increasing(self, make_booking):
        bookings = [
            make_booking(arrival_date=date(2025, 1, 6)),
            make_booking(arrival_date=date(2025, 1, 7)),
            make_booking(arrival_date=date(2025, 2, 3), is_cancelled=True),
            make_booking(arrival_date=date(2025, 2, 4)),
        ]
        cancellation = AggregationEngine().aggregate(bookings).cancellation_analytics
        assert cancellation.cancellation_trend == "increasing"


class TestGuests:

    def test_guest_analytics(self, mixed_bookings):
        guests = AggregationEngine().aggregate(mixed_bookings).guest_analytics
        assert guests.guest_country_distribution == {"GB": 4, "FR": 1}
        assert guests.repeat_guest_count == 1
        assert guests.new_guest_count == 4
        assert guests.new_vs_returning_ratio == 4.0
        assert guests.corporate_vs_leisure_ratio == 0.25
        assert guests.solo_travelers_percent == 25


class TestGuestPerformance:
    """
    mixed_bookings resolves to four guests scored against the latest
    arrival (2025-02-12): Ana silver (2 stays, 300), Ben bronze (flagged
    repeat, 300), Cat bronze (400), Dan bronze (cancelled only, 0).
    """

    @pytest.fixture
    def performance(self, mixed_bookings):
        return AggregationEngine().aggregate(mixed_bookings).guest_performance_analytics

    def test_loyalty_metrics(self, performance):
        loyalty = performance.loyalty_metrics
        assert loyalty.repeat_guest_revenue_contribution == 600.0
        assert loyalty.repeat_guest_revenue_percent == 60
        # CLV 900 + 720 + 1200 + 0 over four guests
        assert loyalty.estimated_clv == 705.0
        assert loyalty.loyalty_tier_distribution == [
            {"tier": "bronze", "count": 3, "percent": 75, "avg_spend": 233.33},
            {"tier": "silver", "count": 1, "percent": 25, "avg_spend": 300.0},
            {"tier": "gold", "count": 0, "percent": 0, "avg_spend": 0.0},
            {"tier": "platinum", "count": 0, "percent": 0, "avg_spend": 0.0},
        ]
        assert loyalty.avg_time_between_visits == 37
        assert loyalty.retention_cohorts == [
            {"cohort": "2025-Q1", "retained": 1, "churned": 3, "retention_rate": 25}]
        assert loyalty.churn_risk_distribution == [
            {"risk": "low", "count": 1, "percent": 25},
            {"risk": "medium", "count": 2, "percent": 50},
            {"risk": "high", "count": 1, "percent": 25},
        ]

    def test_segmentation_metrics(self, performance):
        segmentation = performance.segmentation_metrics
        assert segmentation.guest_type_distribution == [
            {"type": "Solo", "count": 1, "percent": 20, "avg_revenue": 100.0},
            {"type": "Couple", "count": 4, "percent": 80, "avg_revenue": 300.0},
        ]
        # guests: GB x3, FR x1
        assert segmentation.geographic_concentration_index == 0.63
        assert segmentation.domestic_vs_international_mix == {
            "domestic": 4, "international": 1, "domestic_percent": 80}
        assert segmentation.market_segment_matrix == [
            {"segment": "Leisure", "bookings": 4, "revenue": 900.0, "avg_adr": 150.0, "cancellation_rate": 25},
            {"segment": "Corporate", "bookings": 1, "revenue": 100.0, "avg_adr": 100.0, "cancellation_rate": 0},
        ]
        assert segmentation.corporate_vs_leisure_revenue == {
            "corporate": 100.0, "leisure": 900.0, "corporate_percent": 10}
        assert segmentation.high_value_guest_analysis == {
            "count": 0, "revenue_contribution": 0.0, "avg_spend": 0.0, "percent": 0}

    def test_spending_metrics(self, performance):
        spending = performance.spending_metrics
        assert spending.revenue_per_guest == 250.0
        assert spending.adr_by_guest_type == [{"type": "Solo", "adr": 100.0}, {"type": "Couple", "adr": 150.0}]
        assert spending.spend_distribution_percentiles == {
            "p25": 0.0, "p50": 300.0, "p75": 300.0, "p90": 400.0, "p99": 400.0}
        assert spending.los_impact_on_spend == [
            {"los_range": "1 Night", "avg_spend": 100.0, "count": 1},
            {"los_range": "2-3 Nights", "avg_spend": 300.0, "count": 3},
        ]
        # Leisure ADRs 100 / 150 / 200: population sd 40.82 over mean 150
        assert spending.price_sensitivity_by_segment == [
            {"segment": "Leisure", "sensitivity": 27, "avg_adr": 150.0, "variance": 1666.67},
            {"segment": "Corporate", "sensitivity": 0, "avg_adr": 100.0, "variance": 0.0},
        ]
        assert spending.upsell_potential_score == 50

    def test_booking_patterns(self, performance):
        patterns = performance.booking_patterns
        assert patterns.lead_time_by_guest_type == [
            {"type": "Solo", "avg_lead_time": 100, "new_guest": 0, "repeat_guest": 100},
            {"type": "Couple", "avg_lead_time": 22, "new_guest": 20, "repeat_guest": 24},
        ]
        assert patterns.preferred_arrival_days == [
            {"day": "Monday", "count": 1, "percent": 20},
            {"day": "Wednesday", "count": 1, "percent": 20},
            {"day": "Friday", "count": 2, "percent": 40},
            {"day": "Saturday", "count": 1, "percent": 20},
        ]
        assert patterns.weekend_vs_weekday_ratio == {"weekend": 3, "weekday": 2, "ratio": 1.5}
        assert patterns.advance_planning_index == 40
        assert patterns.last_minute_propensity == 20
        assert patterns.seasonal_guest_mix == [
            {"season": "Winter", "new_guests": 2, "repeat_guests": 2, "repeat_percent": 50}]

    def test_risk_experience(self, performance):
        risk = performance.risk_experience
        assert risk.cancellation_rate_by_guest_type == [
            {"type": "Solo", "rate": 0, "count": 1},
            {"type": "Couple", "rate": 25, "count": 4},
        ]
        # 0.5 x 50% repeat guests + 0.5 x (100 - 20% cancelled)
        assert risk.guest_satisfaction_proxy_score == 65
        assert risk.room_type_preferences == [
            {"room_type": "Standard", "count": 5, "percent": 100, "avg_adr": 137.5}]

    def test_guest_view_uses_normalised_names(self, make_booking):
        bookings = [make_booking(guest_name="John Smith"), make_booking(guest_name=" JOHN  smith")]
        performance = AggregationEngine().aggregate(bookings).guest_performance_analytics
        assert performance.spending_metrics.revenue_per_guest == 200.0
        assert performance.loyalty_metrics.retention_cohorts == [
            {"cohort": "2025-Q2", "retained": 1, "churned": 0, "retention_rate": 100}]

    def test_guest_view_follows_injected_resolver(self, mixed_bookings):
        class CountryResolver(IdentityResolver):
            def resolve(self, booking):
                return booking.guest_country

        performance = AggregationEngine(resolver=CountryResolver()).aggregate(
            mixed_bookings).guest_performance_analytics
        assert performance.spending_metrics.revenue_per_guest == 500.0
        assert performance.segmentation_metrics.geographic_concentration_index == 0.5

    def test_high_value_guests(self, make_booking):
        bookings = [make_booking(guest_name=f"Guest {i}", total_amount=100.0) for i in range(5)]
        bookings.append(make_booking(guest_name="Whale", total_amount=1500.0))
        segmentation = AggregationEngine().aggregate(bookings).guest_performance_analytics.segmentation_metrics
        # mean guest revenue 333.33, cutoff 666.67
        assert segmentation.high_value_guest_analysis == {
            "count": 1, "revenue_contribution": 1500.0, "avg_spend": 1500.0, "percent": 17}

    def test_unknown_country_is_neither_domestic_nor_international(self, make_booking):
        bookings = [make_booking(guest_country=None), make_booking(guest_country="uk"),
                    make_booking(guest_country="US")]
        mix = AggregationEngine().aggregate(bookings).guest_performance_analytics \
            .segmentation_metrics.domestic_vs_international_mix
        assert mix == {"domestic": 1, "international": 1, "domestic_percent": 50}


class TestOperationsAndSeasonality:

    def test_staffing(self, make_booking):
        bookings = [make_booking() for _ in range(201)]
        operational = AggregationEngine().aggregate(bookings).operational_analytics
        assert operational.staffing_recommendation == "normal"

    def test_weekday_performance_covers_all_days(self, mixed_bookings):
        seasonality = AggregationEngine().aggregate(mixed_bookings).seasonality_analytics
        assert len(seasonality.weekday_performance) == 7
        assert seasonality.weekday_performance["Friday"]["bookings"] == 2
        assert seasonality.weekday_performance["Friday"]["revenue"] == 700.0

    def test_year_over_year(self, make_booking):
        bookings = [
            make_booking(arrival_date=date(2024, 5, 1), total_amount=100.0),
            make_booking(arrival_date=date(2025, 5, 1), total_amount=150.0),
        ]
        seasonality = AggregationEngine().aggregate(bookings).seasonality_analytics
        revenue_row = seasonality.year_over_year_comparison[0]
        assert revenue_row == {"metric": "revenue", "current": 150.0, "previous": 100.0, "change": 50.0}

    def test_accumulator_is_isolated_per_pass(self, mixed_bookings):
        engine = AggregationEngine()
        first = engine.accumulate(mixed_bookings)
        second = engine.accumulate(mixed_bookings)
        assert isinstance(first, BookingAccumulator)
        assert first.total_bookings == second.total_bookings == 5


def test_snapshot_is_idempotent(mixed_bookings):
    first = calculate_comprehensive_analytics(mixed_bookings).to_dict()
    second = calculate_comprehensive_analytics(mixed_bookings).to_dict()
    assert first == second
