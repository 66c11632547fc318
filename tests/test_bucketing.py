"""
Tests for the bucketing and lookup utilities in utils/bucketing.py.
"""

from datetime import date, datetime

import pandas as pd
import pytest

from utils.bucketing import (
    bucket_label,
    commission_rate,
    is_direct_channel,
    is_midweek_arrival,
    is_weekend_arrival,
    lead_time_bucket,
    matches_any,
    month_name,
    parse_bool,
    parse_date,
    parse_int,
    parse_money,
    party_type,
    quarter_label,
    season_name,
    weekday_name,
    year_month_key,
)


class TestLeadTimeBuckets:

    @pytest.mark.parametrize("lead, label", [
        (0, "Same Day"),
        (1, "Same Day"),
        (2, "1-3 Days"),
        (3, "1-3 Days"),
        (7, "4-7 Days"),
        (14, "1-2 Weeks"),
        (30, "2-4 Weeks"),
        (45, "1-2 Months"),
        (90, "2-3 Months"),
        (91, "3+ Months"),
    ])
    def test_bucket_boundaries(self, lead, label):
        assert lead_time_bucket(lead) == label

    def test_stay_length_bands(self):
        bands = ((1, "1 Night"), (3, "2-3 Nights"))
        assert bucket_label(1, bands, "4+ Nights") == "1 Night"
        assert bucket_label(3, bands, "4+ Nights") == "2-3 Nights"
        assert bucket_label(4, bands, "4+ Nights") == "4+ Nights"


class TestCommissionRates:

    @pytest.mark.parametrize("channel, rate", [
        ("Direct", 0.03),
        ("Website Direct", 0.03),
        ("Booking.com", 0.18),
        ("EXPEDIA", 0.18),
        ("Online TA", 0.18),
        ("Corporate", 0.05),
        ("Travel Agent", 0.10),
        ("Groups", 0.08),
        ("Walk-in", 0.10),
        (None, 0.10),
    ])
    def test_substring_rules(self, channel, rate):
        assert commission_rate(channel) == rate

    def test_first_rule_wins(self):
        # contains both "direct" and "online"
        assert commission_rate("Direct Online") == 0.03

    def test_matches_any_is_case_insensitive(self):
        assert matches_any("Corporate Travel", ("corporate",))
        assert not matches_any(None, ("corporate",))


class TestChannelAndParty:

    @pytest.mark.parametrize("channel, direct", [
        ("Direct", True),
        ("direct ", True),
        ("DIRECT", True),
        ("Indirect", False),
        ("Direct Connect", False),
        ("Booking.com", False),
        (None, False),
    ])
    def test_direct_is_a_whole_name_match(self, channel, direct):
        assert is_direct_channel(channel) is direct

    @pytest.mark.parametrize("adults, children, label", [
        (1, 0, "Solo"),
        (2, 0, "Couple"),
        (3, 0, "Group"),
        (2, 1, "Family"),
        (0, 0, "Solo"),
    ])
    def test_party_type(self, adults, children, label):
        assert party_type(adults, children) == label


class TestCalendar:

    def test_names(self):
        day = date(2025, 3, 14)  # Friday
        assert weekday_name(day) == "Friday"
        assert month_name(day) == "March"
        assert quarter_label(day) == "Q1"
        assert year_month_key(day) == "2025-03"

    def test_missing_date_labels(self):
        assert weekday_name(None) == "Unknown"
        assert month_name(None) == "Unknown"
        assert quarter_label(None) == "Unknown"
        assert year_month_key(None) is None
        assert season_name(None) == "Unknown"

    def test_seasons(self):
        assert season_name(date(2025, 12, 1)) == "Winter"
        assert season_name(date(2025, 2, 28)) == "Winter"
        assert season_name(date(2025, 4, 2)) == "Spring"
        assert season_name(date(2025, 7, 2)) == "Summer"
        assert season_name(date(2025, 10, 2)) == "Autumn"

    def test_weekend_is_friday_to_sunday(self):
        assert is_weekend_arrival(date(2025, 3, 14))      # Friday
        assert is_weekend_arrival(date(2025, 3, 16))      # Sunday
        assert not is_weekend_arrival(date(2025, 3, 13))  # Thursday
        assert is_midweek_arrival(date(2025, 3, 13))
        assert not is_midweek_arrival(date(2025, 3, 14))


class TestParsing:

    def test_money(self):
        assert parse_money("125.50") == 125.5
        assert parse_money("1,250.00") == 1250.0
        assert parse_money("abc") == 0.0
        assert parse_money(None) == 0.0
        assert parse_money(-20) == 0.0

    def test_int(self):
        assert parse_int("3") == 3
        assert parse_int(float("nan"), 1) == 1
        assert parse_int(None, None) is None

    def test_bool(self):
        assert parse_bool("true")
        assert parse_bool(1)
        assert not parse_bool("0")
        assert not parse_bool(None)

    def test_dates(self):
        assert parse_date("2025-03-14") == date(2025, 3, 14)
        assert parse_date("2025-03-14T10:00:00") == date(2025, 3, 14)
        assert parse_date(datetime(2025, 3, 14, 8)) == date(2025, 3, 14)
        assert parse_date(pd.Timestamp("2025-03-14")) == date(2025, 3, 14)
        assert parse_date("not a date") is None
        assert parse_date(None) is None
