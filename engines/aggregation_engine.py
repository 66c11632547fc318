"""
AGGREGATION ENGINE - Single-pass Booking Rollups
=================================================
Responsibilities:
  1. Walk the booking list once, updating one BookingAccumulator
  2. Roll bookings up per dimension (channel, segment, room type, month,
     weekday, quarter, lead-time bucket, country, party type, stay length)
     and per resolved guest
  3. Derive the core KPIs and the per-dimension snapshot categories
  4. Score the per-guest profiles for the guest performance view

Revenue-bearing measures only include non-cancelled bookings; count
measures include every booking.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config.scoring_config import AnalyticsConfig, DEFAULT_ANALYTICS_CONFIG, GuestScoringConfig
from config.thresholds import (
    DEFAULT_CHANNEL,
    DEFAULT_COUNTRY,
    DEFAULT_ROOM_TYPE,
    DEFAULT_SEGMENT,
    LOYALTY_TIER_ORDER,
    NOT_AVAILABLE,
    PARTY_TYPE_ORDER,
    UNKNOWN_LABEL,
)
from engines.guest_scoring_engine import (
    GuestScoringEngine,
    churn_band,
    churn_risk,
    clv_estimate,
    upsell_propensity,
)
from engines.identity import ExactNameResolver, IdentityResolver
from engines.models import Booking
from engines.snapshot import (
    BookingAnalytics,
    BookingPatterns,
    CancellationAnalytics,
    ChannelAnalytics,
    CoreKPIs,
    GuestAnalytics,
    GuestPerformanceAnalytics,
    LoyaltyMetrics,
    OperationalAnalytics,
    RevenueAnalytics,
    RiskExperience,
    SeasonalityAnalytics,
    SegmentationMetrics,
    SpendingMetrics,
)
from utils.bucketing import (
    WEEKDAY_NAMES,
    bucket_label,
    commission_rate,
    is_direct_channel,
    is_midweek_arrival,
    is_weekend_arrival,
    lead_time_bucket,
    lead_time_labels,
    matches_any,
    month_name,
    party_type,
    quarter_label,
    season_name,
    weekday_name,
    year_month_key,
)
from utils.stats import (
    bottom_key,
    clamp,
    concentration_index,
    diversity_index,
    mean,
    pct_change,
    percent,
    percentile,
    round_half_up,
    safe_ratio,
    standard_deviation,
    top_key,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Accumulators
# ---------------------------------------------------------------------------

@dataclass
class DimensionRollup:
    """Booking, cancellation, revenue and ADR totals keyed by one dimension."""
    bookings: Counter = field(default_factory=Counter)
    cancellations: Counter = field(default_factory=Counter)
    confirmed: Counter = field(default_factory=Counter)
    revenue: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    adr_total: Dict[str, float] = field(default_factory=lambda: defaultdict(float))

    def add(self, key: str, revenue: float, adr: float, cancelled: bool):
        self.bookings[key] += 1
        if cancelled:
            self.cancellations[key] += 1
        else:
            self.confirmed[key] += 1
            self.revenue[key] += revenue
            self.adr_total[key] += adr

    def booking_counts(self) -> Dict[str, int]:
        return dict(self.bookings)

    def revenue_totals(self) -> Dict[str, float]:
        return dict(self.revenue)

    def cancellation_rates(self) -> Dict[str, int]:
        return {k: percent(self.cancellations.get(k, 0), n) for k, n in self.bookings.items()}

    def average_adr(self) -> Dict[str, float]:
        return {
            k: round_half_up(total / self.confirmed[k], 2)
            for k, total in self.adr_total.items()
            if self.confirmed.get(k, 0) > 0
        }


@dataclass
class GuestProfile:
    """Running totals for one resolved guest."""
    country: str
    bookings: int = 0
    cancelled: int = 0
    revenue: float = 0.0
    flagged_repeat: bool = False
    arrivals: List[date] = field(default_factory=list)
    # (party type, lead time) per booking
    stays: List[Tuple[str, int]] = field(default_factory=list)
    seasons: Set[str] = field(default_factory=set)
    room_types: Counter = field(default_factory=Counter)

    def add(self, booking: Booking, party: str, season: str):
        self.bookings += 1
        if booking.is_cancelled:
            self.cancelled += 1
        else:
            self.revenue += booking.total_amount
        if booking.is_repeated_guest:
            self.flagged_repeat = True
        if booking.arrival_date is not None:
            self.arrivals.append(booking.arrival_date)
            self.seasons.add(season)
        if booking.room_type:
            self.room_types[booking.room_type] += 1
        self.stays.append((party, booking.lead_time))

    @property
    def is_repeat(self) -> bool:
        return self.bookings >= 2 or self.flagged_repeat

    @property
    def confirmed(self) -> int:
        return self.bookings - self.cancelled

    @property
    def average_spend(self) -> float:
        return self.revenue / self.confirmed if self.confirmed else 0.0

    @property
    def cancellation_rate(self) -> float:
        return self.cancelled / self.bookings * 100 if self.bookings else 0.0


@dataclass
class BookingAccumulator:
    """Every running total of one aggregation pass."""
    channel: DimensionRollup = field(default_factory=DimensionRollup)
    segment: DimensionRollup = field(default_factory=DimensionRollup)
    room_type: DimensionRollup = field(default_factory=DimensionRollup)
    month: DimensionRollup = field(default_factory=DimensionRollup)
    arrival_weekday: DimensionRollup = field(default_factory=DimensionRollup)
    departure_weekday: DimensionRollup = field(default_factory=DimensionRollup)
    quarter: DimensionRollup = field(default_factory=DimensionRollup)
    lead_time: DimensionRollup = field(default_factory=DimensionRollup)
    country: DimensionRollup = field(default_factory=DimensionRollup)
    year_month: DimensionRollup = field(default_factory=DimensionRollup)
    year: DimensionRollup = field(default_factory=DimensionRollup)
    arrival_day: DimensionRollup = field(default_factory=DimensionRollup)
    party_type: DimensionRollup = field(default_factory=DimensionRollup)
    stay_length: DimensionRollup = field(default_factory=DimensionRollup)
    guests: Dict[str, GuestProfile] = field(default_factory=dict)
    # confirmed ADRs per market segment
    segment_adrs: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    total_bookings: int = 0
    confirmed_bookings: int = 0
    cancelled_bookings: int = 0
    total_revenue: float = 0.0
    total_adr: float = 0.0
    total_lead_time: int = 0
    total_room_nights: int = 0
    guests_served: int = 0
    repeat_guests: int = 0
    commissions_paid: float = 0.0
    revenue_lost: float = 0.0
    cancelled_lead_time: int = 0
    last_minute_bookings: int = 0
    advance_bookings: int = 0
    midweek_arrivals: int = 0
    weekend_arrivals: int = 0
    family_bookings: int = 0
    solo_bookings: int = 0
    high_risk_bookings: int = 0
    direct_bookings: int = 0
    ota_bookings: int = 0
    corporate_bookings: int = 0
    leisure_bookings: int = 0
    corporate_revenue: float = 0.0
    leisure_revenue: float = 0.0
    domestic_bookings: int = 0
    international_bookings: int = 0
    latest_arrival: Optional[date] = None
    confirmed_amounts: List[float] = field(default_factory=list)

    def add(self, booking: Booking, config: AnalyticsConfig, resolver: IdentityResolver):
        channel = booking.channel or DEFAULT_CHANNEL
        segment = booking.market_segment or DEFAULT_SEGMENT
        room_type = booking.room_type or DEFAULT_ROOM_TYPE
        country = booking.guest_country or DEFAULT_COUNTRY
        arrival = booking.arrival_date
        revenue = booking.total_amount
        adr = booking.adr
        cancelled = booking.is_cancelled
        lead = booking.lead_time
        party = party_type(booking.adults, booking.children)
        season = season_name(arrival, config.seasons)

        keyed = [
            (self.channel, channel),
            (self.segment, segment),
            (self.room_type, room_type),
            (self.month, month_name(arrival)),
            (self.arrival_weekday, weekday_name(arrival)),
            (self.departure_weekday, weekday_name(booking.departure_date)),
            (self.quarter, quarter_label(arrival)),
            (self.lead_time, lead_time_bucket(lead, config.lead_time_buckets,
                                              config.lead_time_overflow_bucket)),
            (self.country, country),
            (self.arrival_day, arrival.isoformat() if arrival else UNKNOWN_LABEL),
            (self.party_type, party),
            (self.stay_length, bucket_label(booking.length_of_stay, config.los_spend_buckets,
                                            config.los_spend_overflow_bucket)),
        ]
        ym = year_month_key(arrival)
        if ym is not None:
            keyed.append((self.year_month, ym))
            keyed.append((self.year, ym[:4]))
        for rollup, key in keyed:
            rollup.add(key, revenue, adr, cancelled)

        guest_key = resolver.resolve(booking)
        profile = self.guests.get(guest_key)
        if profile is None:
            profile = GuestProfile(country=country)
            self.guests[guest_key] = profile
        profile.add(booking, party, season)

        is_corporate = matches_any(segment, config.corporate_segment_keywords)
        is_leisure = matches_any(segment, config.leisure_segment_keywords)

        self.total_bookings += 1
        self.total_lead_time += lead
        if cancelled:
            self.cancelled_bookings += 1
            self.revenue_lost += revenue
            self.cancelled_lead_time += lead
        else:
            self.confirmed_bookings += 1
            self.total_revenue += revenue
            self.total_adr += adr
            self.total_room_nights += booking.length_of_stay
            self.guests_served += booking.party_size
            self.commissions_paid += revenue * commission_rate(
                channel, config.commission_rules, config.default_commission_rate)
            self.confirmed_amounts.append(revenue)
            self.segment_adrs[segment].append(adr)
            if booking.children > 0:
                self.family_bookings += 1
            if (booking.adults or 1) == 1 and booking.children == 0:
                self.solo_bookings += 1
            if is_corporate:
                self.corporate_revenue += revenue
            if is_leisure:
                self.leisure_revenue += revenue

        if booking.is_repeated_guest:
            self.repeat_guests += 1
        if lead <= config.last_minute_max_lead_time:
            self.last_minute_bookings += 1
        if lead > config.advance_min_lead_time:
            self.advance_bookings += 1
        if is_midweek_arrival(arrival):
            self.midweek_arrivals += 1
        if is_weekend_arrival(arrival):
            self.weekend_arrivals += 1
        if arrival is not None and (self.latest_arrival is None or arrival > self.latest_arrival):
            self.latest_arrival = arrival

        # unknown country is neither domestic nor international
        if booking.guest_country:
            if booking.guest_country.strip().lower() in config.domestic_countries:
                self.domestic_bookings += 1
            else:
                self.international_bookings += 1

        is_ota = matches_any(channel, config.ota_channel_keywords)
        if is_ota:
            self.ota_bookings += 1
            if config.high_risk_lead_time_min <= lead < config.high_risk_lead_time_max:
                self.high_risk_bookings += 1
        if is_direct_channel(channel, config.direct_channel_names):
            self.direct_bookings += 1
        if is_corporate:
            self.corporate_bookings += 1
        if is_leisure:
            self.leisure_bookings += 1


@dataclass
class ScoredProfile:
    """A GuestProfile with the loyalty and predictive scores of its guest."""
    profile: GuestProfile
    loyalty_tier: str
    churn_risk: int
    upsell_propensity: int
    clv: float


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass
class AggregationResult:
    """Rollups and categories of one pass; every category is the empty default until set."""
    accumulator: BookingAccumulator = field(default_factory=BookingAccumulator)
    core_kpis: CoreKPIs = field(default_factory=CoreKPIs)
    revenue_analytics: RevenueAnalytics = field(default_factory=RevenueAnalytics)
    booking_analytics: BookingAnalytics = field(default_factory=BookingAnalytics)
    guest_analytics: GuestAnalytics = field(default_factory=GuestAnalytics)
    guest_performance_analytics: GuestPerformanceAnalytics = field(default_factory=GuestPerformanceAnalytics)
    cancellation_analytics: CancellationAnalytics = field(default_factory=CancellationAnalytics)
    operational_analytics: OperationalAnalytics = field(default_factory=OperationalAnalytics)
    channel_analytics: ChannelAnalytics = field(default_factory=ChannelAnalytics)
    seasonality_analytics: SeasonalityAnalytics = field(default_factory=SeasonalityAnalytics)

    @property
    def is_empty(self) -> bool:
        return self.accumulator.total_bookings == 0


def _money(value: float) -> float:
    return round_half_up(value, 2)


def latest_two_keys(rollup: DimensionRollup) -> Optional[tuple]:
    """The two most recent keys of a sortable-key rollup, or None."""
    keys = sorted(rollup.bookings)
    if len(keys) < 2:
        return None
    return keys[-2], keys[-1]


class AggregationEngine:
    """
    Turns a flat booking list into scalar KPIs and per-dimension rollups.
    Never raises on malformed records; an empty list yields an
    AggregationResult whose categories are all the empty defaults.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None,
                 resolver: Optional[IdentityResolver] = None,
                 scoring_config: Optional[GuestScoringConfig] = None):
        self.config = config or DEFAULT_ANALYTICS_CONFIG
        self.resolver = resolver or ExactNameResolver()
        self.scorer = GuestScoringEngine(scoring_config, self.resolver)

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    def accumulate(self, bookings: Iterable) -> BookingAccumulator:
        """Run the single pass. Mappings are converted to Booking first."""
        acc = BookingAccumulator()
        for booking in bookings:
            if not isinstance(booking, Booking):
                booking = Booking.from_record(booking)
            acc.add(booking, self.config, self.resolver)
        return acc

    def aggregate(self, bookings: Iterable) -> AggregationResult:
        acc = self.accumulate(bookings)
        if acc.total_bookings == 0:
            logger.info("AGGREGATION ENGINE: no bookings, returning empty categories")
            return AggregationResult(accumulator=acc)

        logger.info(f"AGGREGATION ENGINE: rolled up {acc.total_bookings:,} bookings "
                    f"({acc.cancelled_bookings:,} cancelled) for {len(acc.guests):,} guests")
        return AggregationResult(
            accumulator=acc,
            core_kpis=self.core_kpis(acc),
            revenue_analytics=self.revenue_analytics(acc),
            booking_analytics=self.booking_analytics(acc),
            guest_analytics=self.guest_analytics(acc),
            guest_performance_analytics=self.guest_performance_analytics(acc),
            cancellation_analytics=self.cancellation_analytics(acc),
            operational_analytics=self.operational_analytics(acc),
            channel_analytics=self.channel_analytics(acc),
            seasonality_analytics=self.seasonality_analytics(acc),
        )

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def core_kpis(self, acc: BookingAccumulator) -> CoreKPIs:
        n = acc.total_bookings
        confirmed = acc.confirmed_bookings
        factor = self.config.occupancy_proxy_factor
        return CoreKPIs(
            total_revenue=_money(acc.total_revenue),
            total_bookings=n,
            confirmed_bookings=confirmed,
            cancelled_bookings=acc.cancelled_bookings,
            average_daily_rate=_money(safe_ratio(acc.total_adr, confirmed)),
            rev_par=_money(safe_ratio(acc.total_revenue, confirmed) * factor),
            occupancy_rate=round_half_up(safe_ratio(confirmed, n) * 100 * factor),
            cancellation_rate=percent(acc.cancelled_bookings, n),
            repeat_guest_rate=percent(acc.repeat_guests, n),
            average_lead_time=round_half_up(safe_ratio(acc.total_lead_time, n)),
            average_length_of_stay=round_half_up(safe_ratio(acc.total_room_nights, confirmed), 1),
            total_room_nights=acc.total_room_nights,
            revenue_per_booking=_money(safe_ratio(acc.total_revenue, confirmed)),
            guests_served=acc.guests_served,
            average_party_size=round_half_up(safe_ratio(acc.guests_served, confirmed), 1),
        )

    def revenue_analytics(self, acc: BookingAccumulator) -> RevenueAnalytics:
        daily = acc.arrival_day.revenue_totals()
        daily.pop(UNKNOWN_LABEL, None)
        if daily:
            high = max(daily.items(), key=lambda kv: kv[1])
            low = min(daily.items(), key=lambda kv: kv[1])
            highest = {"date": high[0], "amount": _money(high[1])}
            lowest = {"date": low[0], "amount": _money(low[1])}
        else:
            highest = {"date": NOT_AVAILABLE, "amount": 0.0}
            lowest = {"date": NOT_AVAILABLE, "amount": 0.0}

        growth = 0
        months = latest_two_keys(acc.year_month)
        if months:
            previous, latest = months
            growth = round_half_up(pct_change(acc.year_month.revenue.get(latest, 0.0),
                                              acc.year_month.revenue.get(previous, 0.0)))

        return RevenueAnalytics(
            revenue_by_channel=acc.channel.revenue_totals(),
            revenue_by_segment=acc.segment.revenue_totals(),
            revenue_by_room_type=acc.room_type.revenue_totals(),
            revenue_by_month=acc.month.revenue_totals(),
            revenue_by_day_of_week=acc.arrival_weekday.revenue_totals(),
            net_revenue_after_commissions=_money(acc.total_revenue - acc.commissions_paid),
            commissions_paid=_money(acc.commissions_paid),
            revenue_per_guest=_money(safe_ratio(acc.total_revenue, acc.guests_served)),
            revenue_growth_rate=growth,
            highest_revenue_day=highest,
            lowest_revenue_day=lowest,
            average_daily_revenue=_money(acc.total_revenue / len(daily)) if daily else 0.0,
        )

    def booking_analytics(self, acc: BookingAccumulator) -> BookingAnalytics:
        n = acc.total_bookings
        labels = lead_time_labels(self.config.lead_time_buckets, self.config.lead_time_overflow_bucket)
        distribution = [
            {"range": label, "count": acc.lead_time.bookings[label],
             "percent": percent(acc.lead_time.bookings[label], n)}
            for label in labels
            if acc.lead_time.bookings.get(label, 0) > 0
        ]
        weekday_ratio = (
            round_half_up(acc.midweek_arrivals / acc.weekend_arrivals, 2)
            if acc.weekend_arrivals > 0 else 0.0
        )
        return BookingAnalytics(
            bookings_by_channel=acc.channel.booking_counts(),
            bookings_by_segment=acc.segment.booking_counts(),
            bookings_by_month=acc.month.booking_counts(),
            bookings_by_day_of_week=acc.arrival_weekday.booking_counts(),
            booking_velocity=round_half_up(n / self.config.booking_velocity_days),
            last_minute_bookings_percent=percent(acc.last_minute_bookings, n),
            advance_bookings_percent=percent(acc.advance_bookings, n),
            lead_time_distribution=distribution,
            peak_booking_month=top_key(acc.month.bookings, NOT_AVAILABLE),
            slowest_booking_month=bottom_key(acc.month.bookings, NOT_AVAILABLE),
            weekday_vs_weekend_ratio=weekday_ratio,
            average_booking_value=_money(safe_ratio(acc.total_revenue, acc.confirmed_bookings)),
        )

    def guest_analytics(self, acc: BookingAccumulator) -> GuestAnalytics:
        n = acc.total_bookings
        repeat = acc.repeat_guests
        countries = acc.country.booking_counts()
        ranked = sorted(countries.items(), key=lambda kv: kv[1], reverse=True)
        top_countries = [
            {"country": country, "count": count, "percent": percent(count, n)}
            for country, count in ranked[:self.config.top_n_countries]
        ]

        high_value = 0
        if acc.confirmed_bookings > 0:
            cutoff = (acc.total_revenue / acc.confirmed_bookings) * self.config.high_value_booking_multiplier
            high_value = sum(1 for amount in acc.confirmed_amounts if amount > cutoff)

        return GuestAnalytics(
            guest_country_distribution=countries,
            new_vs_returning_ratio=round_half_up((n - repeat) / repeat, 2) if repeat > 0 else 0.0,
            repeat_guest_count=repeat,
            new_guest_count=n - repeat,
            top_source_countries=top_countries,
            guest_diversity_index=diversity_index(countries),
            corporate_vs_leisure_ratio=round_half_up(safe_ratio(acc.corporate_bookings, acc.leisure_bookings), 2),
            family_bookings_percent=percent(acc.family_bookings, acc.confirmed_bookings),
            solo_travelers_percent=percent(acc.solo_bookings, acc.confirmed_bookings),
            average_guest_value=_money(safe_ratio(acc.total_revenue, acc.guests_served)),
            high_value_guest_count=high_value,
            guest_loyalty_score=percent(repeat, n),
        )

    def cancellation_analytics(self, acc: BookingAccumulator) -> CancellationAnalytics:
        n = acc.total_bookings
        labels = lead_time_labels(self.config.lead_time_buckets, self.config.lead_time_overflow_bucket)
        by_lead_time = [
            {"range": label,
             "rate": percent(acc.lead_time.cancellations.get(label, 0), acc.lead_time.bookings.get(label, 0))}
            for label in labels
        ]

        trend = "stable"
        months = latest_two_keys(acc.year_month)
        if months:
            rates = acc.year_month.cancellation_rates()
            previous, latest = months
            delta = rates[latest] - rates[previous]
            if delta > self.config.cancellation_trend_threshold:
                trend = "increasing"
            elif delta < -self.config.cancellation_trend_threshold:
                trend = "decreasing"

        return CancellationAnalytics(
            cancellation_rate_by_channel=acc.channel.cancellation_rates(),
            cancellation_rate_by_lead_time=by_lead_time,
            cancellation_rate_by_month=acc.month.cancellation_rates(),
            cancellation_rate_by_segment=acc.segment.cancellation_rates(),
            revenue_lost_to_cancellations=_money(acc.revenue_lost),
            average_cancellation_lead_time=round_half_up(
                safe_ratio(acc.cancelled_lead_time, acc.cancelled_bookings)),
            high_risk_bookings_count=acc.high_risk_bookings,
            low_risk_bookings_count=n - acc.high_risk_bookings,
            cancellation_trend=trend,
            predicted_cancellation_rate=percent(acc.cancelled_bookings, n),
        )

    def operational_analytics(self, acc: BookingAccumulator) -> OperationalAnalytics:
        n = acc.total_bookings
        check_ins = acc.arrival_weekday.booking_counts()
        check_outs = acc.departure_weekday.booking_counts()

        turnover = 0
        if acc.confirmed_bookings > 0 and acc.total_room_nights > 0:
            turnover = round_half_up(100 / (acc.total_room_nights / acc.confirmed_bookings))

        staffing = self.config.default_staffing_level
        for limit, level in self.config.staffing_levels:
            if n > limit:
                staffing = level
                break

        return OperationalAnalytics(
            check_ins_by_day_of_week=check_ins,
            check_outs_by_day_of_week=check_outs,
            peak_check_in_day=top_key(check_ins, NOT_AVAILABLE),
            peak_check_out_day=top_key(check_outs, NOT_AVAILABLE),
            average_turnover_rate=turnover,
            operational_load_by_day=dict(check_ins),
            busiest_month=top_key(acc.month.bookings, NOT_AVAILABLE),
            quietest_month=bottom_key(acc.month.bookings, NOT_AVAILABLE),
            room_type_utilization=acc.room_type.booking_counts(),
            staffing_recommendation=staffing,
        )

    def channel_analytics(self, acc: BookingAccumulator) -> ChannelAnalytics:
        n = acc.total_bookings
        rules = self.config.commission_rules
        default_rate = self.config.default_commission_rate

        mix = sorted(
            (
                {"channel": channel, "bookings": count,
                 "revenue": acc.channel.revenue.get(channel, 0.0),
                 "percent": percent(count, n)}
                for channel, count in acc.channel.bookings.items()
            ),
            key=lambda row: row["revenue"],
            reverse=True,
        )
        for row in mix:
            row["revenue"] = _money(row["revenue"])

        efficiency = {}
        for channel, count in acc.channel.bookings.items():
            gross = acc.channel.revenue.get(channel, 0.0)
            net = gross * (1 - commission_rate(channel, rules, default_rate))
            efficiency[channel] = _money(net / count)

        cost_analysis = []
        for channel, gross in acc.channel.revenue_totals().items():
            rate = commission_rate(channel, rules, default_rate)
            cost_analysis.append({
                "channel": channel,
                "gross_revenue": _money(gross),
                "commission": _money(gross * rate),
                "net_revenue": _money(gross * (1 - rate)),
            })

        return ChannelAnalytics(
            channel_mix=mix,
            channel_efficiency=efficiency,
            direct_booking_rate=percent(acc.direct_bookings, n),
            ota_dependency_score=percent(acc.ota_bookings, n),
            channel_diversity_index=diversity_index(acc.channel.bookings),
            best_performing_channel=mix[0]["channel"] if mix else NOT_AVAILABLE,
            worst_performing_channel=mix[-1]["channel"] if mix else NOT_AVAILABLE,
            channel_cost_analysis=cost_analysis,
        )

    def seasonality_analytics(self, acc: BookingAccumulator) -> SeasonalityAnalytics:
        factor = self.config.occupancy_proxy_factor
        monthly_occupancy = {
            month: round_half_up(acc.month.confirmed.get(month, 0) / count * 100 * factor)
            for month, count in acc.month.bookings.items()
        }

        weekday_performance = {}
        for day in WEEKDAY_NAMES:
            confirmed = acc.arrival_weekday.confirmed.get(day, 0)
            weekday_performance[day] = {
                "bookings": confirmed,
                "revenue": _money(acc.arrival_weekday.revenue.get(day, 0.0)),
                "adr": _money(acc.arrival_weekday.adr_total.get(day, 0.0) / confirmed) if confirmed else 0.0,
            }

        quarterly_revenue = acc.quarter.revenue_totals()
        quarterly_revenue.pop(UNKNOWN_LABEL, None)

        return SeasonalityAnalytics(
            monthly_occupancy=monthly_occupancy,
            monthly_adr=acc.month.average_adr(),
            weekday_performance=weekday_performance,
            holiday_impact=[{"period": period, "lift": lift} for period, lift in self.config.holiday_impact],
            best_performing_quarter=top_key(quarterly_revenue, NOT_AVAILABLE),
            worst_performing_quarter=bottom_key(quarterly_revenue, NOT_AVAILABLE),
            year_over_year_comparison=self._year_over_year(acc),
        )

    def _year_over_year(self, acc: BookingAccumulator) -> List[dict]:
        years = latest_two_keys(acc.year)
        if not years:
            return []
        previous, current = years
        year = acc.year

        def adr(key):
            confirmed = year.confirmed.get(key, 0)
            return year.adr_total.get(key, 0.0) / confirmed if confirmed else 0.0

        rows = [
            ("revenue", year.revenue.get(current, 0.0), year.revenue.get(previous, 0.0)),
            ("bookings", year.bookings.get(current, 0), year.bookings.get(previous, 0)),
            ("adr", adr(current), adr(previous)),
        ]
        return [
            {"metric": metric, "current": _money(cur), "previous": _money(prev),
             "change": round_half_up(pct_change(cur, prev), 1)}
            for metric, cur, prev in rows
        ]

    # ------------------------------------------------------------------
    # Guest performance
    # ------------------------------------------------------------------

    def score_profiles(self, acc: BookingAccumulator) -> List[ScoredProfile]:
        """
        Score every guest profile of the pass.

        Recency is measured against the latest arrival in the booking set,
        so the view does not drift with the wall clock.
        """
        scorer = self.scorer
        now = acc.latest_arrival
        scored = []
        for profile in acc.guests.values():
            last_arrival = max(profile.arrivals) if profile.arrivals else None
            recency, frequency, _, rfm = scorer.rfm_scores(last_arrival, now, profile.bookings, profile.revenue)
            avg_spend = profile.average_spend
            scored.append(ScoredProfile(
                profile=profile,
                loyalty_tier=scorer.loyalty_tier(rfm, profile.bookings, profile.revenue),
                churn_risk=round_half_up(churn_risk(recency, frequency, profile.cancellation_rate)),
                upsell_propensity=upsell_propensity(avg_spend, frequency, top_key(profile.room_types),
                                                    scorer.config.premium_room_keywords),
                clv=clv_estimate(avg_spend, profile.bookings, recency),
            ))
        return scored

    def guest_performance_analytics(self, acc: BookingAccumulator) -> GuestPerformanceAnalytics:
        if not acc.guests:
            return GuestPerformanceAnalytics()
        scored = self.score_profiles(acc)
        return GuestPerformanceAnalytics(
            loyalty_metrics=self._loyalty_metrics(acc, scored),
            segmentation_metrics=self._segmentation_metrics(acc, scored),
            spending_metrics=self._spending_metrics(acc, scored),
            booking_patterns=self._booking_patterns(acc, scored),
            risk_experience=self._risk_experience(acc, scored),
        )

    def _loyalty_metrics(self, acc: BookingAccumulator, scored: List[ScoredProfile]) -> LoyaltyMetrics:
        guests = len(scored)
        repeat_revenue = sum(s.profile.revenue for s in scored if s.profile.is_repeat)

        tiers = []
        for tier in LOYALTY_TIER_ORDER:
            members = [s.profile.revenue for s in scored if s.loyalty_tier == tier]
            tiers.append({"tier": tier, "count": len(members), "percent": percent(len(members), guests),
                          "avg_spend": _money(mean(members))})

        gaps = []
        cohorts: Dict[str, List[bool]] = defaultdict(list)
        for s in scored:
            arrivals = sorted(s.profile.arrivals)
            gaps.extend((later - earlier).days for earlier, later in zip(arrivals, arrivals[1:]))
            if arrivals:
                first = arrivals[0]
                cohorts[f"{first.year}-{quarter_label(first)}"].append(s.profile.bookings >= 2)
        retention = []
        for cohort in sorted(cohorts):
            retained = sum(cohorts[cohort])
            churned = len(cohorts[cohort]) - retained
            retention.append({"cohort": cohort, "retained": retained, "churned": churned,
                              "retention_rate": percent(retained, retained + churned)})

        bands = Counter(churn_band(s.churn_risk) for s in scored)
        return LoyaltyMetrics(
            repeat_guest_revenue_contribution=_money(repeat_revenue),
            repeat_guest_revenue_percent=percent(repeat_revenue, acc.total_revenue),
            estimated_clv=_money(mean([s.clv for s in scored])),
            loyalty_tier_distribution=tiers,
            avg_time_between_visits=round_half_up(mean(gaps)),
            retention_cohorts=retention,
            churn_risk_distribution=[
                {"risk": band, "count": bands[band], "percent": percent(bands[band], guests)}
                for band in ("low", "medium", "high")
            ],
        )

    def _segmentation_metrics(self, acc: BookingAccumulator,
                              scored: List[ScoredProfile]) -> SegmentationMetrics:
        n = acc.total_bookings
        parties = acc.party_type
        guest_types = [
            {"type": ptype, "count": parties.bookings[ptype], "percent": percent(parties.bookings[ptype], n),
             "avg_revenue": _money(safe_ratio(parties.revenue.get(ptype, 0.0), parties.confirmed.get(ptype, 0)))}
            for ptype in PARTY_TYPE_ORDER
            if parties.bookings.get(ptype, 0) > 0
        ]

        segments = acc.segment
        matrix = sorted(
            (
                {"segment": segment, "bookings": count,
                 "revenue": segments.revenue.get(segment, 0.0),
                 "avg_adr": _money(safe_ratio(segments.adr_total.get(segment, 0.0),
                                              segments.confirmed.get(segment, 0))),
                 "cancellation_rate": percent(segments.cancellations.get(segment, 0), count)}
                for segment, count in segments.bookings.items()
            ),
            key=lambda row: row["revenue"],
            reverse=True,
        )
        for row in matrix:
            row["revenue"] = _money(row["revenue"])

        domestic, international = acc.domestic_bookings, acc.international_bookings
        corporate, leisure = acc.corporate_revenue, acc.leisure_revenue

        revenues = [s.profile.revenue for s in scored]
        cutoff = mean(revenues) * self.config.high_value_guest_multiplier
        high_value = [r for r in revenues if r > cutoff]

        return SegmentationMetrics(
            guest_type_distribution=guest_types,
            geographic_concentration_index=concentration_index(Counter(s.profile.country for s in scored)),
            domestic_vs_international_mix={
                "domestic": domestic,
                "international": international,
                "domestic_percent": percent(domestic, domestic + international),
            },
            market_segment_matrix=matrix,
            corporate_vs_leisure_revenue={
                "corporate": _money(corporate),
                "leisure": _money(leisure),
                "corporate_percent": percent(corporate, corporate + leisure),
            },
            high_value_guest_analysis={
                "count": len(high_value),
                "revenue_contribution": _money(sum(high_value)),
                "avg_spend": _money(mean(high_value)),
                "percent": percent(len(high_value), len(scored)),
            },
        )

    def _spending_metrics(self, acc: BookingAccumulator, scored: List[ScoredProfile]) -> SpendingMetrics:
        revenues = [s.profile.revenue for s in scored]
        party_adr = acc.party_type.average_adr()

        stay_labels = [label for _, label in self.config.los_spend_buckets]
        stay_labels.append(self.config.los_spend_overflow_bucket)
        stays = acc.stay_length
        los_impact = [
            {"los_range": label, "avg_spend": _money(stays.revenue.get(label, 0.0) / stays.confirmed[label]),
             "count": stays.confirmed[label]}
            for label in stay_labels
            if stays.confirmed.get(label, 0) > 0
        ]

        sensitivity = []
        for segment, adrs in acc.segment_adrs.items():
            avg_adr = mean(adrs)
            spread = standard_deviation(adrs)
            sensitivity.append({
                "segment": segment,
                "sensitivity": round_half_up(spread / avg_adr * 100) if avg_adr > 0 else 0,
                "avg_adr": _money(avg_adr),
                "variance": _money(spread ** 2),
            })

        return SpendingMetrics(
            revenue_per_guest=_money(safe_ratio(acc.total_revenue, len(scored))),
            adr_by_guest_type=[
                {"type": ptype, "adr": party_adr[ptype]} for ptype in PARTY_TYPE_ORDER if ptype in party_adr
            ],
            spend_distribution_percentiles={
                f"p{p}": _money(percentile(revenues, p)) for p in self.config.spend_percentiles
            },
            los_impact_on_spend=los_impact,
            price_sensitivity_by_segment=sensitivity,
            upsell_potential_score=round_half_up(mean([s.upsell_propensity for s in scored])),
        )

    def _booking_patterns(self, acc: BookingAccumulator, scored: List[ScoredProfile]) -> BookingPatterns:
        n = acc.total_bookings

        leads: Dict[str, List[Tuple[int, bool]]] = defaultdict(list)
        for s in scored:
            for ptype, lead in s.profile.stays:
                leads[ptype].append((lead, s.profile.is_repeat))
        lead_by_type = [
            {"type": ptype,
             "avg_lead_time": round_half_up(mean([lead for lead, _ in leads[ptype]])),
             "new_guest": round_half_up(mean([lead for lead, repeat in leads[ptype] if not repeat])),
             "repeat_guest": round_half_up(mean([lead for lead, repeat in leads[ptype] if repeat]))}
            for ptype in PARTY_TYPE_ORDER
            if leads.get(ptype)
        ]

        arrivals = acc.arrival_weekday.bookings
        weekend, weekday = acc.weekend_arrivals, acc.midweek_arrivals

        seasonal = []
        for season, _ in self.config.seasons:
            visitors = [s.profile for s in scored if season in s.profile.seasons]
            repeat = sum(1 for p in visitors if p.is_repeat)
            if visitors:
                seasonal.append({"season": season, "new_guests": len(visitors) - repeat,
                                 "repeat_guests": repeat, "repeat_percent": percent(repeat, len(visitors))})

        return BookingPatterns(
            lead_time_by_guest_type=lead_by_type,
            preferred_arrival_days=[
                {"day": day, "count": arrivals[day], "percent": percent(arrivals[day], n)}
                for day in WEEKDAY_NAMES
                if arrivals.get(day, 0) > 0
            ],
            weekend_vs_weekday_ratio={
                "weekend": weekend,
                "weekday": weekday,
                "ratio": round_half_up(weekend / weekday, 2) if weekday > 0 else 0.0,
            },
            advance_planning_index=percent(acc.advance_bookings, n),
            last_minute_propensity=percent(acc.last_minute_bookings, n),
            seasonal_guest_mix=seasonal,
        )

    def _risk_experience(self, acc: BookingAccumulator, scored: List[ScoredProfile]) -> RiskExperience:
        n = acc.total_bookings
        parties = acc.party_type
        repeat_share = safe_ratio(sum(1 for s in scored if s.profile.is_repeat), len(scored)) * 100
        kept_share = 100 - safe_ratio(acc.cancelled_bookings, n) * 100
        satisfaction = (self.config.satisfaction_repeat_weight * repeat_share
                        + self.config.satisfaction_retention_weight * kept_share)

        room_adr = acc.room_type.average_adr()
        rooms = sorted(acc.room_type.bookings.items(), key=lambda kv: kv[1], reverse=True)

        return RiskExperience(
            cancellation_rate_by_guest_type=[
                {"type": ptype, "rate": percent(parties.cancellations.get(ptype, 0), parties.bookings[ptype]),
                 "count": parties.bookings[ptype]}
                for ptype in PARTY_TYPE_ORDER
                if parties.bookings.get(ptype, 0) > 0
            ],
            guest_satisfaction_proxy_score=round_half_up(clamp(satisfaction)),
            room_type_preferences=[
                {"room_type": room, "count": count, "percent": percent(count, n),
                 "avg_adr": room_adr.get(room, 0.0)}
                for room, count in rooms
            ],
        )
