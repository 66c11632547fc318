"""
Engine configuration objects.
Wraps the tables in config.thresholds into frozen dataclasses that are
passed into the aggregation, indicator and guest scoring engines.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from config import thresholds as t


# ---------------------------------------------------------------------------
# Rule types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LifecycleRule:
    """A lifecycle stage and the booking-count / recency window it covers."""
    stage: str
    min_bookings: Optional[int] = None
    max_bookings: Optional[int] = None
    min_recency: Optional[int] = None
    max_recency: Optional[int] = None

    def matches(self, total_bookings: int, recency_score: int) -> bool:
        if self.min_bookings is not None and total_bookings < self.min_bookings:
            return False
        if self.max_bookings is not None and total_bookings > self.max_bookings:
            return False
        if self.min_recency is not None and recency_score < self.min_recency:
            return False
        if self.max_recency is not None and recency_score > self.max_recency:
            return False
        return True


@dataclass(frozen=True)
class TierClause:
    min_rfm: Optional[int] = None
    min_bookings: Optional[int] = None
    min_revenue: Optional[float] = None

    def matches(self, rfm_score: int, total_bookings: int, total_revenue: float) -> bool:
        if self.min_rfm is not None and rfm_score < self.min_rfm:
            return False
        if self.min_bookings is not None and total_bookings < self.min_bookings:
            return False
        if self.min_revenue is not None and total_revenue < self.min_revenue:
            return False
        return True


@dataclass(frozen=True)
class LoyaltyRule:
    """A loyalty tier reached when any one of its clauses holds."""
    tier: str
    clauses: Tuple[TierClause, ...]

    def matches(self, rfm_score: int, total_bookings: int, total_revenue: float) -> bool:
        return any(c.matches(rfm_score, total_bookings, total_revenue) for c in self.clauses)


def _lifecycle_rules() -> Tuple[LifecycleRule, ...]:
    return tuple(LifecycleRule(*row) for row in t.LIFECYCLE_RULES)


def _loyalty_rules() -> Tuple[LoyaltyRule, ...]:
    return tuple(
        LoyaltyRule(tier, tuple(TierClause(*clause) for clause in clauses))
        for tier, clauses in t.LOYALTY_RULES
    )


# ---------------------------------------------------------------------------
# Analytics snapshot configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnalyticsConfig:
    lead_time_buckets: Tuple[Tuple[int, str], ...] = tuple(t.LEAD_TIME_BUCKETS)
    lead_time_overflow_bucket: str = t.LEAD_TIME_OVERFLOW_BUCKET
    commission_rules: Tuple[Tuple[Tuple[str, ...], float], ...] = tuple(t.COMMISSION_RULES)
    default_commission_rate: float = t.DEFAULT_COMMISSION_RATE
    direct_channel_names: Tuple[str, ...] = t.DIRECT_CHANNEL_NAMES
    ota_channel_keywords: Tuple[str, ...] = t.OTA_CHANNEL_KEYWORDS
    corporate_segment_keywords: Tuple[str, ...] = t.CORPORATE_SEGMENT_KEYWORDS
    leisure_segment_keywords: Tuple[str, ...] = t.LEISURE_SEGMENT_KEYWORDS
    last_minute_max_lead_time: int = t.LAST_MINUTE_MAX_LEAD_TIME
    advance_min_lead_time: int = t.ADVANCE_MIN_LEAD_TIME
    high_risk_lead_time_min: int = t.HIGH_RISK_LEAD_TIME_MIN
    high_risk_lead_time_max: int = t.HIGH_RISK_LEAD_TIME_MAX
    occupancy_proxy_factor: float = t.OCCUPANCY_PROXY_FACTOR
    benchmark_adr: float = t.BENCHMARK_ADR
    high_value_booking_multiplier: float = t.HIGH_VALUE_BOOKING_MULTIPLIER
    booking_velocity_days: int = t.BOOKING_VELOCITY_DAYS
    top_n_countries: int = t.TOP_N_COUNTRIES
    staffing_levels: Tuple[Tuple[int, str], ...] = tuple(t.STAFFING_LEVELS)
    default_staffing_level: str = t.DEFAULT_STAFFING_LEVEL
    holiday_impact: Tuple[Tuple[str, int], ...] = tuple(t.HOLIDAY_IMPACT)
    seasonal_peak_factor: float = t.SEASONAL_PEAK_FACTOR
    seasonal_trough_factor: float = t.SEASONAL_TROUGH_FACTOR
    demand_trend_threshold: float = t.DEMAND_TREND_THRESHOLD
    cancellation_trend_threshold: float = t.CANCELLATION_TREND_THRESHOLD
    next_month_revenue_multiplier: float = t.NEXT_MONTH_REVENUE_MULTIPLIER
    year_end_revenue_multiplier: float = t.YEAR_END_REVENUE_MULTIPLIER
    year_end_bookings_multiplier: float = t.YEAR_END_BOOKINGS_MULTIPLIER
    next_month_occupancy: int = t.NEXT_MONTH_OCCUPANCY
    los_spend_buckets: Tuple[Tuple[int, str], ...] = tuple(t.LOS_SPEND_BUCKETS)
    los_spend_overflow_bucket: str = t.LOS_SPEND_OVERFLOW_BUCKET
    seasons: Tuple[Tuple[str, Tuple[int, ...]], ...] = tuple(t.SEASONS)
    domestic_countries: Tuple[str, ...] = t.DOMESTIC_COUNTRIES
    high_value_guest_multiplier: float = t.HIGH_VALUE_GUEST_MULTIPLIER
    spend_percentiles: Tuple[int, ...] = t.SPEND_PERCENTILES
    satisfaction_repeat_weight: float = t.SATISFACTION_REPEAT_WEIGHT
    satisfaction_retention_weight: float = t.SATISFACTION_RETENTION_WEIGHT


# ---------------------------------------------------------------------------
# Guest scoring configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GuestScoringConfig:
    recency_breakpoints: Tuple[Tuple[int, int], ...] = tuple(t.RECENCY_BREAKPOINTS)
    frequency_breakpoints: Tuple[Tuple[int, int], ...] = tuple(t.FREQUENCY_BREAKPOINTS)
    monetary_breakpoints: Tuple[Tuple[float, int], ...] = tuple(t.MONETARY_BREAKPOINTS)
    lifecycle_rules: Tuple[LifecycleRule, ...] = field(default_factory=_lifecycle_rules)
    default_lifecycle_stage: str = t.DEFAULT_LIFECYCLE_STAGE
    loyalty_rules: Tuple[LoyaltyRule, ...] = field(default_factory=_loyalty_rules)
    default_loyalty_tier: str = t.DEFAULT_LOYALTY_TIER
    weekend_arrival_days: Tuple[int, ...] = t.WEEKEND_ARRIVAL_DAYS
    corporate_segment_keywords: Tuple[str, ...] = t.CORPORATE_SEGMENT_KEYWORDS
    premium_room_keywords: Tuple[str, ...] = t.UPSELL_PREMIUM_ROOM_KEYWORDS


DEFAULT_ANALYTICS_CONFIG = AnalyticsConfig()
DEFAULT_SCORING_CONFIG = GuestScoringConfig()
