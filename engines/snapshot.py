"""
Analytics snapshot categories.

The snapshot is transient: it is recomputed from the full booking set on
every request and never persisted. Every field default is the value the
empty snapshot carries (rates 0, maps empty, "top" fields 'N/A').
"""
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from config.thresholds import NOT_AVAILABLE, SPEND_PERCENTILES


def _missing_day() -> dict:
    return {"date": NOT_AVAILABLE, "amount": 0.0}


@dataclass
class CoreKPIs:
    total_revenue: float = 0.0
    total_bookings: int = 0
    confirmed_bookings: int = 0
    cancelled_bookings: int = 0
    average_daily_rate: float = 0.0
    rev_par: float = 0.0
    occupancy_rate: int = 0
    cancellation_rate: int = 0
    repeat_guest_rate: int = 0
    average_lead_time: int = 0
    average_length_of_stay: float = 0.0
    total_room_nights: int = 0
    revenue_per_booking: float = 0.0
    guests_served: int = 0
    average_party_size: float = 0.0


@dataclass
class RevenueAnalytics:
    revenue_by_channel: Dict[str, float] = field(default_factory=dict)
    revenue_by_segment: Dict[str, float] = field(default_factory=dict)
    revenue_by_room_type: Dict[str, float] = field(default_factory=dict)
    revenue_by_month: Dict[str, float] = field(default_factory=dict)
    revenue_by_day_of_week: Dict[str, float] = field(default_factory=dict)
    net_revenue_after_commissions: float = 0.0
    commissions_paid: float = 0.0
    revenue_per_guest: float = 0.0
    revenue_growth_rate: int = 0
    highest_revenue_day: dict = field(default_factory=_missing_day)
    lowest_revenue_day: dict = field(default_factory=_missing_day)
    average_daily_revenue: float = 0.0


@dataclass
class BookingAnalytics:
    bookings_by_channel: Dict[str, int] = field(default_factory=dict)
    bookings_by_segment: Dict[str, int] = field(default_factory=dict)
    bookings_by_month: Dict[str, int] = field(default_factory=dict)
    bookings_by_day_of_week: Dict[str, int] = field(default_factory=dict)
    booking_velocity: int = 0
    last_minute_bookings_percent: int = 0
    advance_bookings_percent: int = 0
    lead_time_distribution: List[dict] = field(default_factory=list)
    peak_booking_month: str = NOT_AVAILABLE
    slowest_booking_month: str = NOT_AVAILABLE
    weekday_vs_weekend_ratio: float = 0.0
    average_booking_value: float = 0.0


@dataclass
class GuestAnalytics:
    guest_country_distribution: Dict[str, int] = field(default_factory=dict)
    new_vs_returning_ratio: float = 0.0
    repeat_guest_count: int = 0
    new_guest_count: int = 0
    top_source_countries: List[dict] = field(default_factory=list)
    guest_diversity_index: float = 0.0
    corporate_vs_leisure_ratio: float = 0.0
    family_bookings_percent: int = 0
    solo_travelers_percent: int = 0
    average_guest_value: float = 0.0
    high_value_guest_count: int = 0
    guest_loyalty_score: int = 0


# ---------------------------------------------------------------------------
# Guest performance view
# Five groups derived from per-guest profiles built in the same pass.
# ---------------------------------------------------------------------------

@dataclass
class LoyaltyMetrics:
    repeat_guest_revenue_contribution: float = 0.0
    repeat_guest_revenue_percent: int = 0
    estimated_clv: float = 0.0
    loyalty_tier_distribution: List[dict] = field(default_factory=list)
    avg_time_between_visits: int = 0
    retention_cohorts: List[dict] = field(default_factory=list)
    churn_risk_distribution: List[dict] = field(default_factory=list)


@dataclass
class SegmentationMetrics:
    guest_type_distribution: List[dict] = field(default_factory=list)
    geographic_concentration_index: float = 0.0
    domestic_vs_international_mix: dict = field(
        default_factory=lambda: {"domestic": 0, "international": 0, "domestic_percent": 0})
    market_segment_matrix: List[dict] = field(default_factory=list)
    corporate_vs_leisure_revenue: dict = field(
        default_factory=lambda: {"corporate": 0.0, "leisure": 0.0, "corporate_percent": 0})
    high_value_guest_analysis: dict = field(
        default_factory=lambda: {"count": 0, "revenue_contribution": 0.0, "avg_spend": 0.0, "percent": 0})


@dataclass
class SpendingMetrics:
    revenue_per_guest: float = 0.0
    adr_by_guest_type: List[dict] = field(default_factory=list)
    spend_distribution_percentiles: Dict[str, float] = field(
        default_factory=lambda: {f"p{p}": 0.0 for p in SPEND_PERCENTILES})
    los_impact_on_spend: List[dict] = field(default_factory=list)
    # sensitivity is the ADR coefficient of variation in percent
    price_sensitivity_by_segment: List[dict] = field(default_factory=list)
    upsell_potential_score: int = 0


@dataclass
class BookingPatterns:
    lead_time_by_guest_type: List[dict] = field(default_factory=list)
    preferred_arrival_days: List[dict] = field(default_factory=list)
    weekend_vs_weekday_ratio: dict = field(
        default_factory=lambda: {"weekend": 0, "weekday": 0, "ratio": 0.0})
    advance_planning_index: int = 0
    last_minute_propensity: int = 0
    seasonal_guest_mix: List[dict] = field(default_factory=list)


@dataclass
class RiskExperience:
    cancellation_rate_by_guest_type: List[dict] = field(default_factory=list)
    guest_satisfaction_proxy_score: int = 0
    room_type_preferences: List[dict] = field(default_factory=list)


@dataclass
class GuestPerformanceAnalytics:
    loyalty_metrics: LoyaltyMetrics = field(default_factory=LoyaltyMetrics)
    segmentation_metrics: SegmentationMetrics = field(default_factory=SegmentationMetrics)
    spending_metrics: SpendingMetrics = field(default_factory=SpendingMetrics)
    booking_patterns: BookingPatterns = field(default_factory=BookingPatterns)
    risk_experience: RiskExperience = field(default_factory=RiskExperience)


@dataclass
class CancellationAnalytics:
    cancellation_rate_by_channel: Dict[str, int] = field(default_factory=dict)
    cancellation_rate_by_lead_time: List[dict] = field(default_factory=list)
    cancellation_rate_by_month: Dict[str, int] = field(default_factory=dict)
    cancellation_rate_by_segment: Dict[str, int] = field(default_factory=dict)
    revenue_lost_to_cancellations: float = 0.0
    average_cancellation_lead_time: int = 0
    high_risk_bookings_count: int = 0
    low_risk_bookings_count: int = 0
    cancellation_trend: str = "stable"
    predicted_cancellation_rate: int = 0


@dataclass
class OperationalAnalytics:
    check_ins_by_day_of_week: Dict[str, int] = field(default_factory=dict)
    check_outs_by_day_of_week: Dict[str, int] = field(default_factory=dict)
    peak_check_in_day: str = NOT_AVAILABLE
    peak_check_out_day: str = NOT_AVAILABLE
    average_turnover_rate: int = 0
    operational_load_by_day: Dict[str, int] = field(default_factory=dict)
    busiest_month: str = NOT_AVAILABLE
    quietest_month: str = NOT_AVAILABLE
    room_type_utilization: Dict[str, int] = field(default_factory=dict)
    staffing_recommendation: str = "low"


@dataclass
class ForecastingAnalytics:
    """Heuristic projections from static multipliers, not a fitted model."""
    projected_monthly_revenue: float = 0.0
    projected_occupancy: int = 0
    demand_trend: str = "stable"
    seasonality_strength: int = 0
    next_month_forecast: dict = field(
        default_factory=lambda: {"revenue": 0.0, "bookings": 0, "occupancy": 0})
    year_end_projection: dict = field(
        default_factory=lambda: {"revenue": 0.0, "bookings": 0})
    growth_potential: str = "low"
    risk_level: str = "low"


@dataclass
class ChannelAnalytics:
    channel_mix: List[dict] = field(default_factory=list)
    channel_efficiency: Dict[str, float] = field(default_factory=dict)
    direct_booking_rate: int = 0
    ota_dependency_score: int = 0
    channel_diversity_index: float = 0.0
    best_performing_channel: str = NOT_AVAILABLE
    worst_performing_channel: str = NOT_AVAILABLE
    channel_cost_analysis: List[dict] = field(default_factory=list)
    recommended_channel_strategy: str = NOT_AVAILABLE


@dataclass
class SeasonalityAnalytics:
    monthly_occupancy: Dict[str, int] = field(default_factory=dict)
    monthly_adr: Dict[str, float] = field(default_factory=dict)
    seasonal_peaks: List[str] = field(default_factory=list)
    seasonal_troughs: List[str] = field(default_factory=list)
    weekday_performance: Dict[str, dict] = field(default_factory=dict)
    holiday_impact: List[dict] = field(default_factory=list)
    best_performing_quarter: str = NOT_AVAILABLE
    worst_performing_quarter: str = NOT_AVAILABLE
    year_over_year_comparison: List[dict] = field(default_factory=list)


@dataclass
class PerformanceIndicators:
    overall_health_score: int = 0
    revenue_performance_index: int = 0
    operational_efficiency_score: int = 0
    guest_satisfaction_proxy: int = 0
    channel_optimization_score: int = 0
    pricing_effectiveness_score: int = 0
    demand_capture_rate: int = 0
    competitive_position_estimate: str = "follower"
    key_strengths: List[str] = field(default_factory=list)
    areas_for_improvement: List[str] = field(default_factory=list)
    actionable_insights: List[str] = field(default_factory=list)


@dataclass
class AnalyticsSnapshot:
    core_kpis: CoreKPIs = field(default_factory=CoreKPIs)
    revenue_analytics: RevenueAnalytics = field(default_factory=RevenueAnalytics)
    booking_analytics: BookingAnalytics = field(default_factory=BookingAnalytics)
    guest_analytics: GuestAnalytics = field(default_factory=GuestAnalytics)
    guest_performance_analytics: GuestPerformanceAnalytics = field(default_factory=GuestPerformanceAnalytics)
    cancellation_analytics: CancellationAnalytics = field(default_factory=CancellationAnalytics)
    operational_analytics: OperationalAnalytics = field(default_factory=OperationalAnalytics)
    forecasting_analytics: ForecastingAnalytics = field(default_factory=ForecastingAnalytics)
    channel_analytics: ChannelAnalytics = field(default_factory=ChannelAnalytics)
    seasonality_analytics: SeasonalityAnalytics = field(default_factory=SeasonalityAnalytics)
    performance_indicators: PerformanceIndicators = field(default_factory=PerformanceIndicators)

    def to_dict(self) -> dict:
        return asdict(self)


def default_analytics() -> AnalyticsSnapshot:
    """The all-zero snapshot returned for an empty booking set."""
    return AnalyticsSnapshot()
