"""
DERIVED INDICATOR ENGINE - Composite Indices & Heuristic Forecasts
==================================================================
Responsibilities:
  1. Overall health score and the other performance indices
  2. Seasonality strength, seasonal peaks and troughs
  3. Heuristic forecasting block (static multipliers, not a fitted model)
  4. Key strengths, areas for improvement and actionable insights

Works only on the AggregationEngine output; never iterates raw bookings.
"""
import logging
from dataclasses import replace
from typing import List, Optional

from config.scoring_config import AnalyticsConfig, DEFAULT_ANALYTICS_CONFIG
from config.thresholds import (
    CHALLENGER_HEALTH_SCORE,
    CURRENCY_SYMBOL,
    DIVERSE_GEOGRAPHY_MIN_COUNTRIES,
    GROWTH_POTENTIAL_OTA_DEPENDENCY,
    HEALTH_OTA_BASELINE,
    HEALTH_WEIGHT_CANCELLATION,
    HEALTH_WEIGHT_DIRECT,
    HEALTH_WEIGHT_OTA,
    HEALTH_WEIGHT_REPEAT,
    HIGH_CANCELLATION_SHARE,
    HIGH_LAST_MINUTE_SHARE,
    HIGH_LOYALTY_SHARE,
    HIGH_OTA_DEPENDENCY,
    HIGH_RISK_CANCELLATION_SHARE,
    HIGH_RISK_INSIGHT_MIN_BOOKINGS,
    LEADER_HEALTH_SCORE,
    LOW_CANCELLATION_SHARE,
    LOW_RETENTION_SHARE,
    MEDIUM_RISK_CANCELLATION_SHARE,
    MONTHS_PER_YEAR,
    OTA_SHIFT_FRACTION,
    OTA_SHIFT_INSIGHT_DEPENDENCY,
    SATISFACTION_REPEAT_FACTOR,
    STRONG_DIRECT_RATE,
    STRONG_DIRECT_STRATEGY_RATE,
    UNKNOWN_LABEL,
    WEEKEND_UNDERPERFORMANCE_RATIO,
)
from engines.aggregation_engine import AggregationResult, latest_two_keys
from engines.snapshot import (
    ChannelAnalytics,
    ForecastingAnalytics,
    PerformanceIndicators,
    SeasonalityAnalytics,
)
from utils.stats import clamp, mean, pct_change, round_half_up, safe_ratio, standard_deviation

logger = logging.getLogger(__name__)

CHANNEL_STRATEGIES = {
    "reduce_ota": "Focus on direct booking incentives to reduce commission costs",
    "maintain_direct": "Maintain strong direct channel, optimize OTA visibility for incremental demand",
    "balanced": "Balanced approach - invest in website booking experience",
}


class DerivedIndicatorEngine:
    """Composite indices built from more than one rollup."""

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or DEFAULT_ANALYTICS_CONFIG

    def derive(self, result: AggregationResult):
        """
        Compute the derived categories.

        Returns
        -------
        tuple
            (ForecastingAnalytics, ChannelAnalytics, SeasonalityAnalytics,
            PerformanceIndicators). The channel and seasonality categories
            are copies of the aggregation ones with the derived fields set.
        """
        health = self.overall_health_score(result)
        seasonality = self.seasonality(result)
        forecasting = self.forecasting(result)
        channel = replace(result.channel_analytics,
                          recommended_channel_strategy=self.channel_strategy(result.channel_analytics))
        indicators = self.performance_indicators(result, health)

        logger.info(f"INDICATOR ENGINE: health score {health}, "
                    f"position '{indicators.competitive_position_estimate}', "
                    f"{len(indicators.actionable_insights)} insights")
        return forecasting, channel, seasonality, indicators

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def overall_health_score(self, result: AggregationResult) -> int:
        acc = result.accumulator
        n = acc.total_bookings
        cancellation_pct = safe_ratio(acc.cancelled_bookings, n) * 100
        repeat_pct = safe_ratio(acc.repeat_guests, n) * 100
        direct = result.channel_analytics.direct_booking_rate
        ota = result.channel_analytics.ota_dependency_score

        score = (
            HEALTH_WEIGHT_CANCELLATION * (100 - cancellation_pct)
            + HEALTH_WEIGHT_REPEAT * repeat_pct
            + HEALTH_WEIGHT_DIRECT * direct
            + HEALTH_WEIGHT_OTA * (HEALTH_OTA_BASELINE * (1 - ota / 100))
        )
        return round_half_up(clamp(score, 0, 100))

    @staticmethod
    def competitive_position(health_score: int) -> str:
        if health_score > LEADER_HEALTH_SCORE:
            return "leader"
        if health_score > CHALLENGER_HEALTH_SCORE:
            return "challenger"
        return "follower"

    @staticmethod
    def channel_strategy(channel: ChannelAnalytics) -> str:
        if channel.ota_dependency_score > HIGH_OTA_DEPENDENCY:
            return CHANNEL_STRATEGIES["reduce_ota"]
        if channel.direct_booking_rate > STRONG_DIRECT_STRATEGY_RATE:
            return CHANNEL_STRATEGIES["maintain_direct"]
        return CHANNEL_STRATEGIES["balanced"]

    # ------------------------------------------------------------------
    # Seasonality
    # ------------------------------------------------------------------

    def seasonality(self, result: AggregationResult) -> SeasonalityAnalytics:
        monthly = {
            month: count
            for month, count in result.accumulator.month.bookings.items()
            if month != UNKNOWN_LABEL
        }
        average = result.accumulator.total_bookings / MONTHS_PER_YEAR
        peaks = [m for m, c in monthly.items() if c > average * self.config.seasonal_peak_factor]
        troughs = [m for m, c in monthly.items() if c < average * self.config.seasonal_trough_factor]
        return replace(result.seasonality_analytics, seasonal_peaks=peaks, seasonal_troughs=troughs)

    def seasonality_strength(self, result: AggregationResult) -> int:
        """Coefficient of variation of monthly booking counts, in percent."""
        counts = [c for m, c in result.accumulator.month.bookings.items() if m != UNKNOWN_LABEL]
        average = mean(counts)
        if average == 0:
            return 0
        return round_half_up(standard_deviation(counts) / average * 100)

    # ------------------------------------------------------------------
    # Forecasting (heuristic)
    # ------------------------------------------------------------------

    def demand_trend(self, result: AggregationResult) -> str:
        """Latest observed month vs the one before; descriptive only."""
        rollup = result.accumulator.year_month
        months = latest_two_keys(rollup)
        if not months:
            return "stable"
        previous, latest = months
        change = pct_change(rollup.bookings[latest], rollup.bookings[previous])
        if change > self.config.demand_trend_threshold:
            return "growing"
        if change < -self.config.demand_trend_threshold:
            return "declining"
        return "stable"

    def forecasting(self, result: AggregationResult) -> ForecastingAnalytics:
        """
        Fixed-multiplier projections. These are placeholders carried as
        heuristics; they do not react to the observed trend.
        """
        acc = result.accumulator
        n = acc.total_bookings
        cfg = self.config
        monthly_revenue = acc.total_revenue / MONTHS_PER_YEAR
        cancellation_share = safe_ratio(acc.cancelled_bookings, n)

        if cancellation_share > HIGH_RISK_CANCELLATION_SHARE:
            risk = "high"
        elif cancellation_share > MEDIUM_RISK_CANCELLATION_SHARE:
            risk = "medium"
        else:
            risk = "low"

        ota = result.channel_analytics.ota_dependency_score
        return ForecastingAnalytics(
            projected_monthly_revenue=round_half_up(monthly_revenue, 2),
            projected_occupancy=result.core_kpis.occupancy_rate,
            demand_trend=self.demand_trend(result),
            seasonality_strength=self.seasonality_strength(result),
            next_month_forecast={
                "revenue": round_half_up(monthly_revenue * cfg.next_month_revenue_multiplier, 2),
                "bookings": round_half_up(n / MONTHS_PER_YEAR),
                "occupancy": cfg.next_month_occupancy,
            },
            year_end_projection={
                "revenue": round_half_up(acc.total_revenue * cfg.year_end_revenue_multiplier, 2),
                "bookings": round_half_up(n * cfg.year_end_bookings_multiplier),
            },
            growth_potential="high" if ota > GROWTH_POTENTIAL_OTA_DEPENDENCY else "medium",
            risk_level=risk,
        )

    # ------------------------------------------------------------------
    # Performance indicators
    # ------------------------------------------------------------------

    def performance_indicators(self, result: AggregationResult, health: int) -> PerformanceIndicators:
        acc = result.accumulator
        n = acc.total_bookings
        confirmed = acc.confirmed_bookings
        benchmark = self.config.benchmark_adr
        ota = result.channel_analytics.ota_dependency_score

        revenue_index = 0
        if acc.total_revenue > 0:
            revenue_index = round_half_up(safe_ratio(acc.total_revenue, confirmed) / benchmark * 100)
        pricing = 0
        if acc.total_adr > 0:
            pricing = min(100, round_half_up(safe_ratio(acc.total_adr, confirmed) / benchmark * 100))

        return PerformanceIndicators(
            overall_health_score=health,
            revenue_performance_index=revenue_index,
            operational_efficiency_score=round_half_up(safe_ratio(confirmed, n) * 100),
            guest_satisfaction_proxy=min(100, round_half_up(
                safe_ratio(acc.repeat_guests, n) * SATISFACTION_REPEAT_FACTOR)),
            channel_optimization_score=max(0, 100 - ota),
            pricing_effectiveness_score=pricing,
            demand_capture_rate=round_half_up(safe_ratio(confirmed, n) * 100),
            competitive_position_estimate=self.competitive_position(health),
            key_strengths=self.key_strengths(result),
            areas_for_improvement=self.areas_for_improvement(result),
            actionable_insights=self.actionable_insights(result),
        )

    def key_strengths(self, result: AggregationResult) -> List[str]:
        acc = result.accumulator
        n = acc.total_bookings
        strengths = []
        if result.channel_analytics.direct_booking_rate > STRONG_DIRECT_RATE:
            strengths.append("Strong direct booking channel")
        if safe_ratio(acc.repeat_guests, n) > HIGH_LOYALTY_SHARE:
            strengths.append("High guest loyalty")
        if safe_ratio(acc.cancelled_bookings, n) < LOW_CANCELLATION_SHARE:
            strengths.append("Low cancellation rate")
        if len(result.guest_analytics.top_source_countries) > DIVERSE_GEOGRAPHY_MIN_COUNTRIES:
            strengths.append("Diverse guest geography")
        return strengths

    def areas_for_improvement(self, result: AggregationResult) -> List[str]:
        acc = result.accumulator
        n = acc.total_bookings
        areas = []
        if result.channel_analytics.ota_dependency_score > HIGH_OTA_DEPENDENCY:
            areas.append("Reduce OTA dependency")
        if safe_ratio(acc.cancelled_bookings, n) > HIGH_CANCELLATION_SHARE:
            areas.append("Address high cancellation rate")
        if safe_ratio(acc.last_minute_bookings, n) > HIGH_LAST_MINUTE_SHARE:
            areas.append("Increase advance bookings")
        if safe_ratio(acc.repeat_guests, n) < LOW_RETENTION_SHARE:
            areas.append("Improve guest retention")
        return areas

    def actionable_insights(self, result: AggregationResult) -> List[str]:
        acc = result.accumulator
        ota = result.channel_analytics.ota_dependency_score
        insights = []
        if ota > OTA_SHIFT_INSIGHT_DEPENDENCY:
            shift = round_half_up(ota * OTA_SHIFT_FRACTION)
            saving = round_half_up(acc.commissions_paid * OTA_SHIFT_FRACTION)
            insights.append(f"Shift {shift}% of OTA bookings to direct to save "
                            f"{CURRENCY_SYMBOL}{saving} in commissions")
        if acc.high_risk_bookings > HIGH_RISK_INSIGHT_MIN_BOOKINGS:
            insights.append(f"{acc.high_risk_bookings} bookings at high cancellation risk "
                            f"- consider deposit policies")
        if acc.weekend_arrivals < acc.midweek_arrivals * WEEKEND_UNDERPERFORMANCE_RATIO:
            insights.append("Weekend occupancy below potential - consider leisure promotions")
        insights.append(f"Peak season: {result.booking_analytics.peak_booking_month} "
                        f"- optimize pricing 2 months ahead")
        return insights
