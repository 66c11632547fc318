"""
ANALYTICS SERVICE - Comprehensive Booking Analytics
====================================================
Responsibilities:
  1. Run the AggregationEngine and DerivedIndicatorEngine over a booking set
  2. Assemble the AnalyticsSnapshot (default snapshot for empty input)
  3. Fetch a dataset's bookings from the booking source on request
"""
import logging
from datetime import date
from typing import Iterable, Optional

from config.scoring_config import AnalyticsConfig, GuestScoringConfig
from engines.aggregation_engine import AggregationEngine
from engines.identity import IdentityResolver
from engines.indicator_engine import DerivedIndicatorEngine
from engines.snapshot import AnalyticsSnapshot, default_analytics

logger = logging.getLogger(__name__)


def calculate_comprehensive_analytics(bookings: Iterable,
                                      config: Optional[AnalyticsConfig] = None,
                                      resolver: Optional[IdentityResolver] = None,
                                      scoring_config: Optional[GuestScoringConfig] = None) -> AnalyticsSnapshot:
    """
    Compute the full analytics snapshot for a booking list.

    Parameters
    ----------
    bookings : iterable of Booking or mapping
        Bookings in any order. Mappings are parsed with Booking.from_record.
    config : AnalyticsConfig, optional
        Lookup tables and thresholds; defaults when omitted.
    resolver : IdentityResolver, optional
        Guest identity strategy for the guest performance view.
    scoring_config : GuestScoringConfig, optional
        RFM breakpoints and tier rules used to score guests in that view.

    Returns
    -------
    AnalyticsSnapshot
        The all-zero default snapshot when there are no bookings.
    """
    result = AggregationEngine(config, resolver, scoring_config).aggregate(bookings)
    if result.is_empty:
        return default_analytics()

    forecasting, channel, seasonality, indicators = DerivedIndicatorEngine(config).derive(result)
    return AnalyticsSnapshot(
        core_kpis=result.core_kpis,
        revenue_analytics=result.revenue_analytics,
        booking_analytics=result.booking_analytics,
        guest_analytics=result.guest_analytics,
        guest_performance_analytics=result.guest_performance_analytics,
        cancellation_analytics=result.cancellation_analytics,
        operational_analytics=result.operational_analytics,
        forecasting_analytics=forecasting,
        channel_analytics=channel,
        seasonality_analytics=seasonality,
        performance_indicators=indicators,
    )


class AnalyticsService:
    """Snapshot for a stored dataset, read through a booking source."""

    def __init__(self, booking_source, config: Optional[AnalyticsConfig] = None,
                 resolver: Optional[IdentityResolver] = None):
        self.booking_source = booking_source
        self.config = config
        self.resolver = resolver

    def get_analytics(self, dataset_id: str, start_date: Optional[date] = None,
                      end_date: Optional[date] = None) -> AnalyticsSnapshot:
        logger.info("=" * 60)
        logger.info(f"ANALYTICS: Computing snapshot for dataset {dataset_id}")
        logger.info("=" * 60)

        bookings = self.booking_source.get_bookings(dataset_id, start_date, end_date)
        logger.info(f"Loaded {len(bookings):,} bookings")

        snapshot = calculate_comprehensive_analytics(bookings, self.config, self.resolver)
        kpis = snapshot.core_kpis
        logger.info(f"Revenue {kpis.total_revenue:,.2f} | ADR {kpis.average_daily_rate:,.2f} | "
                    f"Cancellation {kpis.cancellation_rate}% | "
                    f"Health {snapshot.performance_indicators.overall_health_score}")
        return snapshot
