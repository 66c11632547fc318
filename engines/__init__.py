# Engines package
from engines.aggregation_engine import AggregationEngine
from engines.indicator_engine import DerivedIndicatorEngine
from engines.guest_scoring_engine import GuestScoringEngine
from engines.analytics import AnalyticsService, calculate_comprehensive_analytics
from engines.guest_store import SqlBookingSource, SqlGuestStore
from engines.guest_extraction import GuestExtractionError, GuestExtractionService
from engines.identity import ExactNameResolver, IdentityResolver

__all__ = [
    'AggregationEngine',
    'DerivedIndicatorEngine',
    'GuestScoringEngine',
    'AnalyticsService',
    'calculate_comprehensive_analytics',
    'SqlBookingSource',
    'SqlGuestStore',
    'GuestExtractionError',
    'GuestExtractionService',
    'ExactNameResolver',
    'IdentityResolver',
]
