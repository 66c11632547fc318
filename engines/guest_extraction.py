"""
GUEST EXTRACTION SERVICE - Guest Rebuild & Read-back Views
==========================================================
Responsibilities:
  1. Rebuild a dataset's guest set from its current bookings
  2. Guest summary (headline counts, distributions, top guests)
  3. Segmentation view (lifecycle, RFM, loyalty, churn risk, CLV tiers)
  4. Guest directory and per-guest stay drill-down
"""
import logging
from datetime import date
from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from config.scoring_config import GuestScoringConfig
from config.thresholds import (
    AT_RISK_CHURN_SCORE,
    CLV_TIERS,
    DEFAULT_DIRECTORY_LIMIT,
    LIFECYCLE_STAGE_ORDER,
    LOYALTY_TIER_ORDER,
    TOP_N_PROFILES,
    VIP_TIERS,
)
from engines.guest_scoring_engine import GuestScoringEngine, churn_band
from engines.guest_store import SqlBookingSource, SqlGuestStore
from engines.identity import IdentityResolver
from engines.models import ExtractionResult
from utils.db_utils import get_sqlalchemy_engine
from utils.stats import percent, round_half_up

logger = logging.getLogger(__name__)


class GuestExtractionError(RuntimeError):
    """A guest rebuild failed; the previous guest set is still active."""


def _records(df: pd.DataFrame, columns: List[str]) -> List[dict]:
    subset = df[columns]
    return subset.astype(object).where(pd.notna(subset), None).to_dict("records")


def _clv_tier(clv: float) -> str:
    for minimum, label in CLV_TIERS:
        if clv >= minimum:
            return label
    return CLV_TIERS[-1][1]


class GuestExtractionService:
    """
    Orchestrates booking source -> GuestScoringEngine -> guest store, and
    serves the views derived by reading the store back.
    """

    def __init__(self, engine=None, booking_source=None, store=None,
                 config: Optional[GuestScoringConfig] = None,
                 resolver: Optional[IdentityResolver] = None):
        if booking_source is None or store is None:
            engine = engine or get_sqlalchemy_engine()
        self.booking_source = booking_source or SqlBookingSource(engine)
        self.store = store or SqlGuestStore(engine)
        self.scoring_engine = GuestScoringEngine(config, resolver)

    # ------------------------------------------------------------------
    # 1. Extraction
    # ------------------------------------------------------------------

    def extract_guests(self, dataset_id: str, now: Optional[date] = None) -> ExtractionResult:
        """
        Rebuild the dataset's guests and stays.

        Zero bookings returns an all-zero result and leaves the store
        untouched. Store failures raise GuestExtractionError.
        """
        logger.info("=" * 60)
        logger.info(f"GUEST EXTRACTION: Rebuilding guests for dataset {dataset_id}")
        logger.info("=" * 60)

        try:
            bookings = self.booking_source.get_bookings(dataset_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read bookings for dataset {dataset_id}: {e}")
            raise GuestExtractionError(f"Could not read bookings for dataset {dataset_id}") from e

        if not bookings:
            logger.info(f"No bookings for dataset {dataset_id}; guest store untouched.")
            return ExtractionResult()

        scored = self.scoring_engine.score_guests(bookings, dataset_id, now=now)

        try:
            self.store.replace_guests(dataset_id, scored.guests, scored.stays)
        except SQLAlchemyError as e:
            logger.error(f"Guest rebuild failed for dataset {dataset_id}: {e}")
            raise GuestExtractionError(f"Guest rebuild failed for dataset {dataset_id}") from e

        result = ExtractionResult(
            total_guests=len(scored.guests),
            new_guests=len(scored.guests),
            updated_guests=0,
            total_stays=len(scored.stays),
        )
        logger.info(f"Extracted {result.total_guests:,} guests, {result.total_stays:,} stays")
        return result

    # ------------------------------------------------------------------
    # 2. Summary
    # ------------------------------------------------------------------

    def get_guest_summary(self, dataset_id: str) -> Optional[dict]:
        """Headline guest metrics; None when the dataset has no guests."""
        df = self.store.get_guests(dataset_id)
        if df.empty:
            return None

        total = len(df)
        total_revenue = float(df["total_revenue"].sum())
        repeat_count = int((df["total_bookings"] >= 2).sum())

        tiers = {tier: 0 for tier in LOYALTY_TIER_ORDER}
        for tier, count in df["loyalty_tier"].value_counts().items():
            tiers[tier] = tiers.get(tier, 0) + int(count)

        countries = df["country"].dropna().value_counts().head(TOP_N_PROFILES)
        top_countries = [
            {"country": country, "count": int(count), "percent": percent(count, total)}
            for country, count in countries.items()
        ]

        top_spenders = df.sort_values("total_revenue", ascending=False, kind="stable").head(TOP_N_PROFILES)
        most_frequent = df.sort_values("total_bookings", ascending=False, kind="stable").head(TOP_N_PROFILES)

        return {
            "summary": {
                "total_guests": total,
                "total_revenue": round_half_up(total_revenue, 2),
                "avg_clv": round_half_up(df["clv_score"].mean(), 2),
                "avg_spend_per_guest": round_half_up(total_revenue / total, 2),
                "vip_count": int(df["loyalty_tier"].isin(VIP_TIERS).sum()),
                "at_risk_count": int((df["churn_risk_score"] >= AT_RISK_CHURN_SCORE).sum()),
                "new_count": int((df["total_bookings"] == 1).sum()),
                "repeat_count": repeat_count,
                "repeat_rate": percent(repeat_count, total),
            },
            "tier_distribution": tiers,
            "lifecycle_distribution": {k: int(v) for k, v in df["lifecycle_stage"].value_counts().items()},
            "travel_type_distribution": {k: int(v) for k, v in df["travel_type"].value_counts().items()},
            "top_countries": top_countries,
            "top_spenders": _records(top_spenders, [
                "guest_id", "name", "country", "total_revenue", "total_bookings",
                "loyalty_tier", "clv_score"]),
            "most_frequent": _records(most_frequent, [
                "guest_id", "name", "country", "total_bookings", "total_revenue",
                "loyalty_tier", "average_spend"]),
        }

    # ------------------------------------------------------------------
    # 3. Segmentation
    # ------------------------------------------------------------------

    def get_segmentation(self, dataset_id: str) -> dict:
        df = self.store.get_guests(dataset_id)
        total = len(df)

        lifecycle = []
        for stage in LIFECYCLE_STAGE_ORDER:
            group = df[df["lifecycle_stage"] == stage]
            lifecycle.append({
                "stage": stage,
                "count": len(group),
                "percent": percent(len(group), total),
                "avg_revenue": round_half_up(group["total_revenue"].mean(), 2) if len(group) else 0.0,
            })

        rfm_counts = df["rfm_score"].value_counts()
        rfm = [
            {"score": score, "count": int(rfm_counts.get(score, 0)),
             "percent": percent(rfm_counts.get(score, 0), total)}
            for score in range(1, 6)
        ]

        loyalty = []
        for tier in LOYALTY_TIER_ORDER:
            group = df[df["loyalty_tier"] == tier]
            loyalty.append({
                "tier": tier,
                "count": len(group),
                "revenue": round_half_up(group["total_revenue"].sum(), 2),
                "avg_clv": round_half_up(group["clv_score"].mean(), 2) if len(group) else 0.0,
            })

        bands = df["churn_risk_score"].map(churn_band).value_counts()
        churn = {band: int(bands.get(band, 0)) for band in ("low", "medium", "high")}

        clv_counts = df["clv_score"].map(_clv_tier).value_counts()
        clv = {label: int(clv_counts.get(label, 0)) for _, label in CLV_TIERS}

        return {
            "total_guests": total,
            "lifecycle_stages": lifecycle,
            "rfm_distribution": rfm,
            "loyalty_tiers": loyalty,
            "churn_risk_bands": churn,
            "clv_tiers": clv,
        }

    # ------------------------------------------------------------------
    # 4. Directory
    # ------------------------------------------------------------------

    def list_guests(self, dataset_id: str, search: Optional[str] = None,
                    loyalty_tier: Optional[str] = None, lifecycle_stage: Optional[str] = None,
                    sort_by: str = "total_revenue", sort_order: str = "desc",
                    limit: int = DEFAULT_DIRECTORY_LIMIT, offset: int = 0) -> Tuple[List[dict], int]:
        return self.store.list_guests(dataset_id, search, loyalty_tier, lifecycle_stage,
                                      sort_by, sort_order, limit, offset)

    def get_guest_stays(self, guest_id: str) -> List[dict]:
        stays = self.store.get_guest_stays(guest_id)
        return _records(stays, list(stays.columns))
