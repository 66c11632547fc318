"""
GUEST SCORING ENGINE - Guest Profiles, RFM & Predictive Scores
===============================================================
Responsibilities:
  1. Group bookings into guests through an IdentityResolver
  2. Per-guest metrics (revenue, spend, lead time, LOS, weekend ratio, ...)
  3. RFM scoring, lifecycle stage and loyalty tier from configured rules
  4. Heuristic CLV, churn risk, upsell propensity and ambassador scores
  5. Emit Guest profiles and one GuestStay per booking

Recency is measured against an injectable `now`, so results are
reproducible for a fixed date.
"""
import logging
import uuid
from collections import Counter
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from config.scoring_config import DEFAULT_SCORING_CONFIG, GuestScoringConfig
from config.thresholds import (
    AMBASSADOR_CANCELLATION_LIMIT,
    AMBASSADOR_CANCELLATION_PENALTY,
    AMBASSADOR_MULTIPLIER,
    AT_RISK_CHURN_SCORE,
    CHURN_CANCELLATION_CAP,
    CHURN_CANCELLATION_WEIGHT,
    CHURN_FREQUENCY_WEIGHT,
    CHURN_RECENCY_WEIGHT,
    CLV_ANNUAL_FREQUENCY_CAP,
    CLV_LIFESPAN_YEARS,
    COUPLE_MIN_AVG_ADULTS,
    FAMILY_MIN_AVG_CHILDREN,
    GROUP_MIN_AVG_ADULTS,
    MEDIUM_CHURN_SCORE,
    MIN_RFM_SCORE,
    UPSELL_BASE,
    UPSELL_FREQUENCY_BONUS,
    UPSELL_HIGH_SPEND,
    UPSELL_HIGH_SPEND_BONUS,
    UPSELL_MIN_FREQUENCY,
    UPSELL_PREMIUM_ROOM_BONUS,
)
from engines.identity import ExactNameResolver, IdentityResolver
from engines.models import Booking, Guest, GuestStay, ScoringResult
from utils.bucketing import is_weekend_arrival, matches_any
from utils.stats import clamp, mean, round_half_up, top_key

logger = logging.getLogger(__name__)

# Fixed namespace so a guest keeps its id across rebuilds of a dataset
GUEST_ID_NAMESPACE = uuid.UUID("6f1c2b8e-3d4a-5e6f-8a9b-0c1d2e3f4a5b")


def guest_id_for(dataset_id: str, identity_key: str) -> str:
    return str(uuid.uuid5(GUEST_ID_NAMESPACE, f"{dataset_id}:{identity_key}"))


# ---------------------------------------------------------------------------
# Score functions
# ---------------------------------------------------------------------------

def score_at_most(value: float, breakpoints: Sequence[Tuple[float, int]]) -> int:
    """First breakpoint whose limit is >= value; MIN_RFM_SCORE otherwise."""
    for limit, score in breakpoints:
        if value <= limit:
            return score
    return MIN_RFM_SCORE


def score_at_least(value: float, breakpoints: Sequence[Tuple[float, int]]) -> int:
    """First breakpoint whose limit is <= value; MIN_RFM_SCORE otherwise."""
    for limit, score in breakpoints:
        if value >= limit:
            return score
    return MIN_RFM_SCORE


def clv_estimate(avg_spend: float, total_bookings: int, recency_score: int) -> float:
    """Heuristic lifetime value: spend x capped frequency x retention x lifespan."""
    annual_frequency = min(total_bookings, CLV_ANNUAL_FREQUENCY_CAP)
    return avg_spend * annual_frequency * (recency_score / 5) * CLV_LIFESPAN_YEARS


def churn_risk(recency_score: int, frequency_score: int, cancellation_rate: float) -> float:
    risk = (
        (5 - recency_score) * CHURN_RECENCY_WEIGHT
        + (5 - frequency_score) * CHURN_FREQUENCY_WEIGHT
        + min(cancellation_rate * CHURN_CANCELLATION_WEIGHT, CHURN_CANCELLATION_CAP)
    )
    return clamp(risk, 0, 100)


def churn_band(score: float) -> str:
    """low / medium / high band for a 0-100 churn risk score."""
    if score >= AT_RISK_CHURN_SCORE:
        return "high"
    if score >= MEDIUM_CHURN_SCORE:
        return "medium"
    return "low"


def upsell_propensity(avg_spend: float, frequency_score: int, preferred_room_type: Optional[str],
                      premium_keywords: Sequence[str]) -> int:
    score = UPSELL_BASE
    if avg_spend > UPSELL_HIGH_SPEND:
        score += UPSELL_HIGH_SPEND_BONUS
    if frequency_score >= UPSELL_MIN_FREQUENCY:
        score += UPSELL_FREQUENCY_BONUS
    if matches_any(preferred_room_type, premium_keywords):
        score += UPSELL_PREMIUM_ROOM_BONUS
    return min(100, score)


def ambassador_score(frequency_score: int, monetary_score: int, cancellation_rate: float) -> float:
    score = (frequency_score + monetary_score) / 2 * AMBASSADOR_MULTIPLIER
    if cancellation_rate > AMBASSADOR_CANCELLATION_LIMIT:
        score -= AMBASSADOR_CANCELLATION_PENALTY
    return clamp(score, 0, 100)


def travel_type(bookings: List[Booking]) -> str:
    avg_adults = mean([b.adults for b in bookings])
    avg_children = mean([b.children for b in bookings])
    if avg_children > FAMILY_MIN_AVG_CHILDREN:
        return "family"
    if avg_adults >= GROUP_MIN_AVG_ADULTS:
        return "group"
    if avg_adults >= COUPLE_MIN_AVG_ADULTS:
        return "couple"
    return "solo"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class GuestScoringEngine:
    """
    Derives one scored Guest per resolved identity plus its GuestStay rows.
    Pure: nothing is read from or written to a store here.
    """

    def __init__(self, config: Optional[GuestScoringConfig] = None,
                 resolver: Optional[IdentityResolver] = None):
        self.config = config or DEFAULT_SCORING_CONFIG
        self.resolver = resolver or ExactNameResolver()

    def score_guests(self, bookings: Iterable, dataset_id: str,
                     now: Optional[date] = None) -> ScoringResult:
        """
        Parameters
        ----------
        bookings : iterable of Booking or mapping
        dataset_id : str
            Owning dataset, stamped on every guest and stay.
        now : date, optional
            Reference date for recency; today when omitted.

        Returns
        -------
        ScoringResult
            Guests in first-seen order, stays grouped per guest.
        """
        now = now or date.today()
        parsed = [b if isinstance(b, Booking) else Booking.from_record(b) for b in bookings]
        groups = self.resolver.group(parsed)

        result = ScoringResult()
        for identity_key, guest_bookings in groups.items():
            guest = self.score_guest(identity_key, guest_bookings, dataset_id, now)
            result.guests.append(guest)
            result.stays.extend(self.build_stays(guest, guest_bookings))

        logger.info(f"GUEST SCORING: {len(result.guests):,} guests from {len(parsed):,} bookings")
        return result

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def lifecycle_stage(self, total_bookings: int, recency_score: int) -> str:
        for rule in self.config.lifecycle_rules:
            if rule.matches(total_bookings, recency_score):
                return rule.stage
        return self.config.default_lifecycle_stage

    def loyalty_tier(self, rfm_score: int, total_bookings: int, total_revenue: float) -> str:
        for rule in self.config.loyalty_rules:
            if rule.matches(rfm_score, total_bookings, total_revenue):
                return rule.tier
        return self.config.default_loyalty_tier

    def recency_score(self, last_arrival: Optional[date], now: date) -> int:
        if last_arrival is None:
            return MIN_RFM_SCORE
        return score_at_most((now - last_arrival).days, self.config.recency_breakpoints)

    def rfm_scores(self, last_arrival: Optional[date], now: date,
                   total_bookings: int, total_revenue: float) -> Tuple[int, int, int, int]:
        """(recency, frequency, monetary, rfm) where rfm is the rounded mean of the three."""
        recency = self.recency_score(last_arrival, now)
        frequency = score_at_least(total_bookings, self.config.frequency_breakpoints)
        monetary = score_at_least(total_revenue, self.config.monetary_breakpoints)
        return recency, frequency, monetary, round_half_up((recency + frequency + monetary) / 3)

    # ------------------------------------------------------------------
    # Per guest
    # ------------------------------------------------------------------

    def score_guest(self, identity_key: str, bookings: List[Booking],
                    dataset_id: str, now: date) -> Guest:
        cfg = self.config
        first = bookings[0]
        total_bookings = len(bookings)
        confirmed = [b for b in bookings if not b.is_cancelled]
        cancelled_count = total_bookings - len(confirmed)

        total_revenue = sum(b.total_amount for b in confirmed)
        avg_spend = total_revenue / len(confirmed) if confirmed else 0.0
        cancellation_rate = cancelled_count / total_bookings * 100

        arrivals = sorted(b.arrival_date for b in bookings if b.arrival_date is not None)
        first_date = arrivals[0] if arrivals else None
        last_date = arrivals[-1] if arrivals else None

        weekend = sum(1 for b in bookings if is_weekend_arrival(b.arrival_date, cfg.weekend_arrival_days))
        channels = Counter(b.channel for b in bookings if b.channel)
        room_types = Counter(b.room_type for b in bookings if b.room_type)
        segments = Counter(b.market_segment for b in bookings if b.market_segment)
        preferred_room = top_key(room_types)
        top_segment = top_key(segments)

        recency, frequency, monetary, rfm = self.rfm_scores(last_date, now, total_bookings, total_revenue)

        churn = round_half_up(churn_risk(recency, frequency, cancellation_rate))

        return Guest(
            guest_id=guest_id_for(dataset_id, identity_key),
            dataset_id=dataset_id,
            name=first.guest_name,
            normalized_name=identity_key,
            country=first.guest_country,
            first_booking_date=first_date,
            last_booking_date=last_date,
            total_bookings=total_bookings,
            cancelled_bookings=cancelled_count,
            total_revenue=round_half_up(total_revenue, 2),
            average_spend=round_half_up(avg_spend, 2),
            recency_score=recency,
            frequency_score=frequency,
            monetary_score=monetary,
            rfm_score=rfm,
            preferred_channel=top_key(channels),
            preferred_room_type=preferred_room,
            avg_lead_time=round_half_up(mean([b.lead_time for b in bookings]), 1),
            avg_length_of_stay=round_half_up(mean([b.length_of_stay for b in bookings]), 1),
            weekend_ratio=round_half_up(weekend / total_bookings, 2),
            cancellation_rate=round_half_up(cancellation_rate, 2),
            modification_count=sum(b.booking_changes for b in bookings),
            lifecycle_stage=self.lifecycle_stage(total_bookings, recency),
            loyalty_tier=self.loyalty_tier(rfm, total_bookings, total_revenue),
            guest_type="corporate" if matches_any(top_segment, cfg.corporate_segment_keywords) else "leisure",
            travel_type=travel_type(bookings),
            clv_score=round_half_up(clv_estimate(avg_spend, total_bookings, recency), 2),
            churn_risk_score=churn,
            upsell_propensity=upsell_propensity(avg_spend, frequency, preferred_room, cfg.premium_room_keywords),
            retention_probability=100 - churn,
            ambassador_score=round_half_up(ambassador_score(frequency, monetary, cancellation_rate)),
        )

    def build_stays(self, guest: Guest, bookings: List[Booking]) -> List[GuestStay]:
        return [
            GuestStay(
                guest_id=guest.guest_id,
                booking_id=b.booking_id,
                dataset_id=guest.dataset_id,
                booking_ref=b.booking_ref,
                arrival_date=b.arrival_date,
                departure_date=b.departure_date,
                room_type=b.room_type,
                channel=b.channel,
                market_segment=b.market_segment,
                revenue=b.total_amount,
                adr=b.adr,
                length_of_stay=b.length_of_stay,
                lead_time=b.lead_time,
                adults=b.adults,
                children=b.children,
                party_size=b.party_size,
                is_cancelled=b.is_cancelled,
                is_weekend=is_weekend_arrival(b.arrival_date, self.config.weekend_arrival_days),
            )
            for b in bookings
        ]
