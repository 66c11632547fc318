"""
Bucketing and lookup utilities.
Pure helpers that map raw booking values onto dimension labels:
weekday / month / quarter names, lead-time buckets, commission rates and
channel classification, plus the lenient value parsers used when
building booking records.
"""
import logging
import math
from datetime import date, datetime
from typing import Optional, Sequence, Tuple

import pandas as pd

from config.thresholds import (
    COMMISSION_RULES,
    COUPLE_MIN_AVG_ADULTS,
    DEFAULT_COMMISSION_RATE,
    DIRECT_CHANNEL_NAMES,
    GROUP_MIN_AVG_ADULTS,
    LEAD_TIME_BUCKETS,
    LEAD_TIME_OVERFLOW_BUCKET,
    SEASONS,
    UNKNOWN_LABEL,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_float(value, default: float = 0.0) -> float:
    """Parse a decimal string / number; missing or malformed -> default."""
    if _is_missing(value):
        return default
    try:
        parsed = float(str(value).strip().replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable number {value!r}, using {default}")
        return default
    if math.isnan(parsed) or math.isinf(parsed):
        return default
    return parsed


def parse_money(value) -> float:
    """Money amounts are never negative; anything unusable becomes 0.0."""
    amount = parse_float(value, 0.0)
    if amount < 0:
        logger.debug(f"Negative amount {value!r} clamped to 0")
        return 0.0
    return amount


def parse_int(value, default: Optional[int] = 0) -> Optional[int]:
    parsed = parse_float(value, float("nan"))
    if math.isnan(parsed):
        return default
    return int(parsed)


def parse_bool(value, default: bool = False) -> bool:
    if _is_missing(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "yes", "y")
    return bool(value)


def parse_date(value) -> Optional[date]:
    """Accept date / datetime / Timestamp / ISO-ish strings; else None."""
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        logger.debug(f"Unparseable date {value!r}")
        return None
    return parsed.date()


def days_between(start: Optional[date], end: Optional[date]) -> Optional[int]:
    if start is None or end is None:
        return None
    return (end - start).days


# ---------------------------------------------------------------------------
# Calendar dimensions
# ---------------------------------------------------------------------------

def weekday_name(day: Optional[date]) -> str:
    if day is None:
        return UNKNOWN_LABEL
    return WEEKDAY_NAMES[day.weekday()]


def month_name(day: Optional[date]) -> str:
    if day is None:
        return UNKNOWN_LABEL
    return MONTH_NAMES[day.month - 1]


def quarter_label(day: Optional[date]) -> str:
    if day is None:
        return UNKNOWN_LABEL
    return f"Q{(day.month - 1) // 3 + 1}"


def year_month_key(day: Optional[date]) -> Optional[str]:
    """Sortable 'YYYY-MM' key, None for a missing date."""
    if day is None:
        return None
    return f"{day.year:04d}-{day.month:02d}"


def is_weekend_arrival(day: Optional[date], weekend_days: Sequence[int] = (4, 5, 6)) -> bool:
    """Friday, Saturday and Sunday arrivals count as weekend by default."""
    if day is None:
        return False
    return day.weekday() in weekend_days


def is_midweek_arrival(day: Optional[date]) -> bool:
    """Monday to Thursday."""
    if day is None:
        return False
    return day.weekday() <= 3


def season_name(day: Optional[date], seasons: Sequence[Tuple[str, Sequence[int]]] = tuple(SEASONS)) -> str:
    if day is None:
        return UNKNOWN_LABEL
    for name, months in seasons:
        if day.month in months:
            return name
    return UNKNOWN_LABEL


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def bucket_label(value: float, buckets: Sequence[Tuple[float, str]], overflow: str) -> str:
    """Label of the first (upper bound, label) pair with value <= bound; overflow otherwise."""
    for upper, label in buckets:
        if value <= upper:
            return label
    return overflow


def lead_time_bucket(lead_time: float,
                     buckets: Sequence[Tuple[int, str]] = tuple(LEAD_TIME_BUCKETS),
                     overflow: str = LEAD_TIME_OVERFLOW_BUCKET) -> str:
    """Map a lead time in days to its bucket label."""
    return bucket_label(lead_time, buckets, overflow)


def lead_time_labels(buckets: Sequence[Tuple[int, str]] = tuple(LEAD_TIME_BUCKETS),
                     overflow: str = LEAD_TIME_OVERFLOW_BUCKET) -> list:
    return [label for _, label in buckets] + [overflow]


def matches_any(text: Optional[str], keywords: Sequence[str]) -> bool:
    """Case-insensitive substring match of any keyword."""
    lowered = (text or "").lower()
    return any(k in lowered for k in keywords)


def is_direct_channel(channel: Optional[str], names: Sequence[str] = DIRECT_CHANNEL_NAMES) -> bool:
    """Whole-name match, so "Indirect" or "Direct Connect" are not direct."""
    return (channel or "").strip().lower() in names


def party_type(adults: int, children: int) -> str:
    """Solo / Couple / Family / Group for one booking's party."""
    if children > 0:
        return "Family"
    if adults >= GROUP_MIN_AVG_ADULTS:
        return "Group"
    if adults >= COUPLE_MIN_AVG_ADULTS:
        return "Couple"
    return "Solo"


def commission_rate(channel: Optional[str],
                    rules: Sequence[Tuple[Sequence[str], float]] = tuple(COMMISSION_RULES),
                    default: float = DEFAULT_COMMISSION_RATE) -> float:
    """Commission rate for a channel by substring rule; first rule wins."""
    for keywords, rate in rules:
        if matches_any(channel, keywords):
            return rate
    return default
