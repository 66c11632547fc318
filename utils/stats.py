"""
Math helpers shared by the analytics and guest scoring engines.
Every helper tolerates empty input and returns 0 rather than raising.
"""
import math
from decimal import ROUND_FLOOR, Decimal
from typing import Mapping, Optional, Sequence

import numpy as np


def round_half_up(value: float, ndigits: int = 0):
    """
    Round halves upwards (2.5 -> 3, -2.5 -> -2, 1.005 -> 1.01 at 2 places).

    Python's round() uses banker's rounding and binary floats store many
    decimal halves just below the half, so the value is rounded through
    its decimal string. Returns an int when ndigits is 0.
    """
    if value is None or not math.isfinite(value):
        return 0 if ndigits == 0 else 0.0
    quantum = Decimal(1).scaleb(-ndigits)
    shifted = Decimal(str(value)) / quantum + Decimal("0.5")
    rounded = shifted.to_integral_value(rounding=ROUND_FLOOR) * quantum
    if ndigits == 0:
        return int(rounded)
    return float(rounded)


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / max(1, denominator)."""
    return numerator / max(1, denominator)


def percent(numerator: float, denominator: float) -> int:
    """Whole-number percentage with a max(1, denominator) guard."""
    return round_half_up(safe_ratio(numerator, denominator) * 100)


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    return min(upper, max(lower, value))


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def percentile(values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile.

    Parameters
    ----------
    values : sequence of float
    p : float
        Percentile in [0, 100].

    Returns
    -------
    float
        The smallest value whose rank covers p percent of the data, or 0
        for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p, method="inverted_cdf"))


def quartiles(values: Sequence[float]) -> dict:
    return {
        "q1": percentile(values, 25),
        "q2": percentile(values, 50),
        "q3": percentile(values, 75),
    }


def _herfindahl(distribution: Mapping[str, float]) -> Optional[float]:
    total = sum(distribution.values())
    if total <= 0:
        return None
    return sum((v / total) ** 2 for v in distribution.values())


def diversity_index(distribution: Mapping[str, float]) -> float:
    """
    Herfindahl-Hirschman based diversity: 1 - sum(share^2), 2 decimals.

    A single category gives 0; an even spread over many categories
    approaches 1.
    """
    herfindahl = _herfindahl(distribution)
    if herfindahl is None:
        return 0.0
    return round_half_up(1 - herfindahl, 2)


def concentration_index(distribution: Mapping[str, float]) -> float:
    """Herfindahl-Hirschman index sum(share^2), 2 decimals; 1 = one category."""
    herfindahl = _herfindahl(distribution)
    if herfindahl is None:
        return 0.0
    return round_half_up(herfindahl, 2)


def top_key(counts: Mapping[str, float], default: Optional[str] = None) -> Optional[str]:
    """Key with the largest value; ties go to the first key seen."""
    if not counts:
        return default
    return max(counts.items(), key=lambda kv: kv[1])[0]


def bottom_key(counts: Mapping[str, float], default: Optional[str] = None) -> Optional[str]:
    """Key with the smallest value; ties go to the first key seen."""
    if not counts:
        return default
    return min(counts.items(), key=lambda kv: kv[1])[0]


def pct_change(current: float, previous: float) -> float:
    """Percentage change from previous to current; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100
