"""
Guest identity resolution.

Scoring groups bookings by the key an IdentityResolver returns. The
default resolver is an exact match on the normalised guest name: spelling
variants of one person stay separate and namesakes are merged. Swap in a
different resolver (fuzzy, e-mail, loyalty number) without touching the
scoring code.
"""
import re
from typing import Dict, List

from engines.models import Booking

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Lowercase, trim, collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (name or "").lower().strip())


class IdentityResolver:
    """Maps a booking to the key of the guest it belongs to."""

    def resolve(self, booking: Booking) -> str:
        raise NotImplementedError

    def group(self, bookings: List[Booking]) -> Dict[str, List[Booking]]:
        """Group bookings by identity key, keeping first-seen key order."""
        groups: Dict[str, List[Booking]] = {}
        for booking in bookings:
            groups.setdefault(self.resolve(booking), []).append(booking)
        return groups


class ExactNameResolver(IdentityResolver):
    """Identity = normalised guest name."""

    def resolve(self, booking: Booking) -> str:
        return normalize_name(booking.guest_name)
