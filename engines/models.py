"""
Record types shared by the engines: the imported Booking, the persisted
Guest / GuestStay rows and the extraction result counts.
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Mapping, Optional

from utils.bucketing import (
    days_between,
    parse_bool,
    parse_date,
    parse_int,
    parse_money,
)


def _pick(record: Mapping[str, Any], *keys: str, default=None):
    """First present key; accepts snake_case and camelCase column names."""
    for key in keys:
        if key in record:
            return record[key]
    return default


def _text(value, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    text = str(value).strip()
    if not text or text.lower() in ("nan", "none", "null"):
        return default
    return text


@dataclass(frozen=True)
class Booking:
    """An imported booking. Money is already parsed to non-negative floats."""
    booking_ref: str
    guest_name: str
    arrival_date: Optional[date]
    departure_date: Optional[date]
    booking_date: Optional[date]
    room_type: str
    total_amount: float
    adr: float
    channel: str
    booking_status: str
    is_cancelled: bool
    length_of_stay: int
    lead_time: int = 0
    adults: int = 1
    children: int = 0
    guest_country: Optional[str] = None
    room_number: Optional[str] = None
    market_segment: Optional[str] = None
    is_repeated_guest: bool = False
    previous_bookings: int = 0
    booking_changes: int = 0
    booking_id: Optional[str] = None
    dataset_id: Optional[str] = None

    @property
    def party_size(self) -> int:
        return (self.adults or 1) + (self.children or 0)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Booking":
        """
        Build a Booking from a row dict, applying the fallback defaults.

        Parameters
        ----------
        record : mapping
            A database row or JSON object. Keys may be snake_case
            ('total_amount') or camelCase ('totalAmount').
        """
        arrival = parse_date(_pick(record, "arrival_date", "arrivalDate"))
        departure = parse_date(_pick(record, "departure_date", "departureDate"))
        booked = parse_date(_pick(record, "booking_date", "bookingDate"))

        status = _text(_pick(record, "booking_status", "bookingStatus"), "Confirmed")
        cancelled_raw = _pick(record, "is_cancelled", "isCancelled")
        if cancelled_raw is None:
            is_cancelled = "cancel" in status.lower()
        else:
            is_cancelled = parse_bool(cancelled_raw)

        # Length of stay: explicit value, else nights between the stay dates, else 1
        los = parse_int(_pick(record, "length_of_stay", "lengthOfStay"), None)
        if los is None or los < 1:
            nights = days_between(arrival, departure)
            los = nights if nights is not None and nights >= 1 else 1

        # Lead time: explicit value, else days from booking to arrival, else 0
        lead = parse_int(_pick(record, "lead_time", "leadTime"), None)
        if lead is None:
            derived = days_between(booked, arrival)
            lead = derived if derived is not None and derived >= 0 else 0

        booking_id = _pick(record, "booking_id", "bookingId", "id")

        return cls(
            booking_ref=_text(_pick(record, "booking_ref", "bookingRef"), ""),
            guest_name=_text(_pick(record, "guest_name", "guestName"), ""),
            guest_country=_text(_pick(record, "guest_country", "guestCountry")),
            arrival_date=arrival,
            departure_date=departure,
            booking_date=booked,
            adults=parse_int(_pick(record, "adults"), 1),
            children=parse_int(_pick(record, "children"), 0),
            room_type=_text(_pick(record, "room_type", "roomType"), ""),
            room_number=_text(_pick(record, "room_number", "roomNumber")),
            total_amount=parse_money(_pick(record, "total_amount", "totalAmount")),
            adr=parse_money(_pick(record, "adr")),
            channel=_text(_pick(record, "channel"), ""),
            market_segment=_text(_pick(record, "market_segment", "marketSegment")),
            booking_status=status,
            is_cancelled=is_cancelled,
            lead_time=lead,
            length_of_stay=los,
            is_repeated_guest=parse_bool(_pick(record, "is_repeated_guest", "isRepeatedGuest")),
            previous_bookings=parse_int(_pick(record, "previous_bookings", "previousBookings"), 0),
            booking_changes=parse_int(_pick(record, "booking_changes", "bookingChanges"), 0),
            booking_id=_text(booking_id) if booking_id is not None else None,
            dataset_id=_text(_pick(record, "dataset_id", "datasetId")),
        )


@dataclass
class Guest:
    """A scored guest profile, one per resolved identity per dataset."""
    guest_id: str
    dataset_id: str
    name: str
    normalized_name: str
    country: Optional[str]
    first_booking_date: Optional[date]
    last_booking_date: Optional[date]
    total_bookings: int
    cancelled_bookings: int
    total_revenue: float
    average_spend: float
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_score: int
    preferred_channel: Optional[str]
    preferred_room_type: Optional[str]
    avg_lead_time: float
    avg_length_of_stay: float
    weekend_ratio: float
    cancellation_rate: float
    modification_count: int
    lifecycle_stage: str
    loyalty_tier: str
    guest_type: str
    travel_type: str
    clv_score: float
    churn_risk_score: int
    upsell_propensity: int
    retention_probability: int
    ambassador_score: int

    def to_record(self) -> dict:
        return asdict(self)


@dataclass
class GuestStay:
    """One stay (booking) of a guest, kept for drill-down."""
    guest_id: str
    booking_id: Optional[str]
    dataset_id: str
    booking_ref: str
    arrival_date: Optional[date]
    departure_date: Optional[date]
    room_type: str
    channel: str
    market_segment: Optional[str]
    revenue: float
    adr: float
    length_of_stay: int
    lead_time: int
    adults: int
    children: int
    party_size: int
    is_cancelled: bool
    is_weekend: bool

    def to_record(self) -> dict:
        return asdict(self)


@dataclass
class ExtractionResult:
    total_guests: int = 0
    new_guests: int = 0
    updated_guests: int = 0
    total_stays: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScoringResult:
    guests: list = field(default_factory=list)
    stays: list = field(default_factory=list)
