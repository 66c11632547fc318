"""
Tests for building Booking records from raw rows in engines/models.py.
"""

from datetime import date

from engines.models import Booking, ExtractionResult


class TestBookingFromRecord:

    def test_camel_case_keys(self):
        booking = Booking.from_record({
            "bookingRef": "B1",
            "guestName": "Ana Lopez",
            "arrivalDate": "2025-05-01",
            "departureDate": "2025-05-04",
            "bookingDate": "2025-04-01",
            "roomType": "Deluxe",
            "totalAmount": "450.00",
            "adr": "150.00",
            "channel": "Booking.com",
            "bookingStatus": "Confirmed",
            "isCancelled": False,
            "lengthOfStay": 3,
            "leadTime": 30,
        })
        assert booking.booking_ref == "B1"
        assert booking.total_amount == 450.0
        assert booking.arrival_date == date(2025, 5, 1)
        assert booking.length_of_stay == 3
        assert booking.lead_time == 30

    def test_fallback_defaults(self):
        booking = Booking.from_record({
            "guest_name": "Ana Lopez",
            "arrival_date": "2025-05-01",
            "departure_date": "2025-05-04",
            "booking_date": "2025-04-21",
            "total_amount": "oops",
            "adr": None,
        })
        assert booking.total_amount == 0.0
        assert booking.adr == 0.0
        assert booking.length_of_stay == 3          # from the stay dates
        assert booking.lead_time == 10              # from booking -> arrival
        assert booking.adults == 1
        assert booking.children == 0
        assert booking.booking_status == "Confirmed"
        assert not booking.is_cancelled

    def test_length_of_stay_defaults_to_one(self):
        booking = Booking.from_record({"guest_name": "X", "length_of_stay": 0})
        assert booking.length_of_stay == 1
        assert booking.lead_time == 0

    def test_cancelled_from_status(self):
        booking = Booking.from_record({"guest_name": "X", "booking_status": "Canceled"})
        assert booking.is_cancelled

    def test_explicit_flag_beats_status(self):
        booking = Booking.from_record({"guest_name": "X", "booking_status": "Cancelled",
                                       "is_cancelled": 0})
        assert not booking.is_cancelled

    def test_party_size(self, make_booking):
        assert make_booking(adults=2, children=1).party_size == 3
        assert make_booking(adults=0, children=0).party_size == 1

    def test_store_id_becomes_booking_id(self):
        booking = Booking.from_record({"id": 42, "guest_name": "X"})
        assert booking.booking_id == "42"


def test_extraction_result_defaults_to_zero():
    assert ExtractionResult().to_dict() == {
        "total_guests": 0, "new_guests": 0, "updated_guests": 0, "total_stays": 0,
    }
