"""Booking protocol - how the engine learns about completed stays."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class StaySummary:
    """A completed stay, as reported by the booking system."""

    booking_ref: str
    user_id: int | str
    amount: Decimal  # amount paid, in currency units
    nights: int
    property_ref: str = ""
    check_out: datetime | None = None


@runtime_checkable
class BookingBackend(Protocol):
    """
    Protocol for looking up completed stays.

    Configuration in settings.py:
        LOYALTYMAN = {
            "BOOKING_BACKEND": "myproject.bookings.loyalty.CompletedStayBackend",
        }
    """

    def get_completed_stay(self, booking_ref: str) -> StaySummary | None:
        """Return the stay for a booking, or None if unknown/not completed."""
        ...
