"""Loyaltyman protocols."""

from loyaltyman.protocols.bookings import (
    BookingBackend,
    StaySummary,
)
from loyaltyman.protocols.notifications import (
    Notification,
    NotificationBackend,
    NotificationKind,
)

__all__ = [
    # Bookings
    "BookingBackend",
    "StaySummary",
    # Notifications
    "Notification",
    "NotificationBackend",
    "NotificationKind",
]
