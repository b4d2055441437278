"""Test doubles for the pluggable backends."""

from loyaltyman.protocols.bookings import StaySummary
from loyaltyman.protocols.notifications import Notification

STAYS: dict[str, StaySummary] = {}
SENT: list[Notification] = []


class FakeBookingBackend:
    """BookingBackend over the module-level STAYS dict."""

    def get_completed_stay(self, booking_ref: str) -> StaySummary | None:
        return STAYS.get(booking_ref)


class RecordingNotificationBackend:
    def send(self, notification: Notification) -> None:
        SENT.append(notification)


class FailingNotificationBackend:
    def send(self, notification: Notification) -> None:
        raise ConnectionError("SMTP server unavailable")
