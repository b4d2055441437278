"""
Loyaltyman configuration.

Usage in settings.py:
    LOYALTYMAN = {
        "POINTS_PER_NIGHT": 100,
        "BOOKING_BACKEND": "myproject.bookings.adapters.CompletedStayBackend",
        "NOTIFICATIONS_ASYNC": True,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class LoyaltymanSettings:
    """Loyaltyman configuration settings."""

    # Earning rules
    POINTS_PER_CURRENCY_UNIT: int = 1
    POINTS_PER_NIGHT: int = 100
    EARN_EXPIRY_DAYS: int = 365
    TIER_UPGRADE_BONUS_PER_RANK: int = 500

    # Stay lookup (dotted path to a BookingBackend implementation)
    BOOKING_BACKEND: str = ""

    # Outbound notifications
    NOTIFICATION_BACKEND: str = "loyaltyman.adapters.email.EmailNotificationBackend"
    NOTIFICATIONS_ASYNC: bool = True
    NOTIFICATION_WORKERS: int = 2
    DEFAULT_FROM_EMAIL: str = ""

    # Seconds to wait for a member's lock before giving up
    LOCK_TIMEOUT_SECONDS: float = 10.0


def get_loyaltyman_settings() -> LoyaltymanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LOYALTYMAN", {})
    return LoyaltymanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_loyaltyman_settings(), name)


loyaltyman_settings = _LazySettings()
