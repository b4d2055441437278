"""Notification protocol - outbound member messaging."""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class NotificationKind:
    WELCOME = "welcome"
    TIER_UPGRADE = "tier_upgrade"
    REDEMPTION_CONFIRMATION = "redemption_confirmation"


@dataclass(frozen=True)
class Notification:
    """One outbound message for a member."""

    recipient_address: str
    template_kind: str
    member_code: str
    payload: dict = field(default_factory=dict)


@runtime_checkable
class NotificationBackend(Protocol):
    """
    Protocol for delivering member notifications.

    Delivery is best effort: exceptions raised by send() are logged by the
    dispatcher and never reach ledger callers.

    Configuration in settings.py:
        LOYALTYMAN = {
            "NOTIFICATION_BACKEND": "loyaltyman.adapters.email.EmailNotificationBackend",
        }
    """

    def send(self, notification: Notification) -> None:
        """Deliver one notification."""
        ...
