"""
Notification dispatch.

Receivers on the public signals turn ledger events into Notification
objects and hand them to the configured NotificationBackend. Delivery runs
on a small thread pool when NOTIFICATIONS_ASYNC is on; either way a failed
send is logged and dropped.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from django.dispatch import receiver
from django.utils.module_loading import import_string

from loyaltyman.conf import loyaltyman_settings
from loyaltyman.protocols.notifications import (
    Notification,
    NotificationBackend,
    NotificationKind,
)
from loyaltyman.signals import member_enrolled, reward_redeemed, tier_changed
from loyaltyman.tiers import multiplier_of

logger = logging.getLogger(__name__)

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=loyaltyman_settings.NOTIFICATION_WORKERS,
                thread_name_prefix="loyaltyman-notify",
            )
        return _executor


def get_notification_backend() -> NotificationBackend | None:
    """Get configured NotificationBackend."""
    backend_path = loyaltyman_settings.NOTIFICATION_BACKEND
    if backend_path:
        backend_class = import_string(backend_path)
        return backend_class()
    return None


def _deliver(backend: NotificationBackend, notification: Notification) -> None:
    try:
        backend.send(notification)
    except Exception:
        logger.exception(
            "Failed to send %s notification to member %s",
            notification.template_kind,
            notification.member_code,
        )
        return
    logger.info(
        "Sent %s notification to member %s",
        notification.template_kind,
        notification.member_code,
    )


def dispatch(notification: Notification) -> Future | None:
    """
    Hand a notification to the backend without blocking on delivery.

    Returns the Future when delivery was scheduled on the thread pool
    (callers may cancel it), None when it ran inline or was skipped.
    """
    if not notification.recipient_address:
        logger.info(
            "Skipping %s notification: member %s has no address",
            notification.template_kind,
            notification.member_code,
        )
        return None

    backend = get_notification_backend()
    if backend is None:
        return None

    if loyaltyman_settings.NOTIFICATIONS_ASYNC:
        return _get_executor().submit(_deliver, backend, notification)

    _deliver(backend, notification)
    return None


# ======================================================================
# Receivers
# ======================================================================


@receiver(member_enrolled, dispatch_uid="loyaltyman_welcome_notification")
def send_welcome(sender, member, **kwargs):
    dispatch(
        Notification(
            recipient_address=member.email,
            template_kind=NotificationKind.WELCOME,
            member_code=member.code,
            payload={
                "name": member.name,
                "tier": member.tier,
                "available_points": member.available_points,
            },
        )
    )


@receiver(tier_changed, dispatch_uid="loyaltyman_tier_upgrade_notification")
def send_tier_upgrade(sender, member, old_tier, new_tier, upgraded, restored=False, **kwargs):
    # Tiers regained through a refund are not upgrades
    if not upgraded or restored:
        return
    dispatch(
        Notification(
            recipient_address=member.email,
            template_kind=NotificationKind.TIER_UPGRADE,
            member_code=member.code,
            payload={
                "name": member.name,
                "old_tier": old_tier,
                "new_tier": new_tier,
                "multiplier": str(multiplier_of(new_tier)),
            },
        )
    )


@receiver(reward_redeemed, dispatch_uid="loyaltyman_redemption_notification")
def send_redemption_confirmation(sender, member, redemption, **kwargs):
    dispatch(
        Notification(
            recipient_address=member.email,
            template_kind=NotificationKind.REDEMPTION_CONFIRMATION,
            member_code=member.code,
            payload={
                "name": member.name,
                "redemption_code": redemption.code,
                "reward_name": redemption.reward_name,
                "points_used": redemption.points_used,
                "expires_at": (
                    redemption.expires_at.date().isoformat() if redemption.expires_at else None
                ),
                "instructions": redemption.reward.redemption_instructions,
                "available_points": member.available_points,
            },
        )
    )
