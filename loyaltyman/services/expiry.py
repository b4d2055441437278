"""
Expiry sweep - debits earned points whose expiry date has passed.

Safe to re-run: an earning row gets at most one `expired` entry. The
marker on the earning (expiry_processed_at) skips it on later sweeps and
the one-to-one source_transaction link makes a second entry impossible
at the database level.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError
from django.utils import timezone

from loyaltyman.locks import member_scope
from loyaltyman.models import (
    EarnedReward,
    EarnedRewardStatus,
    LedgerTransaction,
    TransactionType,
)
from loyaltyman.services.events import send_on_commit
from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.redemption import RedemptionService
from loyaltyman.signals import points_expired

logger = logging.getLogger(__name__)


@dataclass
class ExpirySummary:
    """Counters of one sweep."""

    transactions_expired: int = 0
    points_expired: int = 0
    redemptions_expired: int = 0
    rewards_expired: int = 0


class ExpiryService:
    """
    Service for scheduled expiry sweeps.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def due_earnings(cls, at: datetime, member_code: str | None = None):
        """Earned rows past their expiry date and not processed yet."""
        qs = LedgerTransaction.objects.filter(
            transaction_type=TransactionType.EARNED,
            expiry_date__lte=at,
            expiry_processed_at__isnull=True,
        ).select_related("member")
        if member_code:
            qs = qs.filter(member__code=member_code)
        return qs.order_by("expiry_date", "id")

    @classmethod
    def expire_points(
        cls,
        at: datetime | None = None,
        member_code: str | None = None,
    ) -> ExpirySummary:
        """
        Post one `expired` debit for every due earning.

        Each earning is handled in its own member scope, so one failure
        does not undo the rest of the sweep. The debit is capped at the
        member's available balance.
        """
        at = at or timezone.now()
        summary = ExpirySummary()

        due = list(cls.due_earnings(at, member_code).values_list("pk", "member__code"))
        for earning_id, code in due:
            tx = cls.expire_earning(earning_id, code, at)
            if tx is not None:
                summary.transactions_expired += 1
                summary.points_expired += tx.points

        if summary.transactions_expired:
            logger.info(
                "Expired %d earnings (%d points)",
                summary.transactions_expired,
                summary.points_expired,
            )
        return summary

    @classmethod
    def expire_earning(
        cls,
        earning_id: int,
        member_code: str,
        at: datetime | None = None,
    ) -> LedgerTransaction | None:
        """
        Expire one earning row.

        Returns the `expired` transaction, or None if the earning was
        already processed (by a concurrent or earlier sweep).
        """
        at = at or timezone.now()
        try:
            with member_scope(member_code):
                member = LedgerService._lock_member(member_code)
                earning = (
                    LedgerTransaction.objects.select_for_update()
                    .filter(pk=earning_id, expiry_processed_at__isnull=True)
                    .first()
                )
                if earning is None:
                    return None

                tx, _bonus = LedgerService._apply_locked(
                    member,
                    TransactionType.EXPIRED,
                    earning.points,
                    award_tier_bonus=False,
                    require_active=False,
                    description=f"Points expired from {earning.transaction_date:%Y-%m-%d}",
                    source=earning.source,
                    booking_ref=earning.booking_ref,
                    source_transaction=earning,
                    at=at,
                    created_by="expiry",
                )
                LedgerTransaction.objects.filter(pk=earning.pk).update(expiry_processed_at=at)
                send_on_commit(points_expired, member, transaction=tx)
        except IntegrityError:
            logger.info("Earning %s already expired", earning_id)
            return None

        logger.info(
            "Member %s: expired %s points of earning %s",
            member_code,
            tx.points,
            earning_id,
        )
        return tx

    @classmethod
    def expire_earned_rewards(cls, at: datetime | None = None) -> int:
        """Mark available awards past their expires_at as expired."""
        at = at or timezone.now()
        count = EarnedReward.objects.filter(
            status=EarnedRewardStatus.AVAILABLE,
            expires_at__lt=at,
        ).update(status=EarnedRewardStatus.EXPIRED)
        if count:
            logger.info("Expired %d earned rewards", count)
        return count

    @classmethod
    def run(
        cls,
        at: datetime | None = None,
        member_code: str | None = None,
        include_rewards: bool = True,
    ) -> ExpirySummary:
        """
        Full sweep: points, then redemptions and earned rewards.

        Raises:
            LoyaltyError(INFRASTRUCTURE_ERROR): Store unavailable
        """
        at = at or timezone.now()
        summary = cls.expire_points(at, member_code=member_code)
        if include_rewards:
            summary.redemptions_expired = RedemptionService.expire_redemptions(at)
            summary.rewards_expired = cls.expire_earned_rewards(at)
        return summary
