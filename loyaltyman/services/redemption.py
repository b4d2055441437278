"""
Redemption service - spending points on catalog rewards.

Eligibility is checked under the member scope before anything is written,
so a rejected redemption leaves the member untouched. On success the
`redeemed` ledger entry and the Redemption row are committed together.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import Q
from django.utils import timezone

from loyaltyman.exceptions import ErrorCode, LoyaltyError
from loyaltyman.locks import member_scope
from loyaltyman.models import (
    Direction,
    EarnedReward,
    EarnedRewardStatus,
    LedgerTransaction,
    Member,
    Redemption,
    RedemptionStatus,
    Reward,
    TransactionSource,
    TransactionType,
)
from loyaltyman.models.redemption import new_redemption_code
from loyaltyman.services.events import send_on_commit
from loyaltyman.services.ledger import LedgerService
from loyaltyman.signals import reward_redeemed
from loyaltyman.tiers import rank_of

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    """Outcome of a redemption request or lifecycle change."""

    success: bool
    redemption_id: str | None = None
    redemption: Redemption | None = None
    transaction: LedgerTransaction | None = None
    error_code: str | None = None
    message: str | None = None


class RedemptionService:
    """
    Service for reward redemption.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def redeem(
        cls,
        member_code: str,
        reward_code: str,
        at: datetime | None = None,
        property_ref: str | None = None,
        created_by: str = "",
    ) -> RedemptionResult:
        """
        Redeem a reward for a member.

        Checks, in order: member and reward exist, reward available
        (active, validity window, blackout dates, property), enough
        available points, minimum tier, yearly usage cap, stay
        requirements (minimum spend/nights).

        Args:
            member_code: Member id
            reward_code: Reward code
            at: Redemption time (defaults to now)
            property_ref: Property where the reward will be used

        Returns:
            RedemptionResult with redemption_id on success or error_code
        """
        at = at or timezone.now()

        reward = Reward.objects.filter(code=reward_code).first()
        if reward is None:
            return RedemptionResult(
                success=False,
                error_code=ErrorCode.NOT_FOUND,
                message=f"Reward '{reward_code}' not found",
            )

        try:
            with member_scope(member_code):
                member = LedgerService._lock_member(member_code)
                error_code = cls.check_eligibility(member, reward, at, property_ref)
                if error_code:
                    raise LoyaltyError(
                        error_code,
                        member_code=member_code,
                        reward_code=reward_code,
                    )

                code = new_redemption_code()
                tx, _bonus = LedgerService._apply_locked(
                    member,
                    TransactionType.REDEEMED,
                    reward.points_required,
                    description=f"Redeemed: {reward.name}",
                    source=TransactionSource.BOOKING,
                    reward=reward,
                    reference=code,
                    at=at,
                    created_by=created_by,
                )
                redemption = Redemption.objects.create(
                    code=code,
                    member=member,
                    reward=reward,
                    reward_name=reward.name,
                    points_used=reward.points_required,
                    redeemed_at=at,
                    expires_at=(
                        at + timedelta(days=reward.expiry_days) if reward.expiry_days else None
                    ),
                    transaction=tx,
                )
                send_on_commit(reward_redeemed, member, redemption=redemption)
        except LoyaltyError as e:
            if e.code == ErrorCode.INFRASTRUCTURE_ERROR:
                raise
            logger.info(
                "Redemption of %s by %s rejected: %s",
                reward_code,
                member_code,
                e.code,
            )
            return RedemptionResult(success=False, error_code=e.code, message=e.message)

        logger.info(
            "Member %s redeemed %s (%s points) as %s",
            member_code,
            reward_code,
            reward.points_required,
            redemption.code,
        )
        return RedemptionResult(
            success=True,
            redemption_id=redemption.code,
            redemption=redemption,
            transaction=tx,
        )

    @classmethod
    def check_eligibility(
        cls,
        member: Member,
        reward: Reward,
        at: datetime,
        property_ref: str | None = None,
    ) -> str | None:
        """Return the first reason `member` cannot redeem `reward` at `at`, or None."""
        if not member.is_active:
            return ErrorCode.MEMBER_INACTIVE

        if (
            not reward.is_active
            or not reward.is_within_validity(at)
            or reward.is_blacked_out(timezone.localdate(at))
            or not reward.is_available_at(property_ref)
        ):
            return ErrorCode.REWARD_UNAVAILABLE

        if member.available_points < reward.points_required:
            return ErrorCode.INSUFFICIENT_POINTS

        if reward.minimum_tier and rank_of(member.tier) < rank_of(reward.minimum_tier):
            return ErrorCode.TIER_NOT_MET

        if reward.maximum_uses_per_year is not None:
            if cls.uses_in_year(member, reward, at) >= reward.maximum_uses_per_year:
                return ErrorCode.USAGE_LIMIT_EXCEEDED

        if reward.minimum_spend is not None and member.total_spent < reward.minimum_spend:
            return ErrorCode.REQUIREMENTS_NOT_MET

        if reward.minimum_nights is not None and member.total_nights < reward.minimum_nights:
            return ErrorCode.REQUIREMENTS_NOT_MET

        return None

    @classmethod
    def uses_in_year(cls, member: Member, reward: Reward, at: datetime) -> int:
        """Member's redemptions of `reward` in the calendar year of `at` (cancelled excluded)."""
        return (
            Redemption.objects.filter(
                member=member,
                reward=reward,
                redeemed_at__year=timezone.localtime(at).year,
            )
            .exclude(status=RedemptionStatus.CANCELLED)
            .count()
        )

    @classmethod
    def list_available_rewards(cls, member_code: str, at: datetime | None = None) -> list[Reward]:
        """
        Rewards the member could redeem right now.

        Active, inside the validity window, not blacked out today,
        affordable, and tier restriction satisfied.
        """
        member = Member.objects.filter(code=member_code).first()
        if member is None:
            return []

        at = at or timezone.now()
        today = timezone.localdate(at)
        member_rank = rank_of(member.tier)

        rewards = Reward.objects.filter(
            is_active=True,
            valid_from__lte=at,
            points_required__lte=member.available_points,
        ).filter(Q(valid_to__isnull=True) | Q(valid_to__gte=at))

        return [
            reward
            for reward in rewards
            if not reward.is_blacked_out(today)
            and (not reward.minimum_tier or rank_of(reward.minimum_tier) <= member_rank)
        ]

    # ======================================================================
    # Lifecycle
    # ======================================================================

    @classmethod
    def get(cls, redemption_code: str) -> Redemption | None:
        """Get redemption by code."""
        try:
            return Redemption.objects.select_related("member", "reward").get(code=redemption_code)
        except Redemption.DoesNotExist:
            return None

    @classmethod
    def mark_used(cls, redemption_code: str, at: datetime | None = None) -> RedemptionResult:
        """Mark an active, unexpired redemption as used."""
        at = at or timezone.now()
        redemption = cls.get(redemption_code)
        if redemption is None:
            return RedemptionResult(success=False, error_code=ErrorCode.NOT_FOUND)

        with member_scope(redemption.member.code):
            redemption = Redemption.objects.select_for_update().get(pk=redemption.pk)
            if redemption.status != RedemptionStatus.ACTIVE or (
                redemption.expires_at and redemption.expires_at < at
            ):
                return RedemptionResult(
                    success=False,
                    redemption_id=redemption.code,
                    redemption=redemption,
                    error_code=ErrorCode.INVALID_STATE,
                    message=f"Redemption is {redemption.status}",
                )
            redemption.status = RedemptionStatus.USED
            redemption.used_at = at
            redemption.save(update_fields=["status", "used_at"])

        return RedemptionResult(
            success=True,
            redemption_id=redemption.code,
            redemption=redemption,
        )

    @classmethod
    def cancel(
        cls,
        redemption_code: str,
        at: datetime | None = None,
        created_by: str = "",
    ) -> RedemptionResult:
        """
        Cancel an active redemption and refund its points.

        The refund is an `adjusted` credit that also restores tier points.
        It never earns a tier-upgrade bonus.
        """
        at = at or timezone.now()
        redemption = cls.get(redemption_code)
        if redemption is None:
            return RedemptionResult(success=False, error_code=ErrorCode.NOT_FOUND)

        member_code = redemption.member.code
        with member_scope(member_code):
            member = LedgerService._lock_member(member_code)
            redemption = Redemption.objects.select_for_update().get(pk=redemption.pk)
            if redemption.status != RedemptionStatus.ACTIVE:
                return RedemptionResult(
                    success=False,
                    redemption_id=redemption.code,
                    redemption=redemption,
                    error_code=ErrorCode.INVALID_STATE,
                    message=f"Redemption is {redemption.status}",
                )

            refund, _bonus = LedgerService._apply_locked(
                member,
                TransactionType.ADJUSTED,
                redemption.points_used,
                award_tier_bonus=False,
                require_active=False,
                description=f"Refund for cancelled redemption {redemption.code}",
                source=TransactionSource.ADJUSTMENT,
                direction=Direction.CREDIT,
                affects_tier=True,
                reward=redemption.reward,
                reference=redemption.code,
                at=at,
                created_by=created_by,
            )
            redemption.status = RedemptionStatus.CANCELLED
            redemption.cancelled_at = at
            redemption.refund_transaction = refund
            redemption.save(update_fields=["status", "cancelled_at", "refund_transaction"])

        logger.info("Cancelled redemption %s for member %s", redemption.code, member_code)
        return RedemptionResult(
            success=True,
            redemption_id=redemption.code,
            redemption=redemption,
            transaction=refund,
        )

    @classmethod
    def expire_redemptions(cls, at: datetime | None = None) -> int:
        """
        Mark active redemptions past their expires_at as expired.

        Points are not returned. Returns the number of redemptions expired.
        """
        at = at or timezone.now()
        count = Redemption.objects.filter(
            status=RedemptionStatus.ACTIVE,
            expires_at__lt=at,
        ).update(status=RedemptionStatus.EXPIRED)
        if count:
            logger.info("Expired %d redemptions", count)
        return count

    # ======================================================================
    # Awards
    # ======================================================================

    @classmethod
    def award_reward(
        cls,
        member_code: str,
        reward_code: str,
        reason: str = "",
        at: datetime | None = None,
    ) -> EarnedReward:
        """
        Grant a reward without spending points (birthday, anniversary, goodwill).

        Raises:
            LoyaltyError(NOT_FOUND): Member or reward not found
        """
        at = at or timezone.now()
        member = Member.objects.filter(code=member_code).first()
        reward = Reward.objects.filter(code=reward_code).first()
        if member is None or reward is None:
            raise LoyaltyError(
                ErrorCode.NOT_FOUND,
                member_code=member_code,
                reward_code=reward_code,
            )

        return EarnedReward.objects.create(
            member=member,
            reward=reward,
            reward_name=reward.name,
            earned_at=at,
            expires_at=at + timedelta(days=reward.expiry_days) if reward.expiry_days else None,
            reason=reason,
        )

    @classmethod
    def use_earned_reward(cls, earned_reward_id: int, at: datetime | None = None) -> EarnedReward:
        """
        Mark an awarded reward as used.

        Raises:
            LoyaltyError: NOT_FOUND, or INVALID_STATE if not available
        """
        at = at or timezone.now()
        updated = EarnedReward.objects.filter(
            pk=earned_reward_id,
            status=EarnedRewardStatus.AVAILABLE,
        ).filter(Q(expires_at__isnull=True) | Q(expires_at__gte=at)).update(
            status=EarnedRewardStatus.USED,
            used_at=at,
        )
        try:
            earned = EarnedReward.objects.get(pk=earned_reward_id)
        except EarnedReward.DoesNotExist:
            raise LoyaltyError(ErrorCode.NOT_FOUND, earned_reward_id=earned_reward_id)
        if not updated:
            raise LoyaltyError(
                ErrorCode.INVALID_STATE,
                message=f"Earned reward is {earned.status}",
                earned_reward_id=earned_reward_id,
            )
        return earned
