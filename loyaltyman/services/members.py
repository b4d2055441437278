"""Member service - enrollment, lookup and passive settings."""

import logging

from django.contrib.auth import get_user_model

from loyaltyman.exceptions import ErrorCode, LoyaltyError
from loyaltyman.models import LedgerTransaction, Member, MemberStatus
from loyaltyman.services.events import send_on_commit
from loyaltyman.signals import member_enrolled

logger = logging.getLogger(__name__)


class MemberService:
    """
    Service for member accounts.

    Uses @classmethod for extensibility (consistent with other services).
    Never touches balances; every balance change goes through LedgerService.
    """

    @classmethod
    def enroll(cls, user_id) -> Member:
        """
        Enroll a user in the loyalty program.

        Idempotent: an enrolled user gets their existing member back.
        Concurrent first-time calls for the same user are safe: the unique
        user link makes the losing insert fail and re-read the winner's row.

        Args:
            user_id: Primary key of the user

        Returns:
            Member (created or existing)

        Raises:
            LoyaltyError(USER_NOT_FOUND): If the user does not exist
        """
        User = get_user_model()
        try:
            user = User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValueError):
            raise LoyaltyError("USER_NOT_FOUND", user_id=str(user_id))

        member, created = Member.objects.get_or_create(user=user)
        if created:
            logger.info("Enrolled user %s as member %s", user_id, member.code)
            send_on_commit(member_enrolled, member)
        return member

    @classmethod
    def get(cls, code: str) -> Member | None:
        """Get member by member id."""
        try:
            return Member.objects.select_related("user").get(code=code)
        except Member.DoesNotExist:
            return None

    @classmethod
    def get_by_user(cls, user_id) -> Member | None:
        """Get member by user primary key."""
        try:
            return Member.objects.select_related("user").get(user_id=user_id)
        except (Member.DoesNotExist, ValueError):
            return None

    @classmethod
    def get_balance(cls, code: str) -> int:
        """Get available points. Returns 0 if not enrolled."""
        member = cls.get(code)
        return member.available_points if member else 0

    @classmethod
    def get_transactions(cls, code: str, limit: int = 50) -> list[LedgerTransaction]:
        """Get ledger history for a member (most recent first)."""
        return list(LedgerTransaction.objects.filter(member__code=code)[:limit])

    @classmethod
    def update_preferences(
        cls,
        code: str,
        preferences: dict | None = None,
        communication_preferences: dict | None = None,
        personal_info: dict | None = None,
    ) -> Member | None:
        """
        Merge new values into a member's passive settings.

        Returns:
            Updated Member or None if not found
        """
        member = cls.get(code)
        if not member:
            return None

        update_fields = ["updated_at"]
        if preferences:
            member.preferences = {**member.preferences, **preferences}
            update_fields.append("preferences")
        if communication_preferences:
            member.communication_preferences = {
                **member.communication_preferences,
                **communication_preferences,
            }
            update_fields.append("communication_preferences")
        if personal_info:
            member.personal_info = {**member.personal_info, **personal_info}
            update_fields.append("personal_info")

        member.save(update_fields=update_fields)
        return member

    @classmethod
    def set_status(cls, code: str, status: str) -> Member | None:
        """
        Change member status (active, inactive, suspended).

        Non-active members cannot earn or redeem.

        Raises:
            LoyaltyError(VALIDATION_ERROR): Unknown status
        """
        if status not in MemberStatus.values:
            raise LoyaltyError(ErrorCode.VALIDATION_ERROR, message=f"Unknown status: {status}")

        member = cls.get(code)
        if not member:
            return None

        member.status = status
        member.save(update_fields=["status", "updated_at"])
        logger.info("Member %s status set to %s", code, status)
        return member
