"""
Ledger service - applies point events to member accounts.

Every mutation runs inside member_scope(): one member at a time, one
database transaction, member row locked with select_for_update(). Inside
the scope _apply_locked() posts the event, recomputes the tier, and posts
the tier-upgrade bonus when the event crossed a threshold.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal

from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError
from django.utils import timezone
from django.utils.module_loading import import_string

from loyaltyman.conf import loyaltyman_settings
from loyaltyman.exceptions import ErrorCode, LoyaltyError
from loyaltyman.locks import member_scope
from loyaltyman.models import (
    Direction,
    LedgerTransaction,
    Member,
    Reward,
    TransactionSource,
    TransactionType,
)
from loyaltyman.protocols.bookings import BookingBackend, StaySummary
from loyaltyman.services.events import send_on_commit
from loyaltyman.services.members import MemberService
from loyaltyman.signals import points_posted, tier_changed
from loyaltyman.tiers import multiplier_of, rank_of, tier_of

logger = logging.getLogger(__name__)


_CREDIT_TYPES = {TransactionType.EARNED, TransactionType.BONUS}


@dataclass
class TransactionResult:
    """Outcome of a ledger operation."""

    success: bool
    transaction: LedgerTransaction | None = None
    bonus_transaction: LedgerTransaction | None = None
    member: Member | None = None
    error_code: str | None = None
    message: str | None = None


@dataclass
class StayPostingResult(TransactionResult):
    """Outcome of posting a stay. created=False for an already posted booking."""

    created: bool = False


def _get_booking_backend() -> BookingBackend | None:
    """Get configured BookingBackend."""
    backend_path = loyaltyman_settings.BOOKING_BACKEND
    if backend_path:
        backend_class = import_string(backend_path)
        return backend_class()
    return None


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


class LedgerService:
    """
    Service for point postings.

    Uses @classmethod for extensibility (consistent with other services).
    Rejections come back as TransactionResult(success=False, error_code=...).
    Store failures raise LoyaltyError(INFRASTRUCTURE_ERROR).
    """

    # ======================================================================
    # Public API
    # ======================================================================

    @classmethod
    def apply(
        cls,
        member_code: str,
        transaction_type: str,
        points: int,
        *,
        description: str = "",
        source: str = TransactionSource.ADJUSTMENT,
        direction: str | None = None,
        affects_tier: bool = False,
        apply_multiplier: bool = True,
        booking_ref: str = "",
        reward: Reward | None = None,
        reference: str = "",
        at: datetime | None = None,
        created_by: str = "",
    ) -> TransactionResult:
        """
        Apply one ledger event to a member.

        Args:
            member_code: Member id
            transaction_type: earned, redeemed, expired, adjusted or bonus
            points: Positive magnitude; earned/bonus are multiplied by the
                member's tier multiplier before posting
            direction: Required for adjusted (credit or debit)
            affects_tier: Adjusted only: also apply to tier points
            apply_multiplier: Disable the tier multiplier for earned/bonus

        Returns:
            TransactionResult
        """
        error = cls._validate(transaction_type, points, direction)
        if error:
            return TransactionResult(
                success=False,
                error_code=ErrorCode.VALIDATION_ERROR,
                message=error,
            )

        try:
            with member_scope(member_code):
                member = cls._lock_member(member_code)
                tx, bonus = cls._apply_locked(
                    member,
                    transaction_type,
                    points,
                    description=description or cls._default_description(transaction_type),
                    source=source,
                    direction=direction,
                    affects_tier=affects_tier,
                    apply_multiplier=apply_multiplier,
                    booking_ref=booking_ref,
                    reward=reward,
                    reference=reference,
                    at=at or timezone.now(),
                    created_by=created_by,
                )
        except LoyaltyError as e:
            if e.code == ErrorCode.INFRASTRUCTURE_ERROR:
                raise
            return TransactionResult(success=False, error_code=e.code, message=e.message)

        return TransactionResult(
            success=True,
            transaction=tx,
            bonus_transaction=bonus,
            member=member,
        )

    @classmethod
    def earn(
        cls,
        member_code: str,
        points: int,
        description: str,
        source: str = TransactionSource.BOOKING,
        **kwargs,
    ) -> TransactionResult:
        """Credit earned points (tier multiplier applies, counts toward lifetime)."""
        return cls.apply(
            member_code,
            TransactionType.EARNED,
            points,
            description=description,
            source=source,
            **kwargs,
        )

    @classmethod
    def bonus(
        cls,
        member_code: str,
        points: int,
        description: str,
        source: str = TransactionSource.BONUS,
        **kwargs,
    ) -> TransactionResult:
        """Credit bonus points (tier multiplier applies, not counted in lifetime)."""
        return cls.apply(
            member_code,
            TransactionType.BONUS,
            points,
            description=description,
            source=source,
            **kwargs,
        )

    @classmethod
    def adjust(
        cls,
        member_code: str,
        delta: int,
        description: str,
        affects_tier: bool = False,
        created_by: str = "",
    ) -> TransactionResult:
        """
        Manual signed correction of the available balance.

        Tier points change only when affects_tier is set.
        """
        direction = Direction.CREDIT if delta > 0 else Direction.DEBIT
        return cls.apply(
            member_code,
            TransactionType.ADJUSTED,
            abs(delta),
            description=description,
            source=TransactionSource.ADJUSTMENT,
            direction=direction,
            affects_tier=affects_tier,
            created_by=created_by,
        )

    @classmethod
    def post_stay(cls, booking_ref: str) -> StayPostingResult:
        """
        Post points for a completed stay, looked up through BOOKING_BACKEND.

        Safe to call more than once for the same booking.

        Raises:
            ImproperlyConfigured: If no BOOKING_BACKEND is configured
        """
        backend = _get_booking_backend()
        if backend is None:
            raise ImproperlyConfigured("LOYALTYMAN['BOOKING_BACKEND'] is not configured")

        stay = backend.get_completed_stay(booking_ref)
        if stay is None:
            return StayPostingResult(
                success=False,
                error_code=ErrorCode.NOT_FOUND,
                message=f"Completed stay '{booking_ref}' not found",
            )
        return cls.record_stay(stay)

    @classmethod
    def record_stay(cls, stay: StaySummary, created_by: str = "") -> StayPostingResult:
        """
        Post points for a completed stay and update the member's stay stats.

        base points = floor(amount × POINTS_PER_CURRENCY_UNIT)
                      + nights × POINTS_PER_NIGHT

        The member is enrolled on first stay. A booking already posted
        returns its original transaction with created=False.
        """
        if not stay.booking_ref:
            return cls._stay_rejected(ErrorCode.VALIDATION_ERROR, "Booking reference is required")
        if stay.nights < 0 or Decimal(stay.amount) < 0:
            return cls._stay_rejected(ErrorCode.VALIDATION_ERROR, "Amount and nights must be >= 0")

        base_points = (
            _floor(Decimal(stay.amount) * loyaltyman_settings.POINTS_PER_CURRENCY_UNIT)
            + stay.nights * loyaltyman_settings.POINTS_PER_NIGHT
        )
        if base_points <= 0:
            return cls._stay_rejected(ErrorCode.VALIDATION_ERROR, "Stay earns no points")

        try:
            member = MemberService.enroll(stay.user_id)
        except LoyaltyError as e:
            return cls._stay_rejected(ErrorCode.NOT_FOUND, e.message)

        existing = cls._find_stay_earning(stay.booking_ref)
        if existing:
            return cls._stay_duplicate(member, existing)

        at = timezone.now()
        try:
            with member_scope(member.code):
                member = cls._lock_member(member.code)
                existing = cls._find_stay_earning(stay.booking_ref)
                if existing:
                    return cls._stay_duplicate(member, existing)

                tx, bonus = cls._apply_locked(
                    member,
                    TransactionType.EARNED,
                    base_points,
                    description=f"Points earned from booking {stay.booking_ref}",
                    source=TransactionSource.BOOKING,
                    booking_ref=stay.booking_ref,
                    at=at,
                    created_by=created_by,
                )
                cls._update_stay_aggregates(member, stay, at)
        except IntegrityError:
            # Posted concurrently by another process
            existing = cls._find_stay_earning(stay.booking_ref)
            if existing is None:
                raise
            return cls._stay_duplicate(member, existing)
        except LoyaltyError as e:
            if e.code == ErrorCode.INFRASTRUCTURE_ERROR:
                raise
            return cls._stay_rejected(e.code, e.message)

        logger.info(
            "Posted stay %s for member %s: %s points",
            stay.booking_ref,
            member.code,
            tx.points,
        )
        return StayPostingResult(
            success=True,
            transaction=tx,
            bonus_transaction=bonus,
            member=member,
            created=True,
        )

    # ======================================================================
    # Internals (caller holds member_scope)
    # ======================================================================

    @classmethod
    def _lock_member(cls, member_code: str) -> Member:
        """
        Re-read the member row with a row-level lock.

        MUST be called inside member_scope().
        """
        try:
            return (
                Member.objects
                .select_for_update()
                .select_related("user")
                .get(code=member_code)
            )
        except Member.DoesNotExist:
            raise LoyaltyError(
                ErrorCode.NOT_FOUND,
                message="Member not found",
                member_code=member_code,
            )

    @classmethod
    def _apply_locked(
        cls,
        member: Member,
        transaction_type: str,
        points: int,
        *,
        award_tier_bonus: bool = True,
        require_active: bool = True,
        **posting,
    ) -> tuple[LedgerTransaction, LedgerTransaction | None]:
        """
        Post one event and its tier side effects.

        The tier-upgrade bonus is posted at most once per call and never
        triggers another bonus, even if it crosses a further threshold.

        Raises:
            LoyaltyError: MEMBER_INACTIVE, INSUFFICIENT_POINTS
        """
        if require_active and not member.is_active:
            raise LoyaltyError(
                ErrorCode.MEMBER_INACTIVE,
                member_code=member.code,
                status=member.status,
            )

        old_tier = member.tier
        tx = cls._post(member, transaction_type, points, **posting)
        send_on_commit(points_posted, member, transaction=tx)

        bonus = None
        reached_tier = member.tier
        if award_tier_bonus and rank_of(reached_tier) > rank_of(old_tier):
            bonus = cls._post(
                member,
                TransactionType.BONUS,
                rank_of(reached_tier) * loyaltyman_settings.TIER_UPGRADE_BONUS_PER_RANK,
                description=f"Tier upgrade bonus: {old_tier} to {reached_tier}",
                source=TransactionSource.PROMOTION,
                apply_multiplier=False,
                at=posting.get("at") or timezone.now(),
            )
            send_on_commit(points_posted, member, transaction=bonus)

        if member.tier != old_tier:
            upgraded = rank_of(member.tier) > rank_of(old_tier)
            logger.info(
                "Member %s tier changed: %s -> %s",
                member.code,
                old_tier,
                member.tier,
            )
            send_on_commit(
                tier_changed,
                member,
                old_tier=old_tier,
                new_tier=member.tier,
                upgraded=upgraded,
                restored=upgraded and not award_tier_bonus,
            )

        return tx, bonus

    @classmethod
    def _post(
        cls,
        member: Member,
        transaction_type: str,
        points: int,
        *,
        description: str = "",
        source: str = TransactionSource.ADJUSTMENT,
        direction: str | None = None,
        affects_tier: bool = False,
        apply_multiplier: bool = True,
        booking_ref: str = "",
        reward: Reward | None = None,
        reference: str = "",
        source_transaction: LedgerTransaction | None = None,
        at: datetime | None = None,
        created_by: str = "",
    ) -> LedgerTransaction:
        """Update balances and tier, then append the transaction row."""
        at = at or timezone.now()
        multiplier = None
        base_points = None

        if transaction_type in _CREDIT_TYPES and apply_multiplier:
            # Locked in at the tier held before this posting
            multiplier = multiplier_of(member.tier)
            base_points = points
            points = _floor(Decimal(points) * multiplier)

        if transaction_type in _CREDIT_TYPES:
            direction = Direction.CREDIT
            member.available_points += points
            member.total_points += points
            if transaction_type == TransactionType.EARNED:
                member.lifetime_points += points

        elif transaction_type == TransactionType.REDEEMED:
            direction = Direction.DEBIT
            cls._ensure_available(member, points)
            member.available_points -= points
            member.total_points = max(0, member.total_points - points)

        elif transaction_type == TransactionType.EXPIRED:
            direction = Direction.DEBIT
            points = min(points, member.available_points)
            member.available_points -= points

        elif transaction_type == TransactionType.ADJUSTED:
            if direction == Direction.CREDIT:
                member.available_points += points
                if affects_tier:
                    member.total_points += points
            else:
                cls._ensure_available(member, points)
                member.available_points -= points
                if affects_tier:
                    member.total_points = max(0, member.total_points - points)

        member.tier = tier_of(member.total_points)
        member.save(update_fields=[
            "available_points",
            "total_points",
            "lifetime_points",
            "tier",
            "updated_at",
        ])

        expiry_date = None
        if transaction_type == TransactionType.EARNED:
            expiry_date = at + timedelta(days=loyaltyman_settings.EARN_EXPIRY_DAYS)

        return LedgerTransaction.objects.create(
            member=member,
            transaction_type=transaction_type,
            points=points,
            direction=direction,
            affects_tier=affects_tier and transaction_type == TransactionType.ADJUSTED,
            balance_after=member.available_points,
            description=description[:200],
            source=source,
            booking_ref=booking_ref,
            reward=reward,
            reference=reference,
            multiplier=multiplier,
            base_points=base_points,
            transaction_date=at,
            expiry_date=expiry_date,
            source_transaction=source_transaction,
            created_by=created_by,
        )

    @classmethod
    def _ensure_available(cls, member: Member, points: int) -> None:
        if member.available_points < points:
            raise LoyaltyError(
                ErrorCode.INSUFFICIENT_POINTS,
                available=member.available_points,
                requested=points,
            )

    @classmethod
    def _validate(cls, transaction_type: str, points, direction: str | None) -> str | None:
        if transaction_type not in TransactionType.values:
            return f"Unknown transaction type: {transaction_type}"
        if isinstance(points, bool) or not isinstance(points, int):
            return "Points must be an integer"
        if points <= 0:
            return "Points must be positive"
        if transaction_type == TransactionType.ADJUSTED and direction not in Direction.values:
            return "Adjustments need a direction (credit or debit)"
        return None

    @classmethod
    def _default_description(cls, transaction_type: str) -> str:
        return str(TransactionType(transaction_type).label)

    # ======================================================================
    # Stay helpers
    # ======================================================================

    @classmethod
    def _find_stay_earning(cls, booking_ref: str) -> LedgerTransaction | None:
        return LedgerTransaction.objects.filter(
            transaction_type=TransactionType.EARNED,
            booking_ref=booking_ref,
        ).first()

    @classmethod
    def _update_stay_aggregates(cls, member: Member, stay: StaySummary, at: datetime) -> None:
        member.total_stays += 1
        member.total_nights += stay.nights
        member.total_spent += Decimal(stay.amount)
        member.average_spending = (member.total_spent / member.total_stays).quantize(
            Decimal("0.01")
        )
        member.last_stay_at = stay.check_out or at
        if stay.property_ref and stay.property_ref not in member.favorite_properties:
            member.favorite_properties = [*member.favorite_properties, stay.property_ref]
        member.save(update_fields=[
            "total_stays",
            "total_nights",
            "total_spent",
            "average_spending",
            "last_stay_at",
            "favorite_properties",
            "updated_at",
        ])

    @classmethod
    def _stay_duplicate(cls, member: Member, existing: LedgerTransaction) -> StayPostingResult:
        if existing.member_id != member.pk:
            logger.warning(
                "Stay %s already posted for another member (%s), refusing %s",
                existing.booking_ref,
                existing.member_id,
                member.code,
            )
            return cls._stay_rejected(
                ErrorCode.VALIDATION_ERROR,
                f"Booking {existing.booking_ref} was already posted to another member",
            )
        logger.info(
            "Stay %s already posted for member %s",
            existing.booking_ref,
            member.code,
        )
        return StayPostingResult(
            success=True,
            transaction=existing,
            member=member,
            created=False,
        )

    @classmethod
    def _stay_rejected(cls, error_code: str, message: str) -> StayPostingResult:
        return StayPostingResult(success=False, error_code=error_code, message=message)
