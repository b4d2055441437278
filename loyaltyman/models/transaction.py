"""LedgerTransaction model - immutable audit trail of balance events."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _

from loyaltyman.exceptions import ErrorCode, LoyaltyError


class TransactionType(models.TextChoices):
    EARNED = "earned", _("Earned")
    REDEEMED = "redeemed", _("Redeemed")
    EXPIRED = "expired", _("Expired")
    ADJUSTED = "adjusted", _("Adjusted")
    BONUS = "bonus", _("Bonus")


class TransactionSource(models.TextChoices):
    BOOKING = "booking", _("Booking")
    REVIEW = "review", _("Review")
    REFERRAL = "referral", _("Referral")
    PROMOTION = "promotion", _("Promotion")
    ADJUSTMENT = "adjustment", _("Adjustment")
    BONUS = "bonus", _("Bonus")


class Direction(models.TextChoices):
    CREDIT = "credit", _("Credit")
    DEBIT = "debit", _("Debit")


class LedgerTransaction(models.Model):
    """
    Immutable record of one balance-affecting event.

    `points` is always a non-negative magnitude; `direction` says whether
    it was added to or taken from the available balance.

    Rows are append-only. The only write allowed after creation is the
    expiry marker on an earning row, set by ExpiryService through a
    queryset update when the matching `expired` row is created.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    member = models.ForeignKey(
        "loyaltyman.Member",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("member"),
    )

    transaction_type = models.CharField(
        _("type"),
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
    )
    points = models.PositiveIntegerField(_("points"))
    direction = models.CharField(
        _("direction"),
        max_length=10,
        choices=Direction.choices,
    )
    affects_tier = models.BooleanField(
        _("affects tier"),
        default=False,
        help_text=_("Adjustments only: also applied to tier points"),
    )
    balance_after = models.IntegerField(
        _("balance after"),
        help_text=_("Available points after this transaction"),
    )

    description = models.CharField(_("description"), max_length=200)
    source = models.CharField(
        _("source"),
        max_length=20,
        choices=TransactionSource.choices,
    )

    # Origin
    booking_ref = models.CharField(
        _("booking"),
        max_length=100,
        blank=True,
        db_index=True,
    )
    reward = models.ForeignKey(
        "loyaltyman.Reward",
        on_delete=models.PROTECT,
        related_name="transactions",
        null=True,
        blank=True,
        verbose_name=_("reward"),
    )
    reference = models.CharField(
        _("reference"),
        max_length=100,
        blank=True,
        help_text=_("External reference (ex: redemption code)"),
    )

    # Tier bonus audit
    multiplier = models.DecimalField(
        _("multiplier"), max_digits=4, decimal_places=2, null=True, blank=True
    )
    base_points = models.PositiveIntegerField(_("base points"), null=True, blank=True)

    transaction_date = models.DateTimeField(_("date"), db_index=True)
    expiry_date = models.DateTimeField(_("expires at"), null=True, blank=True, db_index=True)

    # Expiry bookkeeping
    expiry_processed_at = models.DateTimeField(
        _("expiry processed at"),
        null=True,
        blank=True,
        help_text=_("Set once the points of this earning were expired"),
    )
    source_transaction = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        related_name="expiry_entry",
        null=True,
        blank=True,
        verbose_name=_("expired earning"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("ledger transaction")
        verbose_name_plural = _("ledger transactions")
        ordering = ["-transaction_date", "-id"]
        indexes = [
            models.Index(fields=["member", "-transaction_date"], name="loyaltyman_tx_member_date"),
            models.Index(
                fields=["member", "reward", "transaction_date"],
                name="loyaltyman_tx_member_reward",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["booking_ref"],
                condition=models.Q(transaction_type="earned") & ~models.Q(booking_ref=""),
                name="loyaltyman_one_earning_per_booking",
            ),
        ]

    def __str__(self):
        sign = "+" if self.direction == Direction.CREDIT else "-"
        return f"{sign}{self.points}pts — {self.description}"

    @property
    def signed_points(self) -> int:
        return self.points if self.direction == Direction.CREDIT else -self.points

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LoyaltyError(
                ErrorCode.INVALID_STATE,
                message="Ledger transactions are immutable",
                transaction=str(self.uuid),
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LoyaltyError(
            ErrorCode.INVALID_STATE,
            message="Ledger transactions cannot be deleted",
            transaction=str(self.uuid),
        )
