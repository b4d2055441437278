"""Redemption and EarnedReward models - a member's reward instances."""

import uuid as uuid_lib

from django.db import models
from django.utils.translation import gettext_lazy as _


def new_redemption_code() -> str:
    return f"RD-{uuid_lib.uuid4().hex[:10].upper()}"


class RedemptionStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    USED = "used", _("Used")
    EXPIRED = "expired", _("Expired")
    CANCELLED = "cancelled", _("Cancelled")


class Redemption(models.Model):
    """
    A reward bought with points.

    Always created in the same database transaction as the `redeemed`
    ledger entry that paid for it. Lifecycle: active -> used | expired |
    cancelled.
    """

    code = models.CharField(
        _("redemption id"),
        max_length=20,
        unique=True,
        default=new_redemption_code,
    )
    member = models.ForeignKey(
        "loyaltyman.Member",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("member"),
    )
    reward = models.ForeignKey(
        "loyaltyman.Reward",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("reward"),
    )
    reward_name = models.CharField(_("reward name"), max_length=200)
    points_used = models.PositiveIntegerField(_("points used"))

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.ACTIVE,
        db_index=True,
    )
    redeemed_at = models.DateTimeField(_("redeemed at"), db_index=True)
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True)
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)
    cancelled_at = models.DateTimeField(_("cancelled at"), null=True, blank=True)

    transaction = models.OneToOneField(
        "loyaltyman.LedgerTransaction",
        on_delete=models.PROTECT,
        related_name="redemption",
        verbose_name=_("debit"),
    )
    refund_transaction = models.OneToOneField(
        "loyaltyman.LedgerTransaction",
        on_delete=models.PROTECT,
        related_name="refunded_redemption",
        null=True,
        blank=True,
        verbose_name=_("refund"),
    )

    class Meta:
        verbose_name = _("redemption")
        verbose_name_plural = _("redemptions")
        ordering = ["-redeemed_at"]
        indexes = [
            models.Index(fields=["member", "reward", "redeemed_at"], name="loyaltyman_redemption_usage"),
        ]

    def __str__(self):
        return f"{self.code}: {self.reward_name} ({self.status})"


class EarnedRewardStatus(models.TextChoices):
    AVAILABLE = "available", _("Available")
    USED = "used", _("Used")
    EXPIRED = "expired", _("Expired")


class EarnedReward(models.Model):
    """A reward granted to a member without spending points."""

    member = models.ForeignKey(
        "loyaltyman.Member",
        on_delete=models.PROTECT,
        related_name="earned_rewards",
        verbose_name=_("member"),
    )
    reward = models.ForeignKey(
        "loyaltyman.Reward",
        on_delete=models.PROTECT,
        related_name="awards",
        verbose_name=_("reward"),
    )
    reward_name = models.CharField(_("reward name"), max_length=200)
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=EarnedRewardStatus.choices,
        default=EarnedRewardStatus.AVAILABLE,
    )
    earned_at = models.DateTimeField(_("earned at"))
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True)
    used_at = models.DateTimeField(_("used at"), null=True, blank=True)
    reason = models.CharField(_("reason"), max_length=200, blank=True)

    class Meta:
        verbose_name = _("earned reward")
        verbose_name_plural = _("earned rewards")
        ordering = ["-earned_at"]

    def __str__(self):
        return f"{self.member.code}: {self.reward_name} ({self.status})"
