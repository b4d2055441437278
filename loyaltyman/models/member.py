"""Member model - one loyalty account per user.

Balances:
    available_points
        Redeemable balance. Never negative.
    total_points
        Points counted toward tier. Grows on earned/bonus, shrinks on
        redeemed. Never negative.
    lifetime_points
        All points ever earned from activity. Never decreases.

The tier is always tier_of(total_points). Balances and tier are only
written by LedgerService inside a member scope (see loyaltyman.locks).
"""

import uuid as uuid_lib

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from loyaltyman.tiers import Tier, TierProgress, progress_of


def default_communication_preferences() -> dict:
    return {
        "email": True,
        "sms": True,
        "whatsapp": False,
        "phone": False,
        "promotional_emails": True,
        "birthday_offers": True,
        "anniversary_offers": True,
    }


def default_personal_info() -> dict:
    return {"language": "en"}


def new_member_code() -> str:
    return f"LM-{uuid_lib.uuid4().hex[:10].upper()}"


class MemberStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    INACTIVE = "inactive", _("Inactive")
    SUSPENDED = "suspended", _("Suspended")


class Member(models.Model):
    """
    Loyalty program member.

    Bound one-to-one to a user. The unique user link is what makes
    concurrent enrollment of the same user safe.
    """

    code = models.CharField(
        _("member id"),
        max_length=20,
        unique=True,
        default=new_member_code,
        help_text=_("Externally visible member id (ex: LM-1A2B3C4D5E)"),
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="loyalty_member",
        verbose_name=_("user"),
    )
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=MemberStatus.choices,
        default=MemberStatus.ACTIVE,
        db_index=True,
    )

    # Balances
    available_points = models.IntegerField(
        _("available points"),
        default=0,
        help_text=_("Redeemable balance"),
    )
    total_points = models.IntegerField(
        _("tier points"),
        default=0,
        help_text=_("Points counted toward tier"),
    )
    lifetime_points = models.IntegerField(
        _("lifetime points"),
        default=0,
        help_text=_("All points ever earned (never decreases)"),
    )
    tier = models.CharField(
        _("tier"),
        max_length=20,
        choices=Tier.choices,
        default=Tier.BRONZE,
        db_index=True,
    )

    # Stay aggregates (written by LedgerService.record_stay)
    total_stays = models.PositiveIntegerField(_("stays"), default=0)
    total_nights = models.PositiveIntegerField(_("nights"), default=0)
    total_spent = models.DecimalField(
        _("total spent"), max_digits=14, decimal_places=2, default=0
    )
    average_spending = models.DecimalField(
        _("average spending"), max_digits=14, decimal_places=2, default=0
    )
    last_stay_at = models.DateTimeField(_("last stay"), null=True, blank=True)
    favorite_properties = models.JSONField(
        _("favorite properties"),
        default=list,
        blank=True,
        help_text=_("Property references in order of first stay"),
    )

    # Passive configuration
    preferences = models.JSONField(_("stay preferences"), default=dict, blank=True)
    communication_preferences = models.JSONField(
        _("communication preferences"),
        default=default_communication_preferences,
        blank=True,
    )
    personal_info = models.JSONField(
        _("personal info"),
        default=default_personal_info,
        blank=True,
    )

    enrolled_at = models.DateTimeField(_("enrolled at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("member")
        verbose_name_plural = _("members")
        ordering = ["-enrolled_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_points__gte=0),
                name="loyaltyman_member_available_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(total_points__gte=0),
                name="loyaltyman_member_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.code}: {self.available_points}pts | {self.tier}"

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def tier_progress(self) -> TierProgress:
        """Progress toward the next tier (derived from total_points)."""
        return progress_of(self.total_points)

    @property
    def email(self) -> str:
        return getattr(self.user, "email", "") or ""

    @property
    def name(self) -> str:
        full_name = getattr(self.user, "get_full_name", None)
        name = full_name() if callable(full_name) else ""
        return name or self.user.get_username()
