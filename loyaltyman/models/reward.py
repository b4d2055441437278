"""Reward catalog model."""

from datetime import date, datetime

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from loyaltyman.tiers import Tier


class RewardType(models.TextChoices):
    DISCOUNT = "discount", _("Discount")
    UPGRADE = "upgrade", _("Upgrade")
    FREE_NIGHT = "free_night", _("Free night")
    AMENITY = "amenity", _("Amenity")
    SERVICE = "service", _("Service")
    EXPERIENCE = "experience", _("Experience")


class RewardCategory(models.TextChoices):
    ROOM = "room", _("Room")
    DINING = "dining", _("Dining")
    SPA = "spa", _("Spa")
    TRANSPORT = "transport", _("Transport")
    EXPERIENCE = "experience", _("Experience")
    MERCHANDISE = "merchandise", _("Merchandise")


class Reward(models.Model):
    """
    Catalog entry members can redeem points for.

    Managed by staff; read-mostly for the engine. Restrictions are explicit
    optional fields, all evaluated by RedemptionService:

        minimum_tier           member tier rank must be >= this tier
        maximum_uses_per_year  own redemptions per calendar year
        blackout_dates         ISO dates on which it cannot be redeemed
        applicable_properties  property refs it is valid at (empty = all;
                               otherwise a property ref is required)
        minimum_spend          member's total stay spend
        minimum_nights         member's total nights
    """

    code = models.CharField(_("code"), max_length=50, unique=True)
    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"), blank=True)
    reward_type = models.CharField(
        _("type"),
        max_length=20,
        choices=RewardType.choices,
        default=RewardType.DISCOUNT,
    )
    category = models.CharField(
        _("category"),
        max_length=20,
        choices=RewardCategory.choices,
        default=RewardCategory.ROOM,
    )

    # Redemption details
    points_required = models.PositiveIntegerField(_("points required"))
    cash_value = models.DecimalField(
        _("cash value"), max_digits=12, decimal_places=2, null=True, blank=True
    )
    discount_percentage = models.DecimalField(
        _("discount %"), max_digits=5, decimal_places=2, null=True, blank=True
    )

    # Availability
    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    valid_from = models.DateTimeField(_("valid from"), default=timezone.now)
    valid_to = models.DateTimeField(_("valid to"), null=True, blank=True)
    expiry_days = models.PositiveIntegerField(
        _("expiry days"),
        null=True,
        blank=True,
        help_text=_("Days a redeemed instance stays usable"),
    )

    # Restrictions
    minimum_tier = models.CharField(
        _("minimum tier"),
        max_length=20,
        choices=Tier.choices,
        blank=True,
    )
    maximum_uses_per_year = models.PositiveIntegerField(
        _("max uses per year"), null=True, blank=True
    )
    blackout_dates = models.JSONField(
        _("blackout dates"),
        default=list,
        blank=True,
        help_text=_("ISO dates (YYYY-MM-DD)"),
    )
    applicable_properties = models.JSONField(
        _("applicable properties"),
        default=list,
        blank=True,
        help_text=_("Property references; empty means all"),
    )
    minimum_spend = models.DecimalField(
        _("minimum spend"), max_digits=12, decimal_places=2, null=True, blank=True
    )
    minimum_nights = models.PositiveIntegerField(_("minimum nights"), null=True, blank=True)

    # Terms
    terms_and_conditions = models.JSONField(_("terms"), default=list, blank=True)
    redemption_instructions = models.TextField(_("instructions"), blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["points_required", "name"]

    def __str__(self):
        return f"{self.name} ({self.points_required}pts)"

    def is_within_validity(self, at: datetime) -> bool:
        if self.valid_from and at < self.valid_from:
            return False
        if self.valid_to and at > self.valid_to:
            return False
        return True

    def is_blacked_out(self, on: date) -> bool:
        return on.isoformat() in {str(d)[:10] for d in self.blackout_dates or []}

    def is_available_at(self, property_ref: str | None) -> bool:
        if not self.applicable_properties:
            return True
        return property_ref in self.applicable_properties
