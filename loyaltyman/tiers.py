"""
Tier calculator.

Pure functions mapping points-for-tier to a tier, the progress toward the
next tier, and the earning multiplier. Tier thresholds and multipliers are
defined here and nowhere else.
"""

from dataclasses import dataclass
from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class Tier(models.TextChoices):
    """Membership tiers, lowest first."""

    BRONZE = "bronze", _("Bronze")
    SILVER = "silver", _("Silver")
    GOLD = "gold", _("Gold")
    PLATINUM = "platinum", _("Platinum")
    DIAMOND = "diamond", _("Diamond")


# (tier, threshold, multiplier), ascending
_TIER_TABLE = [
    (Tier.BRONZE, 0, Decimal("1.0")),
    (Tier.SILVER, 2500, Decimal("1.25")),
    (Tier.GOLD, 7500, Decimal("1.5")),
    (Tier.PLATINUM, 15000, Decimal("1.75")),
    (Tier.DIAMOND, 30000, Decimal("2.0")),
]

THRESHOLDS = {tier: threshold for tier, threshold, _m in _TIER_TABLE}
MULTIPLIERS = {tier: multiplier for tier, _t, multiplier in _TIER_TABLE}
RANKS = {tier: index + 1 for index, (tier, _t, _m) in enumerate(_TIER_TABLE)}


@dataclass(frozen=True)
class TierProgress:
    """Display-only progress toward the next tier."""

    current_threshold: int
    next_threshold: int
    percentage: float

    def as_dict(self) -> dict:
        return {
            "current_threshold": self.current_threshold,
            "next_threshold": self.next_threshold,
            "percentage": self.percentage,
        }


def tier_of(total_points: int) -> Tier:
    """Highest tier whose threshold is <= total_points."""
    result = Tier.BRONZE
    for tier, threshold, _m in _TIER_TABLE:
        if total_points >= threshold:
            result = tier
    return result


def progress_of(total_points: int) -> TierProgress:
    """Progress from the current tier threshold to the next one (0-100)."""
    tier = tier_of(total_points)
    rank = RANKS[tier]
    current = THRESHOLDS[tier]

    if rank == len(_TIER_TABLE):
        return TierProgress(current, current, 100.0)

    nxt = _TIER_TABLE[rank][1]
    percentage = (total_points - current) / (nxt - current) * 100
    percentage = min(100.0, max(0.0, percentage))
    return TierProgress(current, nxt, round(percentage, 2))


def multiplier_of(tier: str) -> Decimal:
    """Earning multiplier for points earned while holding `tier`."""
    return MULTIPLIERS[Tier(tier)]


def rank_of(tier: str) -> int:
    """Tier rank: bronze=1 ... diamond=5."""
    return RANKS[Tier(tier)]
