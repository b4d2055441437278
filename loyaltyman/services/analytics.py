"""Analytics service - program-wide loyalty figures for the admin surface."""

from dataclasses import dataclass, field

from django.db.models import Avg, Count, Sum
from django.db.models.functions import TruncMonth

from loyaltyman.models import (
    LedgerTransaction,
    Member,
    MemberStatus,
    Redemption,
    RedemptionStatus,
    TransactionType,
)
from loyaltyman.tiers import Tier


@dataclass
class LoyaltySummary:
    """Snapshot of the whole program."""

    total_members: int = 0
    active_members: int = 0
    tier_distribution: dict[str, int] = field(default_factory=dict)
    average_points_per_member: float = 0.0
    total_points_issued: int = 0
    total_points_redeemed: int = 0
    redemption_rate: float = 0.0
    top_rewards: list[dict] = field(default_factory=list)
    membership_growth: list[dict] = field(default_factory=list)


class AnalyticsService:
    """
    Service for program analytics.

    Uses @classmethod for extensibility (consistent with other services).
    Read-only.
    """

    TOP_REWARDS_LIMIT = 5

    @classmethod
    def summary(cls) -> LoyaltySummary:
        """
        Compute the program summary.

        Points issued are earned plus bonus credits; points redeemed are
        redemption debits. redemption_rate is redeemed / issued as a
        percentage (0 when nothing was issued).
        """
        members = Member.objects.all()
        total_members = members.count()

        tier_distribution = {tier: 0 for tier in Tier.values}
        for row in members.values("tier").annotate(count=Count("id")):
            tier_distribution[row["tier"]] = row["count"]

        average = members.aggregate(avg=Avg("total_points"))["avg"] or 0

        issued = cls._sum_points(TransactionType.EARNED, TransactionType.BONUS)
        redeemed = cls._sum_points(TransactionType.REDEEMED)

        return LoyaltySummary(
            total_members=total_members,
            active_members=members.filter(status=MemberStatus.ACTIVE).count(),
            tier_distribution=tier_distribution,
            average_points_per_member=round(float(average), 2),
            total_points_issued=issued,
            total_points_redeemed=redeemed,
            redemption_rate=round(redeemed / issued * 100, 2) if issued else 0.0,
            top_rewards=cls.top_rewards(),
            membership_growth=cls.membership_growth(),
        )

    @classmethod
    def top_rewards(cls, limit: int | None = None) -> list[dict]:
        """Most redeemed rewards (cancelled redemptions excluded)."""
        rows = (
            Redemption.objects.exclude(status=RedemptionStatus.CANCELLED)
            .values("reward__code", "reward__name")
            .annotate(redemptions=Count("id"), points=Sum("points_used"))
            .order_by("-redemptions", "reward__code")
        )
        return [
            {
                "reward_code": row["reward__code"],
                "reward_name": row["reward__name"],
                "redemptions": row["redemptions"],
                "points": row["points"],
            }
            for row in rows[: limit or cls.TOP_REWARDS_LIMIT]
        ]

    @classmethod
    def membership_growth(cls) -> list[dict]:
        """New members per enrollment month, with the running total."""
        rows = (
            Member.objects.annotate(month=TruncMonth("enrolled_at"))
            .values("month")
            .annotate(new_members=Count("id"))
            .order_by("month")
        )
        growth = []
        running = 0
        for row in rows:
            running += row["new_members"]
            growth.append({
                "month": row["month"].date().isoformat()[:7],
                "new_members": row["new_members"],
                "total_members": running,
            })
        return growth

    @classmethod
    def _sum_points(cls, *transaction_types: str) -> int:
        total = LedgerTransaction.objects.filter(
            transaction_type__in=transaction_types,
        ).aggregate(total=Sum("points"))["total"]
        return total or 0
