"""Loyaltyman admin.

Ledger transactions are read-only everywhere: balances only change through
the services.
"""

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from loyaltyman.models import (
    EarnedReward,
    LedgerTransaction,
    Member,
    Redemption,
    Reward,
)

TIER_COLORS = {
    "bronze": "#cd7f32",
    "silver": "#c0c0c0",
    "gold": "#ffd700",
    "platinum": "#e5e4e2",
    "diamond": "#b9f2ff",
}


def _member_link(member):
    url = reverse("admin:loyaltyman_member_change", args=[member.pk])
    return format_html('<a href="{}">{}</a>', url, member.code)


# ===========================================
# Inline Classes (must be defined before MemberAdmin)
# ===========================================


class LedgerTransactionInline(admin.TabularInline):
    model = LedgerTransaction
    fk_name = "member"
    extra = 0
    fields = [
        "transaction_date",
        "transaction_type",
        "direction",
        "points",
        "balance_after",
        "description",
        "expiry_date",
    ]
    readonly_fields = fields
    ordering = ["-transaction_date", "-id"]
    verbose_name_plural = "Ledger"

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class RedemptionInline(admin.TabularInline):
    model = Redemption
    extra = 0
    fields = ["code", "reward_name", "points_used", "status", "redeemed_at", "expires_at"]
    readonly_fields = fields
    ordering = ["-redeemed_at"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Member Admin
# ===========================================


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "user",
        "tier_badge",
        "available_points",
        "total_points",
        "lifetime_points",
        "status",
        "enrolled_at",
    ]
    list_filter = ["tier", "status"]
    search_fields = ["code", "user__username", "user__email", "user__first_name", "user__last_name"]
    raw_id_fields = ["user"]
    readonly_fields = [
        "code",
        "available_points",
        "total_points",
        "lifetime_points",
        "tier",
        "tier_progress_display",
        "total_stays",
        "total_nights",
        "total_spent",
        "average_spending",
        "last_stay_at",
        "favorite_properties",
        "enrolled_at",
        "updated_at",
    ]
    inlines = [LedgerTransactionInline, RedemptionInline]

    fieldsets = [
        ("Identification", {"fields": ["code", "user", "status"]}),
        (
            "Points",
            {
                "fields": [
                    "available_points",
                    "total_points",
                    "lifetime_points",
                    "tier",
                    "tier_progress_display",
                ]
            },
        ),
        (
            "Stays",
            {
                "fields": [
                    "total_stays",
                    "total_nights",
                    "total_spent",
                    "average_spending",
                    "last_stay_at",
                    "favorite_properties",
                ]
            },
        ),
        (
            "Preferences",
            {
                "fields": ["preferences", "communication_preferences", "personal_info"],
                "classes": ["collapse"],
            },
        ),
        ("Timestamps", {"fields": ["enrolled_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def tier_badge(self, obj):
        return format_html(
            '<span style="background:{}; color:#000; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            TIER_COLORS.get(obj.tier, "#6c757d"),
            obj.get_tier_display(),
        )

    tier_badge.short_description = "Tier"

    def tier_progress_display(self, obj):
        progress = obj.tier_progress
        return f"{progress.percentage}% ({progress.current_threshold} → {progress.next_threshold})"

    tier_progress_display.short_description = "Tier progress"


# ===========================================
# LedgerTransaction Admin
# ===========================================


@admin.register(LedgerTransaction)
class LedgerTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "transaction_date",
        "member_link",
        "transaction_type",
        "points_display",
        "balance_after",
        "source",
        "description",
    ]
    list_filter = ["transaction_type", "source", "direction"]
    search_fields = ["member__code", "description", "reference", "booking_ref"]
    date_hierarchy = "transaction_date"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def member_link(self, obj):
        return _member_link(obj.member)

    member_link.short_description = "Member"

    def points_display(self, obj):
        if obj.signed_points >= 0:
            return format_html('<span style="color:green">+{}</span>', obj.points)
        return format_html('<span style="color:red">-{}</span>', obj.points)

    points_display.short_description = "Points"


# ===========================================
# Reward Admin
# ===========================================


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "reward_type",
        "category",
        "points_required",
        "minimum_tier",
        "is_active",
        "redemption_count",
    ]
    list_filter = ["reward_type", "category", "minimum_tier", "is_active"]
    search_fields = ["code", "name"]
    list_editable = ["is_active"]
    readonly_fields = ["created_at", "updated_at"]

    fieldsets = [
        (
            None,
            {
                "fields": [
                    "code",
                    "name",
                    "description",
                    "reward_type",
                    "category",
                    "points_required",
                    "cash_value",
                    "discount_percentage",
                ]
            },
        ),
        ("Validity", {"fields": ["is_active", "valid_from", "valid_to", "expiry_days"]}),
        (
            "Restrictions",
            {
                "fields": [
                    "minimum_tier",
                    "maximum_uses_per_year",
                    "blackout_dates",
                    "applicable_properties",
                    "minimum_spend",
                    "minimum_nights",
                ]
            },
        ),
        (
            "Terms",
            {
                "fields": ["terms_and_conditions", "redemption_instructions"],
                "classes": ["collapse"],
            },
        ),
        ("Timestamps", {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def redemption_count(self, obj):
        return obj.redemptions.count()

    redemption_count.short_description = "Redemptions"


# ===========================================
# Redemption Admin
# ===========================================


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "member_link",
        "reward_name",
        "points_used",
        "status",
        "redeemed_at",
        "expires_at",
    ]
    list_filter = ["status"]
    search_fields = ["code", "member__code", "reward__code", "reward_name"]
    date_hierarchy = "redeemed_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def member_link(self, obj):
        return _member_link(obj.member)

    member_link.short_description = "Member"


# ===========================================
# EarnedReward Admin
# ===========================================


@admin.register(EarnedReward)
class EarnedRewardAdmin(admin.ModelAdmin):
    list_display = ["member_link", "reward_name", "status", "earned_at", "expires_at", "reason"]
    list_filter = ["status"]
    search_fields = ["member__code", "reward__code", "reward_name"]
    raw_id_fields = ["member", "reward"]
    readonly_fields = ["earned_at", "used_at"]

    def member_link(self, obj):
        return _member_link(obj.member)

    member_link.short_description = "Member"
