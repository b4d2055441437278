# Initial loyaltyman schema

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import loyaltyman.models.member
import loyaltyman.models.redemption

TIER_CHOICES = [
    ("bronze", "Bronze"),
    ("silver", "Silver"),
    ("gold", "Gold"),
    ("platinum", "Platinum"),
    ("diamond", "Diamond"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Member",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        default=loyaltyman.models.member.new_member_code,
                        help_text="Externally visible member id (ex: LM-1A2B3C4D5E)",
                        max_length=20,
                        unique=True,
                        verbose_name="member id",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("inactive", "Inactive"),
                            ("suspended", "Suspended"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "available_points",
                    models.IntegerField(default=0, help_text="Redeemable balance", verbose_name="available points"),
                ),
                (
                    "total_points",
                    models.IntegerField(default=0, help_text="Points counted toward tier", verbose_name="tier points"),
                ),
                (
                    "lifetime_points",
                    models.IntegerField(
                        default=0,
                        help_text="All points ever earned (never decreases)",
                        verbose_name="lifetime points",
                    ),
                ),
                (
                    "tier",
                    models.CharField(
                        choices=TIER_CHOICES,
                        db_index=True,
                        default="bronze",
                        max_length=20,
                        verbose_name="tier",
                    ),
                ),
                ("total_stays", models.PositiveIntegerField(default=0, verbose_name="stays")),
                ("total_nights", models.PositiveIntegerField(default=0, verbose_name="nights")),
                (
                    "total_spent",
                    models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="total spent"),
                ),
                (
                    "average_spending",
                    models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="average spending"),
                ),
                ("last_stay_at", models.DateTimeField(blank=True, null=True, verbose_name="last stay")),
                (
                    "favorite_properties",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Property references in order of first stay",
                        verbose_name="favorite properties",
                    ),
                ),
                ("preferences", models.JSONField(blank=True, default=dict, verbose_name="stay preferences")),
                (
                    "communication_preferences",
                    models.JSONField(
                        blank=True,
                        default=loyaltyman.models.member.default_communication_preferences,
                        verbose_name="communication preferences",
                    ),
                ),
                (
                    "personal_info",
                    models.JSONField(
                        blank=True,
                        default=loyaltyman.models.member.default_personal_info,
                        verbose_name="personal info",
                    ),
                ),
                ("enrolled_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="enrolled at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="loyalty_member",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="user",
                    ),
                ),
            ],
            options={
                "verbose_name": "member",
                "verbose_name_plural": "members",
                "ordering": ["-enrolled_at"],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="code")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("discount", "Discount"),
                            ("upgrade", "Upgrade"),
                            ("free_night", "Free night"),
                            ("amenity", "Amenity"),
                            ("service", "Service"),
                            ("experience", "Experience"),
                        ],
                        default="discount",
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("room", "Room"),
                            ("dining", "Dining"),
                            ("spa", "Spa"),
                            ("transport", "Transport"),
                            ("experience", "Experience"),
                            ("merchandise", "Merchandise"),
                        ],
                        default="room",
                        max_length=20,
                        verbose_name="category",
                    ),
                ),
                ("points_required", models.PositiveIntegerField(verbose_name="points required")),
                (
                    "cash_value",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="cash value"),
                ),
                (
                    "discount_percentage",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name="discount %"),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("valid_from", models.DateTimeField(default=django.utils.timezone.now, verbose_name="valid from")),
                ("valid_to", models.DateTimeField(blank=True, null=True, verbose_name="valid to")),
                (
                    "expiry_days",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Days a redeemed instance stays usable",
                        null=True,
                        verbose_name="expiry days",
                    ),
                ),
                (
                    "minimum_tier",
                    models.CharField(blank=True, choices=TIER_CHOICES, max_length=20, verbose_name="minimum tier"),
                ),
                (
                    "maximum_uses_per_year",
                    models.PositiveIntegerField(blank=True, null=True, verbose_name="max uses per year"),
                ),
                (
                    "blackout_dates",
                    models.JSONField(blank=True, default=list, help_text="ISO dates (YYYY-MM-DD)", verbose_name="blackout dates"),
                ),
                (
                    "applicable_properties",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Property references; empty means all",
                        verbose_name="applicable properties",
                    ),
                ),
                (
                    "minimum_spend",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="minimum spend"),
                ),
                ("minimum_nights", models.PositiveIntegerField(blank=True, null=True, verbose_name="minimum nights")),
                ("terms_and_conditions", models.JSONField(blank=True, default=list, verbose_name="terms")),
                ("redemption_instructions", models.TextField(blank=True, verbose_name="instructions")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "ordering": ["points_required", "name"],
            },
        ),
        migrations.CreateModel(
            name="LedgerTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("earned", "Earned"),
                            ("redeemed", "Redeemed"),
                            ("expired", "Expired"),
                            ("adjusted", "Adjusted"),
                            ("bonus", "Bonus"),
                        ],
                        db_index=True,
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                ("points", models.PositiveIntegerField(verbose_name="points")),
                (
                    "direction",
                    models.CharField(
                        choices=[("credit", "Credit"), ("debit", "Debit")],
                        max_length=10,
                        verbose_name="direction",
                    ),
                ),
                (
                    "affects_tier",
                    models.BooleanField(
                        default=False,
                        help_text="Adjustments only: also applied to tier points",
                        verbose_name="affects tier",
                    ),
                ),
                (
                    "balance_after",
                    models.IntegerField(help_text="Available points after this transaction", verbose_name="balance after"),
                ),
                ("description", models.CharField(max_length=200, verbose_name="description")),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("booking", "Booking"),
                            ("review", "Review"),
                            ("referral", "Referral"),
                            ("promotion", "Promotion"),
                            ("adjustment", "Adjustment"),
                            ("bonus", "Bonus"),
                        ],
                        max_length=20,
                        verbose_name="source",
                    ),
                ),
                ("booking_ref", models.CharField(blank=True, db_index=True, max_length=100, verbose_name="booking")),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="External reference (ex: redemption code)",
                        max_length=100,
                        verbose_name="reference",
                    ),
                ),
                (
                    "multiplier",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=4, null=True, verbose_name="multiplier"),
                ),
                ("base_points", models.PositiveIntegerField(blank=True, null=True, verbose_name="base points")),
                ("transaction_date", models.DateTimeField(db_index=True, verbose_name="date")),
                ("expiry_date", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="expires at")),
                (
                    "expiry_processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Set once the points of this earning were expired",
                        null=True,
                        verbose_name="expiry processed at",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "member",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="loyaltyman.member",
                        verbose_name="member",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="loyaltyman.reward",
                        verbose_name="reward",
                    ),
                ),
                (
                    "source_transaction",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="expiry_entry",
                        to="loyaltyman.ledgertransaction",
                        verbose_name="expired earning",
                    ),
                ),
            ],
            options={
                "verbose_name": "ledger transaction",
                "verbose_name_plural": "ledger transactions",
                "ordering": ["-transaction_date", "-id"],
            },
        ),
        migrations.CreateModel(
            name="Redemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        default=loyaltyman.models.redemption.new_redemption_code,
                        max_length=20,
                        unique=True,
                        verbose_name="redemption id",
                    ),
                ),
                ("reward_name", models.CharField(max_length=200, verbose_name="reward name")),
                ("points_used", models.PositiveIntegerField(verbose_name="points used")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("used", "Used"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("redeemed_at", models.DateTimeField(db_index=True, verbose_name="redeemed at")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True, verbose_name="cancelled at")),
                (
                    "member",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="loyaltyman.member",
                        verbose_name="member",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="loyaltyman.reward",
                        verbose_name="reward",
                    ),
                ),
                (
                    "transaction",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption",
                        to="loyaltyman.ledgertransaction",
                        verbose_name="debit",
                    ),
                ),
                (
                    "refund_transaction",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunded_redemption",
                        to="loyaltyman.ledgertransaction",
                        verbose_name="refund",
                    ),
                ),
            ],
            options={
                "verbose_name": "redemption",
                "verbose_name_plural": "redemptions",
                "ordering": ["-redeemed_at"],
            },
        ),
        migrations.CreateModel(
            name="EarnedReward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reward_name", models.CharField(max_length=200, verbose_name="reward name")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("used", "Used"),
                            ("expired", "Expired"),
                        ],
                        default="available",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("earned_at", models.DateTimeField(verbose_name="earned at")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="used at")),
                ("reason", models.CharField(blank=True, max_length=200, verbose_name="reason")),
                (
                    "member",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="earned_rewards",
                        to="loyaltyman.member",
                        verbose_name="member",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="awards",
                        to="loyaltyman.reward",
                        verbose_name="reward",
                    ),
                ),
            ],
            options={
                "verbose_name": "earned reward",
                "verbose_name_plural": "earned rewards",
                "ordering": ["-earned_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="member",
            constraint=models.CheckConstraint(
                condition=models.Q(available_points__gte=0),
                name="loyaltyman_member_available_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="member",
            constraint=models.CheckConstraint(
                condition=models.Q(total_points__gte=0),
                name="loyaltyman_member_total_non_negative",
            ),
        ),
        migrations.AddIndex(
            model_name="ledgertransaction",
            index=models.Index(fields=["member", "-transaction_date"], name="loyaltyman_tx_member_date"),
        ),
        migrations.AddIndex(
            model_name="ledgertransaction",
            index=models.Index(fields=["member", "reward", "transaction_date"], name="loyaltyman_tx_member_reward"),
        ),
        migrations.AddConstraint(
            model_name="ledgertransaction",
            constraint=models.UniqueConstraint(
                condition=models.Q(("transaction_type", "earned"), models.Q(("booking_ref", ""), _negated=True)),
                fields=("booking_ref",),
                name="loyaltyman_one_earning_per_booking",
            ),
        ),
        migrations.AddIndex(
            model_name="redemption",
            index=models.Index(fields=["member", "reward", "redeemed_at"], name="loyaltyman_redemption_usage"),
        ),
    ]
