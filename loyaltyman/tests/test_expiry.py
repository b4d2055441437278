"""Tests for the expiry sweep and its management command."""

from datetime import datetime, timedelta, timezone as dt_timezone
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from loyaltyman.models import EarnedRewardStatus, LedgerTransaction, TransactionType
from loyaltyman.services.expiry import ExpiryService
from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.members import MemberService
from loyaltyman.services.redemption import RedemptionService

pytestmark = pytest.mark.django_db

EARNED_AT = datetime(2023, 1, 10, 12, tzinfo=dt_timezone.utc)
AFTER_EXPIRY = EARNED_AT + timedelta(days=366)


class TestExpirePoints:
    """Tests for ExpiryService.expire_points."""

    def test_expires_due_earning(self, member):
        earning = LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT).transaction

        summary = ExpiryService.expire_points(at=AFTER_EXPIRY)

        assert summary.transactions_expired == 1
        assert summary.points_expired == 500
        expired = LedgerTransaction.objects.get(transaction_type=TransactionType.EXPIRED)
        assert expired.source_transaction_id == earning.pk
        assert expired.points == 500
        earning.refresh_from_db()
        assert earning.expiry_processed_at == AFTER_EXPIRY
        member.refresh_from_db()
        assert member.available_points == 0
        assert member.lifetime_points == 500

    def test_not_yet_due(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)

        summary = ExpiryService.expire_points(at=EARNED_AT + timedelta(days=364))

        assert summary.transactions_expired == 0
        member.refresh_from_db()
        assert member.available_points == 500

    def test_rerun_is_idempotent(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        LedgerService.earn(member.code, 100, "Stay")

        ExpiryService.expire_points(at=AFTER_EXPIRY)
        again = ExpiryService.expire_points(at=AFTER_EXPIRY + timedelta(days=1))

        assert again.transactions_expired == 0
        assert LedgerTransaction.objects.filter(transaction_type=TransactionType.EXPIRED).count() == 1
        member.refresh_from_db()
        assert member.available_points == 100

    def test_expire_single_earning_twice(self, member):
        earning = LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT).transaction

        first = ExpiryService.expire_earning(earning.pk, member.code, at=AFTER_EXPIRY)
        second = ExpiryService.expire_earning(earning.pk, member.code, at=AFTER_EXPIRY)

        assert first is not None
        assert second is None

    def test_debit_capped_at_available(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        LedgerService.apply(member.code, TransactionType.REDEEMED, 400, at=EARNED_AT)

        summary = ExpiryService.expire_points(at=AFTER_EXPIRY)

        assert summary.points_expired == 100
        member.refresh_from_db()
        assert member.available_points == 0

    def test_expiry_keeps_tier_points(self, member):
        LedgerService.earn(member.code, 3000, "Stays", at=EARNED_AT)

        ExpiryService.expire_points(at=AFTER_EXPIRY)

        member.refresh_from_db()
        # the tier-upgrade bonus does not expire
        assert member.available_points == 1000
        assert member.total_points == 4000
        assert member.tier == "silver"

    def test_inactive_members_are_swept(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        MemberService.set_status(member.code, "inactive")

        summary = ExpiryService.expire_points(at=AFTER_EXPIRY)

        assert summary.transactions_expired == 1

    def test_single_member(self, member, make_user):
        other = MemberService.enroll(make_user().pk)
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        LedgerService.earn(other.code, 500, "Stay", at=EARNED_AT)

        summary = ExpiryService.expire_points(at=AFTER_EXPIRY, member_code=other.code)

        assert summary.transactions_expired == 1
        other.refresh_from_db()
        member.refresh_from_db()
        assert other.available_points == 0
        assert member.available_points == 500


class TestRun:
    """Tests for the full sweep."""

    def test_run(self, member, reward):
        LedgerService.earn(member.code, 1500, "Stay", at=EARNED_AT)
        RedemptionService.redeem(member.code, reward.code, at=EARNED_AT)
        earned = RedemptionService.award_reward(member.code, reward.code, at=EARNED_AT)

        summary = ExpiryService.run(at=AFTER_EXPIRY)

        assert summary.transactions_expired == 1
        assert summary.points_expired == 500
        assert summary.redemptions_expired == 1
        assert summary.rewards_expired == 1
        earned.refresh_from_db()
        assert earned.status == EarnedRewardStatus.EXPIRED

    def test_points_only(self, member, reward):
        LedgerService.earn(member.code, 1500, "Stay", at=EARNED_AT)
        RedemptionService.redeem(member.code, reward.code, at=EARNED_AT)

        summary = ExpiryService.run(at=AFTER_EXPIRY, include_rewards=False)

        assert summary.redemptions_expired == 0


class TestCommand:
    """Tests for the loyaltyman_expire management command."""

    def test_command(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        out = StringIO()

        call_command("loyaltyman_expire", "--at", AFTER_EXPIRY.isoformat(), stdout=out)

        assert "Expired 500 points from 1 earnings" in out.getvalue()
        member.refresh_from_db()
        assert member.available_points == 0

    def test_command_member_filter(self, member):
        LedgerService.earn(member.code, 500, "Stay", at=EARNED_AT)
        out = StringIO()

        call_command(
            "loyaltyman_expire",
            "--member",
            "LM-OTHER",
            "--at",
            AFTER_EXPIRY.isoformat(),
            stdout=out,
        )

        assert "Expired 0 points" in out.getvalue()

    def test_command_bad_date(self, db):
        with pytest.raises(CommandError):
            call_command("loyaltyman_expire", "--at", "yesterday")
