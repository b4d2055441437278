"""
Concurrency tests.

Each thread gets its own database connection, so these run against a
committed (transactional) test database.
"""

import threading
from decimal import Decimal

import pytest
from django.db import connections

from loyaltyman.exceptions import ErrorCode, LoyaltyError
from loyaltyman.locks import member_scope
from loyaltyman.models import Member, Redemption
from loyaltyman.protocols.bookings import StaySummary
from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.members import MemberService
from loyaltyman.services.redemption import RedemptionService

pytestmark = pytest.mark.django_db(transaction=True)


def _run_in_threads(target, args_list):
    """Start all threads together and collect their return values."""
    barrier = threading.Barrier(len(args_list))
    results = [None] * len(args_list)
    errors = []

    def worker(index, args):
        try:
            barrier.wait()
            results[index] = target(*args)
        except Exception as exc:  # surfaced to the test below
            errors.append(exc)
        finally:
            connections.close_all()

    threads = [
        threading.Thread(target=worker, args=(i, args)) for i, args in enumerate(args_list)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    return results


class TestConcurrentRedemption:
    """Two redemptions racing for the same balance."""

    def test_only_one_succeeds(self, member, make_reward):
        reward = make_reward(code="DINNER", points_required=600)
        LedgerService.adjust(member.code, 1000, "Funding")

        results = _run_in_threads(
            RedemptionService.redeem,
            [(member.code, reward.code), (member.code, reward.code)],
        )

        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        assert len(succeeded) == 1
        assert len(failed) == 1
        assert failed[0].error_code == ErrorCode.INSUFFICIENT_POINTS

        member.refresh_from_db()
        assert member.available_points == 400
        assert Redemption.objects.count() == 1


class TestConcurrentPostings:
    """Many postings for one member lose no updates."""

    def test_parallel_earnings(self, member):
        results = _run_in_threads(
            LedgerService.earn,
            [(member.code, 100, f"Stay {i}") for i in range(8)],
        )

        assert all(r.success for r in results)
        member.refresh_from_db()
        assert member.available_points == 800
        assert member.lifetime_points == 800
        assert member.transactions.count() == 8

    def test_same_booking_posted_once(self, user):
        MemberService.enroll(user.pk)
        stay = StaySummary("BK-RACE", user.pk, Decimal("100"), 1)

        results = _run_in_threads(LedgerService.record_stay, [(stay,), (stay,), (stay,)])

        assert all(r.success for r in results)
        assert sum(1 for r in results if r.created) == 1
        member = MemberService.get_by_user(user.pk)
        assert member.available_points == 200
        assert member.total_stays == 1


class TestConcurrentEnrollment:
    """First-time enrollment of one user from several threads."""

    def test_single_member(self, user):
        results = _run_in_threads(MemberService.enroll, [(user.pk,)] * 4)

        assert len({member.code for member in results}) == 1
        assert Member.objects.filter(user=user).count() == 1


class TestLockTimeout:
    """A member lock held too long surfaces as an infrastructure error."""

    def test_timeout(self, settings, member):
        settings.LOYALTYMAN = {"LOCK_TIMEOUT_SECONDS": 0.1}
        held = threading.Event()
        release = threading.Event()

        def holder():
            try:
                with member_scope(member.code):
                    held.set()
                    release.wait(timeout=5)
            finally:
                connections.close_all()

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(timeout=5)
        try:
            with pytest.raises(LoyaltyError) as exc:
                LedgerService.earn(member.code, 100, "Stay")
        finally:
            release.set()
            thread.join(timeout=5)

        assert exc.value.code == ErrorCode.INFRASTRUCTURE_ERROR
