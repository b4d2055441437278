"""
Property-based tests for ledger invariants.

Random sequences of postings against one member must keep balances
non-negative, lifetime points monotonic and the tier consistent.
"""

import uuid

from django.contrib.auth import get_user_model
from hypothesis import given, settings, strategies as st
from hypothesis.extra.django import TestCase

from loyaltyman.models import Direction, TransactionType
from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.members import MemberService
from loyaltyman.tiers import tier_of

User = get_user_model()

operations = st.lists(
    st.tuples(
        st.sampled_from([
            TransactionType.EARNED,
            TransactionType.BONUS,
            TransactionType.REDEEMED,
            TransactionType.EXPIRED,
            Direction.CREDIT,
            Direction.DEBIT,
        ]),
        st.integers(min_value=1, max_value=20_000),
        st.booleans(),
    ),
    min_size=1,
    max_size=15,
)


class TestLedgerInvariants(TestCase):
    """Invariants hold after every posting."""

    def _new_member(self):
        user = User.objects.create_user(username=f"prop-{uuid.uuid4().hex[:12]}")
        return MemberService.enroll(user.pk)

    def _post(self, code, kind, points, affects_tier):
        if kind in (Direction.CREDIT, Direction.DEBIT):
            return LedgerService.apply(
                code,
                TransactionType.ADJUSTED,
                points,
                direction=kind,
                affects_tier=affects_tier,
            )
        return LedgerService.apply(code, kind, points)

    @settings(max_examples=40, deadline=None)
    @given(operations)
    def test_balances_and_tier(self, ops):
        member = self._new_member()
        lifetime = 0

        for kind, points, affects_tier in ops:
            result = self._post(member.code, kind, points, affects_tier)
            member.refresh_from_db()

            assert member.available_points >= 0
            assert member.total_points >= 0
            assert member.lifetime_points >= lifetime
            assert member.tier == tier_of(member.total_points)
            if result.success:
                assert result.transaction.balance_after == (
                    member.available_points
                    - (result.bonus_transaction.points if result.bonus_transaction else 0)
                )
            lifetime = member.lifetime_points

    @settings(max_examples=25, deadline=None)
    @given(st.lists(st.integers(min_value=1, max_value=5_000), min_size=1, max_size=10))
    def test_ledger_sums_to_balance(self, earnings):
        """Signed ledger total always equals the available balance."""
        member = self._new_member()
        for points in earnings:
            LedgerService.earn(member.code, points, "Stay")
            LedgerService.apply(member.code, TransactionType.REDEEMED, points // 2)

        member.refresh_from_db()
        total = sum(t.signed_points for t in member.transactions.all())
        assert total == member.available_points
