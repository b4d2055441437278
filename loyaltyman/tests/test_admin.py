"""Tests for the admin surface."""

import pytest
from django.urls import reverse

from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.redemption import RedemptionService

pytestmark = pytest.mark.django_db


@pytest.fixture
def activity(member, reward):
    LedgerService.earn(member.code, 2600, "Stays")
    RedemptionService.redeem(member.code, reward.code)
    RedemptionService.award_reward(member.code, reward.code, reason="Birthday")
    return member


class TestAdminPages:
    """Changelists and change forms render."""

    @pytest.mark.parametrize(
        "model",
        ["member", "ledgertransaction", "reward", "redemption", "earnedreward"],
    )
    def test_changelist(self, admin_client, activity, model):
        response = admin_client.get(reverse(f"admin:loyaltyman_{model}_changelist"))
        assert response.status_code == 200

    def test_member_change_form(self, admin_client, activity):
        response = admin_client.get(reverse("admin:loyaltyman_member_change", args=[activity.pk]))

        assert response.status_code == 200
        assert activity.code in response.content.decode()

    def test_ledger_is_read_only(self, admin_client, activity):
        tx = activity.transactions.first()

        add = admin_client.get(reverse("admin:loyaltyman_ledgertransaction_add"))
        delete = admin_client.get(reverse("admin:loyaltyman_ledgertransaction_delete", args=[tx.pk]))

        assert add.status_code == 403
        assert delete.status_code == 403
