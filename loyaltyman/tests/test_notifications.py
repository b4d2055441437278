"""Tests for post-commit signals and member notifications."""

import logging
import threading
import time

import pytest
from django.core import mail

from loyaltyman import notifications
from loyaltyman.notifications import dispatch
from loyaltyman.protocols.notifications import Notification, NotificationKind
from loyaltyman.services.ledger import LedgerService
from loyaltyman.services.members import MemberService
from loyaltyman.services.redemption import RedemptionService
from loyaltyman.signals import points_posted, tier_changed
from loyaltyman.tests import fakes

pytestmark = pytest.mark.django_db

RECORDING = "loyaltyman.tests.fakes.RecordingNotificationBackend"
FAILING = "loyaltyman.tests.fakes.FailingNotificationBackend"


class TestEmails:
    """Tests for the default email backend."""

    def test_welcome_email(self, user, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            member = MemberService.enroll(user.pk)

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.subject == "Welcome to our Loyalty Program!"
        assert message.to == ["alice@example.com"]
        assert message.from_email == "loyalty@example.com"
        assert member.code in message.body
        assert "BRONZE" in message.body

    def test_no_welcome_on_repeat_enroll(self, member, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            MemberService.enroll(member.user_id)

        assert callbacks == []
        assert mail.outbox == []

    def test_tier_upgrade_email(self, member, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            LedgerService.earn(member.code, 2600, "Stays")

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.subject == "Congratulations! You've been upgraded to SILVER tier!"
        assert "from BRONZE to SILVER" in message.body
        assert "1.25x points" in message.body

    def test_no_email_on_tier_drop(self, member, django_capture_on_commit_callbacks):
        LedgerService.earn(member.code, 2600, "Stays")

        with django_capture_on_commit_callbacks(execute=True):
            LedgerService.apply(member.code, "redeemed", 3000)

        assert mail.outbox == []

    def test_no_email_when_cancel_restores_tier(
        self, member, make_reward, django_capture_on_commit_callbacks
    ):
        LedgerService.earn(member.code, 2600, "Stays")
        suite = make_reward("SUITE", points_required=2000)
        redemption = RedemptionService.redeem(member.code, suite.code)
        member.refresh_from_db()
        assert member.tier == "bronze"
        received = []

        def on_tier_changed(sender, **kwargs):
            received.append(kwargs)

        tier_changed.connect(on_tier_changed)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                RedemptionService.cancel(redemption.redemption_id)
        finally:
            tier_changed.disconnect(on_tier_changed)

        member.refresh_from_db()
        assert member.tier == "silver"
        assert received[0]["upgraded"] is True
        assert received[0]["restored"] is True
        assert mail.outbox == []
        assert member.transactions.filter(transaction_type="bonus").count() == 1

    def test_redemption_email(self, member, reward, django_capture_on_commit_callbacks):
        LedgerService.adjust(member.code, 1200, "Funding")

        with django_capture_on_commit_callbacks(execute=True):
            result = RedemptionService.redeem(member.code, reward.code)

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.subject == "Reward Redemption Confirmation"
        assert result.redemption_id in message.body
        assert "Points Used: 1000" in message.body
        assert "Show this code at check-in." in message.body
        assert "Your remaining points balance: 200" in message.body

    def test_no_email_for_rejected_redemption(self, member, reward, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            RedemptionService.redeem(member.code, reward.code)

        assert mail.outbox == []

    def test_member_without_email(self, make_user, django_capture_on_commit_callbacks):
        user = make_user(username="noaddress", email="")

        with django_capture_on_commit_callbacks(execute=True):
            MemberService.enroll(user.pk)

        assert mail.outbox == []


class TestSignals:
    """Tests for the public signals."""

    def test_signals_wait_for_commit(self, member, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, member, transaction, **kwargs):
            received.append(transaction.points)

        points_posted.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                LedgerService.earn(member.code, 100, "Stay")
            assert received == []

            for callback in callbacks:
                callback()
            assert received == [100]
        finally:
            points_posted.disconnect(handler)

    def test_tier_changed_sent_once_with_final_tier(self, member, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, member, old_tier, new_tier, upgraded, **kwargs):
            received.append((old_tier, new_tier, upgraded))

        tier_changed.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                LedgerService.earn(member.code, 7000, "Stays")
        finally:
            tier_changed.disconnect(handler)

        assert received == [("bronze", "gold", True)]

    def test_failing_receiver_is_logged(self, member, django_capture_on_commit_callbacks, caplog):
        def broken(sender, **kwargs):
            raise RuntimeError("receiver bug")

        points_posted.connect(broken)
        try:
            with caplog.at_level(logging.ERROR, logger="loyaltyman.services.events"):
                with django_capture_on_commit_callbacks(execute=True):
                    result = LedgerService.earn(member.code, 100, "Stay")
        finally:
            points_posted.disconnect(broken)

        assert result.success is True
        assert "failed for member" in caplog.text


class TestBackends:
    """Tests for backend selection and failure handling."""

    def test_custom_backend(self, settings, user, django_capture_on_commit_callbacks):
        settings.LOYALTYMAN = {"NOTIFICATION_BACKEND": RECORDING, "NOTIFICATIONS_ASYNC": False}

        with django_capture_on_commit_callbacks(execute=True):
            member = MemberService.enroll(user.pk)

        assert len(fakes.SENT) == 1
        notification = fakes.SENT[0]
        assert notification.template_kind == NotificationKind.WELCOME
        assert notification.member_code == member.code
        assert notification.recipient_address == "alice@example.com"
        assert notification.payload["tier"] == "bronze"

    def test_failing_backend_does_not_fail_ledger(
        self, settings, member, django_capture_on_commit_callbacks, caplog
    ):
        settings.LOYALTYMAN = {"NOTIFICATION_BACKEND": FAILING, "NOTIFICATIONS_ASYNC": False}

        with caplog.at_level(logging.ERROR, logger="loyaltyman.notifications"):
            with django_capture_on_commit_callbacks(execute=True):
                result = LedgerService.earn(member.code, 2600, "Stays")

        assert result.success is True
        member.refresh_from_db()
        assert member.tier == "silver"
        assert "Failed to send tier_upgrade notification" in caplog.text

    def test_async_dispatch(self, settings):
        settings.LOYALTYMAN = {"NOTIFICATION_BACKEND": RECORDING, "NOTIFICATIONS_ASYNC": True}

        future = dispatch(
            Notification(
                recipient_address="guest@example.com",
                template_kind=NotificationKind.WELCOME,
                member_code="LM-TEST",
            )
        )

        assert future is not None
        future.result(timeout=5)
        assert [n.member_code for n in fakes.SENT] == ["LM-TEST"]

    def test_async_failure_is_logged(self, settings, caplog):
        settings.LOYALTYMAN = {"NOTIFICATION_BACKEND": FAILING, "NOTIFICATIONS_ASYNC": True}

        with caplog.at_level(logging.ERROR, logger="loyaltyman.notifications"):
            future = dispatch(
                Notification(
                    recipient_address="guest@example.com",
                    template_kind=NotificationKind.WELCOME,
                    member_code="LM-TEST",
                )
            )
            future.result(timeout=5)

        assert "Failed to send welcome notification" in caplog.text

    def test_pool_created_once(self, monkeypatch):
        created = []

        class SlowExecutor(notifications.ThreadPoolExecutor):
            def __init__(self, *args, **kwargs):
                time.sleep(0.05)
                created.append(self)
                super().__init__(*args, **kwargs)

        monkeypatch.setattr(notifications, "_executor", None)
        monkeypatch.setattr(notifications, "ThreadPoolExecutor", SlowExecutor)
        barrier = threading.Barrier(4)
        pools = []

        def first_dispatch():
            barrier.wait()
            pools.append(notifications._get_executor())

        threads = [threading.Thread(target=first_dispatch) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(created) == 1
        assert len(pools) == 4
        assert all(pool is created[0] for pool in pools)
        created[0].shutdown(wait=False)
