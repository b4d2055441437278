"""Pytest fixtures for Loyaltyman tests."""

from datetime import datetime, timezone as dt_timezone

import pytest

from loyaltyman.models import Reward, RewardType
from loyaltyman.services.members import MemberService
from loyaltyman.tests import fakes

LONG_AGO = datetime(2000, 1, 1, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _reset_fakes():
    fakes.STAYS.clear()
    fakes.SENT.clear()
    yield
    fakes.STAYS.clear()
    fakes.SENT.clear()


@pytest.fixture
def make_user(django_user_model):
    """Factory for users with a unique username."""
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        username = kwargs.pop("username", f"guest{counter['n']}")
        kwargs.setdefault("email", f"{username}@example.com")
        return django_user_model.objects.create_user(username=username, **kwargs)

    return _make


@pytest.fixture
def user(make_user):
    """Create a test user."""
    return make_user(username="alice", first_name="Alice", last_name="Martin")


@pytest.fixture
def member(user):
    """Enroll the test user."""
    return MemberService.enroll(user.pk)


@pytest.fixture
def make_reward(db):
    """Factory for catalog rewards, valid since long ago."""

    def _make(code="FREE-NIGHT", points_required=1000, **kwargs):
        kwargs.setdefault("name", code.replace("-", " ").title())
        kwargs.setdefault("reward_type", RewardType.FREE_NIGHT)
        kwargs.setdefault("valid_from", LONG_AGO)
        return Reward.objects.create(code=code, points_required=points_required, **kwargs)

    return _make


@pytest.fixture
def reward(make_reward):
    """A 1000-point reward without restrictions."""
    return make_reward(expiry_days=30, redemption_instructions="Show this code at check-in.")
