"""Loyaltyman exceptions and error codes."""

from django.db import models


class ErrorCode(models.TextChoices):
    """Reasons a ledger or redemption request can be rejected."""

    NOT_FOUND = "NOT_FOUND", "Not found"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS", "Insufficient points"
    TIER_NOT_MET = "TIER_NOT_MET", "Tier requirement not met"
    USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED", "Annual usage limit exceeded"
    REWARD_UNAVAILABLE = "REWARD_UNAVAILABLE", "Reward not available"
    REQUIREMENTS_NOT_MET = "REQUIREMENTS_NOT_MET", "Stay requirements not met"
    MEMBER_INACTIVE = "MEMBER_INACTIVE", "Member is not active"
    INVALID_STATE = "INVALID_STATE", "Invalid state transition"
    VALIDATION_ERROR = "VALIDATION_ERROR", "Invalid ledger event"
    INFRASTRUCTURE_ERROR = "INFRASTRUCTURE_ERROR", "Ledger store unavailable"


class LoyaltyError(Exception):
    """
    Structured exception for loyalty operations.

    Carries a machine-readable code, a human message and free-form data.

    Usage:
        try:
            member = MemberService.enroll(user_id)
        except LoyaltyError as e:
            if e.code == "USER_NOT_FOUND":
                handle_unknown_user()
    """

    _default_messages = {
        **{code.value: str(code.label) for code in ErrorCode},
        "USER_NOT_FOUND": "User not found",
    }

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = str(code)
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}
