"""
Django Loyaltyman - Loyalty points ledger and tier progression.

Usage:
    from loyaltyman import MemberService, LedgerService, RedemptionService

    member = MemberService.enroll(user.pk)
    LedgerService.post_stay("BK-2024-0001")
    result = RedemptionService.redeem(member.code, "FREE-NIGHT")
    if not result.success:
        show_error(result.error_code)
"""


def __getattr__(name):
    if name == "MemberService":
        from loyaltyman.services.members import MemberService

        return MemberService
    if name == "LedgerService":
        from loyaltyman.services.ledger import LedgerService

        return LedgerService
    if name == "RedemptionService":
        from loyaltyman.services.redemption import RedemptionService

        return RedemptionService
    if name == "ExpiryService":
        from loyaltyman.services.expiry import ExpiryService

        return ExpiryService
    if name == "AnalyticsService":
        from loyaltyman.services.analytics import AnalyticsService

        return AnalyticsService
    if name == "LoyaltyError":
        from loyaltyman.exceptions import LoyaltyError

        return LoyaltyError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "MemberService",
    "LedgerService",
    "RedemptionService",
    "ExpiryService",
    "AnalyticsService",
    "LoyaltyError",
]
__version__ = "0.1.0"
