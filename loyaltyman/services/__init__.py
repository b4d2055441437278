"""Loyaltyman services.

Every balance change goes through LedgerService (directly or via
RedemptionService and ExpiryService).
"""

from loyaltyman.services.analytics import AnalyticsService, LoyaltySummary
from loyaltyman.services.expiry import ExpiryService, ExpirySummary
from loyaltyman.services.ledger import LedgerService, StayPostingResult, TransactionResult
from loyaltyman.services.members import MemberService
from loyaltyman.services.redemption import RedemptionResult, RedemptionService

__all__ = [
    "AnalyticsService",
    "ExpiryService",
    "ExpirySummary",
    "LedgerService",
    "LoyaltySummary",
    "MemberService",
    "RedemptionResult",
    "RedemptionService",
    "StayPostingResult",
    "TransactionResult",
]
