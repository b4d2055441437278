"""Loyaltyman models."""

from loyaltyman.models.member import Member, MemberStatus
from loyaltyman.models.reward import Reward, RewardCategory, RewardType
from loyaltyman.models.transaction import (
    Direction,
    LedgerTransaction,
    TransactionSource,
    TransactionType,
)
from loyaltyman.models.redemption import (
    EarnedReward,
    EarnedRewardStatus,
    Redemption,
    RedemptionStatus,
)

__all__ = [
    # Accounts
    "Member",
    "MemberStatus",
    # Catalog
    "Reward",
    "RewardCategory",
    "RewardType",
    # Ledger
    "LedgerTransaction",
    "TransactionType",
    "TransactionSource",
    "Direction",
    # Reward instances
    "Redemption",
    "RedemptionStatus",
    "EarnedReward",
    "EarnedRewardStatus",
]
