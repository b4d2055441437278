"""
Loyaltyman signals — public event API.

All signals are sent after the ledger change has been committed, with
send_robust(), so receivers can never roll back or fail a ledger operation.

Emitted signals:
- member_enrolled: MemberService.enroll() created a member
- points_posted: LedgerService posted a transaction
- tier_changed: a transaction moved a member to another tier
- reward_redeemed: RedemptionService.redeem() succeeded
- points_expired: ExpiryService expired an earning
"""

from django.dispatch import Signal

member_enrolled = Signal()  # sender=Member, member
points_posted = Signal()  # sender=Member, member, transaction
tier_changed = Signal()  # sender=Member, member, old_tier, new_tier, upgraded, restored
reward_redeemed = Signal()  # sender=Member, member, redemption
points_expired = Signal()  # sender=Member, member, transaction
