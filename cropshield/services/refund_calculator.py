"""Refund calculator — early cancellation with a pro-rata premium refund.

    total_duration = end - start
    elapsed        = height - start                (clamped at 0)
    remaining      = total_duration - elapsed      (clamped at 0)
    refund_bps     = remaining * 10000 // total_duration
    refund         = premium * refund_bps // 10000

Cancelling at or after the end of the window refunds 0 and still cancels.
The refund comes out of the crop pool's reserves and is paid from custody.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import AuthorizationError
from cropshield.models.policy import Policy
from cropshield.models.settlement import SettlementKind
from cropshield.services import funds, policy_store, risk_pool_ledger, settlement_log

logger = logging.getLogger(__name__)


def refund_amount(policy: Policy, height: int) -> int:
    total_duration = policy.end_height - policy.start_height
    elapsed = max(height - policy.start_height, 0)
    remaining = max(total_duration - elapsed, 0)
    refund_bps = remaining * 10000 // total_duration
    return policy.premium * refund_bps // 10000


async def cancel(session: AsyncSession, policy_id: int, caller: str, height: int) -> int:
    """Cancel ``policy_id`` on behalf of ``caller`` and return the refund paid."""
    policy = await policy_store.require(session, policy_id)
    if caller != policy.holder:
        raise AuthorizationError(
            f"Only the policyholder may cancel policy {policy_id}", caller=caller
        )
    policy_store.mark_cancelled(policy)

    refund = refund_amount(policy, height)
    await risk_pool_ledger.record_refund(session, policy.crop_type, refund)
    if refund > 0:
        await funds.transfer(session, settings.custody_address, policy.holder, refund)

    await settlement_log.append(
        session,
        policy_id=policy.id,
        kind=SettlementKind.REFUND,
        amount=refund,
        height=height,
        recipient=policy.holder,
    )
    logger.info(
        "Cancelled policy %d at height %d, refunded %d of %d premium",
        policy.id,
        height,
        refund,
        policy.premium,
    )
    return refund
