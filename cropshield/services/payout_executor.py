"""Payout executor — settles a triggered policy.

Steps, all inside the caller's transaction:
(a) policy ACTIVE -> PAID_OUT
(b) crop pool: total_payouts += coverage, active_policies -= 1, available_funds -= coverage
(c) custody pays the coverage to the holder
(d) a hash-chained settlement record is appended

If any step raises, the transaction rolls back and none of them persist.
A second execution against a settled policy fails with StateConflictError.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.models.settlement import SettlementKind, SettlementRecord
from cropshield.services import funds, policy_store, risk_pool_ledger, settlement_log

logger = logging.getLogger(__name__)


async def execute(
    session: AsyncSession,
    policy_id: int,
    height: int,
    triggers: list[str] | None = None,
) -> SettlementRecord:
    policy = await policy_store.require(session, policy_id)
    policy_store.mark_paid_out(policy)

    await risk_pool_ledger.record_payout(session, policy.crop_type, policy.coverage)
    await funds.transfer(session, settings.custody_address, policy.holder, policy.coverage)

    record = await settlement_log.append(
        session,
        policy_id=policy.id,
        kind=SettlementKind.PAYOUT,
        amount=policy.coverage,
        height=height,
        recipient=policy.holder,
        triggers=triggers,
    )
    logger.info(
        "Paid out policy %d: %d to %s from pool %s",
        policy.id,
        policy.coverage,
        policy.holder,
        policy.crop_type,
    )
    return record
