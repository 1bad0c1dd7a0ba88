"""Risk pool ledger — the only writer of pool balances.

Pools are keyed by crop type. Premium contributions flow in at purchase;
payouts and refunds flow out. Outflows are checked against available funds
and refused with TransferError when the pool cannot cover them.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import NotFoundError, TransferError
from cropshield.models.risk_pool import RiskPool

logger = logging.getLogger(__name__)


async def get_pool(session: AsyncSession, crop_type: str) -> RiskPool | None:
    return await session.get(RiskPool, crop_type)


async def record_contribution(session: AsyncSession, crop_type: str, amount: int) -> RiskPool:
    """Add a new policy's net premium to its crop pool, opening the pool if needed."""
    pool = await session.get(RiskPool, crop_type)
    if pool is None:
        pool = RiskPool(
            crop_type=crop_type,
            total_premiums=amount,
            total_payouts=0,
            total_refunds=0,
            active_policies=1,
            reserve_ratio_bps=settings.default_reserve_ratio_bps,
            available_funds=amount,
        )
        session.add(pool)
        logger.info("Opened risk pool %s with %d", crop_type, amount)
    else:
        pool.total_premiums += amount
        pool.available_funds += amount
        pool.active_policies += 1
    return pool


async def record_payout(session: AsyncSession, crop_type: str, amount: int) -> RiskPool:
    pool = await _debitable_pool(session, crop_type, amount)
    pool.total_payouts += amount
    pool.active_policies -= 1
    pool.available_funds -= amount
    return pool


async def record_refund(session: AsyncSession, crop_type: str, amount: int) -> RiskPool:
    # Contributions stay as recorded; the refund comes out of reserves.
    pool = await _debitable_pool(session, crop_type, amount)
    pool.total_refunds += amount
    pool.active_policies -= 1
    pool.available_funds -= amount
    return pool


async def _debitable_pool(session: AsyncSession, crop_type: str, amount: int) -> RiskPool:
    pool = await session.get(RiskPool, crop_type)
    if pool is None:
        raise NotFoundError(f"No risk pool for crop type {crop_type}", crop_type=crop_type)
    if pool.available_funds < amount:
        logger.warning(
            "Risk pool %s underfunded: available=%d, requested=%d",
            crop_type,
            pool.available_funds,
            amount,
        )
        raise TransferError(
            f"Risk pool {crop_type} is underfunded",
            crop_type=crop_type,
            available_funds=pool.available_funds,
            requested=amount,
        )
    return pool


def is_balanced(pool: RiskPool) -> bool:
    return pool.available_funds == (
        pool.total_premiums - pool.total_payouts - pool.total_refunds
    )
