"""Policy store — issuance and lifecycle transitions of coverage contracts.

Purchase flow:
1. Validate terms and the designated oracle.
2. Collect the premium into custody and forward the protocol fee to the treasury.
3. Allocate the next policy id.
4. Write the ACTIVE policy and credit the net premium to its crop pool.

The caller runs this inside one transaction; any failure leaves no trace,
including the id allocation.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from cropshield.models.account import Sequence
from cropshield.models.policy import Policy, PolicyStatus
from cropshield.services import funds, risk_pool_ledger
from cropshield.services.oracle_authority import OracleAuthority

logger = logging.getLogger(__name__)

POLICY_SEQUENCE = "policy"


def protocol_fee(premium: int) -> int:
    """Treasury share of a premium, truncated to the smallest unit."""
    return premium * settings.protocol_fee_bps // 10000


async def create(
    session: AsyncSession,
    authority: OracleAuthority,
    *,
    holder: str,
    location: str,
    crop_type: str,
    coverage: int,
    premium: int,
    duration: int,
    drought_threshold: int,
    flood_threshold: int,
    frost_threshold: int,
    oracle: str,
    height: int,
) -> Policy:
    """Issue a policy starting at ``height`` and return it."""
    _validate_terms(
        location=location,
        crop_type=crop_type,
        coverage=coverage,
        premium=premium,
        duration=duration,
        drought_threshold=drought_threshold,
        flood_threshold=flood_threshold,
        frost_threshold=frost_threshold,
    )
    if not await authority.is_authorized(session, oracle):
        raise AuthorizationError(f"{oracle} is not an authorized oracle", oracle=oracle)

    fee = protocol_fee(premium)
    contribution = premium - fee

    await funds.transfer(session, holder, settings.custody_address, premium)
    if fee > 0:
        await funds.transfer(session, settings.custody_address, settings.treasury_address, fee)

    policy_id = await _next_id(session)
    policy = Policy(
        id=policy_id,
        holder=holder,
        location=location,
        crop_type=crop_type,
        coverage=coverage,
        premium=premium,
        start_height=height,
        end_height=height + duration,
        status=PolicyStatus.ACTIVE,
        drought_threshold=drought_threshold,
        flood_threshold=flood_threshold,
        frost_threshold=frost_threshold,
        oracle=oracle,
    )
    session.add(policy)
    await risk_pool_ledger.record_contribution(session, crop_type, contribution)

    logger.info(
        "Issued policy %d to %s: %s@%s coverage=%d premium=%d fee=%d window=[%d..%d]",
        policy_id,
        holder,
        crop_type,
        location,
        coverage,
        premium,
        fee,
        policy.start_height,
        policy.end_height,
    )
    return policy


def _validate_terms(
    *,
    location: str,
    crop_type: str,
    coverage: int,
    premium: int,
    duration: int,
    drought_threshold: int,
    flood_threshold: int,
    frost_threshold: int,
) -> None:
    if not location or len(location) > settings.max_location_length:
        raise ValidationError(
            f"Location must be 1-{settings.max_location_length} characters", location=location
        )
    if not crop_type or len(crop_type) > settings.max_crop_type_length:
        raise ValidationError(
            f"Crop type must be 1-{settings.max_crop_type_length} characters", crop_type=crop_type
        )
    if coverage <= 0:
        raise ValidationError("Coverage amount must be positive", coverage=coverage)
    if premium <= 0:
        raise ValidationError("Premium amount must be positive", premium=premium)
    if duration < settings.min_policy_duration:
        raise ValidationError(
            f"Duration must be at least {settings.min_policy_duration}", duration=duration
        )
    if drought_threshold <= 0:
        raise ValidationError(
            "Drought threshold must be positive", drought_threshold=drought_threshold
        )
    if flood_threshold <= drought_threshold:
        raise ValidationError(
            "Flood threshold must exceed the drought threshold",
            drought_threshold=drought_threshold,
            flood_threshold=flood_threshold,
        )
    if frost_threshold >= settings.max_frost_threshold:
        raise ValidationError(
            f"Frost threshold must be below {settings.max_frost_threshold}",
            frost_threshold=frost_threshold,
        )


async def _next_id(session: AsyncSession) -> int:
    counter = await session.get(Sequence, POLICY_SEQUENCE)
    if counter is None:
        counter = Sequence(name=POLICY_SEQUENCE, value=0)
        session.add(counter)
    counter.value += 1
    return counter.value


async def get(session: AsyncSession, policy_id: int) -> Policy | None:
    return await session.get(Policy, policy_id)


async def require(session: AsyncSession, policy_id: int) -> Policy:
    policy = await session.get(Policy, policy_id)
    if policy is None:
        raise NotFoundError(f"Policy {policy_id} not found", policy_id=policy_id)
    return policy


def ensure_active(policy: Policy) -> None:
    if policy.status != PolicyStatus.ACTIVE:
        raise StateConflictError(
            f"Policy {policy.id} is {policy.status.value}",
            policy_id=policy.id,
            status=policy.status.value,
        )


def mark_paid_out(policy: Policy) -> None:
    ensure_active(policy)
    policy.status = PolicyStatus.PAID_OUT


def mark_cancelled(policy: Policy) -> None:
    ensure_active(policy)
    policy.status = PolicyStatus.CANCELLED


async def list_eligible(session: AsyncSession, location: str, height: int) -> list[Policy]:
    """Active policies at ``location`` whose window contains ``height``, by id."""
    stmt = (
        select(Policy)
        .where(
            Policy.location == location,
            Policy.status == PolicyStatus.ACTIVE,
            Policy.start_height <= height,
            Policy.end_height >= height,
        )
        .order_by(Policy.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
