"""Append-only, hash-chained log of payouts and refunds."""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.hashing import compute_record_hash
from cropshield.models.settlement import SettlementKind, SettlementRecord

logger = logging.getLogger(__name__)


@dataclass
class ChainReport:
    valid: bool
    records_checked: int
    broken_at: int | None = None


def _payload(
    policy_id: int,
    kind: SettlementKind,
    amount: int,
    height: int,
    recipient: str,
    triggers: list[str] | None,
) -> dict[str, Any]:
    return {
        "policy_id": policy_id,
        "kind": kind.value,
        "amount": amount,
        "height": height,
        "recipient": recipient,
        "triggers": triggers,
    }


async def append(
    session: AsyncSession,
    *,
    policy_id: int,
    kind: SettlementKind,
    amount: int,
    height: int,
    recipient: str,
    triggers: list[str] | None = None,
) -> SettlementRecord:
    previous_hash = await _latest_hash(session)
    record_hash = compute_record_hash(
        _payload(policy_id, kind, amount, height, recipient, triggers), previous_hash
    )
    record = SettlementRecord(
        policy_id=policy_id,
        kind=kind,
        amount=amount,
        height=height,
        recipient=recipient,
        triggers=triggers,
        previous_hash=previous_hash,
        record_hash=record_hash,
    )
    session.add(record)
    await session.flush()
    return record


async def _latest_hash(session: AsyncSession) -> str | None:
    stmt = select(SettlementRecord.record_hash).order_by(SettlementRecord.id.desc()).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def for_policy(session: AsyncSession, policy_id: int) -> list[SettlementRecord]:
    stmt = (
        select(SettlementRecord)
        .where(SettlementRecord.policy_id == policy_id)
        .order_by(SettlementRecord.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def verify_chain(session: AsyncSession) -> ChainReport:
    """Recompute every link in insertion order; report the first broken record id."""
    result = await session.execute(select(SettlementRecord).order_by(SettlementRecord.id))
    previous_hash = None
    checked = 0
    for record in result.scalars():
        payload = _payload(
            record.policy_id,
            record.kind,
            record.amount,
            record.height,
            record.recipient,
            record.triggers,
        )
        checked += 1
        linked = record.previous_hash == previous_hash
        if not linked or compute_record_hash(payload, previous_hash) != record.record_hash:
            logger.error("Settlement chain broken at record %d", record.id)
            return ChainReport(valid=False, records_checked=checked, broken_at=record.id)
        previous_hash = record.record_hash
    return ChainReport(valid=True, records_checked=checked)
