"""Insurance engine — the external interface of the policy lifecycle.

Every write runs as one atomic unit: the engine serializes callers through a
single lock (the sequencer), reads the height clock once, and wraps the work
in one database transaction. Any domain error rolls the whole operation back.

Observation submissions fan out to every eligible policy at the location.
Each of those settlements runs in its own SAVEPOINT so one underfunded payout
does not reject the observation or the other policies' payouts.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cropshield.core.clock import HeightClock
from cropshield.core.config import settings
from cropshield.core.errors import TransferError
from cropshield.models.observation import WeatherObservation
from cropshield.models.oracle import OracleRegistration
from cropshield.models.policy import Policy
from cropshield.models.risk_pool import RiskPool
from cropshield.models.settlement import SettlementRecord
from cropshield.services import (
    funds,
    policy_store,
    refund_calculator,
    risk_pool_ledger,
    settlement_log,
    trigger_evaluator,
    weather_ledger,
)
from cropshield.services.oracle_authority import OracleAuthority, SelfRegistrationAuthority

logger = logging.getLogger(__name__)


@dataclass
class RecordResult:
    location: str
    height: int
    triggered_policy_ids: list[int] = field(default_factory=list)
    deferred_policy_ids: list[int] = field(default_factory=list)


class InsuranceEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: HeightClock | None = None,
        authority: OracleAuthority | None = None,
    ):
        self._session_factory = session_factory
        self.clock = clock or HeightClock()
        self.authority = authority or SelfRegistrationAuthority()
        self._sequencer = asyncio.Lock()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._sequencer:
            async with self._session_factory() as session:
                async with session.begin():
                    await self.clock.sync(session)
                    yield session

    @asynccontextmanager
    async def _snapshot(self) -> AsyncIterator[AsyncSession]:
        # Reads also queue behind the sequencer so they never see a
        # half-applied operation.
        async with self._sequencer:
            async with self._session_factory() as session:
                yield session

    # ── Oracles ───────────────────────────────────────────────────────────────

    async def authorize_oracle(self, sender: str, name: str) -> OracleRegistration:
        async with self._transaction() as session:
            height = self.clock.current()
            return await self.authority.authorize(session, sender, name, height)

    async def deactivate_oracle(self, address: str) -> OracleRegistration:
        async with self._transaction() as session:
            return await self.authority.deactivate(session, address)

    async def check_oracle_authorization(self, address: str) -> bool:
        async with self._snapshot() as session:
            return await self.authority.is_authorized(session, address)

    # ── Policies ──────────────────────────────────────────────────────────────

    async def purchase_insurance(
        self,
        sender: str,
        *,
        location: str,
        crop_type: str,
        coverage: int,
        premium: int,
        duration: int,
        drought_threshold: int,
        flood_threshold: int,
        frost_threshold: int,
        oracle: str,
    ) -> Policy:
        async with self._transaction() as session:
            height = self.clock.current()
            return await policy_store.create(
                session,
                self.authority,
                holder=sender,
                location=location,
                crop_type=crop_type,
                coverage=coverage,
                premium=premium,
                duration=duration,
                drought_threshold=drought_threshold,
                flood_threshold=flood_threshold,
                frost_threshold=frost_threshold,
                oracle=oracle,
                height=height,
            )

    async def terminate_policy(self, sender: str, policy_id: int) -> int:
        async with self._transaction() as session:
            height = self.clock.current()
            return await refund_calculator.cancel(session, policy_id, sender, height)

    async def trigger_policy_evaluation(self, policy_id: int) -> trigger_evaluator.Evaluation:
        async with self._transaction() as session:
            height = self.clock.current()
            return await trigger_evaluator.evaluate(session, policy_id, height)

    async def get_policy(self, policy_id: int) -> Policy | None:
        async with self._snapshot() as session:
            return await policy_store.get(session, policy_id)

    async def get_settlements(self, policy_id: int) -> list[SettlementRecord]:
        async with self._snapshot() as session:
            return await settlement_log.for_policy(session, policy_id)

    async def verify_settlements(self) -> settlement_log.ChainReport:
        async with self._snapshot() as session:
            return await settlement_log.verify_chain(session)

    # ── Weather ───────────────────────────────────────────────────────────────

    async def record_weather_data(
        self,
        sender: str,
        *,
        location: str,
        rainfall: int,
        temperature: int,
        humidity: int,
    ) -> RecordResult:
        async with self._transaction() as session:
            height = self.clock.current()
            result = RecordResult(location=location, height=height)
            observation = await weather_ledger.record(
                session,
                self.authority,
                location=location,
                rainfall=rainfall,
                temperature=temperature,
                humidity=humidity,
                reporter=sender,
                height=height,
            )
            if settings.evaluate_on_record:
                await self._fan_out(session, observation, height, result)
        return result

    async def _fan_out(
        self,
        session: AsyncSession,
        observation: WeatherObservation,
        height: int,
        result: RecordResult,
    ) -> None:
        policies = await policy_store.list_eligible(session, observation.location, height)
        for policy in policies:
            policy_id = policy.id
            try:
                async with session.begin_nested():
                    evaluation = await trigger_evaluator.evaluate_against(
                        session, policy, observation, height
                    )
            except TransferError as exc:
                logger.warning(
                    "Payout for policy %d deferred at height %d: %s", policy_id, height, exc
                )
                result.deferred_policy_ids.append(policy_id)
                continue
            if evaluation.triggered:
                result.triggered_policy_ids.append(policy_id)

    async def confirm_weather_data(
        self,
        sender: str,
        *,
        location: str,
        height: int,
        rainfall: int,
        temperature: int,
        humidity: int,
    ) -> WeatherObservation:
        async with self._transaction() as session:
            return await weather_ledger.confirm(
                session,
                self.authority,
                location=location,
                height=height,
                rainfall=rainfall,
                temperature=temperature,
                humidity=humidity,
                confirmer=sender,
            )

    async def get_weather_data(self, location: str, height: int) -> WeatherObservation | None:
        async with self._snapshot() as session:
            return await weather_ledger.get_observation(session, location, height)

    # ── Pools and accounts ────────────────────────────────────────────────────

    async def get_risk_pool(self, crop_type: str) -> RiskPool | None:
        async with self._snapshot() as session:
            return await risk_pool_ledger.get_pool(session, crop_type)

    async def deposit(self, address: str, amount: int) -> int:
        async with self._transaction() as session:
            return await funds.deposit(session, address, amount)

    async def get_balance(self, address: str) -> int:
        async with self._snapshot() as session:
            return await funds.get_balance(session, address)

    # ── Clock ─────────────────────────────────────────────────────────────────

    async def current_height(self) -> int:
        async with self._transaction():
            return self.clock.current()

    async def advance_height(self, blocks: int = 1) -> int:
        async with self._transaction() as session:
            self.clock.advance(blocks)
            return await self.clock.sync(session)
