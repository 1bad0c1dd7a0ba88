"""Trigger evaluator — decides whether an observation breaches a policy.

A policy triggers when ANY of its thresholds is breached:

    rainfall < drought_threshold   (drought)
    rainfall > flood_threshold     (flood)
    temperature < frost_threshold  (frost)

All three are checked and OR-combined. Automatic evaluation after an
observation and manual evaluation both go through ``evaluate_against``.
Policies that are settled or outside their window evaluate to not-triggered
without error.
"""

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.models.observation import WeatherObservation
from cropshield.models.policy import Policy
from cropshield.services import payout_executor, policy_store, weather_ledger

logger = logging.getLogger(__name__)


class Trigger(str, enum.Enum):
    DROUGHT = "drought"
    FLOOD = "flood"
    FROST = "frost"


@dataclass
class Evaluation:
    policy_id: int
    triggered: bool
    triggers: list[Trigger] = field(default_factory=list)
    payout: int = 0


def breached_thresholds(policy: Policy, observation: WeatherObservation) -> list[Trigger]:
    breaches = []
    if observation.rainfall < policy.drought_threshold:
        breaches.append(Trigger.DROUGHT)
    if observation.rainfall > policy.flood_threshold:
        breaches.append(Trigger.FLOOD)
    if observation.temperature < policy.frost_threshold:
        breaches.append(Trigger.FROST)
    return breaches


def is_eligible(policy: Policy, height: int) -> bool:
    return policy.active and policy.covers(height)


async def evaluate(session: AsyncSession, policy_id: int, height: int) -> Evaluation:
    """Evaluate one policy against the observation at its location and ``height``.

    Raises:
        NotFoundError: no such policy, or no observation at (location, height).
        TransferError: the policy triggered but the payout could not be funded.
    """
    policy = await policy_store.require(session, policy_id)
    observation = await weather_ledger.require_observation(session, policy.location, height)
    return await evaluate_against(session, policy, observation, height)


async def evaluate_against(
    session: AsyncSession,
    policy: Policy,
    observation: WeatherObservation,
    height: int,
) -> Evaluation:
    if not is_eligible(policy, height):
        logger.debug("Policy %d not eligible at height %d", policy.id, height)
        return Evaluation(policy_id=policy.id, triggered=False)

    triggers = breached_thresholds(policy, observation)
    if not triggers:
        return Evaluation(policy_id=policy.id, triggered=False)

    logger.info(
        "Policy %d triggered at %s@%d: %s",
        policy.id,
        observation.location,
        height,
        ", ".join(t.value for t in triggers),
    )
    await payout_executor.execute(
        session, policy.id, height, triggers=[t.value for t in triggers]
    )
    return Evaluation(
        policy_id=policy.id, triggered=True, triggers=triggers, payout=policy.coverage
    )
