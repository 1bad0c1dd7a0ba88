"""REST API routes for the policy lifecycle engine."""

import logging

from fastapi import APIRouter, Depends, Request, status

from cropshield.api.schemas import (
    BalanceResponse,
    EvaluationResponse,
    HeightResponse,
    OracleAuthorizationResponse,
    OracleAuthorizeRequest,
    OracleResponse,
    PolicyPurchaseRequest,
    PolicyResponse,
    RiskPoolResponse,
    SettlementResponse,
    TerminateResponse,
    WeatherConfirmRequest,
    WeatherObservationResponse,
    WeatherRecordRequest,
    WeatherRecordResponse,
)
from cropshield.core.auth import require_sender
from cropshield.core.errors import NotFoundError
from cropshield.services.engine import InsuranceEngine

logger = logging.getLogger(__name__)

router = APIRouter()


def get_engine(request: Request) -> InsuranceEngine:
    return request.app.state.engine


# ── Oracles ───────────────────────────────────────────────────────────────────


@router.post(
    "/oracles",
    response_model=OracleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register the sender as a weather oracle",
)
async def authorize_oracle(
    body: OracleAuthorizeRequest,
    sender: str = Depends(require_sender),
    engine: InsuranceEngine = Depends(get_engine),
) -> OracleResponse:
    registration = await engine.authorize_oracle(sender, body.name)
    return OracleResponse.model_validate(registration)


@router.get(
    "/oracles/{address}",
    response_model=OracleAuthorizationResponse,
    summary="Check whether an address is an authorized oracle",
)
async def check_oracle_authorization(
    address: str,
    engine: InsuranceEngine = Depends(get_engine),
) -> OracleAuthorizationResponse:
    authorized = await engine.check_oracle_authorization(address)
    return OracleAuthorizationResponse(address=address, authorized=authorized)


# ── Policies ──────────────────────────────────────────────────────────────────


@router.post(
    "/policies",
    response_model=PolicyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Purchase a policy",
    description=(
        "Collects the premium from the sender, forwards the protocol fee to the "
        "treasury and credits the rest to the crop's risk pool. Coverage starts at "
        "the current height and runs for `duration` heights."
    ),
)
async def purchase_insurance(
    body: PolicyPurchaseRequest,
    sender: str = Depends(require_sender),
    engine: InsuranceEngine = Depends(get_engine),
) -> PolicyResponse:
    policy = await engine.purchase_insurance(sender, **body.model_dump())
    return PolicyResponse.model_validate(policy)


@router.get("/policies/{policy_id}", response_model=PolicyResponse, summary="Get a policy")
async def get_policy(
    policy_id: int,
    engine: InsuranceEngine = Depends(get_engine),
) -> PolicyResponse:
    policy = await engine.get_policy(policy_id)
    if policy is None:
        raise NotFoundError(f"Policy {policy_id} not found", policy_id=policy_id)
    return PolicyResponse.model_validate(policy)


@router.post(
    "/policies/{policy_id}/terminate",
    response_model=TerminateResponse,
    summary="Cancel a policy for a pro-rata premium refund",
)
async def terminate_policy(
    policy_id: int,
    sender: str = Depends(require_sender),
    engine: InsuranceEngine = Depends(get_engine),
) -> TerminateResponse:
    refund = await engine.terminate_policy(sender, policy_id)
    return TerminateResponse(policy_id=policy_id, refund=refund)


@router.post(
    "/policies/{policy_id}/evaluate",
    response_model=EvaluationResponse,
    summary="Evaluate a policy against the current observation",
    description=(
        "Backup path for the automatic evaluation that follows every observation. "
        "Pays out if any threshold is breached; settled or out-of-window policies "
        "return `triggered: false`."
    ),
)
async def trigger_policy_evaluation(
    policy_id: int,
    engine: InsuranceEngine = Depends(get_engine),
) -> EvaluationResponse:
    evaluation = await engine.trigger_policy_evaluation(policy_id)
    return EvaluationResponse(
        policy_id=evaluation.policy_id,
        triggered=evaluation.triggered,
        triggers=[t.value for t in evaluation.triggers],
        payout=evaluation.payout,
    )


@router.get(
    "/policies/{policy_id}/settlements",
    response_model=list[SettlementResponse],
    summary="List a policy's payout and refund records",
)
async def get_settlements(
    policy_id: int,
    engine: InsuranceEngine = Depends(get_engine),
) -> list[SettlementResponse]:
    records = await engine.get_settlements(policy_id)
    return [SettlementResponse.model_validate(r) for r in records]


# ── Weather ───────────────────────────────────────────────────────────────────


@router.post(
    "/weather",
    response_model=WeatherRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an observation at the current height",
)
async def record_weather_data(
    body: WeatherRecordRequest,
    sender: str = Depends(require_sender),
    engine: InsuranceEngine = Depends(get_engine),
) -> WeatherRecordResponse:
    result = await engine.record_weather_data(sender, **body.model_dump())
    return WeatherRecordResponse(
        location=result.location,
        height=result.height,
        triggered_policy_ids=result.triggered_policy_ids,
        deferred_policy_ids=result.deferred_policy_ids,
    )


@router.post(
    "/weather/confirm",
    response_model=WeatherObservationResponse,
    summary="Confirm another oracle's observation",
)
async def confirm_weather_data(
    body: WeatherConfirmRequest,
    sender: str = Depends(require_sender),
    engine: InsuranceEngine = Depends(get_engine),
) -> WeatherObservationResponse:
    observation = await engine.confirm_weather_data(sender, **body.model_dump())
    return WeatherObservationResponse.model_validate(observation)


@router.get(
    "/weather/{location}/{height}",
    response_model=WeatherObservationResponse,
    summary="Get the observation at a location and height",
)
async def get_weather_data(
    location: str,
    height: int,
    engine: InsuranceEngine = Depends(get_engine),
) -> WeatherObservationResponse:
    observation = await engine.get_weather_data(location, height)
    if observation is None:
        raise NotFoundError(
            f"No weather data for {location} at height {height}",
            location=location,
            height=height,
        )
    return WeatherObservationResponse.model_validate(observation)


# ── Pools, accounts, clock ────────────────────────────────────────────────────


@router.get("/pools/{crop_type}", response_model=RiskPoolResponse, summary="Get a risk pool")
async def get_risk_pool(
    crop_type: str,
    engine: InsuranceEngine = Depends(get_engine),
) -> RiskPoolResponse:
    pool = await engine.get_risk_pool(crop_type)
    if pool is None:
        raise NotFoundError(f"No risk pool for crop type {crop_type}", crop_type=crop_type)
    return RiskPoolResponse.model_validate(pool)


@router.get("/accounts/{address}", response_model=BalanceResponse, summary="Get a balance")
async def get_balance(
    address: str,
    engine: InsuranceEngine = Depends(get_engine),
) -> BalanceResponse:
    return BalanceResponse(address=address, balance=await engine.get_balance(address))


@router.get("/height", response_model=HeightResponse, summary="Current height")
async def get_height(engine: InsuranceEngine = Depends(get_engine)) -> HeightResponse:
    return HeightResponse(height=await engine.current_height())
