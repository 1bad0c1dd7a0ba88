"""Operator endpoints — protected by ADMIN_SECRET.

Funding accounts and moving the clock stand in for the external ledger and
sequencer in development and test deployments.
"""

from fastapi import APIRouter, Depends

from cropshield.api.routes import get_engine
from cropshield.api.schemas import (
    AdvanceHeightRequest,
    BalanceResponse,
    ChainVerificationResponse,
    DepositRequest,
    HeightResponse,
    OracleResponse,
)
from cropshield.core.auth import require_admin
from cropshield.services.engine import InsuranceEngine

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post(
    "/accounts/{address}/deposit",
    response_model=BalanceResponse,
    summary="Credit an account",
)
async def deposit(
    address: str,
    body: DepositRequest,
    engine: InsuranceEngine = Depends(get_engine),
) -> BalanceResponse:
    balance = await engine.deposit(address, body.amount)
    return BalanceResponse(address=address, balance=balance)


@router.post("/height/advance", response_model=HeightResponse, summary="Advance the clock")
async def advance_height(
    body: AdvanceHeightRequest,
    engine: InsuranceEngine = Depends(get_engine),
) -> HeightResponse:
    return HeightResponse(height=await engine.advance_height(body.blocks))


@router.post(
    "/oracles/{address}/deactivate",
    response_model=OracleResponse,
    summary="Revoke an oracle's authorization",
)
async def deactivate_oracle(
    address: str,
    engine: InsuranceEngine = Depends(get_engine),
) -> OracleResponse:
    registration = await engine.deactivate_oracle(address)
    return OracleResponse.model_validate(registration)


@router.get(
    "/settlements/verify",
    response_model=ChainVerificationResponse,
    summary="Recompute the settlement hash chain",
)
async def verify_settlements(
    engine: InsuranceEngine = Depends(get_engine),
) -> ChainVerificationResponse:
    report = await engine.verify_settlements()
    return ChainVerificationResponse(
        valid=report.valid,
        records_checked=report.records_checked,
        broken_at=report.broken_at,
    )
