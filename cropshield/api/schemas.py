"""Pydantic schemas for the REST API request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from cropshield.models.policy import PolicyStatus
from cropshield.models.settlement import SettlementKind

# Readings and thresholds live in 32-bit columns, amounts and heights in 64-bit ones.
INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MAX = 2**63 - 1


# ── Oracles ───────────────────────────────────────────────────────────────────


class OracleAuthorizeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64, examples=["Nakuru AWS #3"])


class OracleResponse(BaseModel):
    address: str
    name: str
    registered_at_height: int
    registered_by: str
    active: bool

    model_config = {"from_attributes": True}


class OracleAuthorizationResponse(BaseModel):
    address: str
    authorized: bool


# ── Policies ──────────────────────────────────────────────────────────────────


class PolicyPurchaseRequest(BaseModel):
    """Request body for buying a policy. The sender is the policyholder."""

    location: str = Field(..., min_length=1, max_length=64, examples=["nakuru-north"])
    crop_type: str = Field(..., min_length=1, max_length=32, examples=["maize"])
    coverage: int = Field(..., ge=0, le=INT64_MAX, description="Maximum payout, smallest currency unit")
    premium: int = Field(..., ge=0, le=INT64_MAX, description="Premium paid up front, smallest currency unit")
    duration: int = Field(..., ge=0, le=INT32_MAX, description="Coverage window length in heights")
    drought_threshold: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="Rainfall floor, mm")
    flood_threshold: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="Rainfall ceiling, mm")
    frost_threshold: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="Temperature floor, °C")
    oracle: str = Field(..., min_length=1, max_length=128)


class PolicyResponse(BaseModel):
    id: int
    holder: str
    location: str
    crop_type: str
    coverage: int
    premium: int
    start_height: int
    end_height: int
    status: PolicyStatus
    active: bool
    payout_executed: bool
    drought_threshold: int
    flood_threshold: int
    frost_threshold: int
    oracle: str

    model_config = {"from_attributes": True}


class TerminateResponse(BaseModel):
    policy_id: int
    refund: int


class EvaluationResponse(BaseModel):
    policy_id: int
    triggered: bool
    triggers: list[str]
    payout: int


class SettlementResponse(BaseModel):
    id: int
    policy_id: int
    kind: SettlementKind
    amount: int
    height: int
    recipient: str
    triggers: list[str] | None
    previous_hash: str | None
    record_hash: str
    settled_at: datetime

    model_config = {"from_attributes": True}


class ChainVerificationResponse(BaseModel):
    valid: bool
    records_checked: int
    broken_at: int | None


# ── Weather ───────────────────────────────────────────────────────────────────


class WeatherRecordRequest(BaseModel):
    location: str = Field(..., min_length=1, max_length=64)
    rainfall: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="mm")
    temperature: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="°C")
    humidity: int = Field(..., ge=0, le=INT32_MAX, description="%")


class WeatherConfirmRequest(WeatherRecordRequest):
    height: int = Field(..., ge=0)


class WeatherRecordResponse(BaseModel):
    success: bool = True
    location: str
    height: int
    triggered_policy_ids: list[int]
    deferred_policy_ids: list[int]


class WeatherObservationResponse(BaseModel):
    location: str
    height: int
    rainfall: int
    temperature: int
    humidity: int
    reporter: str
    verified: bool
    verified_by: str | None

    model_config = {"from_attributes": True}


# ── Pools, accounts, clock ────────────────────────────────────────────────────


class RiskPoolResponse(BaseModel):
    crop_type: str
    total_premiums: int
    total_payouts: int
    total_refunds: int
    active_policies: int
    reserve_ratio_bps: int
    available_funds: int

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    address: str
    balance: int


class DepositRequest(BaseModel):
    amount: int = Field(..., gt=0)


class HeightResponse(BaseModel):
    height: int


class AdvanceHeightRequest(BaseModel):
    blocks: int = Field(default=1, ge=0)
