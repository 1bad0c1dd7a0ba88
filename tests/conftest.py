"""Shared test fixtures for the CropShield test suite.

Every test gets its own in-memory SQLite database, so the engine runs with
real transactions (rollback, savepoints) and no external services.
"""

import pytest
import pytest_asyncio

from cropshield.core.clock import HeightClock
from cropshield.core.config import settings
from cropshield.core.database import build_engine, build_session_factory, init_db
from cropshield.models.observation import WeatherObservation
from cropshield.models.policy import Policy, PolicyStatus
from cropshield.services.engine import InsuranceEngine

GENESIS = 100

HOLDER = "SP1FARMER"
OTHER_HOLDER = "SP2FARMER"
ORACLE = "SP3ORACLE"
OTHER_ORACLE = "SP4ORACLE"

LOCATION = "nakuru-north"
OTHER_LOCATION = "eldoret-east"
CROP = "maize"


# ── Factory helpers ───────────────────────────────────────────────────────────


def make_terms(**overrides) -> dict:
    """Purchase terms for a policy at LOCATION: drought<100mm, flood>500mm, frost<-5C."""
    terms = {
        "location": LOCATION,
        "crop_type": CROP,
        "coverage": 1000,
        "premium": 100,
        "duration": 1000,
        "drought_threshold": 100,
        "flood_threshold": 500,
        "frost_threshold": -5,
        "oracle": ORACLE,
    }
    terms.update(overrides)
    return terms


def make_policy(**overrides) -> Policy:
    """A transient Policy for pure-function tests."""
    fields = {
        "id": 1,
        "holder": HOLDER,
        "location": LOCATION,
        "crop_type": CROP,
        "coverage": 1000,
        "premium": 100,
        "start_height": GENESIS,
        "end_height": GENESIS + 1000,
        "status": PolicyStatus.ACTIVE,
        "drought_threshold": 100,
        "flood_threshold": 500,
        "frost_threshold": -5,
        "oracle": ORACLE,
    }
    fields.update(overrides)
    return Policy(**fields)


def make_observation(
    rainfall: int = 300,
    temperature: int = 10,
    humidity: int = 60,
    location: str = LOCATION,
    height: int = GENESIS,
    reporter: str = ORACLE,
) -> WeatherObservation:
    return WeatherObservation(
        location=location,
        height=height,
        rainfall=rainfall,
        temperature=temperature,
        humidity=humidity,
        reporter=reporter,
        verified=False,
    )


async def bootstrap(insurance: InsuranceEngine, holder_funds: int = 10_000) -> None:
    """Register both oracles and fund both holders."""
    await insurance.authorize_oracle(ORACLE, "Nakuru AWS")
    await insurance.authorize_oracle(OTHER_ORACLE, "Eldoret AWS")
    await insurance.deposit(HOLDER, holder_funds)
    await insurance.deposit(OTHER_HOLDER, holder_funds)


async def fund_pool(insurance: InsuranceEngine, premium: int = 2000) -> Policy:
    """Top up the maize pool with a large-premium policy at OTHER_LOCATION.

    With the default 5% fee, premium=2000 contributes 1900.
    """
    return await insurance.purchase_insurance(
        OTHER_HOLDER,
        **make_terms(location=OTHER_LOCATION, premium=premium, coverage=5000),
    )


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch):
    """Pin the economics every test assumes, whatever the environment says."""
    monkeypatch.setattr(settings, "protocol_fee_bps", 500)
    monkeypatch.setattr(settings, "min_policy_duration", 1000)
    monkeypatch.setattr(settings, "evaluate_on_record", True)


@pytest_asyncio.fixture
async def db_engine():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def insurance(session_factory) -> InsuranceEngine:
    return InsuranceEngine(session_factory, clock=HeightClock(GENESIS))


@pytest_asyncio.fixture
async def ready(insurance) -> InsuranceEngine:
    """An engine with both oracles registered and both holders funded."""
    await bootstrap(insurance)
    return insurance
