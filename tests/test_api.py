"""Tests for the REST API endpoints.

The app runs in-process over httpx's ASGI transport against an engine backed
by the per-test in-memory database.
"""

import httpx
import pytest
import pytest_asyncio

from cropshield.core.auth import SENDER_HEADER
from cropshield.core.config import settings
from cropshield.main import create_app
from tests.conftest import CROP, GENESIS, HOLDER, LOCATION, ORACLE, OTHER_HOLDER, OTHER_ORACLE, make_terms


def _as(address: str) -> dict[str, str]:
    return {SENDER_HEADER: address}


def _admin() -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.admin_secret}"}


@pytest_asyncio.fixture
async def client(insurance):
    app = create_app(use_lifespan=False)
    app.state.engine = insurance
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def funded(client):
    """Oracle registered, holder funded, maize pool topped up by OTHER_HOLDER."""
    resp = await client.post("/api/v1/oracles", json={"name": "Nakuru AWS"}, headers=_as(ORACLE))
    assert resp.status_code == 201
    for address in (HOLDER, OTHER_HOLDER):
        resp = await client.post(
            f"/admin/accounts/{address}/deposit", json={"amount": 10_000}, headers=_admin()
        )
        assert resp.status_code == 200
    resp = await client.post(
        "/api/v1/policies",
        json=make_terms(location="eldoret-east", premium=2000, coverage=5000),
        headers=_as(OTHER_HOLDER),
    )
    assert resp.status_code == 201
    return client


class TestOps:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert "X-Request-ID" in resp.headers

    @pytest.mark.asyncio
    async def test_height(self, client):
        resp = await client.get("/api/v1/height")
        assert resp.json() == {"height": GENESIS}

    @pytest.mark.asyncio
    async def test_advance_height(self, client):
        resp = await client.post("/admin/height/advance", json={"blocks": 10}, headers=_admin())
        assert resp.status_code == 200
        assert resp.json() == {"height": GENESIS + 10}


class TestAuth:
    @pytest.mark.asyncio
    async def test_write_without_sender_is_401(self, client):
        resp = await client.post("/api/v1/oracles", json={"name": "x"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "MISSING_SENDER"

    @pytest.mark.asyncio
    async def test_admin_requires_secret(self, client):
        resp = await client.post(
            "/admin/height/advance",
            json={"blocks": 1},
            headers={"Authorization": "Bearer wrong"},
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_admin_without_credentials(self, client):
        resp = await client.post("/admin/height/advance", json={"blocks": 1})
        assert resp.status_code in (401, 403)


class TestOracles:
    @pytest.mark.asyncio
    async def test_register_and_check(self, client):
        resp = await client.post("/api/v1/oracles", json={"name": "Nakuru AWS"}, headers=_as(ORACLE))
        assert resp.status_code == 201
        body = resp.json()
        assert body["address"] == ORACLE
        assert body["registered_at_height"] == GENESIS

        resp = await client.get(f"/api/v1/oracles/{ORACLE}")
        assert resp.json() == {"address": ORACLE, "authorized": True}

    @pytest.mark.asyncio
    async def test_unknown_address_is_not_authorized(self, client):
        resp = await client.get("/api/v1/oracles/SP9UNKNOWN")
        assert resp.status_code == 200
        assert resp.json()["authorized"] is False

    @pytest.mark.asyncio
    async def test_deactivate(self, client):
        await client.post("/api/v1/oracles", json={"name": "Nakuru AWS"}, headers=_as(ORACLE))
        resp = await client.post(f"/admin/oracles/{ORACLE}/deactivate", headers=_admin())
        assert resp.status_code == 200
        assert resp.json()["active"] is False


class TestPolicies:
    @pytest.mark.asyncio
    async def test_purchase_and_get(self, funded):
        resp = await funded.post("/api/v1/policies", json=make_terms(), headers=_as(HOLDER))
        assert resp.status_code == 201
        body = resp.json()
        assert body["holder"] == HOLDER
        assert body["status"] == "active"
        assert body["active"] is True
        assert body["payout_executed"] is False

        resp = await funded.get(f"/api/v1/policies/{body['id']}")
        assert resp.status_code == 200
        assert resp.json()["end_height"] == GENESIS + 1000

    @pytest.mark.asyncio
    async def test_missing_policy_is_404(self, client):
        resp = await client.get("/api/v1/policies/999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_inverted_thresholds_are_422(self, funded):
        resp = await funded.post(
            "/api/v1/policies",
            json=make_terms(drought_threshold=500, flood_threshold=100),
            headers=_as(HOLDER),
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_schema_rejects_negative_amounts(self, funded):
        resp = await funded.post(
            "/api/v1/policies", json=make_terms(coverage=-1), headers=_as(HOLDER)
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_schema_rejects_thresholds_outside_column_range(self, funded):
        resp = await funded.post(
            "/api/v1/policies", json=make_terms(flood_threshold=2**31), headers=_as(HOLDER)
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unfunded_buyer_is_402(self, funded):
        resp = await funded.post("/api/v1/policies", json=make_terms(), headers=_as("SP7BROKE"))
        assert resp.status_code == 402
        assert resp.json()["error"]["code"] == "TRANSFER_FAILED"

    @pytest.mark.asyncio
    async def test_terminate(self, funded):
        policy_id = (
            await funded.post("/api/v1/policies", json=make_terms(), headers=_as(HOLDER))
        ).json()["id"]
        await funded.post("/admin/height/advance", json={"blocks": 250}, headers=_admin())

        resp = await funded.post(f"/api/v1/policies/{policy_id}/terminate", headers=_as(OTHER_HOLDER))
        assert resp.status_code == 403

        resp = await funded.post(f"/api/v1/policies/{policy_id}/terminate", headers=_as(HOLDER))
        assert resp.status_code == 200
        assert resp.json() == {"policy_id": policy_id, "refund": 75}

        resp = await funded.post(f"/api/v1/policies/{policy_id}/terminate", headers=_as(HOLDER))
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "STATE_CONFLICT"


class TestWeatherFlow:
    @pytest.mark.asyncio
    async def test_breach_pays_out_automatically(self, funded):
        policy_id = (
            await funded.post("/api/v1/policies", json=make_terms(), headers=_as(HOLDER))
        ).json()["id"]

        resp = await funded.post(
            "/api/v1/weather",
            json={"location": LOCATION, "rainfall": 50, "temperature": 20, "humidity": 30},
            headers=_as(ORACLE),
        )
        assert resp.status_code == 201
        assert resp.json()["triggered_policy_ids"] == [policy_id]

        policy = (await funded.get(f"/api/v1/policies/{policy_id}")).json()
        assert policy["payout_executed"] is True

        pool = (await funded.get(f"/api/v1/pools/{CROP}")).json()
        assert pool["total_payouts"] == 1000
        assert pool["available_funds"] == pool["total_premiums"] - 1000

        balance = (await funded.get(f"/api/v1/accounts/{HOLDER}")).json()
        assert balance["balance"] == 10_000 - 100 + 1000

        settlements = (await funded.get(f"/api/v1/policies/{policy_id}/settlements")).json()
        assert [s["kind"] for s in settlements] == ["payout"]

        report = (await funded.get("/admin/settlements/verify", headers=_admin())).json()
        assert report["valid"] is True

        resp = await funded.post(f"/api/v1/policies/{policy_id}/evaluate")
        assert resp.status_code == 200
        assert resp.json()["triggered"] is False

    @pytest.mark.asyncio
    async def test_manual_evaluation_without_data_is_404(self, funded):
        policy_id = (
            await funded.post("/api/v1/policies", json=make_terms(), headers=_as(HOLDER))
        ).json()["id"]
        resp = await funded.post(f"/api/v1/policies/{policy_id}/evaluate")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_confirm(self, funded):
        await funded.post("/api/v1/oracles", json={"name": "Eldoret AWS"}, headers=_as(OTHER_ORACLE))
        reading = {"location": LOCATION, "rainfall": 300, "temperature": 10, "humidity": 60}
        await funded.post("/api/v1/weather", json=reading, headers=_as(ORACLE))

        resp = await funded.post(
            "/api/v1/weather/confirm",
            json={**reading, "rainfall": 305, "height": GENESIS},
            headers=_as(OTHER_ORACLE),
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DATA_MISMATCH"
        assert resp.json()["error"]["mismatched"] == ["rainfall"]

        resp = await funded.post(
            "/api/v1/weather/confirm",
            json={**reading, "rainfall": 304, "height": GENESIS},
            headers=_as(OTHER_ORACLE),
        )
        assert resp.status_code == 200
        assert resp.json()["verified"] is True

        resp = await funded.get(f"/api/v1/weather/{LOCATION}/{GENESIS}")
        assert resp.json()["verified_by"] == OTHER_ORACLE

    @pytest.mark.asyncio
    async def test_missing_observation_is_404(self, client):
        resp = await client.get(f"/api/v1/weather/{LOCATION}/{GENESIS}")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_pool_is_404(self, client):
        resp = await client.get("/api/v1/pools/sorghum")
        assert resp.status_code == 404
