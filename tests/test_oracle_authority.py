"""Tests for oracle self-registration and authorization checks."""

import pytest

from cropshield.core.errors import AuthorizationError, NotFoundError, ValidationError
from cropshield.models.oracle import OracleRegistration
from tests.conftest import GENESIS, LOCATION, ORACLE


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_unknown_address_is_not_authorized(self, insurance):
        assert await insurance.check_oracle_authorization("SP9UNKNOWN") is False

    @pytest.mark.asyncio
    async def test_self_registration(self, insurance):
        await insurance.advance_height(12)
        registration = await insurance.authorize_oracle(ORACLE, "Nakuru AWS")

        assert isinstance(registration, OracleRegistration)
        assert registration.name == "Nakuru AWS"
        assert registration.registered_at_height == GENESIS + 12
        assert registration.registered_by == ORACLE
        assert registration.active is True
        assert await insurance.check_oracle_authorization(ORACLE) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "n" * 65])
    async def test_bad_names_rejected(self, insurance, name):
        with pytest.raises(ValidationError):
            await insurance.authorize_oracle(ORACLE, name)
        assert await insurance.check_oracle_authorization(ORACLE) is False

    @pytest.mark.asyncio
    async def test_re_registration_overwrites(self, insurance):
        await insurance.authorize_oracle(ORACLE, "Old name")
        await insurance.advance_height(5)
        registration = await insurance.authorize_oracle(ORACLE, "New name")

        assert registration.name == "New name"
        assert registration.registered_at_height == GENESIS + 5


class TestDeactivate:
    @pytest.mark.asyncio
    async def test_deactivated_oracle_loses_authorization(self, insurance):
        await insurance.authorize_oracle(ORACLE, "Nakuru AWS")
        await insurance.deactivate_oracle(ORACLE)

        assert await insurance.check_oracle_authorization(ORACLE) is False
        with pytest.raises(AuthorizationError):
            await insurance.record_weather_data(
                ORACLE, location=LOCATION, rainfall=10, temperature=10, humidity=10
            )

    @pytest.mark.asyncio
    async def test_re_registration_reactivates(self, insurance):
        await insurance.authorize_oracle(ORACLE, "Nakuru AWS")
        await insurance.deactivate_oracle(ORACLE)
        await insurance.authorize_oracle(ORACLE, "Nakuru AWS")
        assert await insurance.check_oracle_authorization(ORACLE) is True

    @pytest.mark.asyncio
    async def test_unknown_oracle(self, insurance):
        with pytest.raises(NotFoundError):
            await insurance.deactivate_oracle("SP9UNKNOWN")
