"""Oracle authority — who may report and confirm weather observations.

The lifecycle engine only ever asks ``is_authorized``. The default
``SelfRegistrationAuthority`` lets any address register itself; a stricter
authority (governance vote, staking, reputation) can be swapped in without
touching the policy or weather code.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import NotFoundError, ValidationError
from cropshield.models.oracle import OracleRegistration

logger = logging.getLogger(__name__)


class OracleAuthority(Protocol):
    async def authorize(
        self, session: AsyncSession, address: str, name: str, height: int
    ) -> OracleRegistration: ...

    async def is_authorized(self, session: AsyncSession, address: str) -> bool: ...

    async def deactivate(self, session: AsyncSession, address: str) -> OracleRegistration: ...


class SelfRegistrationAuthority:
    """Any caller may register itself as an oracle."""

    async def authorize(
        self, session: AsyncSession, address: str, name: str, height: int
    ) -> OracleRegistration:
        name = name.strip()
        if not name or len(name) > settings.max_oracle_name_length:
            raise ValidationError(
                f"Oracle name must be 1-{settings.max_oracle_name_length} characters",
                name=name,
            )

        registration = await session.get(OracleRegistration, address)
        if registration is None:
            registration = OracleRegistration(address=address)
            session.add(registration)
        registration.name = name
        registration.registered_at_height = height
        registration.registered_by = address
        registration.active = True

        logger.info("Registered oracle %s (%s) at height %d", address, name, height)
        return registration

    async def is_authorized(self, session: AsyncSession, address: str) -> bool:
        registration = await session.get(OracleRegistration, address)
        return registration is not None and registration.active

    async def deactivate(self, session: AsyncSession, address: str) -> OracleRegistration:
        registration = await session.get(OracleRegistration, address)
        if registration is None:
            raise NotFoundError(f"Oracle {address} is not registered", address=address)
        registration.active = False
        logger.info("Deactivated oracle %s", address)
        return registration

