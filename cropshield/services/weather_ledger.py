"""Weather ledger — one observation per (location, height) and its verification."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import (
    AuthorizationError,
    DataMismatchError,
    NotFoundError,
    ValidationError,
)
from cropshield.models.observation import WeatherObservation
from cropshield.services.oracle_authority import OracleAuthority

logger = logging.getLogger(__name__)


async def get_observation(
    session: AsyncSession, location: str, height: int
) -> WeatherObservation | None:
    return await session.get(WeatherObservation, (location, height))


async def require_observation(
    session: AsyncSession, location: str, height: int
) -> WeatherObservation:
    observation = await get_observation(session, location, height)
    if observation is None:
        raise NotFoundError(
            f"No weather data for {location} at height {height}",
            location=location,
            height=height,
        )
    return observation


async def record(
    session: AsyncSession,
    authority: OracleAuthority,
    *,
    location: str,
    rainfall: int,
    temperature: int,
    humidity: int,
    reporter: str,
    height: int,
) -> WeatherObservation:
    """Store a reading at ``height``, replacing any earlier one for the same key.

    A replaced reading loses its verification.
    """
    if not await authority.is_authorized(session, reporter):
        raise AuthorizationError(f"{reporter} is not an authorized oracle", reporter=reporter)
    if not location or len(location) > settings.max_location_length:
        raise ValidationError(
            f"Location must be 1-{settings.max_location_length} characters", location=location
        )
    if humidity < 0:
        raise ValidationError("Humidity cannot be negative", humidity=humidity)

    observation = await get_observation(session, location, height)
    if observation is None:
        observation = WeatherObservation(location=location, height=height)
        session.add(observation)
    else:
        logger.info("Overwriting observation %s@%d", location, height)

    observation.rainfall = rainfall
    observation.temperature = temperature
    observation.humidity = humidity
    observation.reporter = reporter
    observation.verified = False
    observation.verified_by = None

    logger.info(
        "Recorded weather %s@%d: rain=%dmm temp=%dC hum=%d%% by %s",
        location,
        height,
        rainfall,
        temperature,
        humidity,
        reporter,
    )
    return observation


async def confirm(
    session: AsyncSession,
    authority: OracleAuthority,
    *,
    location: str,
    height: int,
    rainfall: int,
    temperature: int,
    humidity: int,
    confirmer: str,
) -> WeatherObservation:
    """Mark a stored reading verified if a second oracle's reading agrees with it."""
    if not await authority.is_authorized(session, confirmer):
        raise AuthorizationError(
            f"{confirmer} is not an authorized oracle", confirmer=confirmer
        )

    observation = await require_observation(session, location, height)
    if observation.reporter == confirmer:
        raise AuthorizationError(
            "An oracle cannot confirm its own observation", confirmer=confirmer
        )

    deltas = {
        "rainfall": abs(rainfall - observation.rainfall),
        "temperature": abs(temperature - observation.temperature),
        "humidity": abs(humidity - observation.humidity),
    }
    limits = {
        "rainfall": settings.rainfall_tolerance_mm,
        "temperature": settings.temperature_tolerance_c,
        "humidity": settings.humidity_tolerance_pct,
    }
    mismatched = sorted(field for field, delta in deltas.items() if delta >= limits[field])
    if mismatched:
        logger.warning(
            "Rejected confirmation of %s@%d by %s: %s out of tolerance (deltas=%s)",
            location,
            height,
            confirmer,
            ", ".join(mismatched),
            deltas,
        )
        raise DataMismatchError(
            f"Readings out of tolerance: {', '.join(mismatched)}",
            mismatched=mismatched,
            deltas=deltas,
        )

    observation.verified = True
    observation.verified_by = confirmer
    logger.info("Observation %s@%d verified by %s", location, height, confirmer)
    return observation
