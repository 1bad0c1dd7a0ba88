"""The external height counter used as the engine's clock.

Heights only move forward. Every engine operation reads the clock once and
treats that value as constant for its whole duration.

The current height is mirrored in the ``sequences`` table so a restarted
process resumes where the last one stopped instead of at genesis.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.config import settings
from cropshield.core.errors import ValidationError
from cropshield.models.account import Sequence

logger = logging.getLogger(__name__)

HEIGHT_SEQUENCE = "height"


class HeightClock:
    def __init__(self, height: int | None = None):
        self._height = settings.genesis_height if height is None else height
        if self._height < 0:
            raise ValidationError("Height must be non-negative", height=self._height)

    def current(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValidationError("Height cannot move backwards", blocks=blocks)
        self._height += blocks
        logger.debug("Height advanced to %d", self._height)
        return self._height

    def set(self, height: int) -> int:
        if height < self._height:
            raise ValidationError(
                f"Height cannot move backwards ({self._height} -> {height})",
                current_height=self._height,
            )
        self._height = height
        return self._height

    async def sync(self, session: AsyncSession) -> int:
        """Reconcile with the stored height inside ``session``'s transaction.

        The higher of the two wins, so neither a fresh process nor a stale
        row can pull the clock backwards.
        """
        row = await session.get(Sequence, HEIGHT_SEQUENCE)
        if row is None:
            session.add(Sequence(name=HEIGHT_SEQUENCE, value=self._height))
            await session.flush()
        elif row.value > self._height:
            logger.info("Resuming at stored height %d (was %d)", row.value, self._height)
            self._height = row.value
        elif row.value < self._height:
            row.value = self._height
        return self._height
