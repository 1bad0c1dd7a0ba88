"""Policy model — one coverage contract and its lifecycle state.

A policy pays ``coverage`` to its holder when, at some height inside
[start_height, end_height], the observation at its location shows rainfall
below the drought floor, rainfall above the flood ceiling, or temperature
below the frost floor.

The lifecycle is a single ``status`` column so a policy is always in exactly
one of ACTIVE, CANCELLED or PAID_OUT. The two terminal states never change.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class PolicyStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAID_OUT = "paid_out"


class Policy(Base):
    __tablename__ = "policies"

    # Allocated from the "policy" sequence, never autoincremented
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    holder: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    crop_type: Mapped[str] = mapped_column(String(32), nullable=False)

    coverage: Mapped[int] = mapped_column(BigInteger, nullable=False)
    premium: Mapped[int] = mapped_column(BigInteger, nullable=False)

    start_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_height: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[PolicyStatus] = mapped_column(
        Enum(
            PolicyStatus,
            name="policy_status",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=PolicyStatus.ACTIVE,
    )

    drought_threshold: Mapped[int] = mapped_column(Integer, nullable=False)  # mm floor
    flood_threshold: Mapped[int] = mapped_column(Integer, nullable=False)    # mm ceiling
    frost_threshold: Mapped[int] = mapped_column(Integer, nullable=False)    # °C floor

    oracle: Mapped[str] = mapped_column(String(128), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @property
    def active(self) -> bool:
        return self.status == PolicyStatus.ACTIVE

    @property
    def payout_executed(self) -> bool:
        return self.status == PolicyStatus.PAID_OUT

    def covers(self, height: int) -> bool:
        return self.start_height <= height <= self.end_height

    def __repr__(self) -> str:
        return (
            f"<Policy {self.id} | {self.crop_type}@{self.location} "
            f"coverage={self.coverage} {self.status.value} "
            f"[{self.start_height}..{self.end_height}]>"
        )
