"""Settlement record model — immutable, hash-chained audit trail.

One row per payout or refund, written in the same transaction as the
settlement itself. Rows are never updated.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class SettlementKind(str, enum.Enum):
    PAYOUT = "payout"
    REFUND = "refund"


class SettlementRecord(Base):
    __tablename__ = "settlement_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    policy_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    kind: Mapped[SettlementKind] = mapped_column(
        Enum(
            SettlementKind,
            name="settlement_kind",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recipient: Mapped[str] = mapped_column(String(128), nullable=False)

    # Breached thresholds for payouts, e.g. ["drought"]
    triggers: Mapped[list | None] = mapped_column(JSON, nullable=True)

    previous_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    record_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return (
            f"<Settlement {self.id} | policy={self.policy_id} "
            f"{self.kind.value}={self.amount} hash={self.record_hash[:12]}...>"
        )
