"""Oracle registration model — addresses allowed to report weather."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class OracleRegistration(Base):
    __tablename__ = "oracle_registrations"

    address: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    registered_at_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    registered_by: Mapped[str] = mapped_column(String(128), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<OracleRegistration {self.address} ({self.name}) active={self.active}>"
