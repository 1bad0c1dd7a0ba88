"""Weather observation model — one reading per (location, height).

A reading starts unverified. A second, distinct oracle confirming it within
tolerance flips ``verified``; payouts do not wait for that.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class WeatherObservation(Base):
    __tablename__ = "weather_observations"

    location: Mapped[str] = mapped_column(String(64), primary_key=True)
    height: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    rainfall: Mapped[int] = mapped_column(Integer, nullable=False)     # mm
    temperature: Mapped[int] = mapped_column(Integer, nullable=False)  # °C
    humidity: Mapped[int] = mapped_column(Integer, nullable=False)     # %

    reporter: Mapped[str] = mapped_column(String(128), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return (
            f"<WeatherObservation {self.location}@{self.height} "
            f"rain={self.rainfall}mm temp={self.temperature}C hum={self.humidity}% "
            f"verified={self.verified}>"
        )
