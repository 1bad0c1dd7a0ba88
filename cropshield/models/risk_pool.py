"""Risk pool model — per crop-type ledger of contributions and settlements.

Conservation: available_funds == total_premiums - total_payouts - total_refunds.
"""

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class RiskPool(Base):
    __tablename__ = "risk_pools"

    crop_type: Mapped[str] = mapped_column(String(32), primary_key=True)

    total_premiums: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)  # net of fee
    total_payouts: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_refunds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    active_policies: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserve_ratio_bps: Mapped[int] = mapped_column(Integer, nullable=False)  # informational
    available_funds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<RiskPool {self.crop_type} available={self.available_funds} "
            f"active={self.active_policies}>"
        )
