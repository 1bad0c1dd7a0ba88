"""Account balances and named counters.

Balances are in the smallest currency unit. The custody and treasury accounts
are ordinary rows addressed by the configured well-known addresses.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from cropshield.core.database import Base


class Account(Base):
    __tablename__ = "accounts"

    address: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Account {self.address} balance={self.balance}>"


class Sequence(Base):
    __tablename__ = "sequences"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
