"""Fund movement between accounts.

The custody account holds every pool's money; the treasury collects protocol
fees. All movements run inside the caller's transaction, so a failed transfer
anywhere in an operation rolls back every balance change before it.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cropshield.core.errors import TransferError, ValidationError
from cropshield.models.account import Account

logger = logging.getLogger(__name__)


async def get_balance(session: AsyncSession, address: str) -> int:
    account = await session.get(Account, address)
    return account.balance if account is not None else 0


async def deposit(session: AsyncSession, address: str, amount: int) -> int:
    """Credit ``amount`` to ``address`` and return the new balance."""
    if amount <= 0:
        raise ValidationError("Deposit amount must be positive", amount=amount)
    account = await _get_or_create(session, address)
    account.balance += amount
    logger.info("Deposited %d to %s (balance=%d)", amount, address, account.balance)
    return account.balance


async def transfer(session: AsyncSession, sender: str, recipient: str, amount: int) -> None:
    if amount <= 0:
        raise TransferError("Transfer amount must be positive", amount=amount)
    if sender == recipient:
        raise TransferError("Sender and recipient must differ", address=sender)

    source = await session.get(Account, sender)
    balance = source.balance if source is not None else 0
    if balance < amount:
        raise TransferError(
            f"Insufficient balance in {sender}: {balance} < {amount}",
            address=sender,
            balance=balance,
            amount=amount,
        )

    target = await _get_or_create(session, recipient)
    source.balance -= amount
    target.balance += amount
    logger.debug("Transferred %d %s -> %s", amount, sender, recipient)


async def _get_or_create(session: AsyncSession, address: str) -> Account:
    account = await session.get(Account, address)
    if account is None:
        account = Account(address=address, balance=0)
        session.add(account)
    return account
