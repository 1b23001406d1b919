"""
Wallet service — prepaid balances used for instant voucher purchases.

Each balance change is a single conditional UPDATE followed by an
append-only WalletEntry in the same database transaction:

    credit:  UPDATE wallets SET balance_cents = balance_cents + :amt WHERE id = :id
    debit:   UPDATE wallets SET balance_cents = balance_cents - :amt
             WHERE id = :id AND balance_cents >= :amt

A debit that matches zero rows means the balance was too low at the
moment of the write, whatever the caller read earlier, so two concurrent
debits can never overdraw a wallet. The cached balance therefore always
equals the sum of credits minus the sum of debits in wallet_entries.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.config import settings
from vouchify.exceptions import InsufficientFundsError, UserNotFoundError
from vouchify.models.user import User
from vouchify.models.wallet import Wallet, WalletEntry
from vouchify.services import notification_service

log = logging.getLogger(__name__)


async def get_or_create_wallet(db: AsyncSession, user_id: uuid.UUID) -> Wallet:
    """Return the user's wallet, creating an empty one on first use."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()

    if wallet is None:
        wallet = Wallet(
            user_id=user_id,
            balance_cents=0,
            currency=settings.DEFAULT_CURRENCY,
        )
        db.add(wallet)
        await db.flush()

    return wallet


async def credit(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount_cents: int,
    source: str,
    description: str,
    reference: str | None = None,
    voucher_id: uuid.UUID | None = None,
) -> WalletEntry:
    """Add funds to a wallet (top-up or refund)."""
    wallet = await get_or_create_wallet(db, user_id)

    await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance_cents=Wallet.balance_cents + amount_cents)
        .execution_options(synchronize_session=False)
    )

    entry = WalletEntry(
        wallet_id=wallet.id,
        type="credit",
        source=source,
        amount_cents=amount_cents,
        description=description,
        reference=reference,
        voucher_id=voucher_id,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(wallet)

    log.info("Wallet %s credited %d (%s)", wallet.id, amount_cents, source)
    return entry


async def debit(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount_cents: int,
    source: str,
    description: str,
    reference: str | None = None,
    voucher_id: uuid.UUID | None = None,
) -> WalletEntry:
    """
    Remove funds from a wallet.

    Raises:
        InsufficientFundsError: If the balance is below amount_cents at
                                the time of the update. Nothing changes.
    """
    wallet = await get_or_create_wallet(db, user_id)

    result = await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id, Wallet.balance_cents >= amount_cents)
        .values(balance_cents=Wallet.balance_cents - amount_cents)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.refresh(wallet)
        raise InsufficientFundsError(
            user_id=user_id,
            requested_cents=amount_cents,
            available_cents=wallet.balance_cents,
        )

    entry = WalletEntry(
        wallet_id=wallet.id,
        type="debit",
        source=source,
        amount_cents=amount_cents,
        description=description,
        reference=reference,
        voucher_id=voucher_id,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(wallet)

    log.info("Wallet %s debited %d (%s)", wallet.id, amount_cents, source)
    return entry


async def top_up(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount_cents: int,
    admin: User,
    reference: str | None = None,
) -> Wallet:
    """
    [ADMIN ONLY] Credit a member's wallet after their payment was verified
    off-platform. Members cannot fund their own wallets.

    Raises:
        UserNotFoundError: No such user.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    await credit(
        db,
        user_id=user_id,
        amount_cents=amount_cents,
        source="manual",
        description="Wallet top-up",
        reference=reference,
    )
    log.info("Admin %s credited %d to the wallet of user %s", admin.id, amount_cents, user_id)

    await notification_service.notify(
        db, user_id,
        f"{amount_cents / 100:,.2f} {settings.DEFAULT_CURRENCY} was added to your wallet",
        type="success", link="/wallet",
    )
    return await get_or_create_wallet(db, user_id)


async def get_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[WalletEntry]:
    wallet = await get_or_create_wallet(db, user_id)

    result = await db.execute(
        select(WalletEntry)
        .where(WalletEntry.wallet_id == wallet.id)
        .order_by(WalletEntry.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())
