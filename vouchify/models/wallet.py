"""
Wallet model — a user's prepaid balance for instant voucher purchases.

Each user has at most one wallet (created lazily on first use). The
balance is cached on the Wallet row and every change appends a
WalletEntry, so the entries form the audit trail of the balance.

Balance changes use conditional UPDATE statements (see
services/wallet_service.py); the CHECK constraint is the final safety net
against a negative balance.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vouchify.database import Base


class Wallet(Base):
    __tablename__ = "wallets"

    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_wallets_non_negative_balance"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ISO 4217 currency code
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class WalletEntry(Base):
    __tablename__ = "wallet_entries"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_wallet_entries_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("wallets.id"),
        nullable=False,
        index=True,
    )

    # "credit" or "debit"
    type: Mapped[str] = mapped_column(String(10), nullable=False)

    # "manual" (top-up), "voucher-purchase" or "refund"
    source: Mapped[str] = mapped_column(String(20), nullable=False)

    # Always positive; direction comes from type
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    voucher_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("vouchers.id"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
