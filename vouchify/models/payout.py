"""
Payout model — the seller-side disbursement for one completed sale.

A Payout is created automatically (status "pending") when a Transaction
reaches a successful state. An admin later settles it off-platform and
marks it "paid" with a reference and proof, or "rejected" (for example
when the sale is refunded before settlement).

The unique constraint on transaction_id guarantees at most one payout per
sale, which makes payout creation idempotent.

PayoutQuery rows form a free-form message thread between the seller and
the admins about a specific payout.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vouchify.database import Base


class Payout(Base):
    __tablename__ = "payouts"

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_payouts_non_negative_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    seller_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # One payout per sale
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
        unique=True,
    )

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # "pending", "paid" or "rejected"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="pending",
        index=True,
    )

    # Reference of the off-platform transfer to the seller
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    admin_proof_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    queries: Mapped[list["PayoutQuery"]] = relationship(
        back_populates="payout",
        order_by="PayoutQuery.created_at",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class PayoutQuery(Base):
    __tablename__ = "payout_queries"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    payout_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("payouts.id"),
        nullable=False,
        index=True,
    )

    # "admin" or "user"
    sender: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    payout: Mapped["Payout"] = relationship(back_populates="queries")
