"""
Transaction model — one buyer's purchase of one voucher unit.

Every purchase request creates exactly one Transaction. The record is never
deleted; it only moves through the status machine defined in
services/state_machine.py:

    pending ─────────────┬──> paid ──> completed ──> refunded
    pending_admin_confirmation ──> completed
                  └──────────────> failed

Monetary snapshot:
  amount_paid_cents, platform_fee_cents, company_share_cents and
  seller_payout_cents are copied from the voucher at purchase time. Later
  edits to the listing or to global fee settings never change a settled
  transaction. The four always satisfy:

      platform_fee + company_share + seller_payout == amount_paid

  which a CHECK constraint enforces at the database level.

scratch_code_revealed:
  Audit flag set once the buyer has been granted the decrypted code. It is
  not a cache; every reveal decrypts the voucher's code again.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vouchify.database import Base


TRANSACTION_STATUSES = (
    "pending",
    "pending_admin_confirmation",
    "paid",
    "completed",
    "refunded",
    "failed",
)

PAYMENT_METHODS = ("cash", "stripe", "wallet")

STATUS_LABELS = {
    "pending": "Payment Pending",
    "pending_admin_confirmation": "Pending Admin Confirmation",
    "paid": "Paid",
    "completed": "Completed",
    "refunded": "Refunded",
    "failed": "Payment Rejected",
}


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_paid_cents >= 0", name="ck_transactions_non_negative_amount"),
        CheckConstraint(
            "platform_fee_cents + company_share_cents + seller_payout_cents = amount_paid_cents",
            name="ck_transactions_split_balances",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    voucher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vouchers.id"),
        nullable=False,
        index=True,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # --- Frozen monetary snapshot (minor units) ---
    amount_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    company_share_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    seller_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # "cash", "stripe" or "wallet"
    payment_method: Mapped[str] = mapped_column(String(10), nullable=False)

    # Processor session ID or the buyer's manual UPI/bank reference
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Opaque proof supplied by the buyer (typically a base64 screenshot)
    payment_proof: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="pending",
        index=True,
    )

    admin_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    scratch_code_revealed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
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
    voucher: Mapped["Voucher"] = relationship(lazy="joined")

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def voucher_title(self) -> str | None:
        return self.voucher.title if self.voucher is not None else None
