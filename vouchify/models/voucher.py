"""
Voucher model — a listed, sellable gift voucher.

Each voucher has:
  - An owner (the seller) and descriptive listing text
  - A pricing breakdown frozen at listing time (see services/pricing.py)
  - A quantity of remaining sellable units and a per-buyer purchase limit
  - An encrypted scratch code plus its SHA-256 hash
  - A lifecycle status and admin verification fields

Money and fees:
  All prices are integer minor units (paise for INR, cents for USD).
  Percentages are integer basis points: 1500 = 15%.

Secret columns:
  `scratch_code` and `scratch_code_hash` are deferred, so an ordinary
  `select(Voucher)` never loads them, and no response schema declares
  them. Trusted server-side paths select the columns explicitly.

Quantity:
  `quantity` is the only contended field in the marketplace. It is never
  modified with read-then-write; services/purchase_service.py changes it
  with single conditional UPDATE statements. A CHECK constraint backs the
  application rule that it cannot go negative.

Lifecycle:
    draft ──publish──> pending ──admin approve──> published ──last unit──> sold_out
                          └──admin reject──> rejected       └──past expiry──> expired
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vouchify.database import Base


VOUCHER_STATUSES = ("draft", "published", "pending", "expired", "sold_out", "rejected")

STATUS_LABELS = {
    "draft": "Draft",
    "pending": "Awaiting Verification",
    "published": "Available",
    "sold_out": "Sold Out",
    "expired": "Expired",
    "rejected": "Rejected",
}


class Voucher(Base):
    __tablename__ = "vouchers"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_vouchers_non_negative_quantity"),
        CheckConstraint(
            "listed_price_cents <= original_price_cents",
            name="ck_vouchers_listed_not_above_original",
        ),
        CheckConstraint("limit_per_user >= 1", name="ck_vouchers_limit_per_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # The seller
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Brand or category, also selects the code format rule
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    terms: Mapped[str] = mapped_column(Text, nullable=False, default="")
    instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # --- Pricing (minor units / basis points) ---
    original_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    listed_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_bps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    seller_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    company_share_bps: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Availability ---
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    limit_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    # --- Secret (never returned by default queries) ---
    scratch_code: Mapped[str] = mapped_column(Text, nullable=False, deferred=True)
    scratch_code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        deferred=True,
    )

    # --- Lifecycle ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        index=True,
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Admin verification
    verification_status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="PENDING",
    )
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    verified_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    # Failed or suspicious redemption attempts (input to fraud review)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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
    owner: Mapped["User"] = relationship(
        foreign_keys=[owner_id],
        lazy="joined",
    )

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def owner_display_name(self) -> str | None:
        return self.owner.display_name if self.owner is not None else None
