"""
Review model — a buyer's rating of a voucher they bought.

Only the buyer of a completed transaction can leave a review, and the
unique constraint on transaction_id allows one review per purchase. A
buyer who bought several units can review each purchase.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Text, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vouchify.database import Base


class Review(Base):
    __tablename__ = "reviews"

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
        unique=True,
    )

    voucher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vouchers.id"),
        nullable=False,
        index=True,
    )

    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    reviewer: Mapped["User"] = relationship(lazy="joined")

    @property
    def reviewer_display_name(self) -> str | None:
        return self.reviewer.display_name if self.reviewer is not None else None
