"""
Notification model — in-app messages shown to buyers, sellers and admins.

Purchase, confirmation, rejection, refund and payout events each leave a
row here for the affected users. Delivery channels beyond the in-app
inbox (email, push) are handled elsewhere.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from vouchify.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    message: Mapped[str] = mapped_column(String(500), nullable=False)

    # "info", "success", "warning" or "error"
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="info")

    # Frontend route the notification points to
    link: Mapped[str | None] = mapped_column(String(255), nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
