"""
Review service — buyer ratings on vouchers.

A review belongs to one purchase. Before it is saved:
  1. The transaction must exist and be a purchase of this voucher
  2. The reviewer must be its buyer
  3. The sale must be completed (pending, paid, failed and refunded
     purchases cannot be reviewed)
  4. The purchase must not be reviewed yet. The unique constraint on
     reviews.transaction_id backs this check

Reviews are public; anyone who can see the voucher can read them.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import (
    DuplicateReviewError,
    ReviewNotAllowedError,
    TransactionNotFoundError,
    UnauthorizedAccessError,
)
from vouchify.models.review import Review
from vouchify.models.user import User
from vouchify.services import notification_service, voucher_service
from vouchify.services.purchase_service import load_transaction

log = logging.getLogger(__name__)


async def create_review(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    reviewer: User,
    transaction_id: uuid.UUID,
    rating: int,
    comment: str = "",
) -> Review:
    """
    Leave a review for a completed purchase.

    Raises:
        VoucherNotFoundError
        TransactionNotFoundError: Unknown transaction, or one for another voucher.
        UnauthorizedAccessError: The reviewer is not the buyer.
        ReviewNotAllowedError: The purchase is not completed.
        DuplicateReviewError: The purchase already has a review.
    """
    voucher = await voucher_service.get_voucher(db, voucher_id, reviewer)

    txn = await load_transaction(db, transaction_id)
    if txn.voucher_id != voucher.id:
        raise TransactionNotFoundError(transaction_id)

    if txn.buyer_id != reviewer.id:
        raise UnauthorizedAccessError("Only the buyer can review this purchase")

    if txn.status != "completed":
        raise ReviewNotAllowedError(txn.id, txn.status)

    existing = await db.execute(select(Review.id).where(Review.transaction_id == txn.id))
    if existing.first() is not None:
        raise DuplicateReviewError(txn.id)

    review = Review(
        transaction_id=txn.id,
        voucher_id=voucher.id,
        reviewer=reviewer,
        rating=rating,
        comment=comment.strip(),
    )
    db.add(review)
    await db.flush()

    log.info("Review %s (%d/5) left on voucher %s by %s", review.id, rating, voucher.id, reviewer.id)

    await notification_service.notify(
        db, voucher.owner_id,
        f"{reviewer.display_name} rated '{voucher.title}' {rating}/5",
        link=f"/vouchers/{voucher.id}",
    )
    return review


async def list_reviews(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    viewer: User | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Review]:
    """Reviews of a voucher, newest first. Hidden vouchers raise VoucherNotFoundError."""
    voucher = await voucher_service.get_voucher(db, voucher_id, viewer)

    result = await db.execute(
        select(Review)
        .where(Review.voucher_id == voucher.id)
        .order_by(Review.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())
