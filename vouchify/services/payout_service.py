"""
Payout service — seller disbursements for completed sales.

A Payout is created by the settlement flow once a sale is paid for
(wallet purchase, admin confirmation or processor payment received).
Creation is idempotent: one payout per transaction, guarded both here and
by the unique constraint on payouts.transaction_id.

Admins settle payouts off-platform and then record the outcome:

    pending ──mark_paid──> paid
        └────reject─────> rejected   (also used when the sale is refunded)

Status changes are conditional UPDATEs on status == "pending", so a payout
can never be paid twice even if two admins process it at once.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import (
    PayoutAlreadyProcessedError,
    PayoutNotFoundError,
    UnauthorizedAccessError,
)
from vouchify.models.payout import Payout, PayoutQuery
from vouchify.models.transaction import Transaction
from vouchify.models.user import User
from vouchify.services import notification_service
from vouchify.time_utils import utcnow

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settlement hooks
# ---------------------------------------------------------------------------

async def create_payout(db: AsyncSession, txn: Transaction) -> Payout:
    """Create the pending payout for a sale, or return the existing one."""
    result = await db.execute(select(Payout).where(Payout.transaction_id == txn.id))
    payout = result.scalar_one_or_none()
    if payout is not None:
        return payout

    payout = Payout(
        seller_id=txn.seller_id,
        transaction_id=txn.id,
        amount_cents=txn.seller_payout_cents,
        status="pending",
        queries=[],
    )
    db.add(payout)
    await db.flush()

    log.info("Payout %s created for transaction %s (%d)", payout.id, txn.id, payout.amount_cents)
    return payout


async def reverse_payout(db: AsyncSession, txn: Transaction, reason: str) -> Payout | None:
    """
    Cancel the payout of a sale that was rejected or refunded.

    A pending payout is marked rejected. A payout already paid to the seller
    cannot be undone here; it is left as is and logged for manual recovery.
    """
    result = await db.execute(select(Payout).where(Payout.transaction_id == txn.id))
    payout = result.scalar_one_or_none()
    if payout is None:
        return None

    if payout.status == "pending":
        payout.status = "rejected"
        payout.admin_note = reason
        payout.processed_at = utcnow()
        await db.flush()
        log.info("Payout %s reversed: %s", payout.id, reason)
    elif payout.status == "paid":
        log.warning(
            "Payout %s for transaction %s was already paid to seller %s; recover %d manually",
            payout.id, txn.id, payout.seller_id, payout.amount_cents,
        )

    return payout


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_payouts(
    db: AsyncSession,
    user: User,
    status_filter: str | None = None,
    seller_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Payout]:
    """Sellers see their own payouts; admins see all, optionally for one seller."""
    query = (
        select(Payout)
        .order_by(Payout.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if not user.is_admin:
        query = query.where(Payout.seller_id == user.id)
    elif seller_id is not None:
        query = query.where(Payout.seller_id == seller_id)

    if status_filter:
        query = query.where(Payout.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_payout(db: AsyncSession, payout_id: uuid.UUID, user: User) -> Payout:
    result = await db.execute(select(Payout).where(Payout.id == payout_id))
    payout = result.scalar_one_or_none()

    if payout is None:
        raise PayoutNotFoundError(payout_id)
    if payout.seller_id != user.id and not user.is_admin:
        raise UnauthorizedAccessError("You do not have access to this payout")

    return payout


# ---------------------------------------------------------------------------
# Admin processing
# ---------------------------------------------------------------------------

async def process_payout(
    db: AsyncSession,
    payout_id: uuid.UUID,
    admin: User,
    action: str,
    payment_reference: str | None = None,
    admin_note: str | None = None,
    admin_proof_url: str | None = None,
) -> Payout:
    """
    [ADMIN ONLY] Record the outcome of a payout: "mark_paid" or "reject".

    Raises:
        PayoutNotFoundError: If the payout doesn't exist.
        PayoutAlreadyProcessedError: If it is no longer pending.
    """
    payout = await get_payout(db, payout_id, admin)
    new_status = "paid" if action == "mark_paid" else "rejected"

    result = await db.execute(
        update(Payout)
        .where(Payout.id == payout.id, Payout.status == "pending")
        .values(
            status=new_status,
            payment_reference=payment_reference,
            admin_note=admin_note,
            admin_proof_url=admin_proof_url,
            processed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )

    await db.refresh(
        payout,
        ["status", "payment_reference", "admin_note", "admin_proof_url", "processed_at", "updated_at"],
    )
    if result.rowcount == 0:
        raise PayoutAlreadyProcessedError(payout.id, payout.status)

    log.info("Payout %s %s by admin %s", payout.id, new_status, admin.id)

    if new_status == "paid":
        message = f"Your payout of {payout.amount_cents / 100:.2f} has been sent"
        kind = "success"
    else:
        message = f"Your payout of {payout.amount_cents / 100:.2f} was rejected"
        if admin_note:
            message += f": {admin_note}"
        kind = "error"

    await notification_service.notify(db, payout.seller_id, message, type=kind, link="/payouts")
    return payout


async def bulk_mark_paid(
    db: AsyncSession,
    seller_id: uuid.UUID,
    admin: User,
    payment_reference: str | None = None,
    admin_note: str | None = None,
) -> int:
    """[ADMIN ONLY] Settle every pending payout of one seller. Returns the count."""
    result = await db.execute(
        update(Payout)
        .where(Payout.seller_id == seller_id, Payout.status == "pending")
        .values(
            status="paid",
            payment_reference=payment_reference,
            admin_note=admin_note,
            processed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )

    count = result.rowcount
    if count:
        log.info("Bulk-paid %d payouts for seller %s by admin %s", count, seller_id, admin.id)
        await notification_service.notify(
            db, seller_id, f"{count} payouts have been sent to you", type="success", link="/payouts"
        )
    return count


# ---------------------------------------------------------------------------
# Query thread
# ---------------------------------------------------------------------------

async def add_query(
    db: AsyncSession,
    payout_id: uuid.UUID,
    user: User,
    message: str,
) -> Payout:
    """Append a message to a payout's thread and notify the other side."""
    payout = await get_payout(db, payout_id, user)

    sender = "admin" if user.is_admin else "user"
    payout.queries.append(PayoutQuery(sender=sender, message=message))
    await db.flush()

    if sender == "admin":
        await notification_service.notify(
            db, payout.seller_id, "An admin replied to your payout query", link="/payouts"
        )
    else:
        await notification_service.notify_admins(
            db, f"New query on payout {payout.id}", link=f"/admin/payouts/{payout.id}"
        )

    return payout
