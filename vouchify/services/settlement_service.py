"""
Settlement service — the admin side of the manual-payment flow.

Admins verify the buyer's payment off-platform and then move the
transaction on:

    confirm    pending | pending_admin_confirmation | paid -> completed
    mark_paid  pending                                     -> paid
    reject     pending | pending_admin_confirmation | paid -> failed
    refund     paid | completed                            -> refunded

and a maintenance sweep fails purchases left unconfirmed for longer than
PAYMENT_CONFIRMATION_TIMEOUT_HOURS.

Ordering rule:
  Every operation validates first and mutates last. Confirm decrypts the
  voucher's code before touching the transaction, so a damaged code
  leaves the sale exactly as it was (apart from the admin alert). The
  status change itself is a conditional write (see
  services/state_machine.py), and side effects such as payouts, wallet
  credits and quantity release only run once it has succeeded. Two admins
  confirming the same transaction therefore create one payout, and
  a rejected purchase gives its unit back exactly once. A paid sale may
  already have had its code revealed, so rejecting it keeps the unit off
  sale.

Payouts:
  completed and paid sales get one pending payout for the seller
  (idempotent). A rejected or refunded sale cancels the payout if it is
  still pending; one already paid out is logged for manual recovery.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.config import settings
from vouchify.exceptions import InvalidTransitionError
from vouchify.models.transaction import Transaction
from vouchify.models.user import User
from vouchify.services import notification_service, payout_service, wallet_service
from vouchify.services.purchase_service import (
    decrypt_voucher_code,
    load_transaction,
    release_unit,
)
from vouchify.services.state_machine import (
    OPEN_STATUSES,
    SETTLED_STATUSES,
    assert_transition,
    transition,
)
from vouchify.time_utils import utcnow

log = logging.getLogger(__name__)


async def confirm_payment(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    admin: User,
    admin_note: str | None = None,
) -> Transaction:
    """
    [ADMIN ONLY] Confirm a manual payment and complete the sale.

    The voucher's code is decrypted first to prove it is intact before the
    buyer is granted access. On success the transaction is completed, the
    code marked as released to the buyer and a payout created for the
    seller.

    Raises:
        TransactionNotFoundError
        InvalidTransitionError: Not awaiting confirmation.
        IntegrityError, FormatError: The stored code is damaged. Admins are
                                     alerted and the sale is left unchanged.
    """
    txn = await load_transaction(db, transaction_id)
    assert_transition(txn.status, "completed")

    await decrypt_voucher_code(db, txn.voucher_id, txn.id)

    await transition(db, txn, "completed")
    txn.scratch_code_revealed = True
    if admin_note:
        txn.admin_note = admin_note
    await db.flush()

    await payout_service.create_payout(db, txn)
    log.info("Transaction %s confirmed by admin %s", txn.id, admin.id)

    await notification_service.notify(
        db, txn.buyer_id,
        f"Payment for '{txn.voucher_title}' confirmed. Your code is ready.",
        type="success", link=f"/transactions/{txn.id}",
    )
    await notification_service.notify(
        db, txn.seller_id,
        f"Sale of '{txn.voucher_title}' completed. Your payout is pending.",
        type="success", link="/payouts",
    )
    return txn


async def mark_paid(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    admin: User,
    payment_reference: str | None = None,
    admin_note: str | None = None,
) -> Transaction:
    """
    [ADMIN ONLY] Record that the processor payment arrived: pending -> paid.

    The buyer can reveal the code from this point, and the seller's payout
    is created. A later confirm completes the sale.
    """
    txn = await load_transaction(db, transaction_id)

    await transition(db, txn, "paid")
    if payment_reference:
        txn.payment_reference = payment_reference
    if admin_note:
        txn.admin_note = admin_note
    await db.flush()

    await payout_service.create_payout(db, txn)
    log.info("Transaction %s marked paid by admin %s", txn.id, admin.id)

    await notification_service.notify(
        db, txn.buyer_id,
        f"Payment for '{txn.voucher_title}' received. Your code is ready.",
        type="success", link=f"/transactions/{txn.id}",
    )
    await notification_service.notify(
        db, txn.seller_id,
        f"Payment received for '{txn.voucher_title}'. Your payout is pending.",
        link="/payouts",
    )
    return txn


async def reject_payment(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    admin: User,
    admin_note: str | None = None,
) -> Transaction:
    """
    [ADMIN ONLY] Reject a payment: the purchase fails and its reserved
    unit goes back on sale.

    A paid transaction is failed too, but its unit stays consumed because
    the buyer may already have revealed the code.
    """
    txn = await load_transaction(db, transaction_id)
    previous = txn.status

    await transition(db, txn, "failed")
    txn.admin_note = admin_note or "Payment rejected by admin"
    await db.flush()

    if previous in SETTLED_STATUSES:
        log.warning(
            "Transaction %s rejected after payment; unit of voucher %s stays off sale",
            txn.id, txn.voucher_id,
        )
    else:
        await release_unit(db, txn.voucher_id)
    await payout_service.reverse_payout(db, txn, "Payment rejected")
    log.info("Transaction %s rejected by admin %s", txn.id, admin.id)

    await notification_service.notify(
        db, txn.buyer_id,
        f"Payment for '{txn.voucher_title}' was rejected: {txn.admin_note}",
        type="error", link=f"/transactions/{txn.id}",
    )
    return txn


async def refund(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    admin: User,
    admin_note: str | None = None,
) -> Transaction:
    """
    [ADMIN ONLY] Refund a paid or completed sale.

    The unit is not put back on sale, since the buyer may already have
    seen the code. Wallet purchases are credited back to the wallet; other
    methods are refunded off-platform. The seller's payout is cancelled
    if not yet paid.
    """
    txn = await load_transaction(db, transaction_id)

    await transition(db, txn, "refunded")
    txn.admin_note = admin_note or "Refunded by admin"
    await db.flush()

    await payout_service.reverse_payout(db, txn, "Sale refunded")

    if txn.payment_method == "wallet":
        await wallet_service.credit(
            db,
            user_id=txn.buyer_id,
            amount_cents=txn.amount_paid_cents,
            source="refund",
            description=f"Refund for {txn.voucher_title}",
            reference=str(txn.id),
            voucher_id=txn.voucher_id,
        )

    log.info("Transaction %s refunded by admin %s", txn.id, admin.id)

    await notification_service.notify(
        db, txn.buyer_id,
        f"Your purchase of '{txn.voucher_title}' has been refunded",
        link=f"/transactions/{txn.id}",
    )
    await notification_service.notify(
        db, txn.seller_id,
        f"The sale of '{txn.voucher_title}' was refunded to the buyer",
        type="warning", link="/payouts",
    )
    return txn


async def expire_stale_confirmations(db: AsyncSession) -> int:
    """
    Fail purchases still awaiting payment after the confirmation timeout
    and release their units. Returns the number of purchases expired.
    """
    cutoff = utcnow() - timedelta(hours=settings.PAYMENT_CONFIRMATION_TIMEOUT_HOURS)

    result = await db.execute(
        select(Transaction)
        .where(Transaction.status.in_(OPEN_STATUSES), Transaction.created_at <= cutoff)
        .order_by(Transaction.created_at.asc())
    )
    stale = list(result.scalars().all())

    expired = 0
    for txn in stale:
        try:
            await transition(db, txn, "failed")
        except InvalidTransitionError:
            log.info("Transaction %s settled during the sweep, skipping", txn.id)
            continue
        txn.admin_note = "Payment not confirmed in time"
        await release_unit(db, txn.voucher_id)
        expired += 1

        await notification_service.notify(
            db, txn.buyer_id,
            f"Your order for '{txn.voucher_title}' expired before payment was confirmed",
            type="warning", link=f"/transactions/{txn.id}",
        )

    await db.flush()
    if expired:
        log.info("Expired %d stale purchases", expired)
    return expired
