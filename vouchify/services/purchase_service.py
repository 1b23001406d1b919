"""
Purchase service — buying a voucher unit and revealing its scratch code.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - The ordered availability checks for a purchase
  - Atomic reservation (and release) of one unit of voucher quantity
  - Creating the Transaction with its frozen monetary snapshot
  - Payment proof upload by the buyer
  - Scratch code reveal, only after the payment has been verified

Availability checks (in order, each with its own error):
  1. voucher exists                              -> VoucherNotFoundError
  2. listed, approved and active                 -> VoucherNotAvailableError
  3. not past its expiry date                    -> VoucherExpiredError
  4. at least one unit left                      -> SoldOutError
  5. buyer is under the per-user purchase limit  -> PurchaseLimitExceededError
  6. buyer is not the seller                     -> SelfPurchaseForbiddenError

Atomic reservation:
  The checks above read the voucher, but the read is never trusted for the
  write. The unit is taken with ONE conditional UPDATE:

      UPDATE vouchers
         SET quantity = quantity - 1,
             status   = CASE WHEN quantity = 1 THEN 'sold_out' ELSE status END
       WHERE id = :id AND quantity > 0 AND status = 'published'
         AND is_approved AND is_active AND expiry_date > :now
         AND (SELECT count(*) FROM transactions
               WHERE voucher_id = :id AND buyer_id = :buyer
                 AND status IN (...active...)) < limit_per_user

  The database evaluates the WHERE clause and the decrement as one step,
  so with quantity = 1 and two simultaneous buyers exactly one UPDATE
  matches a row. The other matches zero rows and gets SoldOutError. The
  quantity can therefore never go negative, and a unit is never sold twice.

  A reservation is not a sale. The scratch code stays hidden until the
  payment is verified, and a payment that fails releases the unit again
  with the inverse UPDATE (quantity + 1, sold_out -> published).

Payment methods:
  - wallet: balance checked up front, unit reserved, wallet debited, sale
            completed immediately and a payout created for the seller
  - cash:   the buyer attaches proof (UPI/bank screenshot); the transaction
            waits in pending_admin_confirmation for an admin
  - stripe: the processor reference is recorded; the transaction waits in
            pending until an admin marks the payment received
"""

import logging
import uuid

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import (
    FormatError,
    IntegrityError,
    InsufficientFundsError,
    PaymentNotVerifiedError,
    PurchaseLimitExceededError,
    SelfPurchaseForbiddenError,
    SoldOutError,
    TransactionNotFoundError,
    UnauthorizedAccessError,
    VoucherExpiredError,
    VoucherNotAvailableError,
    VoucherNotFoundError,
)
from vouchify.models.transaction import Transaction
from vouchify.models.user import User
from vouchify.models.voucher import Voucher
from vouchify.security import decrypt_code
from vouchify.services import notification_service, payout_service, wallet_service
from vouchify.services.pricing import compute_breakdown
from vouchify.services.state_machine import (
    ACTIVE_STATUSES,
    SETTLED_STATUSES,
    assert_transition,
    transition,
)
from vouchify.time_utils import as_utc, utcnow

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Availability and reservation
# ---------------------------------------------------------------------------

def _active_purchases(voucher_id: uuid.UUID, buyer_id: uuid.UUID):
    """Count of the buyer's purchases of this voucher that hold or used a unit."""
    return (
        select(func.count(Transaction.id))
        .where(
            Transaction.voucher_id == voucher_id,
            Transaction.buyer_id == buyer_id,
            Transaction.status.in_(ACTIVE_STATUSES),
        )
        .scalar_subquery()
    )


async def check_availability(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    buyer_id: uuid.UUID,
) -> Voucher:
    """
    Run the ordered availability checks without reserving anything.

    A voucher whose status is sold_out or expired is still a listed voucher,
    so it fails at the sold-out or expiry step rather than as "not
    available".
    """
    result = await db.execute(select(Voucher).where(Voucher.id == voucher_id))
    voucher = result.scalar_one_or_none()

    if voucher is None:
        raise VoucherNotFoundError(voucher_id)

    if (
        voucher.status not in ("published", "sold_out", "expired")
        or not voucher.is_approved
        or not voucher.is_active
    ):
        raise VoucherNotAvailableError(voucher.id, voucher.status)

    if voucher.status == "expired" or as_utc(voucher.expiry_date) <= utcnow():
        raise VoucherExpiredError(voucher.id)

    if voucher.status == "sold_out" or voucher.quantity <= 0:
        raise SoldOutError(voucher.id)

    bought = (await db.execute(select(_active_purchases(voucher.id, buyer_id)))).scalar_one()
    if bought >= voucher.limit_per_user:
        raise PurchaseLimitExceededError(voucher.id, voucher.limit_per_user)

    if voucher.owner_id == buyer_id:
        raise SelfPurchaseForbiddenError()

    return voucher


async def _take_unit(db: AsyncSession, voucher: Voucher, buyer_id: uuid.UUID) -> None:
    """The conditional decrement. Raises SoldOutError when no row matches."""
    result = await db.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher.id,
            Voucher.quantity > 0,
            Voucher.status == "published",
            Voucher.is_approved.is_(True),
            Voucher.is_active.is_(True),
            Voucher.expiry_date > utcnow(),
            _active_purchases(voucher.id, buyer_id) < Voucher.limit_per_user,
        )
        .values(
            quantity=Voucher.quantity - 1,
            status=case((Voucher.quantity == 1, "sold_out"), else_=Voucher.status),
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        # Lost the race to another buyer, or to this buyer's own parallel request
        bought = (await db.execute(select(_active_purchases(voucher.id, buyer_id)))).scalar_one()
        if bought >= voucher.limit_per_user:
            raise PurchaseLimitExceededError(voucher.id, voucher.limit_per_user)
        raise SoldOutError(voucher.id)

    await db.refresh(voucher, ["quantity", "status"])
    log.info("Reserved unit of voucher %s (quantity now %d)", voucher.id, voucher.quantity)


async def reserve_unit(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    buyer_id: uuid.UUID,
) -> Voucher:
    """
    Check availability and atomically take one unit of the voucher.

    Returns:
        The voucher, with quantity and status as left by the reservation.

    Raises:
        VoucherNotFoundError, VoucherNotAvailableError, VoucherExpiredError,
        SoldOutError, PurchaseLimitExceededError, SelfPurchaseForbiddenError
    """
    voucher = await check_availability(db, voucher_id, buyer_id)
    await _take_unit(db, voucher, buyer_id)
    return voucher


async def release_unit(db: AsyncSession, voucher_id: uuid.UUID) -> None:
    """Give a reserved unit back (failed or rejected payment)."""
    await db.execute(
        update(Voucher)
        .where(Voucher.id == voucher_id)
        .values(
            quantity=Voucher.quantity + 1,
            status=case((Voucher.status == "sold_out", "published"), else_=Voucher.status),
        )
        .execution_options(synchronize_session=False)
    )
    log.info("Released unit of voucher %s", voucher_id)


# ---------------------------------------------------------------------------
# Purchase
# ---------------------------------------------------------------------------

async def purchase(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    buyer: User,
    payment_method: str,
    payment_proof: str | None = None,
    payment_reference: str | None = None,
) -> Transaction:
    """
    Buy one unit of a voucher.

    Initial status by payment method:
      - wallet                -> completed (code available immediately)
      - cash with proof       -> pending_admin_confirmation
      - cash without proof    -> pending (proof can be uploaded later)
      - stripe                -> pending

    Returns:
        The new Transaction. It never carries the scratch code.

    Raises:
        Any availability error from reserve_unit.
        InsufficientFundsError: Wallet balance below the listed price.
                                Nothing is reserved in that case.
        IntegrityError, FormatError: Wallet purchase of a voucher whose
                                stored code is damaged.
    """
    voucher = await check_availability(db, voucher_id, buyer.id)

    if payment_method == "wallet":
        wallet = await wallet_service.get_or_create_wallet(db, buyer.id)
        if wallet.balance_cents < voucher.listed_price_cents:
            raise InsufficientFundsError(
                user_id=buyer.id,
                requested_cents=voucher.listed_price_cents,
                available_cents=wallet.balance_cents,
            )
        # The code is handed over at once, so it must decrypt before anything is taken
        await decrypt_voucher_code(db, voucher.id)
        status = "completed"
    elif payment_method == "cash" and payment_proof:
        status = "pending_admin_confirmation"
    else:
        status = "pending"

    assert_transition(None, status)
    await _take_unit(db, voucher, buyer.id)

    if payment_method == "wallet":
        try:
            await wallet_service.debit(
                db,
                user_id=buyer.id,
                amount_cents=voucher.listed_price_cents,
                source="voucher-purchase",
                description=f"Purchase of {voucher.title}",
                voucher_id=voucher.id,
            )
        except InsufficientFundsError:
            # Balance spent by a concurrent request since the check above
            await release_unit(db, voucher.id)
            raise

    breakdown = compute_breakdown(
        voucher.original_price_cents,
        voucher.listed_price_cents,
        voucher.platform_fee_bps,
        voucher.company_share_bps,
    )

    txn = Transaction(
        voucher=voucher,
        buyer_id=buyer.id,
        seller_id=voucher.owner_id,
        amount_paid_cents=breakdown.listed_price_cents,
        platform_fee_cents=breakdown.platform_fee_cents,
        company_share_cents=breakdown.company_share_cents,
        seller_payout_cents=breakdown.seller_payout_cents,
        payment_method=payment_method,
        payment_reference=payment_reference,
        payment_proof=payment_proof,
        status=status,
        scratch_code_revealed=status == "completed",
    )
    db.add(txn)
    await db.flush()

    log.info(
        "Transaction %s created: voucher %s, buyer %s, %s, status %s",
        txn.id, voucher.id, buyer.id, payment_method, status,
    )

    if status == "completed":
        await payout_service.create_payout(db, txn)
        await notification_service.notify(
            db, buyer.id,
            f"Purchase of '{voucher.title}' complete. Your code is ready.",
            type="success", link=f"/transactions/{txn.id}",
        )
        await notification_service.notify(
            db, voucher.owner_id,
            f"Your voucher '{voucher.title}' was sold",
            type="success", link="/payouts",
        )
    else:
        await notification_service.notify(
            db, buyer.id,
            f"Order for '{voucher.title}' placed. Awaiting payment confirmation.",
            link=f"/transactions/{txn.id}",
        )
        await notification_service.notify(
            db, voucher.owner_id,
            f"Someone ordered your voucher '{voucher.title}'. Awaiting payment confirmation.",
        )
        if status == "pending_admin_confirmation":
            await notification_service.notify_admins(
                db,
                f"Payment proof submitted for '{voucher.title}'",
                type="warning", link=f"/admin/transactions/{txn.id}",
            )

    return txn


async def attach_payment_proof(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    buyer: User,
    payment_proof: str,
    payment_reference: str | None = None,
) -> Transaction:
    """
    Attach (or replace) the buyer's proof of a manual payment.

    pending -> pending_admin_confirmation. Replacing the proof on a
    transaction already awaiting confirmation keeps its status.

    Raises:
        TransactionNotFoundError, UnauthorizedAccessError,
        InvalidTransitionError: The transaction is no longer awaiting payment.
    """
    txn = await load_transaction(db, transaction_id)

    if txn.buyer_id != buyer.id:
        raise UnauthorizedAccessError("You do not have access to this transaction")

    if txn.status != "pending_admin_confirmation":
        await transition(db, txn, "pending_admin_confirmation")

    txn.payment_proof = payment_proof
    if payment_reference:
        txn.payment_reference = payment_reference
    await db.flush()

    await notification_service.notify_admins(
        db,
        f"Payment proof submitted for '{txn.voucher_title}'",
        type="warning", link=f"/admin/transactions/{txn.id}",
    )
    return txn


# ---------------------------------------------------------------------------
# Scratch code reveal
# ---------------------------------------------------------------------------

async def load_scratch_blob(db: AsyncSession, voucher_id: uuid.UUID) -> str:
    """Read the stored ciphertext. The column is deferred on normal loads."""
    result = await db.execute(select(Voucher.scratch_code).where(Voucher.id == voucher_id))
    return result.scalar_one()


async def record_attempt(db: AsyncSession, voucher_id: uuid.UUID) -> None:
    await db.execute(
        update(Voucher)
        .where(Voucher.id == voucher_id)
        .values(attempts=Voucher.attempts + 1)
        .execution_options(synchronize_session=False)
    )


async def record_secret_failure(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    exc: Exception,
    transaction_id: uuid.UUID | None = None,
) -> None:
    """
    Handle a stored code that fails to decrypt (tampered or corrupted).

    Logged at ERROR, counted on the voucher, and raised to every admin.
    The caller re-raises, so the request still fails.
    """
    log.error(
        "Scratch code for voucher %s failed to decrypt (transaction %s): %s",
        voucher_id, transaction_id, exc,
    )
    await record_attempt(db, voucher_id)
    await notification_service.notify_admins(
        db,
        f"Security alert: the stored code of voucher {voucher_id} failed integrity checks",
        type="warning",
        link=f"/admin/transactions/{transaction_id}" if transaction_id else f"/admin/vouchers/{voucher_id}",
    )


async def decrypt_voucher_code(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    transaction_id: uuid.UUID | None = None,
) -> str:
    """Decrypt a voucher's stored code, alerting admins if the blob is damaged."""
    blob = await load_scratch_blob(db, voucher_id)
    try:
        return decrypt_code(blob)
    except (IntegrityError, FormatError) as exc:
        await record_secret_failure(db, voucher_id, exc, transaction_id)
        raise


async def reveal_scratch_code(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    user: User,
) -> str:
    """
    Decrypt and return the scratch code of a purchased voucher.

    Only the buyer (or an admin) may reveal, and only once the payment is
    verified (paid or completed). Every call decrypts again, so repeated
    reveals return the same code. A reveal attempt by anyone else is
    counted on the voucher before it is refused.

    Raises:
        TransactionNotFoundError, UnauthorizedAccessError,
        PaymentNotVerifiedError, IntegrityError, FormatError,
        ConfigurationError
    """
    txn = await load_transaction(db, transaction_id)

    if txn.buyer_id != user.id and not user.is_admin:
        await record_attempt(db, txn.voucher_id)
        log.warning("User %s tried to reveal the code of transaction %s", user.id, txn.id)
        raise UnauthorizedAccessError("Only the buyer can view this code")

    if txn.status not in SETTLED_STATUSES:
        raise PaymentNotVerifiedError(txn.status)

    code = await decrypt_voucher_code(db, txn.voucher_id, txn.id)

    if txn.buyer_id == user.id and not txn.scratch_code_revealed:
        txn.scratch_code_revealed = True
        await db.flush()

    return code


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def load_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
    result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    user: User,
) -> Transaction:
    """Get a transaction visible to the user (buyer, seller or admin)."""
    txn = await load_transaction(db, transaction_id)

    if user.id not in (txn.buyer_id, txn.seller_id) and not user.is_admin:
        raise UnauthorizedAccessError("You do not have access to this transaction")

    return txn


async def list_transactions(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: str = "all",
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List the user's transactions, newest first.

    Args:
        role: "bought" (as buyer), "sold" (as seller) or "all".
    """
    query = (
        select(Transaction)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if role == "bought":
        query = query.where(Transaction.buyer_id == user_id)
    elif role == "sold":
        query = query.where(Transaction.seller_id == user_id)
    else:
        query = query.where(
            or_(Transaction.buyer_id == user_id, Transaction.seller_id == user_id)
        )

    if status_filter:
        query = query.where(Transaction.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


async def admin_list_transactions(
    db: AsyncSession,
    status_filter: str | None = None,
    payment_method: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """[ADMIN ONLY] List every transaction, newest first."""
    query = (
        select(Transaction)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if status_filter:
        query = query.where(Transaction.status == status_filter)
    if payment_method:
        query = query.where(Transaction.payment_method == payment_method)

    result = await db.execute(query)
    return list(result.scalars().all())
