"""
Voucher service — listing, editing, verification and expiry of vouchers.

Listing a voucher:
  1. Trim the scratch code and reject obvious placeholders ("TEST1234",
     "AAAAAA", "123456", ...) and codes that don't match the brand's format
  2. Reject a code that is already listed (matched by SHA-256 hash)
  3. Encrypt the code. A missing or malformed SCRATCH_CODE_KEY fails the
     request; a plaintext code is never stored
  4. Freeze the pricing breakdown from the current fee settings
  5. Save as "draft", or as "pending" when the seller asks to publish
     right away. Only an admin moves a voucher to "published"

Public reads never see the scratch code: the secret columns are deferred
on the model and no response schema declares them.

Quantity after listing is owned by services/purchase_service.py. The only
direct writes here are the seller restocking an unsold listing and the
expiry sweep.
"""

import logging
import re
import uuid
from datetime import datetime

from sqlalchemy import case, select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.config import settings
from vouchify.exceptions import (
    DuplicateScratchCodeError,
    InvalidPricingError,
    InvalidScratchCodeError,
    InvalidVoucherStateError,
    StockChangedError,
    UnauthorizedAccessError,
    VoucherInUseError,
    VoucherNotFoundError,
)
from vouchify.models.transaction import Transaction
from vouchify.models.user import User
from vouchify.models.voucher import Voucher
from vouchify.security import encrypt_code, hash_code
from vouchify.services import notification_service
from vouchify.services.pricing import PriceBreakdown, compute_breakdown
from vouchify.services.state_machine import OPEN_STATUSES
from vouchify.time_utils import as_utc, utcnow

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scratch code validation
# ---------------------------------------------------------------------------

BRAND_PATTERNS: dict[str, re.Pattern] = {
    "amazon": re.compile(r"[A-Z0-9]{4}-[A-Z0-9]{6}-[A-Z0-9]{4}", re.IGNORECASE),
    "flipkart": re.compile(r"[A-Z0-9]{15,16}", re.IGNORECASE),
    "myntra": re.compile(r"[A-Z0-9]{16}", re.IGNORECASE),
    "uber": re.compile(r"[A-Z0-9]{10,12}", re.IGNORECASE),
    "zomato": re.compile(r"[A-Z0-9]{10,16}", re.IGNORECASE),
    "swiggy": re.compile(r"[A-Z0-9]{10,16}", re.IGNORECASE),
    # Short PINs up to long tokens, with common separators
    "default": re.compile(r"[A-Z0-9\-_@.]{4,64}", re.IGNORECASE),
}

DUMMY_STRINGS = (
    "12345", "ABCDE", "TEST", "DUMMY", "PLACEHOLDER", "PASSWORD", "VOUCHER",
    "SCRATCH", "CODE", "11111", "00000", "123123", "ADMIN", "ROOT",
)

_SEQUENCE = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_SEQUENCE_RUN = 6
_REPEATED_CHAR = re.compile(r"(.)\1{4,}")

# Public listing states: anyone may view these, the rest are owner/admin only
PUBLIC_STATUSES = ("published", "sold_out", "expired")


def is_dummy_code(code: str) -> bool:
    """True for placeholders, repeated or sequential runs and low-entropy codes."""
    normalized = code.strip().upper()

    if any(dummy in normalized for dummy in DUMMY_STRINGS):
        return True

    if _REPEATED_CHAR.fullmatch(normalized):
        return True

    for i in range(len(_SEQUENCE) - _SEQUENCE_RUN + 1):
        if _SEQUENCE[i:i + _SEQUENCE_RUN] in normalized:
            return True

    if len(normalized) > 10 and len(set(normalized)) < 4:
        return True

    return False


def validate_format(category: str, code: str) -> bool:
    """Check a code against its brand's format (the default rule for unknown brands)."""
    brand = re.sub(r"\s+", "_", category.strip().lower())
    pattern = BRAND_PATTERNS.get(brand, BRAND_PATTERNS["default"])
    return pattern.fullmatch(code.strip()) is not None


async def _check_new_code(
    db: AsyncSession,
    category: str,
    code: str,
    exclude_voucher_id: uuid.UUID | None = None,
) -> str:
    """
    Validate a scratch code for listing and return its hash.

    Raises:
        InvalidScratchCodeError: Empty, placeholder or wrongly formatted code.
        DuplicateScratchCodeError: The same code is already listed.
    """
    if not code:
        raise InvalidScratchCodeError("Scratch code cannot be empty")
    if is_dummy_code(code):
        raise InvalidScratchCodeError(
            "This looks like a placeholder code. Please enter the real voucher code."
        )
    if not validate_format(category, code):
        raise InvalidScratchCodeError(f"Code format does not match {category} vouchers")

    code_hash = hash_code(code)
    query = select(Voucher.id).where(Voucher.scratch_code_hash == code_hash)
    if exclude_voucher_id is not None:
        query = query.where(Voucher.id != exclude_voucher_id)

    if (await db.execute(query.limit(1))).first() is not None:
        raise DuplicateScratchCodeError()

    return code_hash


def _price(original_price_cents: int, listed_price_cents: int) -> PriceBreakdown:
    try:
        return compute_breakdown(
            original_price_cents,
            listed_price_cents,
            settings.PLATFORM_FEE_BPS,
            settings.COMPANY_SHARE_BPS,
        )
    except ValueError as exc:
        raise InvalidPricingError(str(exc))


def _apply_pricing(voucher: Voucher, original_price_cents: int, breakdown: PriceBreakdown) -> None:
    voucher.original_price_cents = original_price_cents
    voucher.listed_price_cents = breakdown.listed_price_cents
    voucher.discount_bps = breakdown.discount_bps
    voucher.seller_payout_cents = breakdown.seller_payout_cents
    voucher.platform_fee_bps = settings.PLATFORM_FEE_BPS
    voucher.company_share_bps = settings.COMPANY_SHARE_BPS


async def _restock(db: AsyncSession, voucher: Voucher, quantity: int) -> None:
    """
    Set the stock count with one conditional UPDATE on the quantity that
    was loaded. A purchase or release landing after the load changes the
    row first, so the edit is refused instead of overwriting the sale.
    """
    loaded = voucher.quantity
    if quantity == 0:
        status = case((Voucher.status == "published", "sold_out"), else_=Voucher.status)
    else:
        status = case((Voucher.status == "sold_out", "published"), else_=Voucher.status)

    result = await db.execute(
        update(Voucher)
        .where(Voucher.id == voucher.id, Voucher.quantity == loaded)
        .values(quantity=quantity, status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StockChangedError(voucher.id, loaded)

    await db.refresh(voucher, ["quantity", "status"])
    log.info("Voucher %s restocked from %d to %d", voucher.id, loaded, voucher.quantity)


async def _has_transactions(db: AsyncSession, voucher_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(Transaction.id).where(Transaction.voucher_id == voucher_id).limit(1)
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Seller operations
# ---------------------------------------------------------------------------

async def create_voucher(
    db: AsyncSession,
    owner: User,
    title: str,
    description: str,
    category: str,
    original_price_cents: int,
    listed_price_cents: int,
    quantity: int,
    expiry_date: datetime,
    scratch_code: str,
    limit_per_user: int = 1,
    terms: str = "",
    instructions: str = "",
    image_url: str | None = None,
    publish: bool = False,
) -> Voucher:
    """
    List a new voucher for sale.

    Args:
        publish: Submit for admin verification immediately ("pending")
                 instead of saving as "draft".

    Raises:
        InvalidScratchCodeError: Placeholder or wrongly formatted code.
        DuplicateScratchCodeError: Code already listed.
        InvalidPricingError: Listed price above face value.
        ConfigurationError: SCRATCH_CODE_KEY missing or malformed.
    """
    code = scratch_code.strip()
    code_hash = await _check_new_code(db, category, code)

    voucher = Voucher(
        owner=owner,
        title=title,
        description=description,
        category=category,
        terms=terms,
        instructions=instructions,
        image_url=image_url,
        quantity=quantity,
        limit_per_user=limit_per_user,
        expiry_date=as_utc(expiry_date),
        scratch_code=encrypt_code(code),
        scratch_code_hash=code_hash,
        status="pending" if publish else "draft",
        is_approved=False,
        verification_status="PENDING",
    )
    _apply_pricing(
        voucher, original_price_cents, _price(original_price_cents, listed_price_cents)
    )

    db.add(voucher)
    await db.flush()

    log.info("Voucher %s listed by %s (status=%s)", voucher.id, owner.id, voucher.status)

    if publish:
        await notification_service.notify_admins(
            db,
            f"New voucher '{title}' is awaiting verification",
            link=f"/admin/vouchers/{voucher.id}",
        )

    return voucher


async def update_voucher(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    owner_id: uuid.UUID,
    changes: dict,
) -> Voucher:
    """
    Apply a seller's edits to their listing.

    Price edits recompute the frozen breakdown (transactions already made
    keep their own snapshot). A new scratch code goes through the full
    listing checks and sends a published voucher back to verification.
    The code cannot be replaced once any unit has been bought, since
    buyers decrypt it from the listing.

    Raises:
        VoucherNotFoundError, UnauthorizedAccessError,
        InvalidVoucherStateError: Voucher is rejected or expired.
        VoucherInUseError: New code on a voucher that already has buyers.
        StockChangedError: A sale or release changed the quantity since the
                           voucher was loaded.
    """
    voucher = await _get_owned_voucher(db, voucher_id, owner_id)

    if voucher.status in ("rejected", "expired"):
        raise InvalidVoucherStateError(voucher.id, voucher.status, "edit")

    # Everything that can be refused is checked before the first attribute changes
    new_code = (changes.get("scratch_code") or "").strip() or None
    if new_code is not None:
        if await _has_transactions(db, voucher.id):
            raise VoucherInUseError(
                voucher.id, "Voucher has buyers and its code cannot be changed"
            )
        new_code_hash = await _check_new_code(db, voucher.category, new_code, voucher.id)
        new_blob = encrypt_code(new_code)

    new_original = changes.get("original_price_cents")
    new_listed = changes.get("listed_price_cents")
    breakdown = None
    if new_original is not None or new_listed is not None:
        if new_original is None:
            new_original = voucher.original_price_cents
        breakdown = _price(
            new_original,
            voucher.listed_price_cents if new_listed is None else new_listed,
        )

    if changes.get("quantity") is not None:
        await _restock(db, voucher, changes["quantity"])

    if breakdown is not None:
        _apply_pricing(voucher, new_original, breakdown)

    for field in ("title", "description", "terms", "instructions", "image_url", "limit_per_user"):
        if changes.get(field) is not None:
            setattr(voucher, field, changes[field])

    if changes.get("expiry_date") is not None:
        voucher.expiry_date = as_utc(changes["expiry_date"])

    if new_code is not None:
        voucher.scratch_code_hash = new_code_hash
        voucher.scratch_code = new_blob
        if voucher.status in ("published", "sold_out"):
            voucher.status = "pending"
            voucher.is_approved = False
            voucher.verification_status = "PENDING"

    await db.flush()
    return voucher


async def publish_voucher(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    owner_id: uuid.UUID,
) -> Voucher:
    """Submit a draft for admin verification: draft -> pending."""
    voucher = await _get_owned_voucher(db, voucher_id, owner_id)

    if voucher.status != "draft":
        raise InvalidVoucherStateError(voucher.id, voucher.status, "publish")

    voucher.status = "pending"
    voucher.verification_status = "PENDING"
    await db.flush()

    await notification_service.notify_admins(
        db,
        f"New voucher '{voucher.title}' is awaiting verification",
        link=f"/admin/vouchers/{voucher.id}",
    )
    return voucher


async def delete_voucher(db: AsyncSession, voucher_id: uuid.UUID, user: User) -> None:
    """
    Delete a listing. Allowed for the owner or an admin, and only while no
    transaction references the voucher.

    Raises:
        VoucherNotFoundError, UnauthorizedAccessError, VoucherInUseError
    """
    voucher = await _load_voucher(db, voucher_id)

    if voucher.owner_id != user.id and not user.is_admin:
        raise UnauthorizedAccessError("You do not have access to this voucher")

    if await _has_transactions(db, voucher.id):
        raise VoucherInUseError(voucher.id)

    await db.delete(voucher)
    await db.flush()
    log.info("Voucher %s deleted by %s", voucher_id, user.id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def _load_voucher(db: AsyncSession, voucher_id: uuid.UUID) -> Voucher:
    result = await db.execute(select(Voucher).where(Voucher.id == voucher_id))
    voucher = result.scalar_one_or_none()
    if voucher is None:
        raise VoucherNotFoundError(voucher_id)
    return voucher


async def _get_owned_voucher(db: AsyncSession, voucher_id: uuid.UUID, owner_id: uuid.UUID) -> Voucher:
    voucher = await _load_voucher(db, voucher_id)
    if voucher.owner_id != owner_id:
        raise UnauthorizedAccessError("You do not have access to this voucher")
    return voucher


async def get_voucher(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    viewer: User | None = None,
) -> Voucher:
    """
    Get a voucher for display.

    Drafts, pending and rejected listings are only visible to their owner
    and admins; to everyone else they don't exist.
    """
    voucher = await _load_voucher(db, voucher_id)

    if voucher.status not in PUBLIC_STATUSES:
        if viewer is None or (viewer.id != voucher.owner_id and not viewer.is_admin):
            raise VoucherNotFoundError(voucher_id)

    return voucher


async def list_vouchers(
    db: AsyncSession,
    category: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Voucher]:
    """List sellable vouchers (published, approved, active, in stock, unexpired)."""
    query = (
        select(Voucher)
        .where(
            Voucher.status == "published",
            Voucher.is_approved.is_(True),
            Voucher.is_active.is_(True),
            Voucher.quantity > 0,
            Voucher.expiry_date > utcnow(),
        )
        .order_by(Voucher.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if category:
        query = query.where(func.lower(Voucher.category) == category.lower())
    if search:
        query = query.where(Voucher.title.ilike(f"%{search}%"))

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_my_vouchers(
    db: AsyncSession,
    owner_id: uuid.UUID,
    status_filter: str | None = None,
) -> list[Voucher]:
    query = (
        select(Voucher)
        .where(Voucher.owner_id == owner_id)
        .order_by(Voucher.created_at.desc())
    )
    if status_filter:
        query = query.where(Voucher.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Admin operations
# ---------------------------------------------------------------------------

async def admin_list_pending(db: AsyncSession) -> list[Voucher]:
    """[ADMIN ONLY] Vouchers awaiting verification, oldest first."""
    result = await db.execute(
        select(Voucher)
        .where(Voucher.status == "pending")
        .order_by(Voucher.created_at.asc())
    )
    return list(result.scalars().all())


async def verify_voucher(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    admin: User,
    approve: bool,
    reason: str | None = None,
) -> Voucher:
    """
    [ADMIN ONLY] Approve or reject a pending listing and notify the seller.

    Approve: pending -> published (is_approved, VERIFIED)
    Reject:  pending -> rejected (REJECTED, with reason)
    """
    voucher = await _load_voucher(db, voucher_id)

    if voucher.status != "pending":
        raise InvalidVoucherStateError(voucher.id, voucher.status, "verify")

    voucher.verified_at = utcnow()
    voucher.verified_by_id = admin.id

    if approve:
        voucher.status = "published" if voucher.quantity > 0 else "sold_out"
        voucher.is_approved = True
        voucher.verification_status = "VERIFIED"
        voucher.rejection_reason = None
        message = f"Your voucher '{voucher.title}' has been verified and is now live"
        kind = "success"
    else:
        voucher.status = "rejected"
        voucher.is_approved = False
        voucher.verification_status = "REJECTED"
        voucher.rejection_reason = reason or "Rejected by admin"
        message = f"Your voucher '{voucher.title}' was rejected: {voucher.rejection_reason}"
        kind = "error"

    await db.flush()
    log.info("Voucher %s %s by admin %s", voucher.id, voucher.verification_status, admin.id)

    await notification_service.notify(
        db, voucher.owner_id, message, type=kind, link=f"/vouchers/{voucher.id}"
    )
    return voucher


async def sweep_expired_vouchers(db: AsyncSession) -> int:
    """
    Mark vouchers past their expiry date as expired.

    Vouchers with an open purchase (awaiting payment confirmation) are left
    alone so the admin can still settle it; the next sweep picks them up.
    Returns the number of vouchers expired.
    """
    open_purchases = select(Transaction.voucher_id).where(Transaction.status.in_(OPEN_STATUSES))

    result = await db.execute(
        update(Voucher)
        .where(
            Voucher.expiry_date <= utcnow(),
            Voucher.status.not_in(("expired", "rejected")),
            Voucher.id.not_in(open_purchases),
        )
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )

    if result.rowcount:
        log.info("Expired %d vouchers", result.rowcount)
    return result.rowcount
