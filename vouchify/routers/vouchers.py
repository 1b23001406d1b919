"""
Vouchers router — browse, list, edit and buy vouchers.

Endpoints:
  GET    /vouchers                     — Browse sellable vouchers (public)
  POST   /vouchers                     — List a voucher for sale
  GET    /vouchers/mine                — The seller's own listings
  GET    /vouchers/{voucher_id}        — Voucher details
  PATCH  /vouchers/{voucher_id}        — Edit own listing
  DELETE /vouchers/{voucher_id}        — Delete own listing (no sales yet)
  POST   /vouchers/{voucher_id}/publish  — Submit a draft for verification
  POST   /vouchers/{voucher_id}/purchase — Buy one unit

"/mine" is declared before "/{voucher_id}" so it isn't parsed as an ID.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user, get_optional_user
from vouchify.models.user import User
from vouchify.schemas.transaction import PurchaseRequest, TransactionResponse
from vouchify.schemas.voucher import (
    VoucherCreateRequest,
    VoucherResponse,
    VoucherUpdateRequest,
)
from vouchify.services import purchase_service, voucher_service

router = APIRouter()


@router.get(
    "",
    response_model=list[VoucherResponse],
    summary="Browse vouchers for sale",
)
async def list_vouchers(
    category: str | None = Query(None, description="Filter by brand/category"),
    search: str | None = Query(None, max_length=100, description="Search in titles"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """
    List vouchers that can be bought right now: published, approved, in
    stock and not expired. Newest first.
    """
    return await voucher_service.list_vouchers(
        db,
        category=category,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=VoucherResponse,
    status_code=status.HTTP_201_CREATED,
    summary="List a voucher for sale",
)
async def create_voucher(
    request: VoucherCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List a voucher. The scratch code is validated, checked for duplicates
    and stored encrypted; it is never returned by voucher endpoints.

    With **publish** the voucher goes straight to admin verification,
    otherwise it is saved as a draft.
    """
    return await voucher_service.create_voucher(
        db,
        owner=user,
        title=request.title,
        description=request.description,
        category=request.category,
        original_price_cents=request.original_price_cents,
        listed_price_cents=request.listed_price_cents,
        quantity=request.quantity,
        expiry_date=request.expiry_date,
        scratch_code=request.scratch_code,
        limit_per_user=request.limit_per_user,
        terms=request.terms,
        instructions=request.instructions,
        image_url=request.image_url,
        publish=request.publish,
    )


@router.get(
    "/mine",
    response_model=list[VoucherResponse],
    summary="List my vouchers",
)
async def list_my_vouchers(
    status: str | None = Query(None, description="Filter by listing status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.list_my_vouchers(db, user.id, status_filter=status)


@router.get(
    "/{voucher_id}",
    response_model=VoucherResponse,
    summary="Get voucher details",
)
async def get_voucher(
    voucher_id: uuid.UUID,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Drafts and listings under review are only visible to their seller and admins."""
    return await voucher_service.get_voucher(db, voucher_id, viewer=user)


@router.patch(
    "/{voucher_id}",
    response_model=VoucherResponse,
    summary="Edit my voucher",
)
async def update_voucher(
    voucher_id: uuid.UUID,
    request: VoucherUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Edit a listing. Price changes recompute the fee breakdown; a new
    scratch code sends a live listing back to verification.
    """
    return await voucher_service.update_voucher(
        db,
        voucher_id,
        owner_id=user.id,
        changes=request.model_dump(exclude_unset=True),
    )


@router.delete(
    "/{voucher_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete my voucher",
)
async def delete_voucher(
    voucher_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Only possible while nobody has bought the voucher."""
    await voucher_service.delete_voucher(db, voucher_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{voucher_id}/publish",
    response_model=VoucherResponse,
    summary="Submit a draft for verification",
)
async def publish_voucher(
    voucher_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await voucher_service.publish_voucher(db, voucher_id, owner_id=user.id)


@router.post(
    "/{voucher_id}/purchase",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy one unit of a voucher",
)
async def purchase_voucher(
    voucher_id: uuid.UUID,
    request: PurchaseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve one unit and create the purchase.

    - **wallet**: paid from the wallet balance, completed immediately
    - **cash**: manual UPI/bank payment; **payment_proof** is required and
      the purchase waits for an admin to confirm it
    - **stripe**: processor payment; waits until an admin marks it paid

    The scratch code is not included. Once the payment is verified it can
    be fetched from `GET /transactions/{id}/scratch-code`.
    """
    return await purchase_service.purchase(
        db,
        voucher_id=voucher_id,
        buyer=user,
        payment_method=request.payment_method,
        payment_proof=request.payment_proof,
        payment_reference=request.payment_reference,
    )
