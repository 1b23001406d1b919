"""
Transactions router — the buyer's and seller's view of purchases.

Member endpoints (scoped to the authenticated user):
  GET  /transactions                               — My purchases and sales
  GET  /transactions/{transaction_id}              — One transaction
  POST /transactions/{transaction_id}/payment-proof — Upload proof of payment
  GET  /transactions/{transaction_id}/scratch-code — Reveal the voucher code

Purchases are created through POST /vouchers/{id}/purchase. Admin
actions live in the admin router (vouchify/routers/admin.py).
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user
from vouchify.models.user import User
from vouchify.schemas.transaction import (
    PaymentProofRequest,
    ScratchCodeResponse,
    TransactionResponse,
)
from vouchify.services import purchase_service

router = APIRouter()


@router.get(
    "",
    response_model=list[TransactionResponse],
    summary="List my transactions",
)
async def list_transactions(
    type: Literal["bought", "sold", "all"] = Query("all", description="bought, sold or all"),
    status: str | None = Query(None, description="Filter by transaction status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the user's purchases (bought), sales (sold) or both, newest first."""
    return await purchase_service.list_transactions(
        db,
        user_id=user.id,
        role=type,
        status_filter=status,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a single transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Visible to the buyer, the seller and admins."""
    return await purchase_service.get_transaction(db, transaction_id, user)


@router.post(
    "/{transaction_id}/payment-proof",
    response_model=TransactionResponse,
    summary="Upload proof of a manual payment",
)
async def upload_payment_proof(
    transaction_id: uuid.UUID,
    request: PaymentProofRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Attach the UPI/bank payment proof. The purchase then waits in
    **pending_admin_confirmation** until an admin confirms or rejects it.
    """
    return await purchase_service.attach_payment_proof(
        db,
        transaction_id,
        buyer=user,
        payment_proof=request.payment_proof,
        payment_reference=request.payment_reference,
    )


@router.get(
    "/{transaction_id}/scratch-code",
    response_model=ScratchCodeResponse,
    summary="Reveal the voucher's scratch code",
)
async def reveal_scratch_code(
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Return the decrypted code once the payment is verified (paid or
    completed). Only the buyer may call this; other users get 403 and the
    attempt is recorded. Can be called again at any time.
    """
    code = await purchase_service.reveal_scratch_code(db, transaction_id, user)
    return ScratchCodeResponse(transaction_id=transaction_id, code=code)
