"""
Payouts router — seller disbursements and the payout query thread.

Endpoints:
  GET   /payouts                        — Sellers: own payouts. Admins: all
  PATCH /payouts/{payout_id}/process    — [Admin] Mark paid or reject
  POST  /payouts/bulk-process           — [Admin] Pay all pending for a seller
  POST  /payouts/{payout_id}/queries    — Add a message to the thread
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user, require_admin
from vouchify.models.user import User
from vouchify.schemas.payout import (
    BulkPayoutRequest,
    BulkPayoutResponse,
    PayoutProcessRequest,
    PayoutQueryRequest,
    PayoutResponse,
)
from vouchify.services import payout_service

router = APIRouter()


@router.get(
    "",
    response_model=list[PayoutResponse],
    summary="List payouts",
)
async def list_payouts(
    status: str | None = Query(None, description="pending, paid or rejected"),
    seller_id: uuid.UUID | None = Query(None, description="[Admin] Filter by seller"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payout_service.list_payouts(
        db,
        user,
        status_filter=status,
        seller_id=seller_id,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/bulk-process",
    response_model=BulkPayoutResponse,
    summary="[Admin] Pay every pending payout of a seller",
)
async def bulk_process(
    request: BulkPayoutRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    count = await payout_service.bulk_mark_paid(
        db,
        seller_id=request.seller_id,
        admin=admin,
        payment_reference=request.payment_reference,
        admin_note=request.admin_note,
    )
    return BulkPayoutResponse(seller_id=request.seller_id, paid_count=count)


@router.patch(
    "/{payout_id}/process",
    response_model=PayoutResponse,
    summary="[Admin] Mark a payout paid or rejected",
)
async def process_payout(
    payout_id: uuid.UUID,
    request: PayoutProcessRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Only pending payouts can be processed; a second attempt returns 409."""
    return await payout_service.process_payout(
        db,
        payout_id,
        admin=admin,
        action=request.action,
        payment_reference=request.payment_reference,
        admin_note=request.admin_note,
        admin_proof_url=request.admin_proof_url,
    )


@router.post(
    "/{payout_id}/queries",
    response_model=PayoutResponse,
    summary="Add a message to a payout's query thread",
)
async def add_query(
    payout_id: uuid.UUID,
    request: PayoutQueryRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open to the payout's seller and admins."""
    return await payout_service.add_query(db, payout_id, user, request.message)
