"""
Reviews router — buyer ratings on vouchers.

Endpoints:
  GET  /vouchers/{voucher_id}/reviews  — Reviews of a voucher (public)
  POST /vouchers/{voucher_id}/reviews  — Review a completed purchase
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user, get_optional_user
from vouchify.models.user import User
from vouchify.schemas.review import ReviewCreateRequest, ReviewResponse
from vouchify.services import review_service

router = APIRouter()


@router.get(
    "/{voucher_id}/reviews",
    response_model=list[ReviewResponse],
    summary="List reviews of a voucher",
)
async def list_reviews(
    voucher_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await review_service.list_reviews(
        db, voucher_id, viewer=user, limit=limit, offset=offset
    )


@router.post(
    "/{voucher_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a completed purchase",
)
async def create_review(
    voucher_id: uuid.UUID,
    request: ReviewCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await review_service.create_review(
        db,
        voucher_id=voucher_id,
        reviewer=user,
        transaction_id=request.transaction_id,
        rating=request.rating,
        comment=request.comment,
    )
