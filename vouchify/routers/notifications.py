"""
Notifications router — the user's in-app inbox.

Endpoints:
  GET   /notifications                      — List my notifications
  PATCH /notifications/read-all             — Mark all as read
  PATCH /notifications/{notification_id}/read — Mark one as read
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user
from vouchify.models.user import User
from vouchify.schemas.notification import NotificationResponse
from vouchify.services import notification_service

router = APIRouter()


@router.get(
    "",
    response_model=list[NotificationResponse],
    summary="List my notifications",
)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.list_notifications(
        db, user.id, unread_only=unread_only, limit=limit, offset=offset
    )


@router.patch(
    "/read-all",
    summary="Mark all my notifications as read",
)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await notification_service.mark_all_read(db, user.id)
    return {"updated": updated}


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.mark_read(db, notification_id, user.id)
