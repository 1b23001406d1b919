"""
Notification service — in-app messages for marketplace events.

Services call notify() / notify_admins() as a side effect of purchases,
confirmations, refunds and payouts. The rows are added to the caller's
session, so a notification is only persisted together with the change
it describes.
"""

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import NotificationNotFoundError, UnauthorizedAccessError
from vouchify.models.notification import Notification
from vouchify.models.user import User, UserRole


async def notify(
    db: AsyncSession,
    user_id: uuid.UUID,
    message: str,
    type: str = "info",
    link: str | None = None,
) -> Notification:
    notification = Notification(user_id=user_id, message=message, type=type, link=link)
    db.add(notification)
    await db.flush()
    return notification


async def notify_admins(
    db: AsyncSession,
    message: str,
    type: str = "info",
    link: str | None = None,
) -> int:
    """Send the same notification to every active admin. Returns the count."""
    result = await db.execute(
        select(User.id).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
    )
    admin_ids = list(result.scalars().all())

    db.add_all(
        Notification(user_id=admin_id, message=message, type=type, link=link)
        for admin_id in admin_ids
    )
    await db.flush()
    return len(admin_ids)


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    query = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if unread_only:
        query = query.where(Notification.read.is_(False))

    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_read(
    db: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Notification:
    """
    Mark one of the user's notifications as read.

    Raises:
        NotificationNotFoundError: If the notification doesn't exist.
        UnauthorizedAccessError: If it belongs to another user.
    """
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id)
    )
    notification = result.scalar_one_or_none()

    if notification is None:
        raise NotificationNotFoundError(notification_id)
    if notification.user_id != user_id:
        raise UnauthorizedAccessError("You do not have access to this notification")

    notification.read = True
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
