import json
from typing import List, Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from triviaduel.errors import NotFound, Unauthorized
from triviaduel.models.notification import Notification, NotificationType
from triviaduel.models.user import User


async def create_notification(
    db: AsyncSession,
    recipient_id: str,
    type: NotificationType | str,
    from_user_id: Optional[str] = None,
    data: dict | None = None,
    message: str = "",
) -> Notification:
    """Append an in-app notification to a user's inbox."""
    recipient = await db.get(User, recipient_id)
    if recipient is None:
        raise NotFound("Recipient not found")

    notification = Notification(
        recipient_id=recipient_id,
        from_user_id=from_user_id,
        type=NotificationType(type).value,
        data=json.dumps(data or {}),
        message=message,
    )
    db.add(notification)
    # Don't commit - let the caller's existing commit handle it
    return notification


async def list_notifications(
    db: AsyncSession,
    recipient_id: str,
    unread_only: bool = False,
) -> List[Notification]:
    """Snapshot of a user's inbox, newest first."""
    query = select(Notification).where(Notification.recipient_id == recipient_id)
    if unread_only:
        query = query.where(Notification.is_read == False)
    query = query.order_by(Notification.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, recipient_id: str) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.is_read == False,
            )
        )
    )
    return result.scalar() or 0


async def _get_owned(db: AsyncSession, notification_id: str, requester_id: str) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.recipient_id != requester_id:
        raise Unauthorized("Not authorized")
    return notification


async def delete_notification(db: AsyncSession, notification_id: str, requester_id: str) -> None:
    """Hard-delete a notification. NotFound on a second delete is benign for callers."""
    notification = await _get_owned(db, notification_id, requester_id)
    await db.delete(notification)
    await db.commit()


async def mark_read(db: AsyncSession, notification_id: str, requester_id: str) -> Notification:
    notification = await _get_owned(db, notification_id, requester_id)
    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, recipient_id: str) -> None:
    await db.execute(
        update(Notification)
        .where(
            and_(
                Notification.recipient_id == recipient_id,
                Notification.is_read == False,
            )
        )
        .values(is_read=True)
    )
    await db.commit()
