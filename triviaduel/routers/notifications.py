from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from triviaduel.database import get_db
from triviaduel.errors import ChallengeError, to_http
from triviaduel.models.notification import Notification
from triviaduel.models.user import User
from triviaduel.schemas.challenge import MessageResponse
from triviaduel.schemas.notification import NotificationResponse, UnreadCountResponse
from triviaduel.services import notification as notification_store
from triviaduel.services.auth import get_current_user
from triviaduel.routers.challenges import get_user_brief

router = APIRouter(prefix="/api/social/notifications", tags=["Notifications"])


async def build_notification_response(db: AsyncSession, notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        recipient_id=notification.recipient_id,
        from_user=await get_user_brief(db, notification.from_user_id),
        type=notification.type,
        payload=notification.payload,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The current user's inbox, newest first. Polled by every client screen."""
    notifications = await notification_store.list_notifications(db, current_user.id, unread_only)
    return [await build_notification_response(db, n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get count of unread notifications (for bell badge)."""
    count = await notification_store.unread_count(db, current_user.id)
    return UnreadCountResponse(count=count)


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark all notifications as read."""
    await notification_store.mark_all_read(db, current_user.id)
    return MessageResponse(msg="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark a single notification as read."""
    try:
        await notification_store.mark_read(db, notification_id, current_user.id)
    except ChallengeError as e:
        raise to_http(e)
    return MessageResponse(msg="Notification marked as read")


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Dismiss a notification. A 404 means it was already dismissed."""
    try:
        await notification_store.delete_notification(db, notification_id, current_user.id)
    except ChallengeError as e:
        raise to_http(e)
    return MessageResponse(msg="Notification deleted")
