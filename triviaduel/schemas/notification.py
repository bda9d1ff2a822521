from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from triviaduel.models.notification import NotificationType
from triviaduel.schemas.user import UserBrief


class NotificationResponse(BaseModel):
    id: str
    recipient_id: str
    from_user: Optional[UserBrief]
    type: NotificationType
    payload: dict
    message: str
    is_read: bool
    created_at: datetime


class UnreadCountResponse(BaseModel):
    count: int
