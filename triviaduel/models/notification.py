import json
import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Text, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
import enum

from triviaduel.database import Base


class NotificationType(str, enum.Enum):
    FRIEND_REQUEST = "friend_request"
    CHALLENGE_RECEIVED = "challenge_received"
    CHALLENGE_ACCEPTED = "challenge_accepted"
    CHALLENGE_REJECTED = "challenge_rejected"
    CHALLENGE_COMPLETED = "challenge_completed"


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_recipient_unread", "recipient_id", "is_read"),
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    from_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(50))
    data: Mapped[str] = mapped_column(Text, default="{}")  # JSON: challenge_id, category, difficulty, scores
    message: Mapped[str] = mapped_column(Text, default="")
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def payload(self) -> dict:
        return json.loads(self.data or "{}")
