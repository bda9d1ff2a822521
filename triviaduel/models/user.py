import uuid
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional

from triviaduel.database import Base


class User(Base):
    __tablename__ = "users"

    __table_args__ = (
        Index("ix_users_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    # Local auth
    password_hash: Mapped[str] = mapped_column(String(128))

    # Account status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Push delivery: Expo device token (mobile) and/or Web Push subscription JSON
    push_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    push_subscription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"
