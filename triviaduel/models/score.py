import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from triviaduel.database import Base


class Score(Base):
    __tablename__ = "scores"

    __table_args__ = (
        Index("ix_scores_category_score", "category", "score"),
        Index("ix_scores_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    score: Mapped[int] = mapped_column(Integer)
    total_questions: Mapped[int] = mapped_column(Integer)
    category: Mapped[str] = mapped_column(String(100), default="General")
    difficulty: Mapped[str] = mapped_column(String(20), default="Any")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
