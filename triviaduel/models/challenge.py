import json
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional, List
import enum

from triviaduel.database import Base


class ChallengeStatus(str, enum.Enum):
    INVITED = "invited"       # Created, waiting for the challenged player
    PENDING = "pending"       # Both can play, waiting for scores
    COMPLETED = "completed"   # Both scores in, winner decided
    DECLINED = "declined"     # Challenged player said no


class Challenge(Base):
    __tablename__ = "challenges"

    __table_args__ = (
        Index("ix_challenges_challenger_status", "challenger_id", "status"),
        Index("ix_challenges_challenged_status", "challenged_id", "status"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Participants (immutable after creation)
    challenger_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    challenged_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))

    category: Mapped[str] = mapped_column(String(100))
    difficulty: Mapped[str] = mapped_column(String(20))

    # NULL means "not played yet"; each is written once by its owner
    challenger_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    challenged_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[ChallengeStatus] = mapped_column(
        SQLEnum(ChallengeStatus), default=ChallengeStatus.INVITED
    )
    # NULL on a completed challenge means a draw
    winner_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )

    # JSON list of question records, written once by whichever side resolves them first
    questions_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Challenge {self.challenger_id} vs {self.challenged_id} ({self.status.value})>"

    @property
    def questions(self) -> List[dict]:
        return json.loads(self.questions_json) if self.questions_json else []

    @property
    def both_played(self) -> bool:
        return self.challenger_score is not None and self.challenged_score is not None

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.challenger_id, self.challenged_id)

    def opponent_of(self, user_id: str) -> str:
        return self.challenged_id if user_id == self.challenger_id else self.challenger_id

    def score_of(self, user_id: str) -> Optional[int]:
        if user_id == self.challenger_id:
            return self.challenger_score
        return self.challenged_score
