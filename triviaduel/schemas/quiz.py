from pydantic import BaseModel, Field, model_validator
from datetime import datetime


class ScoreCreate(BaseModel):
    """A finished solo quiz"""
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., gt=0)
    category: str = "General"
    difficulty: str = "Any"

    @model_validator(mode='after')
    def score_within_total(self):
        if self.score > self.total_questions:
            raise ValueError('score cannot exceed total_questions')
        return self


class ScoreResponse(BaseModel):
    id: str
    score: int
    total_questions: int
    category: str
    difficulty: str
    created_at: datetime

    class Config:
        from_attributes = True


class LeaderboardEntry(BaseModel):
    user_id: str
    username: str
    best_score: int
    total_questions: int
    total_quizzes: int
    percentage: float


class Category(BaseModel):
    id: int
    name: str
    icon: str
    color: str
    difficulty: str = "medium"
