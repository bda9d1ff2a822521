from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime

from triviaduel.models.challenge import ChallengeStatus
from triviaduel.schemas.user import UserBrief


class QuestionRecord(BaseModel):
    """A question in the shared, ordered set both players answer"""
    question: str
    correct_answer: str
    answers: List[str] = Field(..., min_length=2)

    @model_validator(mode='after')
    def correct_answer_is_an_option(self):
        if self.correct_answer not in self.answers:
            raise ValueError('correct_answer must be one of answers')
        return self


class ChallengeCreate(BaseModel):
    """Invite a user; include score when the challenger already played"""
    challenged_id: str
    category: str = Field(..., min_length=1, max_length=100)
    difficulty: str = Field(..., min_length=1, max_length=20)
    score: Optional[int] = Field(None, ge=0)


class ChallengeAction(BaseModel):
    """Body for accept/reject"""
    challenge_id: str


class ChallengeComplete(BaseModel):
    """Body for submitting a score"""
    challenge_id: str
    score: int = Field(..., ge=0)


class QuestionsSave(BaseModel):
    questions: List[QuestionRecord] = Field(..., min_length=1)


class QuestionsSaved(BaseModel):
    msg: str = "Questions saved"
    questions: List[QuestionRecord]


class ChallengeResponse(BaseModel):
    """Full challenge record"""
    id: str
    challenger: Optional[UserBrief]
    challenged: Optional[UserBrief]
    category: str
    difficulty: str
    challenger_score: Optional[int]
    challenged_score: Optional[int]
    status: ChallengeStatus
    winner_id: Optional[str]
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class ChallengeStatusResponse(BaseModel):
    """What polling clients need to reconcile against"""
    status: ChallengeStatus
    challenger_id: str
    challenged_id: str
    challenger_score: Optional[int]
    challenged_score: Optional[int]
    winner_id: Optional[str]
    questions: List[QuestionRecord]


class MessageResponse(BaseModel):
    msg: str
