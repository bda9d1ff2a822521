from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from triviaduel.database import get_db
from triviaduel.errors import ChallengeError, to_http
from triviaduel.models.challenge import Challenge
from triviaduel.models.user import User
from triviaduel.schemas.challenge import (
    ChallengeCreate, ChallengeAction, ChallengeComplete, ChallengeResponse,
    ChallengeStatusResponse, QuestionsSave, QuestionsSaved, MessageResponse,
)
from triviaduel.schemas.user import UserBrief
from triviaduel.services.auth import get_current_user
from triviaduel.services.challenge import challenge_service

router = APIRouter(prefix="/api/social", tags=["Challenges"])


async def get_user_brief(db: AsyncSession, user_id: Optional[str]) -> Optional[UserBrief]:
    """Helper to get brief user info"""
    if not user_id:
        return None
    user = await db.get(User, user_id)
    if not user:
        return None
    return UserBrief(id=user.id, username=user.username)


async def build_challenge_response(db: AsyncSession, challenge: Challenge) -> ChallengeResponse:
    """Convert Challenge model to response with participant details"""
    return ChallengeResponse(
        id=challenge.id,
        challenger=await get_user_brief(db, challenge.challenger_id),
        challenged=await get_user_brief(db, challenge.challenged_id),
        category=challenge.category,
        difficulty=challenge.difficulty,
        challenger_score=challenge.challenger_score,
        challenged_score=challenge.challenged_score,
        status=challenge.status,
        winner_id=challenge.winner_id,
        accepted_at=challenge.accepted_at,
        completed_at=challenge.completed_at,
        created_at=challenge.created_at,
    )


@router.post("/challenge", response_model=ChallengeResponse)
async def create_challenge(
    body: ChallengeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Challenge another user.

    Without a score the challenge starts as `invited` and the opponent must
    accept before either side plays. With a score (challenger already played)
    it starts as `pending` with the challenger's score recorded.
    """
    try:
        challenge = await challenge_service.create_challenge(
            db, current_user, body.challenged_id, body.category, body.difficulty, body.score
        )
    except ChallengeError as e:
        raise to_http(e)
    return await build_challenge_response(db, challenge)


@router.post("/challenge/accept", response_model=ChallengeResponse)
async def accept_challenge(
    body: ChallengeAction,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Accept an invite. Only the challenged user, only while `invited`."""
    try:
        challenge = await challenge_service.accept_challenge(db, body.challenge_id, current_user)
    except ChallengeError as e:
        raise to_http(e)
    return await build_challenge_response(db, challenge)


@router.post("/challenge/reject", response_model=MessageResponse)
async def reject_challenge(
    body: ChallengeAction,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Decline a challenge the current user has not yet accepted or played."""
    try:
        await challenge_service.reject_challenge(db, body.challenge_id, current_user)
    except ChallengeError as e:
        raise to_http(e)
    return MessageResponse(msg="Challenge rejected")


@router.post("/challenge/complete", response_model=ChallengeResponse)
async def complete_challenge(
    body: ChallengeComplete,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Submit the current user's score.

    Each player submits once. When the second score lands the challenge is
    completed, the winner decided and the other player notified.
    """
    try:
        challenge = await challenge_service.complete_challenge(
            db, body.challenge_id, current_user, body.score
        )
    except ChallengeError as e:
        raise to_http(e)
    return await build_challenge_response(db, challenge)


@router.get("/challenges/pending", response_model=List[ChallengeResponse])
async def get_pending_challenges(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Challenges still in play (invited or pending) on either side."""
    challenges = await challenge_service.list_pending(db, current_user)
    return [await build_challenge_response(db, c) for c in challenges]


@router.get("/challenge/{challenge_id}/status", response_model=ChallengeStatusResponse)
async def get_challenge_status(
    challenge_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Polled by both clients; the source of truth for the lifecycle."""
    try:
        challenge = await challenge_service.get_status(db, challenge_id, current_user)
    except ChallengeError as e:
        raise to_http(e)
    return ChallengeStatusResponse(
        status=challenge.status,
        challenger_id=challenge.challenger_id,
        challenged_id=challenge.challenged_id,
        challenger_score=challenge.challenger_score,
        challenged_score=challenge.challenged_score,
        winner_id=challenge.winner_id,
        questions=challenge.questions,
    )


@router.post("/challenge/{challenge_id}/questions", response_model=QuestionsSaved)
async def save_challenge_questions(
    challenge_id: str,
    body: QuestionsSave,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Persist the question set for this challenge.

    The first save wins; later saves get the stored set back so both players
    answer identical questions in identical order.
    """
    try:
        questions = await challenge_service.save_questions(
            db, challenge_id, current_user, [q.model_dump() for q in body.questions]
        )
    except ChallengeError as e:
        raise to_http(e)
    return QuestionsSaved(questions=questions)
