"""
Challenge lifecycle state machine.

States: invited -> pending -> completed
        invited -> declined
        pending -> declined   (only before the challenged player has committed)

Every mutation is a conditional single-row UPDATE, so two requests racing on
the same challenge cannot both win a transition. Completion is decided from
the row as persisted after the caller's own score write, never from a copy
loaded before it.
"""
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from triviaduel.config import get_settings
from triviaduel.errors import NotFound, Unauthorized, InvalidTransition, InvalidScore
from triviaduel.models.challenge import Challenge, ChallengeStatus
from triviaduel.models.user import User

settings = get_settings()
logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[ChallengeStatus, List[ChallengeStatus]] = {
    ChallengeStatus.INVITED: [ChallengeStatus.PENDING, ChallengeStatus.DECLINED],
    ChallengeStatus.PENDING: [ChallengeStatus.COMPLETED, ChallengeStatus.DECLINED],
    ChallengeStatus.COMPLETED: [],  # terminal
    ChallengeStatus.DECLINED: [],   # terminal
}


def can_transition(current: ChallengeStatus, target: ChallengeStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def validate_transition(current: ChallengeStatus, target: ChallengeStatus) -> None:
    """Raise InvalidTransition if current -> target is not an edge of the lifecycle."""
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move challenge from '{current.value}' to '{target.value}'"
        )


def decide_winner(challenge: Challenge) -> Optional[str]:
    """Strictly higher score wins; equal scores are a draw (None)."""
    if challenge.challenger_score > challenge.challenged_score:
        return challenge.challenger_id
    if challenge.challenged_score > challenge.challenger_score:
        return challenge.challenged_id
    return None


def max_score(challenge: Challenge) -> int:
    return len(challenge.questions) or settings.questions_per_quiz


async def get_challenge(db: AsyncSession, challenge_id: str) -> Challenge:
    """Load the challenge as currently persisted (bypasses the identity map)."""
    result = await db.execute(
        select(Challenge)
        .where(Challenge.id == challenge_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    challenge = result.scalar_one_or_none()
    if challenge is None:
        raise NotFound("Challenge not found")
    return challenge


async def get_for_participant(db: AsyncSession, challenge_id: str, actor_id: str) -> Challenge:
    challenge = await get_challenge(db, challenge_id)
    if not challenge.is_participant(actor_id):
        raise Unauthorized("You are not a player in this challenge")
    return challenge


async def create(
    db: AsyncSession,
    challenger_id: str,
    challenged_id: str,
    category: str,
    difficulty: str,
    score: Optional[int] = None,
) -> Challenge:
    """
    Create a challenge.

    With no score this is the challenge-then-play flow and the challenge starts
    as `invited`. With a score the challenger already played (play-then-invite)
    and the challenge starts as `pending` with the challenger's score recorded.
    """
    if challenger_id == challenged_id:
        raise InvalidTransition("You cannot challenge yourself")

    if await db.get(User, challenged_id) is None:
        raise NotFound("User not found")

    if score is not None and not 0 <= score <= settings.questions_per_quiz:
        raise InvalidScore(f"Score must be between 0 and {settings.questions_per_quiz}")

    challenge = Challenge(
        challenger_id=challenger_id,
        challenged_id=challenged_id,
        category=category,
        difficulty=difficulty,
        challenger_score=score,
        status=ChallengeStatus.PENDING if score is not None else ChallengeStatus.INVITED,
    )
    db.add(challenge)
    await db.commit()
    await db.refresh(challenge)
    return challenge


async def accept(db: AsyncSession, challenge_id: str, actor_id: str) -> Challenge:
    """invited -> pending, by the challenged player only."""
    challenge = await get_challenge(db, challenge_id)
    if actor_id != challenge.challenged_id:
        raise Unauthorized("Only the challenged player can accept")
    # pending -> pending is not an edge, so re-accepting is rejected here too
    validate_transition(challenge.status, ChallengeStatus.PENDING)

    result = await db.execute(
        update(Challenge)
        .where(Challenge.id == challenge_id, Challenge.status == ChallengeStatus.INVITED)
        .values(status=ChallengeStatus.PENDING, accepted_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    challenge = await get_challenge(db, challenge_id)
    if result.rowcount != 1:
        # Lost a race with reject
        raise InvalidTransition(f"Challenge is already {challenge.status.value}")
    return challenge


def _rejectable():
    # The challenged player may decline until they have accepted or played
    return or_(
        Challenge.status == ChallengeStatus.INVITED,
        and_(
            Challenge.status == ChallengeStatus.PENDING,
            Challenge.accepted_at.is_(None),
            Challenge.challenged_score.is_(None),
        ),
    )


async def reject(db: AsyncSession, challenge_id: str, actor_id: str) -> Challenge:
    """invited (or unanswered play-then-invite pending) -> declined."""
    challenge = await get_challenge(db, challenge_id)
    if actor_id != challenge.challenged_id:
        raise Unauthorized("Only the challenged player can reject")
    validate_transition(challenge.status, ChallengeStatus.DECLINED)

    result = await db.execute(
        update(Challenge)
        .where(Challenge.id == challenge_id, _rejectable())
        .values(status=ChallengeStatus.DECLINED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    challenge = await get_challenge(db, challenge_id)
    if result.rowcount != 1:
        raise InvalidTransition("Challenge can no longer be rejected")
    return challenge


async def record_score(db: AsyncSession, challenge_id: str, actor_id: str, score: int) -> Challenge:
    """
    Write the actor's score exactly once.

    Returns the challenge re-read after the write. A second submission from the
    same player raises InvalidTransition and leaves the stored score untouched.
    """
    challenge = await get_for_participant(db, challenge_id, actor_id)

    if challenge.score_of(actor_id) is not None:
        raise InvalidTransition("Score already submitted")
    if challenge.status != ChallengeStatus.PENDING:
        raise InvalidTransition(f"Cannot submit a score while challenge is {challenge.status.value}")

    limit = max_score(challenge)
    if not 0 <= score <= limit:
        raise InvalidScore(f"Score must be between 0 and {limit}")

    column = (
        Challenge.challenger_score
        if actor_id == challenge.challenger_id
        else Challenge.challenged_score
    )
    result = await db.execute(
        update(Challenge)
        .where(
            Challenge.id == challenge_id,
            Challenge.status == ChallengeStatus.PENDING,
            column.is_(None),
        )
        .values({column: score})
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    challenge = await get_challenge(db, challenge_id)
    if result.rowcount != 1:
        if challenge.score_of(actor_id) is not None:
            raise InvalidTransition("Score already submitted")
        raise InvalidTransition(f"Cannot submit a score while challenge is {challenge.status.value}")
    return challenge


async def try_complete(db: AsyncSession, challenge_id: str) -> Optional[Challenge]:
    """
    pending -> completed once both scores are persisted.

    Returns the completed challenge only to the single caller whose UPDATE
    performed the transition; everyone else gets None.
    """
    challenge = await get_challenge(db, challenge_id)
    if challenge.status != ChallengeStatus.PENDING or not challenge.both_played:
        return None

    winner_id = decide_winner(challenge)
    result = await db.execute(
        update(Challenge)
        .where(
            Challenge.id == challenge_id,
            Challenge.status == ChallengeStatus.PENDING,
            Challenge.challenger_score.is_not(None),
            Challenge.challenged_score.is_not(None),
        )
        .values(
            status=ChallengeStatus.COMPLETED,
            winner_id=winner_id,
            completed_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        return None

    logger.info(f"Challenge {challenge_id} completed, winner={winner_id or 'draw'}")
    return await get_challenge(db, challenge_id)


async def save_questions(
    db: AsyncSession, challenge_id: str, actor_id: str, questions: List[dict]
) -> List[dict]:
    """First write wins; always returns the canonical persisted sequence."""
    challenge = await get_for_participant(db, challenge_id, actor_id)
    if challenge.status == ChallengeStatus.DECLINED:
        raise InvalidTransition("Challenge was declined")

    result = await db.execute(
        update(Challenge)
        .where(Challenge.id == challenge_id, Challenge.questions_json.is_(None))
        .values(questions_json=json.dumps(questions))
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        logger.info(f"Questions for challenge {challenge_id} already saved, returning stored set")

    challenge = await get_challenge(db, challenge_id)
    return challenge.questions


async def list_open(db: AsyncSession, user_id: str) -> List[Challenge]:
    """Challenges still in play where the user is either participant."""
    result = await db.execute(
        select(Challenge)
        .where(
            or_(Challenge.challenger_id == user_id, Challenge.challenged_id == user_id),
            Challenge.status.in_([ChallengeStatus.INVITED, ChallengeStatus.PENDING]),
        )
        .order_by(Challenge.created_at.desc())
    )
    return list(result.scalars().all())
