"""
Challenge orchestration: one state transition plus its notifications per action.

The transition is committed first. The in-app notification and the push are
best-effort hints on top of it: if either fails the failure is logged and the
transition stands, because clients also poll challenge status directly.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from triviaduel.models.challenge import Challenge
from triviaduel.models.notification import NotificationType
from triviaduel.models.user import User
from triviaduel.services import challenge_state
from triviaduel.services.notification import create_notification
from triviaduel.services.push import (
    notify_challenge_received_push, notify_challenge_accepted_push,
    notify_challenge_rejected_push, notify_challenge_completed_push,
)

logger = logging.getLogger(__name__)


class ChallengeService:
    """Service for the challenge lifecycle and its side effects"""

    async def _emit(
        self,
        db: AsyncSession,
        recipient_id: str,
        type: NotificationType,
        actor: User,
        data: Dict[str, Any],
        message: str,
        push: Callable[[Optional[User]], Awaitable[Any]],
    ) -> bool:
        """Append the in-app notification, then push. Returns False if the append failed."""
        appended = True
        try:
            await create_notification(
                db, recipient_id, type,
                from_user_id=actor.id, data=data, message=message,
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            appended = False
            logger.error(f"Failed to append {type.value} notification for {recipient_id}: {e}")

        try:
            recipient = await db.get(User, recipient_id)
            await push(recipient)
        except Exception as e:
            logger.warning(f"[PUSH] Failed to send {type.value} push to {recipient_id}: {e}")

        return appended

    async def create_challenge(
        self,
        db: AsyncSession,
        challenger: User,
        challenged_id: str,
        category: str,
        difficulty: str,
        score: Optional[int] = None,
    ) -> Challenge:
        challenge = await challenge_state.create(
            db, challenger.id, challenged_id, category, difficulty, score
        )
        logger.info(
            f"Challenge {challenge.id} created by {challenger.id} for {challenged_id} "
            f"({challenge.status.value})"
        )

        await self._emit(
            db, challenged_id, NotificationType.CHALLENGE_RECEIVED, challenger,
            data={
                "challenge_id": challenge.id,
                "category": category,
                "difficulty": difficulty,
                "score_to_beat": score,
            },
            message=f"{challenger.username} challenged you to a {category} quiz!",
            push=lambda user: notify_challenge_received_push(
                user, challenger.username, category, challenge.id
            ),
        )
        return challenge

    async def accept_challenge(self, db: AsyncSession, challenge_id: str, actor: User) -> Challenge:
        challenge = await challenge_state.accept(db, challenge_id, actor.id)

        await self._emit(
            db, challenge.challenger_id, NotificationType.CHALLENGE_ACCEPTED, actor,
            data={"challenge_id": challenge.id},
            message=f"{actor.username} accepted your challenge!",
            push=lambda user: notify_challenge_accepted_push(user, actor.username, challenge.id),
        )
        return challenge

    async def reject_challenge(self, db: AsyncSession, challenge_id: str, actor: User) -> Challenge:
        challenge = await challenge_state.reject(db, challenge_id, actor.id)

        await self._emit(
            db, challenge.challenger_id, NotificationType.CHALLENGE_REJECTED, actor,
            data={"challenge_id": challenge.id},
            message=f"{actor.username} rejected your challenge",
            push=lambda user: notify_challenge_rejected_push(user, actor.username, challenge.id),
        )
        return challenge

    async def complete_challenge(
        self, db: AsyncSession, challenge_id: str, actor: User, score: int
    ) -> Challenge:
        """
        Record the actor's score and, if the opponent has already played,
        complete the challenge and tell the opponent.
        """
        await challenge_state.record_score(db, challenge_id, actor.id, score)

        completed = await challenge_state.try_complete(db, challenge_id)
        if completed is None:
            # Still waiting for the opponent, or a concurrent request completed it
            return await challenge_state.get_challenge(db, challenge_id)

        opponent_id = completed.opponent_of(actor.id)
        my_score = completed.score_of(opponent_id)
        await self._emit(
            db, opponent_id, NotificationType.CHALLENGE_COMPLETED, actor,
            data={
                "challenge_id": completed.id,
                "my_score": my_score,
                "opponent_score": score,
                "winner_id": completed.winner_id,
            },
            message=f"{actor.username} completed the challenge!",
            push=lambda user: notify_challenge_completed_push(
                user, actor.username, completed.id, my_score, score
            ),
        )
        return completed

    async def get_status(self, db: AsyncSession, challenge_id: str, actor: User) -> Challenge:
        return await challenge_state.get_for_participant(db, challenge_id, actor.id)

    async def save_questions(
        self, db: AsyncSession, challenge_id: str, actor: User, questions: List[dict]
    ) -> List[dict]:
        return await challenge_state.save_questions(db, challenge_id, actor.id, questions)

    async def list_pending(self, db: AsyncSession, user: User) -> List[Challenge]:
        return await challenge_state.list_open(db, user.id)


# Singleton
challenge_service = ChallengeService()
