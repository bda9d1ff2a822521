"""
Lobby and results flows for one challenge, from one participant's side.

The challenged player accepts and resolves the question set right away. The
challenger waits for acceptance and then reads the set the other side saved,
so both play identical questions in identical order.
"""
import asyncio
import enum
import logging
from typing import Any, List, Optional, Protocol

from triviaduel.client.api import ApiError, TriviaDuelClient
from triviaduel.client.poller import ChallengeStatusWatcher, EffectHandler, Sleep
from triviaduel.client.reconcile import (
    ChallengeDeclined, CountdownTick,
    QuizReady, Role, WatchMode,
)
from triviaduel.config import get_settings
from triviaduel.services.trivia import trivia_service

logger = logging.getLogger(__name__)

settings = get_settings()


class QuestionSource(Protocol):
    async def fetch_questions(self, category: str, difficulty: str) -> List[Any]:
        ...


class QuestionStrategy(str, enum.Enum):
    RETRY_UNTIL_READY = "retry_until_ready"
    FIXED_DELAY = "fixed_delay"


class LobbyError(Exception):
    """The lobby could not get both players onto the same question set."""


def _as_record(question: Any) -> dict:
    if hasattr(question, "model_dump"):
        return question.model_dump()
    return dict(question)


async def _ignore(effect: object) -> None:
    return None


class ChallengeLobby:
    """Gets one participant from "challenge exists" to "quiz ready"."""

    def __init__(
        self,
        api: TriviaDuelClient,
        challenge_id: str,
        role: Role,
        category: str,
        difficulty: str,
        question_source: Optional[QuestionSource] = None,
        handler: Optional[EffectHandler] = None,
        strategy: QuestionStrategy = QuestionStrategy.RETRY_UNTIL_READY,
        needs_accept: bool = True,
        countdown: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api = api
        self.challenge_id = challenge_id
        self.role = role
        self.category = category
        self.difficulty = difficulty
        self.question_source = question_source or trivia_service
        self.handler = handler or _ignore
        self.strategy = strategy
        self.needs_accept = needs_accept
        self.countdown = countdown if countdown is not None else settings.countdown_seconds
        self._sleep = sleep
        self._watcher: Optional[ChallengeStatusWatcher] = None
        self._cancelled = False

    def cancel(self) -> None:
        """Leave the lobby; any in-flight result is dropped."""
        self._cancelled = True
        if self._watcher:
            self._watcher.stop()

    async def run(self) -> Optional[object]:
        """
        Returns QuizReady, ChallengeDeclined, or None if cancelled.
        """
        if self.role == Role.CHALLENGED:
            return await self._run_challenged()
        return await self._run_challenger()

    async def _run_challenged(self) -> Optional[object]:
        if self.needs_accept:
            declined = await self._accept()
            if declined is not None:
                return declined

        await self._count_down()
        if self._cancelled:
            return None

        questions = await self._resolve_and_save()
        return await self._ready(questions)

    async def _accept(self) -> Optional[ChallengeDeclined]:
        try:
            await self.api.accept_challenge(self.challenge_id)
            return None
        except ApiError as e:
            if e.status_code != 400:
                raise
            # Accepted from another device, or withdrawn meanwhile
            status = await self.api.get_challenge_status(self.challenge_id)
            if status["status"] == "declined":
                effect = ChallengeDeclined(self.challenge_id)
                await self.handler(effect)
                return effect
            if status["status"] == "invited":
                raise
            logger.info(f"Challenge {self.challenge_id} already accepted")
            return None

    async def _run_challenger(self) -> Optional[object]:
        self._watcher = ChallengeStatusWatcher(
            self.api, self.challenge_id, WatchMode.AWAIT_ACCEPTANCE, self.role,
            handler=self.handler, sleep=self._sleep,
        )
        effect = await self._watcher.wait()
        if self._cancelled or effect is None:
            return None
        if isinstance(effect, ChallengeDeclined):
            return effect

        await self._count_down()
        if self._cancelled:
            return None

        questions = await self._await_questions()
        return await self._ready(questions)

    async def _count_down(self) -> None:
        for remaining in range(self.countdown, 0, -1):
            if self._cancelled:
                return
            await self.handler(CountdownTick(self.challenge_id, remaining))
            await self._sleep(1)

    async def _resolve_and_save(self) -> List[dict]:
        """Generate a set and offer it; whatever the server returns is canonical."""
        generated = await self.question_source.fetch_questions(self.category, self.difficulty)
        saved = await self.api.save_challenge_questions(
            self.challenge_id, [_as_record(q) for q in generated]
        )
        return saved["questions"]

    async def _stored_questions(self) -> Optional[List[dict]]:
        try:
            status = await self.api.get_challenge_status(self.challenge_id)
        except ApiError as e:
            if e.status_code in (401, 403, 404):
                raise
            # A failed read counts as "not ready yet"
            logger.warning(f"Question read for {self.challenge_id} failed: {e}")
            return None
        return status.get("questions") or None

    async def _await_questions(self) -> List[dict]:
        if self.strategy == QuestionStrategy.FIXED_DELAY:
            await self._sleep(settings.settling_delay_seconds)
            questions = await self._stored_questions()
        else:
            questions = None
            delay = settings.questions_retry_backoff
            attempts = settings.questions_retry_attempts
            for attempt in range(attempts):
                questions = await self._stored_questions()
                if questions or self._cancelled or attempt + 1 == attempts:
                    break
                logger.debug(
                    f"Questions for {self.challenge_id} not ready (attempt {attempt + 1}), "
                    f"retrying in {delay}s"
                )
                await self._sleep(delay)
                delay = min(delay * 2, settings.questions_retry_max_delay)

        if questions:
            return questions

        logger.info(f"No stored questions for {self.challenge_id}, resolving our own")
        return await self._resolve_and_save()

    async def _ready(self, questions: List[dict]) -> Optional[QuizReady]:
        if self._cancelled:
            return None
        if not questions:
            raise LobbyError(f"No questions available for challenge {self.challenge_id}")
        effect = QuizReady(self.challenge_id, questions)
        await self.handler(effect)
        return effect


class ChallengeResults:
    """Submits this player's score and waits for the opponent's."""

    def __init__(
        self,
        api: TriviaDuelClient,
        challenge_id: str,
        role: Role,
        handler: Optional[EffectHandler] = None,
        interval: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        max_polls: Optional[int] = None,
    ):
        self.api = api
        self.challenge_id = challenge_id
        self.role = role
        self.handler = handler
        self._watcher = ChallengeStatusWatcher(
            api, challenge_id, WatchMode.AWAIT_RESULT, role,
            handler=handler, interval=interval, sleep=sleep, max_polls=max_polls,
        )

    def cancel(self) -> None:
        self._watcher.stop()

    async def submit(self, score: int) -> None:
        """Submit once. A retry after the score already landed counts as done."""
        try:
            await self.api.complete_challenge(self.challenge_id, score)
        except ApiError as e:
            if e.status_code != 400:
                raise
            status = await self.api.get_challenge_status(self.challenge_id)
            mine = (
                status["challenger_score"] if self.role == Role.CHALLENGER
                else status["challenged_score"]
            )
            if mine is None:
                raise
            logger.info(f"Score for {self.challenge_id} was already recorded ({mine})")

    async def wait(self) -> Optional[object]:
        """ChallengeOutcome, ChallengeDeclined, or None if cancelled."""
        return await self._watcher.wait()

    async def submit_and_wait(self, score: int) -> Optional[object]:
        await self.submit(score)
        return await self.wait()


