"""
Client-side polling loops.

InboxPoller watches the notification inbox and turns new items into effects.
ChallengeStatusWatcher polls one challenge until it reaches a state the
watching screen cares about. Each loop owns its own cursor and its own task,
so several can run side by side without sharing state.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from triviaduel.client.api import ApiError, SessionExpired, TriviaDuelClient
from triviaduel.client.reconcile import (
    InboxCursor, Role, WatchMode, StatusDecision,
    evaluate_status, prime, reconcile_inbox,
)
from triviaduel.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

EffectHandler = Callable[[object], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]


class InboxPoller:
    """Polls the inbox on a fixed cadence and applies effects for new notifications."""

    def __init__(
        self,
        api: TriviaDuelClient,
        handler: EffectHandler,
        interval: Optional[float] = None,
        on_session_expired: Optional[Callable[[], Awaitable[None]]] = None,
        name: str = "inbox",
        sleep: Sleep = asyncio.sleep,
    ):
        self.api = api
        self.handler = handler
        self.interval = interval if interval is not None else settings.inbox_poll_seconds
        self.on_session_expired = on_session_expired
        self.name = name
        self.cursor = InboxCursor()
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> int:
        """
        Run one poll. Returns the number of effects applied.

        The first tick only primes the cursor: whatever is already in the inbox
        when the context mounts is not replayed as new.
        """
        notifications = await self.api.get_notifications()

        if self._stopped:
            # Unmounted while the request was in flight
            return 0

        if not self.cursor.primed:
            self.cursor = prime(notifications)
            logger.debug(f"[{self.name}] primed with {len(notifications)} notifications")
            return 0

        result = reconcile_inbox(notifications, self.cursor)
        self.cursor = result.cursor

        applied = 0
        for effect in result.effects:
            try:
                await self.handler(effect)
                applied += 1
            except Exception as e:
                logger.error(f"[{self.name}] effect {type(effect).__name__} failed: {e}")
        return applied

    async def run(self) -> None:
        logger.info(f"[{self.name}] polling every {self.interval}s")
        while not self._stopped:
            try:
                await self.tick()
            except SessionExpired:
                logger.warning(f"[{self.name}] session expired, stopping")
                self._stopped = True
                if self.on_session_expired:
                    await self.on_session_expired()
                return
            except ApiError as e:
                logger.warning(f"[{self.name}] poll failed: {e}")
            except Exception as e:
                logger.error(f"[{self.name}] poll error: {e}")

            await self._sleep(self.interval)

    def start(self) -> None:
        """Start the polling task."""
        self._stopped = False
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
            logger.info(f"[{self.name}] poller started")

    async def stop(self) -> None:
        """Stop the polling task. Safe to call more than once."""
        self._stopped = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info(f"[{self.name}] poller stopped")
        self._task = None


class ChallengeStatusWatcher:
    """
    Polls one challenge's status until the watch is over.

    AWAIT_ACCEPTANCE ends when the opponent accepts or declines.
    AWAIT_RESULT ends when both scores are in or the challenge is declined.
    """

    def __init__(
        self,
        api: TriviaDuelClient,
        challenge_id: str,
        mode: WatchMode,
        role: Role,
        handler: Optional[EffectHandler] = None,
        interval: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        max_polls: Optional[int] = None,
    ):
        self.api = api
        self.challenge_id = challenge_id
        self.mode = mode
        self.role = role
        self.handler = handler
        self.interval = interval if interval is not None else settings.status_poll_seconds
        self._sleep = sleep
        self.max_polls = max_polls
        self.last_status: Optional[dict] = None
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    async def poll_once(self) -> StatusDecision:
        status = await self.api.get_challenge_status(self.challenge_id)
        self.last_status = status
        return evaluate_status(self.challenge_id, status, self.mode, self.role)

    async def wait(self) -> Optional[object]:
        """
        Poll until terminal. Returns the terminal effect, or None if stopped
        or out of polls first. NotFound and SessionExpired propagate.
        """
        polls = 0
        while not self._stopped:
            try:
                decision = await self.poll_once()
            except ApiError as e:
                if e.status_code in (401, 403, 404):
                    raise
                logger.warning(f"Status poll for {self.challenge_id} failed: {e}")
                decision = StatusDecision(terminal=False)

            if self._stopped:
                return None

            if decision.terminal:
                if self.handler and decision.effect is not None:
                    await self.handler(decision.effect)
                return decision.effect

            polls += 1
            if self.max_polls is not None and polls >= self.max_polls:
                logger.info(f"Gave up watching {self.challenge_id} after {polls} polls")
                return None
            await self._sleep(self.interval)
        return None
