"""
Tests for the polling client against the app, in-process.

Sleeps are recorded instead of awaited; hooks on the fake sleep play the
opponent's moves between polls.
"""
import httpx
import pytest

from triviaduel.client.api import SessionExpired, ApiError, NotFoundError, NetworkError, TriviaDuelClient
from triviaduel.client.lobby import ChallengeLobby, ChallengeResults, QuestionStrategy
from triviaduel.client.poller import InboxPoller, ChallengeStatusWatcher
from triviaduel.client.reconcile import (
    InboxCursor,
    ShowChallengeInvite, ShowFriendRequest, ShowToast, OpponentAccepted, ChallengeDeclined,
    ChallengeOutcome, CountdownTick, QuizReady, Role, WatchMode,
)
from triviaduel.config import get_settings
from triviaduel.models.user import User
from triviaduel.services.trivia import trivia_service
from tests.conftest import FakeQuestionSource, FakeSleep, SAMPLE_QUESTIONS

settings = get_settings()

OTHER_QUESTIONS = list(reversed(SAMPLE_QUESTIONS))


def flaky_api(*replies):
    """
    Client over a scripted transport. Each request takes the next reply;
    an exception class is raised as a transport failure instead.
    """
    pending = list(replies)

    def handler(request):
        reply = pending.pop(0)
        if isinstance(reply, type) and issubclass(reply, Exception):
            raise reply("network down", request=request)
        return httpx.Response(200, json=reply)

    return TriviaDuelClient("http://test", token="t", transport=httpx.MockTransport(handler))


class Recorder:
    def __init__(self, fail_when=None):
        self.effects = []
        self.fail_when = fail_when

    async def __call__(self, effect):
        if self.fail_when is not None and self.fail_when(effect):
            raise RuntimeError("handler blew up")
        self.effects.append(effect)


# ============================================================================
# API client
# ============================================================================


class TestApiClient:
    @pytest.mark.asyncio
    async def test_login_sets_token(self, api_for, test_user: User):
        async with api_for(test_user) as api:
            api._http.headers.pop("Authorization")
            data = await api.login("alice@example.com", "testpass123")

            assert data["user"]["username"] == "alice"
            assert await api.get_notifications() == []

    @pytest.mark.asyncio
    async def test_bad_token_is_session_expired(self, api_for, test_user: User):
        async with api_for(test_user) as api:
            api.set_token("garbage")
            with pytest.raises(SessionExpired):
                await api.get_notifications()

    @pytest.mark.asyncio
    async def test_unknown_challenge_is_not_found(self, api_for, test_user: User):
        async with api_for(test_user) as api:
            with pytest.raises(NotFoundError):
                await api.get_challenge_status("missing")

    @pytest.mark.asyncio
    async def test_dismiss_twice_is_harmless(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            await alice.create_challenge(test_user2.id, "9", "easy")
            [notif] = await bob.get_notifications()

            assert await bob.delete_notification(notif["id"]) is True
            assert await bob.delete_notification(notif["id"]) is False

    @pytest.mark.asyncio
    async def test_illegal_action_raises_api_error(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            with pytest.raises(ApiError) as exc_info:
                await alice.accept_challenge(challenge["id"])
            assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        async with flaky_api(httpx.ConnectError) as api:
            with pytest.raises(NetworkError) as exc_info:
                await api.get_notifications()
            assert exc_info.value.status_code == 0


# ============================================================================
# Inbox poller
# ============================================================================


class TestInboxPoller:
    @pytest.mark.asyncio
    async def test_first_tick_primes_without_effects(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            await alice.create_challenge(test_user2.id, "9", "easy")
            handler = Recorder()
            poller = InboxPoller(bob, handler)

            assert await poller.tick() == 0
            assert handler.effects == []
            assert poller.cursor.count == 1

    @pytest.mark.asyncio
    async def test_new_notifications_drive_one_effect_each(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            handler = Recorder()
            poller = InboxPoller(bob, handler)
            await poller.tick()

            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            assert await poller.tick() == 1
            # Nothing new on the next poll
            assert await poller.tick() == 0

            [effect] = handler.effects
            assert isinstance(effect, ShowChallengeInvite)
            assert effect.challenge_id == challenge["id"]
            assert effect.from_username == "alice"

    @pytest.mark.asyncio
    async def test_failing_effect_does_not_block_others(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            handler = Recorder(fail_when=lambda e: getattr(e, "kind", None) == "success")
            poller = InboxPoller(alice, handler)
            await poller.tick()

            c1 = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.accept_challenge(c1["id"])
            c2 = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.reject_challenge(c2["id"])

            # The accepted toast fails, the rejected one still shows
            assert await poller.tick() == 1
            assert [e.kind for e in handler.effects] == ["error"]
            assert all(isinstance(e, ShowToast) for e in handler.effects)
            assert await poller.tick() == 0

    @pytest.mark.asyncio
    async def test_session_expired_stops_and_calls_back(self, api_for, test_user: User):
        expired = []

        async def on_expired():
            expired.append(True)

        async with api_for(test_user) as api:
            api.set_token("garbage")
            sleep = FakeSleep()
            poller = InboxPoller(api, Recorder(), on_session_expired=on_expired, sleep=sleep)

            await poller.run()

            assert expired == [True]
            assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_result_after_stop_is_discarded(self):
        handler = Recorder()

        class StoppingApi:
            async def get_notifications(self):
                await poller.stop()
                return [{"id": "n1", "type": "friend_request", "payload": {}}]

        poller = InboxPoller(StoppingApi(), handler)
        poller.cursor = InboxCursor(primed=True)

        assert await poller.tick() == 0
        assert handler.effects == []
        assert not poller.cursor.seen_ids

    @pytest.mark.asyncio
    async def test_start_and_stop(self, api_for, test_user: User):
        async with api_for(test_user) as api:
            poller = InboxPoller(api, Recorder(), interval=60)
            poller.start()
            assert poller.running
            await poller.stop()
            assert not poller.running
            await poller.stop()

    @pytest.mark.asyncio
    async def test_network_failure_is_retried_next_tick(self):
        friend_request = {
            "id": "n1", "type": "friend_request", "payload": {},
            "from_user": {"id": "u2", "username": "bob"},
        }
        handler = Recorder()

        async def stop_after_third(call):
            if call == 3:
                await poller.stop()

        sleep = FakeSleep(hook=stop_after_third)
        async with flaky_api(httpx.ConnectError, [], [friend_request]) as api:
            poller = InboxPoller(api, handler, sleep=sleep)
            await poller.run()

        assert handler.effects == [ShowFriendRequest("n1", "u2", "bob")]
        assert sleep.delays == [settings.inbox_poll_seconds] * 3

    @pytest.mark.asyncio
    async def test_unexpected_poll_error_keeps_loop_alive(self):
        handler = Recorder()
        calls = []

        class BrokenOnceApi:
            async def get_notifications(self):
                calls.append(True)
                if len(calls) == 1:
                    raise RuntimeError("bad payload")
                return []

        async def stop_after_second(call):
            if call == 2:
                await poller.stop()

        poller = InboxPoller(BrokenOnceApi(), handler, sleep=FakeSleep(hook=stop_after_second))
        await poller.run()

        assert len(calls) == 2
        assert poller.cursor.primed


# ============================================================================
# Status watcher
# ============================================================================


class TestChallengeStatusWatcher:
    @pytest.mark.asyncio
    async def test_waits_for_acceptance(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")

            async def bob_accepts(call):
                if call == 2:
                    await bob.accept_challenge(challenge["id"])

            sleep = FakeSleep(hook=bob_accepts)
            watcher = ChallengeStatusWatcher(
                alice, challenge["id"], WatchMode.AWAIT_ACCEPTANCE, Role.CHALLENGER, sleep=sleep
            )

            effect = await watcher.wait()

            assert effect == OpponentAccepted(challenge["id"])
            assert sleep.delays == [settings.status_poll_seconds] * 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_polls(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            watcher = ChallengeStatusWatcher(
                alice, challenge["id"], WatchMode.AWAIT_ACCEPTANCE, Role.CHALLENGER,
                sleep=FakeSleep(), max_polls=3,
            )

            assert await watcher.wait() is None
            assert watcher.last_status["status"] == "invited"

    @pytest.mark.asyncio
    async def test_outsider_gets_forbidden(
        self, api_for, test_user: User, test_user2: User, outsider: User
    ):
        async with api_for(test_user) as alice, api_for(outsider) as mallory:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            watcher = ChallengeStatusWatcher(
                mallory, challenge["id"], WatchMode.AWAIT_RESULT, Role.CHALLENGED,
                sleep=FakeSleep(),
            )
            with pytest.raises(ApiError):
                await watcher.wait()

    @pytest.mark.asyncio
    async def test_network_failure_is_retried_next_poll(self):
        sleep = FakeSleep()
        async with flaky_api(httpx.ConnectError, {"status": "pending"}) as api:
            watcher = ChallengeStatusWatcher(
                api, "c1", WatchMode.AWAIT_ACCEPTANCE, Role.CHALLENGER, sleep=sleep
            )

            assert await watcher.wait() == OpponentAccepted("c1")
            assert sleep.delays == [settings.status_poll_seconds]

    @pytest.mark.asyncio
    async def test_timeout_does_not_end_result_watch(self):
        final = {"status": "completed", "challenger_score": 4, "challenged_score": 6}
        async with flaky_api(httpx.ReadTimeout, final) as api:
            results = ChallengeResults(api, "c1", Role.CHALLENGED, sleep=FakeSleep())

            assert await results.wait() == ChallengeOutcome("c1", 6, 4, "win")


# ============================================================================
# Lobby
# ============================================================================


class TestChallengeLobby:
    @pytest.mark.asyncio
    async def test_challenged_accepts_and_saves_questions(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            source = FakeQuestionSource()
            handler = Recorder()
            sleep = FakeSleep()

            lobby = ChallengeLobby(
                bob, challenge["id"], Role.CHALLENGED, "9", "easy", source,
                handler=handler, sleep=sleep,
            )
            result = await lobby.run()

            assert isinstance(result, QuizReady)
            assert result.questions == SAMPLE_QUESTIONS
            assert source.calls == 1
            ticks = [e.remaining for e in handler.effects if isinstance(e, CountdownTick)]
            assert ticks == list(range(settings.countdown_seconds, 0, -1))

            status = await alice.get_challenge_status(challenge["id"])
            assert status["status"] == "pending"
            assert status["questions"] == SAMPLE_QUESTIONS

    @pytest.mark.asyncio
    async def test_challenger_plays_the_saved_set(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")

            async def bob_moves(call):
                if call == 1:
                    await bob.accept_challenge(challenge["id"])
                    await bob.save_challenge_questions(challenge["id"], OTHER_QUESTIONS)

            source = FakeQuestionSource()
            handler = Recorder()
            lobby = ChallengeLobby(
                alice, challenge["id"], Role.CHALLENGER, "9", "easy", source,
                handler=handler, sleep=FakeSleep(hook=bob_moves),
            )
            result = await lobby.run()

            assert result.questions == OTHER_QUESTIONS
            assert source.calls == 0
            assert OpponentAccepted(challenge["id"]) in handler.effects

    @pytest.mark.asyncio
    async def test_challenger_backs_off_then_resolves_own(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.accept_challenge(challenge["id"])

            source = FakeQuestionSource()
            sleep = FakeSleep()
            lobby = ChallengeLobby(
                alice, challenge["id"], Role.CHALLENGER, "9", "easy", source, sleep=sleep,
            )
            result = await lobby.run()

            assert result.questions == SAMPLE_QUESTIONS
            assert source.calls == 1
            backoff = sleep.delays[settings.countdown_seconds:]
            # No wait after the last attempt
            assert len(backoff) == settings.questions_retry_attempts - 1
            assert backoff[0] == settings.questions_retry_backoff
            assert max(backoff) <= settings.questions_retry_max_delay
            assert backoff == sorted(backoff)

    @pytest.mark.asyncio
    async def test_fixed_delay_strategy(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.accept_challenge(challenge["id"])
            await bob.save_challenge_questions(challenge["id"], OTHER_QUESTIONS)

            sleep = FakeSleep()
            lobby = ChallengeLobby(
                alice, challenge["id"], Role.CHALLENGER, "9", "easy", FakeQuestionSource(),
                strategy=QuestionStrategy.FIXED_DELAY, sleep=sleep,
            )
            result = await lobby.run()

            assert result.questions == OTHER_QUESTIONS
            assert sleep.delays[-1] == settings.settling_delay_seconds

    @pytest.mark.asyncio
    async def test_challenger_sees_decline(self, api_for, test_user: User, test_user2: User):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")

            async def bob_declines(call):
                if call == 1:
                    await bob.reject_challenge(challenge["id"])

            handler = Recorder()
            lobby = ChallengeLobby(
                alice, challenge["id"], Role.CHALLENGER, "9", "easy", FakeQuestionSource(),
                handler=handler, sleep=FakeSleep(hook=bob_declines),
            )

            assert await lobby.run() == ChallengeDeclined(challenge["id"])
            assert not any(isinstance(e, CountdownTick) for e in handler.effects)

    @pytest.mark.asyncio
    async def test_challenged_skips_accept_for_play_then_invite(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy", score=6)

            lobby = ChallengeLobby(
                bob, challenge["id"], Role.CHALLENGED, "9", "easy", FakeQuestionSource(),
                needs_accept=False, sleep=FakeSleep(),
            )

            assert isinstance(await lobby.run(), QuizReady)

    @pytest.mark.asyncio
    async def test_accept_after_decline_reports_declined(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.reject_challenge(challenge["id"])

            lobby = ChallengeLobby(
                bob, challenge["id"], Role.CHALLENGED, "9", "easy", FakeQuestionSource(),
                sleep=FakeSleep(),
            )

            assert await lobby.run() == ChallengeDeclined(challenge["id"])

    @pytest.mark.asyncio
    async def test_defaults_to_open_trivia_source(self, api_for, test_user: User):
        async with api_for(test_user) as alice:
            lobby = ChallengeLobby(alice, "c1", Role.CHALLENGER, "9", "easy")

            assert lobby.question_source is trivia_service

    @pytest.mark.asyncio
    async def test_failed_question_read_is_retried(self):
        source = FakeQuestionSource()
        sleep = FakeSleep()
        stored = {"status": "pending", "questions": SAMPLE_QUESTIONS}
        async with flaky_api({"status": "pending"}, httpx.ConnectError, stored) as api:
            lobby = ChallengeLobby(
                api, "c1", Role.CHALLENGER, "9", "easy", source, countdown=0, sleep=sleep,
            )
            result = await lobby.run()

        assert result == QuizReady("c1", SAMPLE_QUESTIONS)
        assert source.calls == 0
        assert sleep.delays == [settings.questions_retry_backoff]


# ============================================================================
# Results
# ============================================================================


class TestChallengeResults:
    @pytest.mark.asyncio
    async def test_submit_and_wait_for_opponent(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.accept_challenge(challenge["id"])

            async def bob_finishes(call):
                if call == 1:
                    await bob.complete_challenge(challenge["id"], 5)

            results = ChallengeResults(
                alice, challenge["id"], Role.CHALLENGER, sleep=FakeSleep(hook=bob_finishes),
            )
            outcome = await results.submit_and_wait(7)

            assert outcome == ChallengeOutcome(challenge["id"], 7, 5, "win")

    @pytest.mark.asyncio
    async def test_retried_submission_counts_as_done(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy", score=8)

            results = ChallengeResults(bob, challenge["id"], Role.CHALLENGED, sleep=FakeSleep())
            await results.submit(8)
            await results.submit(3)

            outcome = await results.wait()
            assert outcome == ChallengeOutcome(challenge["id"], 8, 8, "draw")

    @pytest.mark.asyncio
    async def test_submit_on_declined_challenge_raises(
        self, api_for, test_user: User, test_user2: User
    ):
        async with api_for(test_user) as alice, api_for(test_user2) as bob:
            challenge = await alice.create_challenge(test_user2.id, "9", "easy")
            await bob.reject_challenge(challenge["id"])

            results = ChallengeResults(alice, challenge["id"], Role.CHALLENGER, sleep=FakeSleep())
            with pytest.raises(ApiError):
                await results.submit(4)
