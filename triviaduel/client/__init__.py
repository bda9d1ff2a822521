"""
Polling client for the TriviaDuel API.

The backend pushes nothing to the app while it is open; screens poll the
notification inbox and challenge status and reconcile against what they saw
last time.
"""
from triviaduel.client.api import TriviaDuelClient, ApiError, SessionExpired, NotFoundError, NetworkError
from triviaduel.client.reconcile import (
    InboxCursor, InboxReconciliation, reconcile_inbox, classify, prime,
    Role, WatchMode, StatusDecision, evaluate_status, role_for,
    ShowChallengeInvite, ShowFriendRequest, ShowToast,
    OpponentAccepted, ChallengeDeclined, ChallengeOutcome, CountdownTick, QuizReady,
)
from triviaduel.client.poller import InboxPoller, ChallengeStatusWatcher
from triviaduel.client.lobby import ChallengeLobby, ChallengeResults, QuestionStrategy, LobbyError

__all__ = [
    "TriviaDuelClient", "ApiError", "SessionExpired", "NotFoundError", "NetworkError",
    "InboxCursor", "InboxReconciliation", "reconcile_inbox", "classify", "prime",
    "Role", "WatchMode", "StatusDecision", "evaluate_status", "role_for",
    "ShowChallengeInvite", "ShowFriendRequest", "ShowToast",
    "OpponentAccepted", "ChallengeDeclined", "ChallengeOutcome", "CountdownTick", "QuizReady",
    "InboxPoller", "ChallengeStatusWatcher",
    "ChallengeLobby", "ChallengeResults", "QuestionStrategy", "LobbyError",
]
