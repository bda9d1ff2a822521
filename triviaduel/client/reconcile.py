"""
Pure reconciliation between server snapshots and a client's last-seen state.

Each polling context owns its own cursor and passes it in on every tick:

    poll -> diff -> ordered list of typed effects -> apply effects -> keep new cursor

Nothing here does I/O, so the whole decision logic is testable without a UI.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Sequence

logger = logging.getLogger(__name__)


# ============================================================================
# Effects
# ============================================================================


@dataclass(frozen=True)
class ShowChallengeInvite:
    """Toast with Accept / Reject actions."""
    notification_id: str
    challenge_id: str
    from_username: str
    category: str
    difficulty: str
    score_to_beat: Optional[int] = None


@dataclass(frozen=True)
class ShowFriendRequest:
    """Toast with Accept / Reject actions."""
    notification_id: str
    from_user_id: str
    from_username: str


@dataclass(frozen=True)
class ShowToast:
    """Plain informational toast."""
    notification_id: str
    title: str
    message: str
    kind: str = "info"  # info, success, error
    challenge_id: Optional[str] = None


@dataclass(frozen=True)
class OpponentAccepted:
    challenge_id: str


@dataclass(frozen=True)
class ChallengeDeclined:
    challenge_id: str


@dataclass(frozen=True)
class ChallengeOutcome:
    challenge_id: str
    my_score: int
    opponent_score: int
    result: str  # win, loss, draw


@dataclass(frozen=True)
class CountdownTick:
    challenge_id: str
    remaining: int


@dataclass(frozen=True)
class QuizReady:
    challenge_id: str
    questions: List[dict]


# ============================================================================
# Inbox reconciliation
# ============================================================================


@dataclass(frozen=True)
class InboxCursor:
    """What one polling context saw on its previous tick."""
    seen_ids: FrozenSet[str] = frozenset()
    count: int = 0
    primed: bool = False


@dataclass
class InboxReconciliation:
    effects: List[object] = field(default_factory=list)
    new_notifications: List[dict] = field(default_factory=list)
    cursor: InboxCursor = field(default_factory=InboxCursor)


def prime(notifications: Sequence[dict]) -> InboxCursor:
    """Cursor for a freshly mounted context: everything already there counts as seen."""
    return InboxCursor(
        seen_ids=frozenset(n["id"] for n in notifications),
        count=len(notifications),
        primed=True,
    )


def new_since(notifications: Sequence[dict], cursor: InboxCursor) -> List[dict]:
    """
    Notifications the cursor has not seen, newest first.

    The inbox is newest-first and append-only apart from the owner's deletes,
    so for pure growth this is exactly the prefix of length `len - cursor.count`.
    Tracking ids keeps it correct when a delete and an append land in the same
    polling interval.
    """
    return [n for n in notifications if n["id"] not in cursor.seen_ids]


def _username(notification: dict) -> str:
    return (notification.get("from_user") or {}).get("username") or "Someone"


def classify(notification: dict) -> Optional[object]:
    """Map one notification to exactly one effect; unknown types map to nothing."""
    kind = notification.get("type")
    payload = notification.get("payload") or {}
    who = _username(notification)
    nid = notification["id"]

    if kind == "challenge_received":
        return ShowChallengeInvite(
            notification_id=nid,
            challenge_id=payload["challenge_id"],
            from_username=who,
            category=payload.get("category", ""),
            difficulty=payload.get("difficulty", ""),
            score_to_beat=payload.get("score_to_beat"),
        )
    if kind == "friend_request":
        return ShowFriendRequest(
            notification_id=nid,
            from_user_id=(notification.get("from_user") or {}).get("id", ""),
            from_username=who,
        )
    if kind == "challenge_accepted":
        return ShowToast(nid, "Challenge Accepted!", f"{who} accepted your challenge!",
                         "success", payload.get("challenge_id"))
    if kind == "challenge_rejected":
        return ShowToast(nid, "Challenge Rejected", f"{who} rejected your challenge",
                         "error", payload.get("challenge_id"))
    if kind == "challenge_completed":
        mine, theirs = payload.get("my_score"), payload.get("opponent_score")
        detail = f" ({mine} - {theirs})" if mine is not None and theirs is not None else ""
        return ShowToast(nid, "Challenge Completed!", f"{who} completed your challenge!{detail}",
                         "success", payload.get("challenge_id"))

    logger.warning(f"Ignoring notification {nid} of unknown type {kind!r}")
    return None


def reconcile_inbox(notifications: Sequence[dict], cursor: InboxCursor) -> InboxReconciliation:
    """
    Diff an inbox snapshot against a cursor.

    The returned cursor covers the whole snapshot, so an item whose effect later
    fails is not offered again on the next tick.
    """
    fresh = new_since(notifications, cursor)
    effects = []
    for notification in fresh:
        try:
            effect = classify(notification)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed notification {notification.get('id')}: {e}")
            continue
        if effect is not None:
            effects.append(effect)
    return InboxReconciliation(effects=effects, new_notifications=fresh, cursor=prime(notifications))


# ============================================================================
# Challenge status reconciliation
# ============================================================================


class Role(str, enum.Enum):
    CHALLENGER = "challenger"
    CHALLENGED = "challenged"


class WatchMode(str, enum.Enum):
    AWAIT_ACCEPTANCE = "await_acceptance"  # lobby, challenger side
    AWAIT_RESULT = "await_result"          # results screen, either side


@dataclass(frozen=True)
class StatusDecision:
    terminal: bool
    effect: Optional[object] = None


def role_for(status: dict, user_id: str) -> Role:
    return Role.CHALLENGER if status["challenger_id"] == user_id else Role.CHALLENGED


def outcome_for(challenge_id: str, status: dict, role: Role) -> ChallengeOutcome:
    """Both scores from the caller's side; role comes from identity, never from score values."""
    if role == Role.CHALLENGER:
        mine, theirs = status["challenger_score"], status["challenged_score"]
    else:
        mine, theirs = status["challenged_score"], status["challenger_score"]
    if mine > theirs:
        result = "win"
    elif mine < theirs:
        result = "loss"
    else:
        result = "draw"
    return ChallengeOutcome(challenge_id, mine, theirs, result)


def evaluate_status(challenge_id: str, status: dict, mode: WatchMode, role: Role) -> StatusDecision:
    """Decide whether a watching screen is done, and what it should do about it."""
    state = status["status"]

    if state == "declined":
        return StatusDecision(terminal=True, effect=ChallengeDeclined(challenge_id))

    if mode == WatchMode.AWAIT_ACCEPTANCE:
        # Once accepted the challenge can race ahead to completed between polls
        if state in ("pending", "completed"):
            return StatusDecision(terminal=True, effect=OpponentAccepted(challenge_id))
        return StatusDecision(terminal=False)

    both_played = (
        status.get("challenger_score") is not None
        and status.get("challenged_score") is not None
    )
    if state == "completed" or both_played:
        return StatusDecision(terminal=True, effect=outcome_for(challenge_id, status, role))
    return StatusDecision(terminal=False)
