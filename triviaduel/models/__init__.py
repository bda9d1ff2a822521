from triviaduel.models.user import User
from triviaduel.models.challenge import Challenge, ChallengeStatus
from triviaduel.models.notification import Notification, NotificationType
from triviaduel.models.score import Score
from triviaduel.models.friendship import Friendship, FriendshipStatus

__all__ = [
    "User",
    "Challenge",
    "ChallengeStatus",
    "Notification",
    "NotificationType",
    "Score",
    "Friendship",
    "FriendshipStatus",
]
