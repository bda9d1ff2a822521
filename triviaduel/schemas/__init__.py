from triviaduel.schemas.user import (
    UserCreate,
    UserLogin,
    UserBrief,
    UserResponse,
    Token,
)
from triviaduel.schemas.challenge import (
    QuestionRecord,
    ChallengeCreate,
    ChallengeAction,
    ChallengeComplete,
    ChallengeResponse,
    ChallengeStatusResponse,
)
from triviaduel.schemas.notification import NotificationResponse, UnreadCountResponse

__all__ = [
    "UserCreate",
    "UserLogin",
    "UserBrief",
    "UserResponse",
    "Token",
    "QuestionRecord",
    "ChallengeCreate",
    "ChallengeAction",
    "ChallengeComplete",
    "ChallengeResponse",
    "ChallengeStatusResponse",
    "NotificationResponse",
    "UnreadCountResponse",
]
