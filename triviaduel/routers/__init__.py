from triviaduel.routers.auth import router as auth_router
from triviaduel.routers.challenges import router as challenges_router
from triviaduel.routers.notifications import router as notifications_router
from triviaduel.routers.friends import router as friends_router
from triviaduel.routers.quiz import router as quiz_router

__all__ = [
    "auth_router", "challenges_router", "notifications_router",
    "friends_router", "quiz_router"
]
