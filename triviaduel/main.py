import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from triviaduel import __version__
from triviaduel.config import get_settings
from triviaduel.database import init_db
from triviaduel.routers import (
    auth_router, challenges_router, notifications_router,
    friends_router, quiz_router
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create database tables
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Trivia quiz backend with friends, asynchronous challenges and leaderboards",
    version=__version__,
    lifespan=lifespan,
)

# The mobile app calls from arbitrary origins in development
CORS_ORIGINS = ["*"] if not settings.is_production() else ["https://triviaduel.app"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(challenges_router)
app.include_router(notifications_router)
app.include_router(friends_router)
app.include_router(quiz_router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

