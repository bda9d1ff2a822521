from pydantic_settings import BaseSettings
from functools import lru_cache
import secrets
import os


class Settings(BaseSettings):
    # App
    app_name: str = "TriviaDuel"
    debug: bool = False  # Set to False in production
    environment: str = "development"  # development, staging, production, testing
    log_level: str = "INFO"

    # Database - Use /data for a mounted volume, local path for development
    # Can be overridden with DATABASE_URL env var
    # Note: SQLite absolute paths need 4 slashes (sqlite:////path)
    database_url: str = (
        "sqlite+aiosqlite:///:memory:"
        if os.environ.get("TESTING") == "1"
        else (
            "sqlite+aiosqlite:////data/triviaduel.db"
            if os.path.exists("/data")
            else "sqlite+aiosqlite:///./triviaduel.db"
        )
    )

    # JWT Auth - IMPORTANT: Set SECRET_KEY env var in production!
    secret_key: str = secrets.token_urlsafe(32)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Open Trivia DB
    trivia_api_base: str = "https://opentdb.com/api.php"
    questions_per_quiz: int = 10

    # Expo push (mobile device tokens)
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: str = ""  # Only needed when push security is enabled

    # Web Push Notifications (VAPID)
    # Generate keys: npx web-push generate-vapid-keys
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_contact_email: str = "admin@triviaduel.app"

    # Client polling cadences (seconds)
    inbox_poll_seconds: float = 5.0
    status_poll_seconds: float = 3.0
    settling_delay_seconds: float = 3.0  # Fixed-delay barrier (compat mode)
    countdown_seconds: int = 3
    questions_retry_attempts: int = 6
    questions_retry_backoff: float = 0.5  # First retry delay, doubled each attempt
    questions_retry_max_delay: float = 4.0

    class Config:
        env_file = ".env"

    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
