"""
Password hashing, bearer tokens and the current-user dependency.

A token carries only the user id (`sub`). Anything that stops it resolving
to an active account is a 401, which the app treats as "log in again".
"""
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from triviaduel.config import get_settings
from triviaduel.database import get_db
from triviaduel.models.user import User

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class AuthService:

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
        claims = {"sub": user_id, "exp": datetime.utcnow() + lifetime}
        return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def user_id_from_token(token: str) -> Optional[str]:
        """The `sub` claim of a valid, unexpired token, else None."""
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None
        return payload.get("sub")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = AuthService.user_id_from_token(token)
    if user_id is None:
        raise credentials_exception

    user = await db.scalar(select(User).where(User.id == user_id))

    # A deleted or deactivated account invalidates the session
    if user is None or not user.is_active:
        raise credentials_exception

    return user
