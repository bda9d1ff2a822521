import json

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from triviaduel.database import get_db
from triviaduel.models.user import User
from triviaduel.schemas.challenge import MessageResponse
from triviaduel.schemas.user import UserCreate, UserResponse, Token, UserLogin, PushTokenUpdate
from triviaduel.services.auth import AuthService, get_current_user
from triviaduel.services.push import is_expo_push_token, web_push_service

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _token_for(user: User) -> Token:
    access_token = AuthService.create_access_token(user.id)
    return Token(access_token=access_token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new user and return an access token."""
    result = await db.execute(
        select(User).where(
            or_(User.username == user_data.username, User.email == user_data.email)
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered"
        )

    user = User(
        username=user_data.username,
        email=user_data.email,
        password_hash=AuthService.hash_password(user_data.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return _token_for(user)


async def _authenticate(db: AsyncSession, login: str, password: str) -> User:
    result = await db.execute(
        select(User).where(or_(User.email == login.lower(), User.username == login.lower()))
    )
    user = result.scalar_one_or_none()

    if not user or not AuthService.verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated"
        )
    return user


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """
    Login with email (or username) and password.
    Uses OAuth2PasswordRequestForm for compatibility with OpenAPI/Swagger.
    """
    user = await _authenticate(db, form_data.username, form_data.password)
    return _token_for(user)


@router.post("/login/json", response_model=Token)
async def login_json(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with JSON body (what the mobile app uses)."""
    user = await _authenticate(db, credentials.email, credentials.password)
    return _token_for(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user's profile"""
    return UserResponse.model_validate(current_user)


@router.put("/push-token", response_model=MessageResponse)
async def save_push_token(
    body: PushTokenUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Register the Expo device token of the current user's phone."""
    if not is_expo_push_token(body.push_token):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Not a valid Expo push token"
        )
    current_user.push_token = body.push_token
    current_user.push_enabled = True
    await db.commit()
    return MessageResponse(msg="Push token saved")


@router.get("/push/vapid-key")
async def get_vapid_public_key():
    """Get the VAPID public key for Web Push subscription."""
    public_key = web_push_service.get_public_key()
    if not public_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications not configured"
        )
    return {"vapid_public_key": public_key}


@router.post("/push/subscribe", response_model=MessageResponse)
async def subscribe_to_push(
    subscription: dict,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Register a Web Push subscription for the current user.

    Args:
        subscription: Push subscription object from browser
            {"endpoint": "https://...", "keys": {"p256dh": "...", "auth": "..."}}
    """
    if not subscription.get("endpoint") or not subscription.get("keys"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid subscription format. Need endpoint and keys."
        )

    current_user.push_subscription = json.dumps(subscription)
    current_user.push_enabled = True
    await db.commit()
    return MessageResponse(msg="Push subscription registered successfully")


@router.post("/push/unsubscribe", response_model=MessageResponse)
async def unsubscribe_from_push(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Disable push delivery on every transport"""
    current_user.push_token = None
    current_user.push_subscription = None
    current_user.push_enabled = False
    await db.commit()
    return MessageResponse(msg="Push notifications disabled")
