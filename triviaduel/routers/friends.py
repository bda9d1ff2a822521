from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from triviaduel.database import get_db
from triviaduel.models.friendship import Friendship, FriendshipStatus
from triviaduel.models.notification import NotificationType
from triviaduel.models.user import User
from triviaduel.schemas.challenge import MessageResponse
from triviaduel.schemas.user import UserBrief
from triviaduel.services.auth import get_current_user
from triviaduel.services.notification import create_notification

router = APIRouter(prefix="/api/social", tags=["Friends"])


class FriendAction(BaseModel):
    user_id: str


async def _find_friendship(db: AsyncSession, a: str, b: str):
    result = await db.execute(
        select(Friendship).where(
            or_(
                and_(Friendship.requester_id == a, Friendship.addressee_id == b),
                and_(Friendship.requester_id == b, Friendship.addressee_id == a),
            )
        )
    )
    return result.scalar_one_or_none()


@router.get("/search", response_model=List[UserBrief])
async def search_users(
    query: str = "",
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Case-insensitive username search, excluding the caller."""
    if not query:
        return []
    result = await db.execute(
        select(User)
        .where(User.username.ilike(f"%{query}%"), User.id != current_user.id)
        .order_by(User.username)
        .limit(20)
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]


@router.post("/friend-request", response_model=MessageResponse)
async def send_friend_request(
    body: FriendAction,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    target = await db.get(User, body.user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    if target.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot befriend yourself")

    existing = await _find_friendship(db, current_user.id, target.id)
    if existing:
        if existing.status == FriendshipStatus.ACCEPTED:
            raise HTTPException(status_code=400, detail="Already friends")
        raise HTTPException(status_code=400, detail="Friend request already sent")

    db.add(Friendship(requester_id=current_user.id, addressee_id=target.id))
    await create_notification(
        db, target.id, NotificationType.FRIEND_REQUEST,
        from_user_id=current_user.id,
        message=f"{current_user.username} sent you a friend request",
    )
    await db.commit()
    return MessageResponse(msg="Friend request sent")


@router.post("/friend-accept", response_model=MessageResponse)
async def accept_friend_request(
    body: FriendAction,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Friendship).where(
            Friendship.requester_id == body.user_id,
            Friendship.addressee_id == current_user.id,
            Friendship.status == FriendshipStatus.PENDING,
        )
    )
    friendship = result.scalar_one_or_none()
    if not friendship:
        raise HTTPException(status_code=400, detail="No friend request from this user")

    friendship.status = FriendshipStatus.ACCEPTED
    friendship.accepted_at = datetime.utcnow()
    await db.commit()
    return MessageResponse(msg="Friend request accepted")


@router.get("/friends", response_model=List[UserBrief])
async def get_friends(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Friendship).where(
            Friendship.status == FriendshipStatus.ACCEPTED,
            or_(
                Friendship.requester_id == current_user.id,
                Friendship.addressee_id == current_user.id,
            ),
        )
    )
    friend_ids = [
        f.addressee_id if f.requester_id == current_user.id else f.requester_id
        for f in result.scalars().all()
    ]
    if not friend_ids:
        return []
    users = await db.execute(select(User).where(User.id.in_(friend_ids)).order_by(User.username))
    return [UserBrief.model_validate(u) for u in users.scalars().all()]
