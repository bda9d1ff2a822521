from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from triviaduel.database import get_db
from triviaduel.models.score import Score
from triviaduel.models.user import User
from triviaduel.schemas.quiz import ScoreCreate, ScoreResponse, LeaderboardEntry, Category
from triviaduel.services.auth import get_current_user

router = APIRouter(prefix="/api/quiz", tags=["Quiz"])

# Open Trivia DB category ids offered in the app
CATEGORIES = [
    Category(id=9, name="General Knowledge", icon="🧠", color="#FF6B6B"),
    Category(id=18, name="Computers", icon="💻", color="#4ECDC4"),
    Category(id=21, name="Sports", icon="⚽", color="#45B7D1"),
    Category(id=23, name="History", icon="📜", color="#96CEB4"),
    Category(id=17, name="Science", icon="🔬", color="#FFEEAD"),
    Category(id=11, name="Film", icon="🎬", color="#D4A5A5"),
    Category(id=12, name="Music", icon="🎵", color="#9B59B6"),
    Category(id=22, name="Geography", icon="🌍", color="#3498DB"),
]

LEADERBOARD_SIZE = 50


@router.post("/save-score", response_model=ScoreResponse)
async def save_score(
    body: ScoreCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    score = Score(user_id=current_user.id, **body.model_dump())
    db.add(score)
    await db.commit()
    await db.refresh(score)
    return score


@router.get("/user-scores", response_model=List[ScoreResponse])
async def get_user_scores(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Score).where(Score.user_id == current_user.id).order_by(Score.created_at.desc())
    )
    return result.scalars().all()


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Best score per user, ranked by percentage then raw score."""
    query = select(Score.user_id, User.username, Score.score, Score.total_questions).join(
        User, User.id == Score.user_id
    )
    if category:
        query = query.where(Score.category == category)

    # Percentage is taken per quiz; a user's best is their best single quiz
    best = {}
    counts = {}
    for row in (await db.execute(query)).all():
        percentage = round(row.score / row.total_questions * 100, 1)
        counts[row.user_id] = counts.get(row.user_id, 0) + 1
        current = best.get(row.user_id)
        if current is None or (percentage, row.score) > (current[0], current[1].score):
            best[row.user_id] = (percentage, row)

    entries = [
        LeaderboardEntry(
            user_id=user_id,
            username=row.username,
            best_score=row.score,
            total_questions=row.total_questions,
            total_quizzes=counts[user_id],
            percentage=percentage,
        )
        for user_id, (percentage, row) in best.items()
    ]
    entries.sort(key=lambda e: (e.percentage, e.best_score), reverse=True)
    return entries[:LEADERBOARD_SIZE]


@router.get("/categories", response_model=List[Category])
async def get_categories(current_user: User = Depends(get_current_user)):
    return CATEGORIES
