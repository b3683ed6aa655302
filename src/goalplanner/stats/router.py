"""Stats router: /api/v1/stats/* endpoints."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.dependencies import get_current_user
from goalplanner.database import get_session
from goalplanner.db.models import Goal, User
from goalplanner.stats.service import get_or_create_stats

router = APIRouter(prefix="/api/v1/stats", tags=["Stats"])


class StatsResponse(BaseModel):
    current_streak: int
    longest_streak: int
    total_steps_completed: int
    total_goals_completed: int
    last_activity_date: date | None
    updated_at: datetime
    goals_by_status: dict[str, int]


@router.get("/me", response_model=StatsResponse)
async def my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StatsResponse:
    """Streaks, cumulative counters and goal counts by status."""
    stats = await get_or_create_stats(db, user.id)
    await db.commit()

    result = await db.execute(
        select(Goal.status, func.count()).where(Goal.user_id == user.id).group_by(Goal.status)
    )
    by_status = {"active": 0, "paused": 0, "completed": 0, "abandoned": 0}
    by_status.update({status: count for status, count in result.all()})

    return StatsResponse(
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        total_steps_completed=stats.total_steps_completed,
        total_goals_completed=stats.total_goals_completed,
        last_activity_date=stats.last_activity_date,
        updated_at=stats.updated_at,
        goals_by_status=by_status,
    )
