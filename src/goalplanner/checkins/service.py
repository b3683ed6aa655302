"""Check-in journal entries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from goalplanner.db.models import CheckIn, Goal
from goalplanner.stats.service import record_activity

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from goalplanner.checkins.schemas import CheckInCreateRequest

logger = structlog.get_logger()

UNFILTERED_LIMIT = 50


async def create_check_in(
    db: AsyncSession,
    user_id: str,
    body: CheckInCreateRequest,
    now: datetime | None = None,
) -> CheckIn | None:
    """Record a check-in on an owned goal and count it as activity.

    Returns None if the goal does not exist or belongs to someone else.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    goal_id = str(body.goal_id)
    result = await db.execute(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id))
    goal = result.scalar_one_or_none()
    if goal is None:
        return None

    check_in = CheckIn(
        goal=goal,
        goal_id=goal_id,
        user_id=user_id,
        type=body.type.value,
        mood=body.mood.value if body.mood else None,
        content=body.content or None,
        image_url=body.image_url or None,
        is_public=body.is_public,
        created_at=now,
    )
    db.add(check_in)
    await record_activity(db, user_id, "activity", now)
    await db.commit()
    logger.info("check_in_created", check_in_id=check_in.id, goal_id=goal_id, user_id=user_id)
    return check_in


async def list_check_ins(db: AsyncSession, user_id: str, goal_id: str | None = None) -> list[CheckIn]:
    """Own check-ins, newest first; capped unless filtered to one goal."""
    query = (
        select(CheckIn)
        .where(CheckIn.user_id == user_id)
        .options(selectinload(CheckIn.goal))
        .order_by(CheckIn.created_at.desc())
    )
    if goal_id is not None:
        query = query.where(CheckIn.goal_id == goal_id)
    else:
        query = query.limit(UNFILTERED_LIMIT)
    result = await db.execute(query)
    return list(result.scalars().all())


async def recent_check_ins(db: AsyncSession, goal_id: str, limit: int = 7) -> list[CheckIn]:
    result = await db.execute(
        select(CheckIn).where(CheckIn.goal_id == goal_id).order_by(CheckIn.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())
