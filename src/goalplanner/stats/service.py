"""Streak and counter bookkeeping for user activity.

All day arithmetic uses UTC calendar dates. The stats row carries a version
column, so two transactions updating the same user concurrently cannot both
commit: the loser gets ``StaleDataError`` and its operation is retried by the
caller (see ``steps.service``).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Literal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.db.models import UserStats

logger = structlog.get_logger()

ActivityAction = Literal["step_completed", "goal_completed", "activity"]
ACTIVITY_ACTIONS: frozenset[str] = frozenset({"step_completed", "goal_completed", "activity"})


def utc_today(now: datetime | None = None) -> date:
    """Today's calendar date in UTC."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


async def get_or_create_stats(db: AsyncSession, user_id: str, *, lock: bool = False) -> UserStats:
    """Get or create the stats row for a user.

    With ``lock=True`` the row is read ``FOR UPDATE`` on databases that support it.
    """
    query = select(UserStats).where(UserStats.user_id == user_id)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    stats = result.scalar_one_or_none()
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            total_steps_completed=0,
            total_goals_completed=0,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(stats)
        await db.flush()
    return stats


def apply_streak(stats: UserStats, today: date) -> None:
    """Advance, keep, or reset the streak based on the last activity date."""
    last = stats.last_activity_date
    if last is None:
        stats.current_streak = 1
        stats.longest_streak = max(stats.longest_streak, 1)
    elif last == today - timedelta(days=1):
        stats.current_streak += 1
        stats.longest_streak = max(stats.longest_streak, stats.current_streak)
    elif last == today:
        # Second activity on the same day neither advances nor resets
        pass
    else:
        stats.current_streak = 1
        stats.longest_streak = max(stats.longest_streak, 1)


async def record_activity(
    db: AsyncSession,
    user_id: str,
    action: ActivityAction,
    now: datetime | None = None,
) -> UserStats:
    """Record one user action: update the streak, then the per-action counter.

    Flushes but does not commit; the caller owns the transaction.

    Raises:
        ValueError: If ``action`` is not a known activity action.
    """
    if action not in ACTIVITY_ACTIONS:
        msg = f"Unknown activity action: {action}"
        raise ValueError(msg)

    if now is None:
        now = datetime.now(timezone.utc)
    today = utc_today(now)

    stats = await get_or_create_stats(db, user_id, lock=True)
    previous_streak = stats.current_streak
    apply_streak(stats, today)

    if action == "step_completed":
        stats.total_steps_completed += 1
    elif action == "goal_completed":
        stats.total_goals_completed += 1

    stats.last_activity_date = today
    stats.updated_at = now
    await db.flush()

    logger.info(
        "activity_recorded",
        user_id=user_id,
        action=action,
        current_streak=stats.current_streak,
        streak_reset=stats.current_streak < previous_streak,
    )
    return stats
