"""Daily check-in reminder dispatch."""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from goalplanner.db.models import CheckIn, Goal, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from goalplanner.email.service import EmailService

logger = structlog.get_logger()


async def users_due_for_reminder(db: AsyncSession, now: datetime) -> list[tuple[User, Goal]]:
    """Users with an active goal and no check-in since UTC midnight, paired with their newest active goal."""
    midnight = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)

    checked_in = select(CheckIn.user_id).where(CheckIn.created_at >= midnight)
    result = await db.execute(
        select(User, Goal)
        .join(Goal, Goal.user_id == User.id)
        .where(Goal.status == "active", User.id.not_in(checked_in))
        .order_by(User.id, Goal.created_at.desc())
    )

    due: dict[str, tuple[User, Goal]] = {}
    for user, goal in result.all():
        due.setdefault(user.id, (user, goal))
    return list(due.values())


async def send_daily_check_in_reminders(
    db: AsyncSession,
    email_service: EmailService,
    now: datetime | None = None,
) -> int:
    """Email every user who has not checked in today. Returns the number of emails sent."""
    if now is None:
        now = datetime.now(timezone.utc)

    due = await users_due_for_reminder(db, now)
    logger.info("check_in_reminders_started", candidates=len(due))

    sent = 0
    for user, goal in due:
        if not user.email:
            continue
        ok = await email_service.send_template(
            user.email,
            "daily_check_in",
            {"first_name": user.first_name, "goal_title": goal.title},
        )
        if ok:
            sent += 1

    logger.info("check_in_reminders_finished", candidates=len(due), sent=sent)
    return sent
