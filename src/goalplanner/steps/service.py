"""Step mutations, each applied as a single transaction.

Completing a step, auto-completing its goal and updating the owner's stats
happen in one commit. The goal row is locked and versioned, so two requests
completing the last two steps of the same goal cannot both see "not all
done"; the loser fails with ``StaleDataError`` and is retried from scratch.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from goalplanner.config import get_settings
from goalplanner.db.models import Goal, Step
from goalplanner.goals.lifecycle import StepStatus, all_steps_completed, apply_step_status, force_complete
from goalplanner.goals.service import get_owned_goal
from goalplanner.retry import retry_async
from goalplanner.stats.service import record_activity

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

EDITABLE_FIELDS = ("title", "description", "due_date")


class StepOrderError(ValueError):
    """Reorder request would leave duplicate step ids or positions."""


@dataclass
class StepUpdateResult:
    step: Step
    goal: Goal
    goal_completed: bool


async def _owned_goal_id(db: AsyncSession, user_id: str, step_id: str) -> str | None:
    result = await db.execute(
        select(Step.goal_id).join(Goal, Goal.id == Step.goal_id).where(Step.id == step_id, Goal.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_owned_step(db: AsyncSession, user_id: str, step_id: str) -> tuple[Step, Goal] | None:
    """The step and its goal if the goal belongs to ``user_id``."""
    goal_id = await _owned_goal_id(db, user_id, step_id)
    if goal_id is None:
        return None
    goal = await get_owned_goal(db, user_id, goal_id)
    if goal is None:
        return None
    step = next(s for s in goal.steps if s.id == step_id)
    return step, goal


async def _update_step_once(
    db: AsyncSession,
    user_id: str,
    step_id: str,
    changes: dict[str, Any],
    now: datetime,
) -> StepUpdateResult | None:
    goal_id = await _owned_goal_id(db, user_id, step_id)
    if goal_id is None:
        return None
    goal = await get_owned_goal(db, user_id, goal_id, lock=True)
    if goal is None:
        return None
    step = next(s for s in goal.steps if s.id == step_id)

    newly_completed = False
    if changes.get("status") is not None:
        newly_completed = apply_step_status(step, StepStatus(changes["status"]), now)
    for field in EDITABLE_FIELDS:
        if field not in changes:
            continue
        if field == "title" and changes[field] is None:
            continue
        setattr(step, field, changes[field])
    goal.updated_at = now

    goal_completed = False
    if newly_completed:
        await record_activity(db, user_id, "step_completed", now)
        if all_steps_completed(goal.steps) and force_complete(goal, now):
            await record_activity(db, user_id, "goal_completed", now)
            goal_completed = True

    await db.commit()
    if goal_completed:
        logger.info("goal_auto_completed", goal_id=goal.id, user_id=user_id)
    return StepUpdateResult(step=step, goal=goal, goal_completed=goal_completed)


async def update_step(
    db: AsyncSession,
    user_id: str,
    step_id: str,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> StepUpdateResult | None:
    """
    Update a step's status and/or fields; returns None if not found or not owned.

    A fresh completion records ``step_completed`` and, when it was the last
    incomplete step, completes the goal and records ``goal_completed``.
    Setting the status a step already has changes nothing.

    Raises:
        StaleDataError: If concurrent writers keep conflicting after all retries.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    async def _attempt() -> StepUpdateResult | None:
        try:
            return await _update_step_once(db, user_id, step_id, changes, now)
        except StaleDataError:
            await db.rollback()
            raise

    return await retry_async(
        _attempt,
        attempts=settings.db_retry_attempts,
        base_delay=settings.db_retry_base_delay_seconds,
        retry_on=(StaleDataError,),
        name="update_step",
    )


async def _reorder_steps_once(
    db: AsyncSession,
    user_id: str,
    wanted: dict[str, int],
    now: datetime,
) -> list[Step] | None:
    result = await db.execute(
        select(Step.id, Step.goal_id)
        .join(Goal, Goal.id == Step.goal_id)
        .where(Step.id.in_(list(wanted)), Goal.user_id == user_id)
    )
    owned = {step_id: goal_id for step_id, goal_id in result.all()}
    if len(owned) != len(wanted):
        return None

    goals_result = await db.execute(
        select(Goal)
        .where(Goal.id.in_(set(owned.values())), Goal.user_id == user_id)
        .options(selectinload(Goal.steps))
        .with_for_update()
    )
    goals = list(goals_result.scalars().all())

    for goal in goals:
        positions = Counter(wanted.get(s.id, s.order_num) for s in goal.steps)
        if any(count > 1 for count in positions.values()):
            msg = "Step positions must be unique within a goal"
            raise StepOrderError(msg)

    moved: list[Step] = []
    for goal in goals:
        for step in goal.steps:
            if step.id in wanted and step.order_num != wanted[step.id]:
                step.order_num = wanted[step.id]
                moved.append(step)
        goal.updated_at = now

    await db.commit()
    logger.info("steps_reordered", user_id=user_id, steps=len(wanted), moved=len(moved))
    return [s for goal in goals for s in sorted(goal.steps, key=lambda s: s.order_num) if s.id in wanted]


async def reorder_steps(
    db: AsyncSession,
    user_id: str,
    items: list[tuple[uuid.UUID | str, int]],
    now: datetime | None = None,
) -> list[Step] | None:
    """
    Assign new ``order_num`` values to steps, all or nothing.

    Every step must belong to ``user_id`` or nothing is written and None is
    returned. A concurrent write to one of the goals is retried like
    ``update_step``.

    Raises:
        StepOrderError: Duplicate step ids, or positions that collide within a goal.
        StaleDataError: If concurrent writers keep conflicting after all retries.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    wanted = {str(step_id): order_num for step_id, order_num in items}
    if len(wanted) != len(items):
        msg = "Duplicate step ids in reorder request"
        raise StepOrderError(msg)
    settings = get_settings()

    async def _attempt() -> list[Step] | None:
        try:
            return await _reorder_steps_once(db, user_id, wanted, now)
        except StaleDataError:
            await db.rollback()
            raise

    return await retry_async(
        _attempt,
        attempts=settings.db_retry_attempts,
        base_delay=settings.db_retry_base_delay_seconds,
        retry_on=(StaleDataError,),
        name="reorder_steps",
    )


async def _delete_step_once(db: AsyncSession, user_id: str, step_id: str) -> bool:
    found = await get_owned_step(db, user_id, step_id)
    if found is None:
        return False
    step, goal = found
    goal.steps.remove(step)
    goal.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("step_deleted", step_id=step_id, goal_id=goal.id)
    return True


async def delete_step(db: AsyncSession, user_id: str, step_id: str) -> bool:
    """Remove an owned step; False if not found or not owned."""
    settings = get_settings()

    async def _attempt() -> bool:
        try:
            return await _delete_step_once(db, user_id, step_id)
        except StaleDataError:
            await db.rollback()
            raise

    return await retry_async(
        _attempt,
        attempts=settings.db_retry_attempts,
        base_delay=settings.db_retry_base_delay_seconds,
        retry_on=(StaleDataError,),
        name="delete_step",
    )
