"""Goal creation, lookup, lifecycle updates, export and public pages."""

from __future__ import annotations

import csv
import io
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from goalplanner.ai.planner import AIPlan, GoalContext, generate_goal_plan
from goalplanner.config import get_settings
from goalplanner.db.models import CheckIn, Goal, Step, User
from goalplanner.goals.fallback_store import FallbackGoalStore, build_fallback_record
from goalplanner.goals.lifecycle import (
    GoalStatus,
    Visibility,
    apply_goal_status,
    apply_goal_visibility,
)
from goalplanner.goals.slug import random_slug, resolve_slug
from goalplanner.goals.step_extractor import ExtractedStep, calculate_due_dates, extract_steps
from goalplanner.retry import retry_async
from goalplanner.stats.service import record_activity, utc_today
from goalplanner.users.service import ensure_user_has_username, find_user_by_identifier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from goalplanner.goals.schemas import GoalCreateRequest

logger = structlog.get_logger()

PUBLIC_VISIBILITIES = (Visibility.PUBLIC.value, Visibility.UNLISTED.value)


@dataclass
class GoalCreateResult:
    goal_id: str
    slug: str
    username: str | None
    is_fallback: bool
    steps_saved: int
    plan_is_fallback: bool


def _build_goal(
    goal_id: str,
    user_id: str,
    slug: str,
    body: GoalCreateRequest,
    plan: AIPlan,
    steps: list[ExtractedStep],
    now: datetime,
) -> tuple[Goal, list[Step]]:
    goal = Goal(
        id=goal_id,
        user_id=user_id,
        title=body.title,
        slug=slug,
        why=body.why,
        deadline=body.deadline,
        time_commitment=body.time_commitment,
        biggest_concern=body.biggest_concern,
        ai_plan=plan.model_dump(mode="json"),
        status=GoalStatus.ACTIVE.value,
        visibility=Visibility.PRIVATE.value,
        started_at=now,
        created_at=now,
        updated_at=now,
    )
    rows = [
        Step(
            id=str(uuid.uuid4()),
            goal_id=goal_id,
            order_num=i,
            title=step.title,
            description=step.description,
            due_date=step.due_date,
            status="pending",
            created_at=now,
        )
        for i, step in enumerate(steps, start=1)
    ]
    return goal, rows


async def create_goal(
    db: AsyncSession,
    user: User,
    body: GoalCreateRequest,
    store: FallbackGoalStore,
    now: datetime | None = None,
) -> GoalCreateResult:
    """
    Draft a plan, derive steps and a slug, and persist goal and steps together.

    The insert is retried with exponential backoff; a slug collision switches
    to a random slug for the next attempt. When every attempt fails the goal
    is appended to the fallback store and ``is_fallback`` is set.
    """
    settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)

    await ensure_user_has_username(db, user)
    await db.commit()
    user_id = user.id
    username = user.username

    plan, plan_is_fallback = await generate_goal_plan(
        GoalContext(
            title=body.title,
            why=body.why,
            deadline=body.deadline,
            time_commitment=body.time_commitment,
            biggest_concern=body.biggest_concern,
        )
    )
    steps = calculate_due_dates(extract_steps(plan), body.deadline, utc_today(now))
    slug = await resolve_slug(db, body.title, user_id)
    goal_id = str(uuid.uuid4())

    async def _insert() -> None:
        nonlocal slug
        goal, rows = _build_goal(goal_id, user_id, slug, body, plan, steps, now)
        db.add(goal)
        db.add_all(rows)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            slug = random_slug(body.title)
            raise
        except SQLAlchemyError:
            await db.rollback()
            raise

    try:
        await retry_async(
            _insert,
            attempts=settings.db_retry_attempts,
            base_delay=settings.db_retry_base_delay_seconds,
            retry_on=(SQLAlchemyError,),
            name="create_goal",
        )
    except SQLAlchemyError:
        goal, rows = _build_goal(goal_id, user_id, slug, body, plan, steps, now)
        store.save(build_fallback_record(goal, rows))
        return GoalCreateResult(
            goal_id=goal_id,
            slug=slug,
            username=username,
            is_fallback=True,
            steps_saved=len(rows),
            plan_is_fallback=plan_is_fallback,
        )

    logger.info("goal_created", goal_id=goal_id, user_id=user_id, steps=len(steps), plan_fallback=plan_is_fallback)
    return GoalCreateResult(
        goal_id=goal_id,
        slug=slug,
        username=username,
        is_fallback=False,
        steps_saved=len(steps),
        plan_is_fallback=plan_is_fallback,
    )


async def list_goals(db: AsyncSession, user_id: str) -> list[Goal]:
    """Own goals with ordered steps, newest first."""
    result = await db.execute(
        select(Goal)
        .where(Goal.user_id == user_id)
        .options(selectinload(Goal.steps))
        .order_by(Goal.created_at.desc())
    )
    return list(result.scalars().all())


async def get_owned_goal(
    db: AsyncSession,
    user_id: str,
    goal_id: str,
    *,
    lock: bool = False,
) -> Goal | None:
    """The goal if it exists and belongs to ``user_id``; None otherwise."""
    query = select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id).options(selectinload(Goal.steps))
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _update_goal_once(
    db: AsyncSession,
    user_id: str,
    goal_id: str,
    status: GoalStatus | None,
    visibility: Visibility | None,
    now: datetime,
) -> Goal | None:
    goal = await get_owned_goal(db, user_id, goal_id, lock=True)
    if goal is None:
        return None

    completed = False
    if status is not None:
        changed = apply_goal_status(goal, status, now)
        completed = changed and status == GoalStatus.COMPLETED
    if visibility is not None:
        apply_goal_visibility(goal, visibility, now)
    if completed:
        await record_activity(db, user_id, "goal_completed", now)

    await db.commit()
    logger.info("goal_updated", goal_id=goal_id, status=goal.status, visibility=goal.visibility)
    return goal


async def update_goal(
    db: AsyncSession,
    user_id: str,
    goal_id: str,
    *,
    status: GoalStatus | None = None,
    visibility: Visibility | None = None,
    now: datetime | None = None,
) -> Goal | None:
    """
    Apply a user-requested status and/or visibility change and commit.

    A fresh completion counts toward the user's completed-goal total. A
    concurrent step update bumping the goal's version is retried.

    Raises:
        InvalidTransitionError: If the status change is not allowed.
        StaleDataError: If concurrent writers keep conflicting after all retries.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    async def _attempt() -> Goal | None:
        try:
            return await _update_goal_once(db, user_id, goal_id, status, visibility, now)
        except StaleDataError:
            await db.rollback()
            raise

    return await retry_async(
        _attempt,
        attempts=settings.db_retry_attempts,
        base_delay=settings.db_retry_base_delay_seconds,
        retry_on=(StaleDataError,),
        name="update_goal",
    )


async def delete_goal(db: AsyncSession, user_id: str, goal_id: str) -> bool:
    goal = await get_owned_goal(db, user_id, goal_id)
    if goal is None:
        return False
    await db.delete(goal)
    await db.commit()
    logger.info("goal_deleted", goal_id=goal_id, user_id=user_id)
    return True


def days_since(started_at: datetime, now: datetime | None = None) -> int:
    if now is None:
        now = datetime.now(timezone.utc)
    return max((now - started_at).days, 0)


def step_counts(steps: list[Step]) -> tuple[int, int]:
    """``(completed, total)``."""
    return sum(1 for s in steps if s.status == "completed"), len(steps)


def export_goals_csv(goals: list[Goal]) -> str:
    """CSV summary of goals, one row per goal."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Goal Title", "Status", "Created", "Deadline", "Steps Total", "Steps Completed", "Progress %"])
    for goal in goals:
        completed, total = step_counts(goal.steps)
        writer.writerow(
            [
                goal.title,
                goal.status,
                goal.created_at.date().isoformat(),
                goal.deadline.isoformat() if goal.deadline else "None",
                total,
                completed,
                round(completed / total * 100) if total else 0,
            ]
        )
    return buf.getvalue()


def export_filename(today: date) -> str:
    return f"goal-planner-export-{today.isoformat()}.csv"


async def get_public_goal(
    db: AsyncSession,
    identifier: str,
    slug: str,
) -> tuple[User, Goal, list[CheckIn]] | None:
    """Owner, goal and public check-ins for a public or unlisted goal page."""
    owner = await find_user_by_identifier(db, identifier)
    if owner is None:
        return None
    result = await db.execute(
        select(Goal)
        .where(Goal.user_id == owner.id, Goal.slug == slug, Goal.visibility.in_(PUBLIC_VISIBILITIES))
        .options(selectinload(Goal.steps))
    )
    goal = result.scalar_one_or_none()
    if goal is None:
        return None
    check_ins = await db.execute(
        select(CheckIn)
        .where(CheckIn.goal_id == goal.id, CheckIn.is_public.is_(True))
        .order_by(CheckIn.created_at.desc())
    )
    return owner, goal, list(check_ins.scalars().all())


def fallback_record_view(record: dict[str, Any]) -> dict[str, Any]:
    """Shape a fallback log record like a goal response."""
    return {
        "id": record["id"],
        "user_id": record["user_id"],
        "title": record["title"],
        "slug": record["slug"],
        "why": record.get("why"),
        "deadline": record.get("deadline"),
        "time_commitment": record.get("time_commitment"),
        "biggest_concern": record.get("biggest_concern"),
        "ai_plan": record.get("ai_plan"),
        "status": record.get("status", "active"),
        "visibility": record.get("visibility", "private"),
        "started_at": record["started_at"],
        "completed_at": None,
        "created_at": record["created_at"],
        "updated_at": record.get("updated_at", record["created_at"]),
        "steps": [
            {
                "id": s["id"],
                "goal_id": record["id"],
                "order_num": s["order_num"],
                "title": s["title"],
                "description": s.get("description"),
                "due_date": s.get("due_date"),
                "status": s.get("status", "pending"),
                "completed_at": None,
                "created_at": None,
            }
            for s in record.get("steps", [])
        ],
        "is_fallback": True,
    }
