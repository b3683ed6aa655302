"""Goal router: /api/v1/goals/* and the public goal page."""

from __future__ import annotations

import uuid
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from goalplanner.auth.dependencies import get_current_user
from goalplanner.billing.service import can_create_goal, is_pro_user
from goalplanner.config import get_settings
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.goals.fallback_store import FallbackGoalStore, get_fallback_store
from goalplanner.goals.lifecycle import InvalidTransitionError
from goalplanner.goals.schemas import (
    GoalCreateRequest,
    GoalCreateResponse,
    GoalListResponse,
    GoalResponse,
    GoalUpdateRequest,
    PublicCheckIn,
    PublicGoalResponse,
    PublicStep,
    ShareLinks,
    ShareResponse,
)
from goalplanner.goals.service import (
    create_goal,
    days_since,
    delete_goal,
    export_filename,
    export_goals_csv,
    fallback_record_view,
    get_owned_goal,
    get_public_goal,
    list_goals,
    step_counts,
    update_goal,
)
from goalplanner.goals.share import (
    Progress,
    default_share_type,
    generate_share_links,
    generate_share_text,
    public_goal_url,
)
from goalplanner.stats.service import utc_today
from goalplanner.users.service import ensure_user_has_username

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/goals", tags=["Goals"])
public_router = APIRouter(prefix="/api/v1/public", tags=["Public"])


@router.post("", response_model=GoalCreateResponse, status_code=201)
async def create_goal_endpoint(
    body: GoalCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    store: FallbackGoalStore = Depends(get_fallback_store),
) -> GoalCreateResponse:
    """Create a goal with an AI-drafted plan."""
    allowance = await can_create_goal(db, user.id)
    if not allowance.allowed:
        raise HTTPException(status_code=403, detail=allowance.reason)

    result = await create_goal(db, user, body, store)
    return GoalCreateResponse(
        goal_id=result.goal_id,
        slug=result.slug,
        username=result.username,
        is_fallback=result.is_fallback,
        steps_saved=result.steps_saved,
    )


@router.get("", response_model=GoalListResponse)
async def list_goals_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    store: FallbackGoalStore = Depends(get_fallback_store),
) -> GoalListResponse:
    """Own goals, newest first, followed by goals only held in the fallback log."""
    goals = [GoalResponse.model_validate(g) for g in await list_goals(db, user.id)]
    known = {g.id for g in goals}
    goals.extend(
        GoalResponse.model_validate(fallback_record_view(r))
        for r in store.list_for_user(user.id)
        if r["id"] not in known
    )
    return GoalListResponse(goals=goals, total=len(goals))


@router.get("/export")
async def export_goals(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """CSV export of all own goals (Pro only)."""
    if not await is_pro_user(db, user.id):
        raise HTTPException(status_code=403, detail="This feature requires Pro subscription")
    csv_text = export_goals_csv(await list_goals(db, user.id))
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(utc_today())}"'},
    )


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal(
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    store: FallbackGoalStore = Depends(get_fallback_store),
) -> GoalResponse:
    goal = await get_owned_goal(db, user.id, str(goal_id))
    if goal is not None:
        return GoalResponse.model_validate(goal)
    record = store.get(str(goal_id), user.id)
    if record is not None:
        return GoalResponse.model_validate(fallback_record_view(record))
    raise HTTPException(status_code=404, detail="Goal not found")


@router.patch("/{goal_id}", response_model=GoalResponse)
async def update_goal_endpoint(
    goal_id: uuid.UUID,
    body: GoalUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GoalResponse:
    """Change status and/or visibility."""
    if body.status is None and body.visibility is None:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        goal = await update_goal(db, user.id, str(goal_id), status=body.status, visibility=body.visibility)
    except InvalidTransitionError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StaleDataError as e:
        raise HTTPException(status_code=409, detail="Goal was modified concurrently, please retry") from e
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return GoalResponse.model_validate(goal)


@router.delete("/{goal_id}")
async def delete_goal_endpoint(
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    if not await delete_goal(db, user.id, str(goal_id)):
        raise HTTPException(status_code=404, detail="Goal not found")
    return {"success": True}


@router.get("/{goal_id}/share", response_model=ShareResponse)
async def share_goal(
    goal_id: uuid.UUID,
    share_type: Literal["progress", "milestone", "completion"] | None = Query(None, alias="type"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ShareResponse:
    """Share text and social links pointing at the goal's public page."""
    goal = await get_owned_goal(db, user.id, str(goal_id))
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")

    if not user.username:
        await ensure_user_has_username(db, user)
        await db.commit()

    completed, total = step_counts(goal.steps)
    progress = Progress(completed_steps=completed, total_steps=total, days_since_start=days_since(goal.started_at))
    kind = share_type or default_share_type(goal.status)
    text = generate_share_text(goal.title, kind, progress)
    url = public_goal_url(get_settings().frontend_base_url, user.username, goal.slug)
    return ShareResponse(type=kind, text=text, url=url, links=ShareLinks(**generate_share_links(text, url)))


@public_router.get("/{identifier}/goals/{slug}", response_model=PublicGoalResponse)
async def public_goal(
    identifier: str,
    slug: str,
    db: AsyncSession = Depends(get_session),
) -> PublicGoalResponse:
    """Progress page data for a public or unlisted goal (no auth)."""
    found = await get_public_goal(db, identifier, slug)
    if found is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    owner, goal, check_ins = found

    completed, total = step_counts(goal.steps)
    return PublicGoalResponse(
        username=owner.username,
        first_name=owner.first_name,
        image_url=owner.image_url,
        title=goal.title,
        slug=goal.slug,
        why=goal.why,
        deadline=goal.deadline,
        status=goal.status,
        started_at=goal.started_at,
        completed_at=goal.completed_at,
        steps=[PublicStep.model_validate(s) for s in goal.steps],
        completed_steps=completed,
        total_steps=total,
        progress_percent=round(completed / total * 100) if total else 0,
        check_ins=[PublicCheckIn.model_validate(c) for c in check_ins],
    )