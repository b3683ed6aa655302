"""Step router: /api/v1/steps/* endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from goalplanner.ai.step_expander import expand_step
from goalplanner.auth.dependencies import get_current_user
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.dependencies import get_optional_redis
from goalplanner.events import publish_event
from goalplanner.goals.schemas import StepResponse
from goalplanner.steps.schemas import (
    ReorderRequest,
    StepExpandResponse,
    StepUpdateRequest,
    StepUpdateResponse,
    SubStepResponse,
)
from goalplanner.steps.service import (
    StepOrderError,
    delete_step,
    get_owned_step,
    reorder_steps,
    update_step,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/steps", tags=["Steps"])


@router.post("/reorder", response_model=list[StepResponse])
async def reorder(
    body: ReorderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[StepResponse]:
    """Apply new positions to several steps at once; nothing changes unless all are owned."""
    user_id = user.id
    try:
        steps = await reorder_steps(db, user_id, [(i.step_id, i.order_num) for i in body.items])
    except StepOrderError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StaleDataError as e:
        raise HTTPException(status_code=409, detail="Steps were modified concurrently, please retry") from e
    if steps is None:
        raise HTTPException(status_code=404, detail="Step not found")
    return [StepResponse.model_validate(s) for s in steps]


@router.patch("/{step_id}", response_model=StepUpdateResponse)
async def update_step_endpoint(
    step_id: uuid.UUID,
    body: StepUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> StepUpdateResponse:
    """Change status, title, description or due date as one atomic operation."""
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    user_id = user.id
    try:
        result = await update_step(db, user_id, str(step_id), changes)
    except StaleDataError as e:
        raise HTTPException(status_code=409, detail="Step was modified concurrently, please retry") from e
    if result is None:
        raise HTTPException(status_code=404, detail="Step not found")

    if result.goal_completed:
        await publish_event(redis, "goal_completed", {"user_id": user_id, "goal_id": result.goal.id})
    return StepUpdateResponse(
        step=StepResponse.model_validate(result.step),
        goal_status=result.goal.status,
        goal_completed=result.goal_completed,
    )


@router.delete("/{step_id}")
async def delete_step_endpoint(
    step_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    try:
        deleted = await delete_step(db, user.id, str(step_id))
    except StaleDataError as e:
        raise HTTPException(status_code=409, detail="Step was modified concurrently, please retry") from e
    if not deleted:
        raise HTTPException(status_code=404, detail="Step not found")
    return {"success": True}


@router.post("/{step_id}/expand", response_model=StepExpandResponse)
async def expand_step_endpoint(
    step_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StepExpandResponse:
    """Break a step into 3-5 sub-steps with time estimates."""
    found = await get_owned_step(db, user.id, str(step_id))
    if found is None:
        raise HTTPException(status_code=404, detail="Step not found")
    step, goal = found

    expansion, is_fallback = await expand_step(
        step.title,
        step.description,
        goal.title,
        deadline=goal.deadline,
        time_commitment=goal.time_commitment,
        biggest_concern=goal.biggest_concern,
    )
    return StepExpandResponse(
        sub_steps=[
            SubStepResponse(title=s.title, description=s.description, estimated_time=s.estimated_time)
            for s in expansion.sub_steps
        ],
        reasoning=expansion.reasoning,
        total_estimated_time=expansion.total_estimated_time,
        is_fallback=is_fallback,
    )
