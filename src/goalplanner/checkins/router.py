"""Check-in router: /api/v1/check-ins endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.dependencies import get_current_user
from goalplanner.checkins.schemas import CheckInCreateRequest, CheckInListResponse, CheckInResponse
from goalplanner.checkins.service import create_check_in, list_check_ins
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.dependencies import get_optional_redis
from goalplanner.events import publish_event

router = APIRouter(prefix="/api/v1/check-ins", tags=["Check-ins"])


@router.post("", response_model=CheckInResponse, status_code=201)
async def create_check_in_endpoint(
    body: CheckInCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> CheckInResponse:
    user_id = user.id
    check_in = await create_check_in(db, user_id, body)
    if check_in is None:
        raise HTTPException(status_code=404, detail="Goal not found")

    await publish_event(
        redis,
        "check_in_created",
        {"user_id": user_id, "goal_id": check_in.goal_id, "check_in_id": check_in.id, "type": check_in.type},
    )
    return CheckInResponse.model_validate(check_in)


@router.get("", response_model=CheckInListResponse)
async def list_check_ins_endpoint(
    goal_id: uuid.UUID | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CheckInListResponse:
    """Own check-ins, newest first (latest 50 unless filtered by goal)."""
    check_ins = await list_check_ins(db, user.id, str(goal_id) if goal_id else None)
    return CheckInListResponse(check_ins=[CheckInResponse.model_validate(c) for c in check_ins])
