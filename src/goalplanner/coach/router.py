"""AI coach router: /api/v1/coach/* endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.ai.coach import ask_coach
from goalplanner.auth.dependencies import get_current_user
from goalplanner.checkins.service import recent_check_ins
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.goals.service import get_owned_goal

router = APIRouter(prefix="/api/v1/coach", tags=["Coach"])


class CoachRequest(BaseModel):
    goal_id: uuid.UUID
    question: str | None = Field(None, max_length=2000)


class CoachResponse(BaseModel):
    response: str
    is_fallback: bool


@router.post("/ask", response_model=CoachResponse)
async def ask(
    body: CoachRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CoachResponse:
    """Coaching advice for one of the caller's goals."""
    goal = await get_owned_goal(db, user.id, str(body.goal_id))
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")

    check_ins = await recent_check_ins(db, goal.id)
    text, is_fallback = await ask_coach(goal, goal.steps, check_ins, body.question)
    return CoachResponse(response=text, is_fallback=is_fallback)
