"""Request/response schemas for step endpoints."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field, field_validator

from goalplanner.goals.lifecycle import GoalStatus, StepStatus
from goalplanner.goals.schemas import StepResponse


class StepUpdateRequest(BaseModel):
    status: StepStatus | None = None
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=5000)
    due_date: date | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            msg = "Title must not be blank"
            raise ValueError(msg)
        return v


class StepUpdateResponse(BaseModel):
    step: StepResponse
    goal_status: GoalStatus
    goal_completed: bool


class ReorderItem(BaseModel):
    step_id: uuid.UUID
    order_num: int = Field(..., ge=1)


class ReorderRequest(BaseModel):
    items: list[ReorderItem] = Field(..., min_length=1, max_length=200)


class SubStepResponse(BaseModel):
    title: str
    description: str
    estimated_time: str


class StepExpandResponse(BaseModel):
    sub_steps: list[SubStepResponse]
    reasoning: str
    total_estimated_time: str
    is_fallback: bool
