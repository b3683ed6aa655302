"""Request/response schemas for goal endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from goalplanner.goals.lifecycle import GoalStatus, StepStatus, Visibility


class GoalCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    why: str | None = Field(None, max_length=5000)
    deadline: date | None = None
    time_commitment: str | None = Field(None, max_length=500)
    biggest_concern: str | None = Field(None, max_length=5000)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Title is required"
            raise ValueError(msg)
        return v


class GoalCreateResponse(BaseModel):
    goal_id: str
    slug: str
    username: str | None
    is_fallback: bool
    steps_saved: int


class GoalUpdateRequest(BaseModel):
    """Status and visibility changes; at least one is required."""

    status: GoalStatus | None = None
    visibility: Visibility | None = None


class StepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    order_num: int
    title: str
    description: str | None
    due_date: date | None
    status: StepStatus
    completed_at: datetime | None
    created_at: datetime | None


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    slug: str
    why: str | None
    deadline: date | None
    time_commitment: str | None
    biggest_concern: str | None
    ai_plan: dict[str, Any] | None
    status: GoalStatus
    visibility: Visibility
    started_at: datetime
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    steps: list[StepResponse] = []
    is_fallback: bool = False


class GoalListResponse(BaseModel):
    goals: list[GoalResponse]
    total: int


class ShareLinks(BaseModel):
    twitter: str
    linkedin: str
    facebook: str


class ShareResponse(BaseModel):
    type: str
    text: str
    url: str
    links: ShareLinks


class PublicCheckIn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    mood: str | None
    content: str | None
    image_url: str | None
    created_at: datetime


class PublicStep(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_num: int
    title: str
    description: str | None
    due_date: date | None
    status: StepStatus
    completed_at: datetime | None


class PublicGoalResponse(BaseModel):
    username: str | None
    first_name: str | None
    image_url: str | None
    title: str
    slug: str
    why: str | None
    deadline: date | None
    status: GoalStatus
    started_at: datetime
    completed_at: datetime | None
    steps: list[PublicStep]
    completed_steps: int
    total_steps: int
    progress_percent: int
    check_ins: list[PublicCheckIn]
