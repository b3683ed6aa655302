"""Request/response schemas for check-in endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CheckInType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    STEP_COMPLETION = "step_completion"
    MILESTONE = "milestone"


class Mood(str, Enum):
    GREAT = "great"
    GOOD = "good"
    STRUGGLING = "struggling"
    STUCK = "stuck"


class CheckInCreateRequest(BaseModel):
    goal_id: uuid.UUID
    type: CheckInType = CheckInType.DAILY
    mood: Mood | None = None
    content: str | None = Field(None, max_length=5000)
    image_url: str | None = Field(None, max_length=2048)
    is_public: bool = False


class CheckInGoal(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    slug: str


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    user_id: str
    type: CheckInType
    mood: Mood | None
    content: str | None
    image_url: str | None
    is_public: bool
    created_at: datetime
    goal: CheckInGoal | None = None


class CheckInListResponse(BaseModel):
    check_ins: list[CheckInResponse]
