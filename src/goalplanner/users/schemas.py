"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str | None
    first_name: str | None
    last_name: str | None
    image_url: str | None
    created_at: datetime


class UsernameUpdateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
