"""User router: /api/v1/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.dependencies import get_current_user
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.users.schemas import UsernameUpdateRequest, UserResponse
from goalplanner.users.service import UsernameError, update_username

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch("/me/username", response_model=UserResponse)
async def update_my_username(
    body: UsernameUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Change the public username (3-30 chars of a-z, 0-9, hyphen, underscore)."""
    try:
        user = await update_username(db, user, body.username)
        await db.commit()
    except UsernameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Username already taken") from e
    return UserResponse.model_validate(user)
