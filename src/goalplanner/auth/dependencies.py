"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.jwt import verify_session_token
from goalplanner.database import get_session
from goalplanner.db.models import User
from goalplanner.users.service import get_or_create_user_from_claims

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the identity-provider session and return the local User.

    Users that signed in before the identity webhook was delivered are
    created lazily from the token claims. Raises 401 on any failure.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        claims = verify_session_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user, created = await get_or_create_user_from_claims(db, claims)
    if created:
        await db.commit()
    return user
