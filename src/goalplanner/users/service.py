"""User management business logic."""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from goalplanner.db.models import User
from goalplanner.goals.slug import to_base36
from goalplanner.stats.service import get_or_create_stats

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

USERNAME_PATTERN = re.compile(r"^[a-z0-9_-]{3,30}$")


class UsernameError(ValueError):
    """Username is malformed or already taken."""


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by identity-provider id."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Get a user by username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def find_user_by_identifier(db: AsyncSession, identifier: str) -> User | None:
    """Resolve a public-page identifier: username first, then email, then raw id."""
    user = await get_user_by_username(db, identifier)
    if user is None and "@" in identifier:
        result = await db.execute(select(User).where(User.email == identifier))
        user = result.scalars().first()
    if user is None:
        user = await get_user_by_id(db, identifier)
    return user


def normalize_username(raw: str) -> str:
    """
    Trim and lowercase a requested username and validate its format.

    Raises:
        UsernameError: If the result is not 3-30 characters of ``[a-z0-9_-]``.
    """
    clean = raw.strip().lower()
    if len(clean) < 3 or len(clean) > 30:
        msg = "Username must be 3-30 characters"
        raise UsernameError(msg)
    if not USERNAME_PATTERN.match(clean):
        msg = "Username can only contain letters, numbers, hyphens, and underscores"
        raise UsernameError(msg)
    return clean


async def _claim_username(db: AsyncSession, user_id: str, username: str | None) -> str | None:
    """Return ``username`` if it is valid and free for this user, else None."""
    if not username:
        return None
    try:
        clean = normalize_username(username)
    except UsernameError:
        return None
    existing = await get_user_by_username(db, clean)
    if existing is not None and existing.id != user_id:
        return None
    return clean


async def upsert_user(
    db: AsyncSession,
    user_id: str,
    *,
    email: str,
    username: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    image_url: str | None = None,
) -> tuple[User, bool]:
    """
    Create or refresh a user from identity-provider data.

    New users also get their stats row. Returns ``(user, created)``.
    """
    now = datetime.now(timezone.utc)
    user = await get_user_by_id(db, user_id)
    claimed = await _claim_username(db, user_id, username)

    if user is None:
        user = User(
            id=user_id,
            email=email,
            username=claimed,
            first_name=first_name,
            last_name=last_name,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        await db.flush()
        await get_or_create_stats(db, user_id)
        logger.info("user_created", user_id=user_id)
        return user, True

    user.email = email
    if claimed is not None:
        user.username = claimed
    user.first_name = first_name
    user.last_name = last_name
    user.image_url = image_url
    user.updated_at = now
    await db.flush()
    logger.info("user_updated", user_id=user_id)
    return user, False


async def get_or_create_user_from_claims(db: AsyncSession, claims: dict[str, Any]) -> tuple[User, bool]:
    """Return the user named by a verified session, creating it on first sight."""
    user_id = str(claims["sub"])
    user = await get_user_by_id(db, user_id)
    if user is not None:
        return user, False
    return await upsert_user(
        db,
        user_id,
        email=claims.get("email") or "",
        username=claims.get("username"),
        first_name=claims.get("first_name"),
        last_name=claims.get("last_name"),
        image_url=claims.get("image_url"),
    )


async def delete_user(db: AsyncSession, user_id: str) -> bool:
    """Delete a user; goals, steps, check-ins, stats and subscriptions cascade."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        return False
    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", user_id=user_id)
    return True


async def ensure_user_has_username(db: AsyncSession, user: User) -> User:
    """Give the user a generated ``<email-prefix>_<base36 ms>`` username if missing."""
    if user.username:
        return user

    prefix = re.sub(r"[^a-z0-9_-]", "", user.email.split("@")[0].lower()) or "user"
    suffix = to_base36(int(time.time() * 1000))
    user.username = f"{prefix[: 29 - len(suffix)]}_{suffix}"
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("username_generated", user_id=user.id, username=user.username)
    return user


async def update_username(db: AsyncSession, user: User, requested: str) -> User:
    """
    Set the user's username.

    Raises:
        UsernameError: If malformed or taken by another user.
    """
    clean = normalize_username(requested)
    existing = await get_user_by_username(db, clean)
    if existing is not None and existing.id != user.id:
        msg = "Username already taken"
        raise UsernameError(msg)

    user.username = clean
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return user
