"""URL slugs for public goal pages, unique per user."""

from __future__ import annotations

import re
import secrets
import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.config import get_settings
from goalplanner.db.models import Goal
from goalplanner.retry import retry_async

MAX_SLUG_LENGTH = 50
DEFAULT_SLUG = "goal"

_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-{2,}")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    out = ""
    while True:
        value, rem = divmod(value, 36)
        out = _BASE36_DIGITS[rem] + out
        if value == 0:
            return out


def slugify(title: str) -> str:
    """Lowercase, drop punctuation, hyphenate whitespace, cap at 50 characters."""
    slug = title.lower().strip()
    slug = _STRIP.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug)
    return slug[:MAX_SLUG_LENGTH] or DEFAULT_SLUG


async def _slug_taken(db: AsyncSession, user_id: str, slug: str) -> bool:
    result = await db.execute(
        select(Goal.id).where(Goal.user_id == user_id, Goal.slug == slug).limit(1)
    )
    return result.first() is not None


async def generate_slug(db: AsyncSession, title: str, user_id: str) -> str:
    """Return the first free slug among ``base``, ``base-1``, ``base-2``, ...

    Unique at the moment of the check only; a concurrent insert of the same
    title can still collide and must be retried by the caller.
    """
    base = slugify(title)
    slug = base
    counter = 1
    while await _slug_taken(db, user_id, slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def random_slug(title: str) -> str:
    """Slug with a timestamp and random suffix; unique without a datastore check."""
    return f"{slugify(title)}-{to_base36(int(time.time() * 1000))}-{secrets.token_hex(3)}"


async def resolve_slug(db: AsyncSession, title: str, user_id: str) -> str:
    """Collision-checked slug, or a random one if the datastore keeps failing."""
    settings = get_settings()

    async def _check() -> str:
        try:
            return await generate_slug(db, title, user_id)
        except SQLAlchemyError:
            await db.rollback()
            raise

    try:
        return await retry_async(
            _check,
            attempts=settings.db_retry_attempts,
            base_delay=settings.db_retry_base_delay_seconds,
            retry_on=(SQLAlchemyError,),
            name="generate_slug",
        )
    except SQLAlchemyError:
        return random_slug(title)
