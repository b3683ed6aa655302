"""Shared FastAPI dependencies."""

import redis.asyncio as redis
from fastapi import Depends

from goalplanner.email.service import EmailService, get_email_service
from goalplanner.redis_client import redis_or_none


def get_optional_redis() -> redis.Redis | None:
    """Redis for best-effort features; None keeps endpoints working without it."""
    return redis_or_none()


def get_email(client: redis.Redis | None = Depends(get_optional_redis)) -> EmailService:
    return get_email_service(client)
