"""Best-effort domain event fan-out over Redis pub/sub."""

from __future__ import annotations

import json
from typing import Any

import structlog

logger = structlog.get_logger()


async def publish_event(redis: object | None, channel: str, payload: dict[str, Any]) -> bool:
    """Publish ``payload`` on ``pubsub:<channel>``. Failures are logged, never raised."""
    if redis is None:
        return False
    try:
        await redis.publish(f"pubsub:{channel}", json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("event_publish_failed", channel=channel, exc_info=True)
        return False
    return True
