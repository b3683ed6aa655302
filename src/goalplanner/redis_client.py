"""Process-wide Redis client.

Redis is optional: rate limiting, email throttling and event fan-out are
skipped while no client has been initialized.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def redis_or_none() -> redis.Redis | None:
    """The client if initialized, else None."""
    return _client


def get_redis() -> redis.Redis:
    """The client; raises RuntimeError before ``init_redis``."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client
