"""Redis client used for rate limiting and readiness checks.

Redis is optional at runtime: when it was never initialized (tests, local
runs without Redis) callers use ``get_redis_or_none`` and skip the feature.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str | None) -> None:
    """Create the shared client. An empty URL leaves Redis disabled."""
    global _client  # noqa: PLW0603
    if not url:
        _client = None
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=2,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis_or_none() -> redis.Redis | None:
    return _client
