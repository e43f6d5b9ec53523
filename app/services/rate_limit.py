"""Rate limiting service using Redis."""

from collections.abc import Awaitable, Callable
from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, status

from app.config import settings
from app.core.auth import get_client_ip
from app.core.logging import get_logger
from app.core.redis import get_redis

logger = get_logger(__name__)


async def check_rate_limit(
    scope: str,
    client_key: str,
    limit: int,
    window_seconds: int,
    redis_client: redis.Redis,  # type: ignore[type-arg]
) -> None:
    """
    Enforce a fixed-window request limit for one client on one endpoint.

    Uses Redis for fast lookups and automatic expiration.
    Gracefully degrades if Redis is unavailable (allows the request).

    Args:
        scope: Endpoint name, part of the Redis key
        client_key: Usually the client IP address
        limit: Requests allowed per window
        window_seconds: Window length
        redis_client: Redis client instance

    Raises:
        HTTPException: 429 if rate limit exceeded
    """
    key = f"rate_limit:{scope}:{client_key}"
    try:
        count_raw = await redis_client.get(key)
        count = int(count_raw) if count_raw else 0

        if count >= limit:
            logger.warning(
                "rate_limit_exceeded",
                scope=scope,
                client=client_key,
                count=count,
                limit=limit,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many requests. Please try again in {window_seconds} seconds.",
                headers={"Retry-After": str(window_seconds)},
            )

        # Increment counter with expiration
        pipe = redis_client.pipeline()
        pipe.incr(key)
        if count == 0:
            # First request in this window - set expiration
            pipe.expire(key, window_seconds)
        await pipe.execute()
    except HTTPException:
        raise
    except Exception:
        logger.warning("rate_limit_redis_error", scope=scope, exc_info=True)


def rate_limit(
    scope: str, limit: int, window_seconds: int | None = None
) -> Callable[..., Awaitable[None]]:
    """
    Build a route dependency enforcing ``limit`` requests per window per IP.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit("login", 5))])
    """
    window = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS

    async def dependency(
        request: Request,
        redis_client: Annotated[redis.Redis, Depends(get_redis)],  # type: ignore[type-arg]
    ) -> None:
        await check_rate_limit(scope, get_client_ip(request), limit, window, redis_client)

    return dependency
