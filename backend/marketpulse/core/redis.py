"""
Redis clients and pipeline event streams.

Events are best-effort notifications for downstream consumers: a failed
publish is logged and never fails the job that produced it.
"""

import asyncio
import logging
from typing import Mapping, Optional

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from marketpulse.core.config import settings

logger = logging.getLogger(__name__)


class StreamNames:
    """Redis Stream names for pipeline events."""

    MARKET_BARS = "market-bars"
    INDICATORS_REFRESHED = "indicators-refreshed"
    ALERTS = "alerts"


# Celery workers publish from sync code
redis_client: Optional[Redis] = None

# The async client is bound to the loop it was created on; each asyncio.run
# in a Celery task gets a fresh loop
async_redis_client: Optional[AsyncRedis] = None
async_redis_loop: Optional[asyncio.AbstractEventLoop] = None


def get_redis() -> Redis:
    global redis_client
    if redis_client is None:
        redis_client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return redis_client


async def get_async_redis() -> AsyncRedis:
    global async_redis_client, async_redis_loop
    loop = asyncio.get_running_loop()
    if async_redis_client is None or async_redis_loop is not loop:
        async_redis_loop = loop
        async_redis_client = AsyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return async_redis_client


def _fields(fields: Mapping[str, object]) -> dict[str, str]:
    return {key: str(value) for key, value in fields.items()}


def publish_event(stream: str, fields: Mapping[str, object]) -> bool:
    """Append an event to ``stream``; returns False if Redis rejected it."""
    try:
        get_redis().xadd(
            stream, _fields(fields), maxlen=settings.REDIS_STREAM_MAXLEN, approximate=True
        )
    except Exception as e:
        logger.error(f"Failed to publish to {stream}: {e}")
        return False
    return True


async def publish_event_async(stream: str, fields: Mapping[str, object]) -> bool:
    try:
        r = await get_async_redis()
        await r.xadd(
            stream, _fields(fields), maxlen=settings.REDIS_STREAM_MAXLEN, approximate=True
        )
    except Exception as e:
        logger.error(f"Failed to publish to {stream}: {e}")
        return False
    return True


async def close_redis() -> None:
    global redis_client, async_redis_client, async_redis_loop

    if redis_client is not None:
        redis_client.close()
        redis_client = None

    if async_redis_client is not None:
        await async_redis_client.close()
        async_redis_client = None
        async_redis_loop = None
