"""
Shared async Redis connection for the response cache and interaction history.

One pooled client per process. When Redis is unreachable the getter returns
None and stops retrying until `reset_redis_client()` is called, so callers
degrade to running without a cache instead of failing.
"""

import os
from typing import Optional

import redis.asyncio as redis
import structlog

from libs.common.settings import get_settings

logger = structlog.get_logger(__name__)

_redis_client: Optional[redis.Redis] = None
_connection_failed = False


def _redact(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url.split("//")[-1]


def _redis_url() -> Optional[str]:
    return get_settings().redis_url or os.getenv("REDIS_URL")


async def _connect(url: str) -> redis.Redis:
    client = redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=get_settings().redis_max_connections,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
    )
    await client.ping()
    return client


async def get_redis_client(use_fake: Optional[bool] = None) -> Optional[redis.Redis]:
    """
    Return the process-wide Redis client, connecting on first use.

    Args:
        use_fake: Force fakeredis on or off. Defaults to on in the test environment.

    Returns:
        Redis client, or None when Redis is not configured or unreachable
    """
    global _redis_client, _connection_failed

    if use_fake is None:
        use_fake = get_settings().app_env == "test"

    if use_fake:
        from fakeredis import aioredis as fakeredis

        if _redis_client is None:
            _redis_client = fakeredis.FakeRedis(decode_responses=True)
            logger.info("Using fakeredis")
        return _redis_client

    if _connection_failed:
        return None

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            return _redis_client
        except Exception as e:
            logger.warning("Redis connection lost, reconnecting", error=str(e))
            _redis_client = None

    url = _redis_url()
    if not url:
        logger.warning("Redis URL not configured, running without a cache store")
        _connection_failed = True
        return None

    try:
        _redis_client = await _connect(url)
    except Exception as e:
        logger.error(
            "Redis connection failed",
            redis_url=_redact(url),
            error=str(e),
            error_type=type(e).__name__,
        )
        _redis_client = None
        _connection_failed = True
        return None

    logger.info("Redis connected", redis_url=_redact(url))
    return _redis_client


async def close_redis_client():
    """Close the shared client on shutdown."""
    global _redis_client

    if _redis_client is None:
        return

    try:
        await _redis_client.aclose()
        logger.info("Redis client closed")
    except Exception as e:
        logger.warning("Error closing Redis client", error=str(e))
    finally:
        _redis_client = None


async def reset_redis_client():
    """Drop the client and clear the failure flag so the next call reconnects."""
    global _connection_failed

    await close_redis_client()
    _connection_failed = False


async def health_check() -> bool:
    try:
        client = await get_redis_client()
        return client is not None and await client.ping() is True
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return False
