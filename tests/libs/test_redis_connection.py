"""
Tests for the Redis client manager.

Tests verify:
- fakeredis is used in the test environment
- the client is a singleton until reset
- missing REDIS_URL degrades to None instead of raising
"""

import pytest


@pytest.fixture(autouse=True)
async def reset_redis():
    """Reset the Redis client and cached settings around each test."""
    from libs.caching.redis_client import reset_redis_client
    from libs.common.settings import get_settings

    get_settings.cache_clear()
    await reset_redis_client()
    yield
    await reset_redis_client()
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_redis_connection():
    from libs.caching.redis_client import get_redis_client

    redis = await get_redis_client(use_fake=True)

    assert redis is not None, "Should return Redis client"
    assert await redis.ping() is True


@pytest.mark.asyncio
async def test_test_env_uses_fakeredis_by_default():
    from libs.caching.redis_client import get_redis_client

    first = await get_redis_client()
    second = await get_redis_client()

    assert first is second, "Should reuse the same client"
    await first.setex("cache:t1:abc", 60, "value")
    assert await second.get("cache:t1:abc") == "value"


@pytest.mark.asyncio
async def test_missing_url_disables_redis(monkeypatch):
    from libs.caching.redis_client import get_redis_client, health_check

    monkeypatch.setenv("HEARTH_APP_ENV", "production")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("HEARTH_REDIS_URL", raising=False)

    assert await get_redis_client() is None
    assert await health_check() is False


@pytest.mark.asyncio
async def test_close_redis_client_clears_singleton():
    from libs.caching.redis_client import close_redis_client, get_redis_client

    first = await get_redis_client(use_fake=True)
    await close_redis_client()
    second = await get_redis_client(use_fake=True)

    assert first is not second
