"""
Per-user interaction history.

Stores the most recent triage interactions of each user in Redis:
- Sliding window (keeps last N interactions)
- 30-day TTL, refreshed on every write
- Keys scoped by tenant and user
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class InteractionHistory:
    """
    Records what the bot said to whom, newest first.

    Usage:
        history = InteractionHistory(redis_client, max_entries=50)
        await history.add_interaction(tenant_id, user_id, {"source": "cache", ...})
        entries = await history.get_history(tenant_id, user_id)
    """

    def __init__(
        self,
        redis_client,
        max_entries: int = 50,
        ttl_seconds: int = 30 * 86400,
        operation_timeout: float = 5.0,
    ):
        """
        Initialize interaction history.

        Args:
            redis_client: Async Redis client
            max_entries: Maximum interactions kept per user
            ttl_seconds: Lifetime of a user's history after the last write
            operation_timeout: Upper bound for every Redis call
        """
        self.redis = redis_client
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.operation_timeout = operation_timeout

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self.operation_timeout)

    @staticmethod
    def _key(tenant_id: str, user_id: str) -> str:
        return f"history:{tenant_id}:{user_id}"

    async def add_interaction(
        self,
        tenant_id: str,
        user_id: str,
        data: Dict[str, Any],
        timestamp: Optional[datetime] = None,
    ):
        """Push one interaction and trim the window."""
        key = self._key(tenant_id, user_id)
        entry = dict(data)
        entry["timestamp"] = (timestamp or datetime.now(timezone.utc)).isoformat()

        await self._call(self.redis.lpush(key, json.dumps(entry)))
        await self._call(self.redis.ltrim(key, 0, self.max_entries - 1))
        await self._call(self.redis.expire(key, self.ttl_seconds))

        logger.debug("Interaction recorded", tenant_id=tenant_id, user_id=user_id)

    async def get_history(self, tenant_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Return the user's interactions in chronological order (oldest first)."""
        raw_entries = await self._call(self.redis.lrange(self._key(tenant_id, user_id), 0, -1))
        return [json.loads(raw) for raw in reversed(raw_entries)]

    async def clear(self, tenant_id: str, user_id: str):
        await self._call(self.redis.delete(self._key(tenant_id, user_id)))

    async def handle_event(self, event):
        """Event listener: record answered and moderated interactions."""
        outcome = event.outcome
        if outcome.response is None:
            return

        await self.add_interaction(
            event.message.server_id,
            event.message.user_id,
            {
                "type": "moderation" if outcome.moderation_action != "none" else "message",
                "content": event.message.text[:500],
                "response": outcome.response,
                "persona": outcome.persona,
                "source": outcome.source,
            },
        )
