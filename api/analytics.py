"""Community analytics counters fed by triage events.

In-memory tallies per tenant:
- hourly activity heatmap
- daily sentiment counts (positive / neutral / negative)
- most recent unanswered questions
- top contributors

Tallies are flushed to Firestore (servers/{tenant}/analytics) on a timer when
a client is configured. Every read is scoped to a single tenant.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from api.models import (
    Category,
    DetectionKind,
    ResponseSource,
    TerminalState,
)
from libs.firestore.config import save_analytics_snapshot

logger = structlog.get_logger(__name__)

MILESTONES = (100, 250, 500, 1000, 2500, 5000, 10000, 25000, 50000, 100000)
UNANSWERED_LIMIT = 100
SENTIMENTS = ("positive", "neutral", "negative")


class UnansweredQuery(BaseModel):
    """A question the bot could not answer."""

    query: str = Field(max_length=200)
    user_id: str
    timestamp: datetime


def _utc(at: Optional[datetime]) -> datetime:
    if at is None:
        return datetime.now(timezone.utc)
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc)


def sentiment_for(classification) -> str:
    """Map a triage classification onto a coarse sentiment bucket."""
    if classification == Category.GREETING:
        return "positive"
    if classification == Category.TOXIC or isinstance(classification, DetectionKind):
        return "negative"
    return "neutral"


class AnalyticsTracker:
    """Per-tenant analytics tallies."""

    def __init__(self, firestore_client=None, store_timeout: float = 5.0):
        self.firestore_client = firestore_client
        self.store_timeout = store_timeout

        self._hourly: Dict[str, List[int]] = defaultdict(lambda: [0] * 24)
        self._sentiment: Dict[str, Dict[str, Dict[str, int]]] = defaultdict(dict)
        self._unanswered: Dict[str, Deque[UnansweredQuery]] = defaultdict(
            lambda: deque(maxlen=UNANSWERED_LIMIT)
        )
        self._contributors: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def track_message(self, tenant_id: str, classification=None, source=None, at: Optional[datetime] = None):
        self._hourly[tenant_id][_utc(at).hour] += 1

    def track_sentiment(self, tenant_id: str, sentiment: str, at: Optional[datetime] = None):
        if sentiment not in SENTIMENTS:
            logger.debug("Ignoring unknown sentiment", tenant_id=tenant_id, sentiment=sentiment)
            return

        date_key = _utc(at).date().isoformat()
        counts = self._sentiment[tenant_id].setdefault(date_key, {s: 0 for s in SENTIMENTS})
        counts[sentiment] += 1

    def track_unanswered(self, tenant_id: str, text: str, user_id: str, at: Optional[datetime] = None):
        self._unanswered[tenant_id].append(
            UnansweredQuery(query=(text or "")[:200], user_id=user_id, timestamp=_utc(at))
        )

    def track_contribution(self, tenant_id: str, user_id: str):
        self._contributors[tenant_id][user_id] += 1

    async def handle_event(self, event):
        """Event listener: update every tally touched by one triage outcome."""
        message, outcome = event.message, event.outcome
        tenant_id = message.server_id

        self.track_message(tenant_id, outcome.classification, outcome.source, at=message.received_at)
        self.track_sentiment(tenant_id, sentiment_for(outcome.classification), at=message.received_at)

        if outcome.source == ResponseSource.FALLBACK:
            self.track_unanswered(tenant_id, message.text, message.user_id, at=message.received_at)

        if outcome.state != TerminalState.MODERATED:
            self.track_contribution(tenant_id, message.user_id)

    def summary(self, tenant_id: str, today: Optional[datetime] = None) -> Dict[str, Any]:
        """Snapshot of one tenant's analytics."""
        date_key = _utc(today).date().isoformat()
        sentiment = dict(
            self._sentiment.get(tenant_id, {}).get(date_key) or {s: 0 for s in SENTIMENTS}
        )

        unanswered = list(self._unanswered.get(tenant_id, ()))
        contributors = sorted(
            self._contributors.get(tenant_id, {}).items(),
            key=lambda item: item[1],
            reverse=True,
        )

        return {
            "heatmap": list(self._hourly[tenant_id]) if tenant_id in self._hourly else [0] * 24,
            "sentiment": sentiment,
            "unanswered_count": len(unanswered),
            "unanswered": [q.model_dump(mode="json") for q in unanswered[-5:]],
            "top_contributors": [
                {"user_id": user_id, "count": count} for user_id, count in contributors[:5]
            ],
        }

    @staticmethod
    def check_milestone(member_count: int) -> bool:
        return member_count in MILESTONES

    async def flush(self) -> int:
        """
        Persist sentiment and activity snapshots to Firestore.

        Returns:
            Number of snapshot documents written (0 without a client)
        """
        if self.firestore_client is None:
            return 0

        today = datetime.now(timezone.utc).date().isoformat()
        written = 0
        try:
            for tenant_id, by_date in list(self._sentiment.items()):
                for date_key, counts in list(by_date.items()):
                    await asyncio.wait_for(
                        save_analytics_snapshot(
                            self.firestore_client, tenant_id, f"sentiment_{date_key}", dict(counts)
                        ),
                        timeout=self.store_timeout,
                    )
                    written += 1

            for tenant_id, hours in list(self._hourly.items()):
                data = {f"hour_{hour}": count for hour, count in enumerate(hours) if count}
                if not data:
                    continue
                await asyncio.wait_for(
                    save_analytics_snapshot(self.firestore_client, tenant_id, f"activity_{today}", data),
                    timeout=self.store_timeout,
                )
                written += 1

            logger.info("Analytics flushed to Firestore", documents=written)

        except Exception as e:
            logger.error("Analytics flush error", error=str(e), documents=written)

        return written

    async def run_periodic_flush(self, interval_seconds: float = 300.0):
        """Flush on a fixed timer until cancelled; flushes once more on the way out."""
        logger.info("Analytics flush loop started", interval_seconds=interval_seconds)
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                await self.flush()
        except asyncio.CancelledError:
            await self.flush()
            logger.info("Analytics flush loop stopped")
            raise
