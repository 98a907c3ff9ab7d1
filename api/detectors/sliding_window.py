"""
Sliding-window state for the spam and raid detectors.

Both trackers keep plain in-process maps keyed by tenant. Updates to one key
are serialized through a striped lock table so that unrelated tenants and
users never contend on a single global lock. Stale entries are pruned lazily
on access and by `sweep()`, which the detector bank calls periodically.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Hashable, List, Set, Tuple

import structlog

logger = structlog.get_logger(__name__)


class StripedLocks:
    """Fixed pool of locks; a key always maps to the same lock."""

    def __init__(self, stripes: int = 64):
        self._locks = [threading.Lock() for _ in range(stripes)]

    def for_key(self, key: Hashable) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]


@dataclass
class RateWindow:
    """Recent message timestamps of one user in one tenant."""

    tenant_id: str
    user_id: str
    timestamps: Deque[float] = field(default_factory=deque)

    def prune(self, cutoff: float):
        while self.timestamps and self.timestamps[0] < cutoff:
            self.timestamps.popleft()


@dataclass
class RaidBucket:
    """Distinct senders of one message fingerprint within the raid window."""

    fingerprint: str
    first_seen_at: float
    distinct_user_ids: Set[str] = field(default_factory=set)


class SpamRateTracker:
    """
    Per-user message rate over a sliding window.

    A user is flagged when more than `max_messages` of their messages fall
    inside the last `window_seconds`.
    """

    def __init__(self, window_seconds: float = 10.0, max_messages: int = 5, stripes: int = 64):
        self.window_seconds = window_seconds
        self.max_messages = max_messages
        self._windows: Dict[Tuple[str, str], RateWindow] = {}
        self._locks = StripedLocks(stripes)

    def record(self, tenant_id: str, user_id: str, timestamp: float) -> int:
        """
        Append a message timestamp and return the count inside the window.

        Timestamps are clamped to the newest one already recorded, so
        out-of-order arrivals never move the window backwards.
        """
        key = (tenant_id, user_id)
        with self._locks.for_key(key):
            window = self._windows.get(key)
            if window is None:
                window = RateWindow(tenant_id=tenant_id, user_id=user_id)
                self._windows[key] = window

            if window.timestamps and timestamp < window.timestamps[-1]:
                timestamp = window.timestamps[-1]

            window.timestamps.append(timestamp)
            window.prune(timestamp - self.window_seconds)
            return len(window.timestamps)

    def is_spam(self, tenant_id: str, user_id: str, timestamp: float) -> bool:
        return self.record(tenant_id, user_id, timestamp) > self.max_messages

    def window_for(self, tenant_id: str, user_id: str) -> List[float]:
        window = self._windows.get((tenant_id, user_id))
        return list(window.timestamps) if window else []

    def sweep(self, now: float) -> int:
        """Drop expired timestamps and delete windows left empty."""
        removed = 0
        cutoff = now - self.window_seconds
        for key in list(self._windows):
            with self._locks.for_key(key):
                window = self._windows.get(key)
                if window is None:
                    continue
                window.prune(cutoff)
                if not window.timestamps:
                    del self._windows[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._windows)


class RaidTracker:
    """
    Detects many distinct users posting the same normalized text.

    Buckets are keyed by (tenant, fingerprint). A bucket older than
    `window_seconds` is discarded and replaced by a fresh one, so the set of
    users only ever grows within a single window.
    """

    def __init__(self, window_seconds: float = 30.0, min_users: int = 3, stripes: int = 64):
        self.window_seconds = window_seconds
        self.min_users = min_users
        self._buckets: Dict[Tuple[str, str], RaidBucket] = {}
        self._locks = StripedLocks(stripes)

    def _is_stale(self, bucket: RaidBucket, now: float) -> bool:
        return now - bucket.first_seen_at > self.window_seconds

    def record(self, tenant_id: str, fingerprint: str, user_id: str, timestamp: float) -> int:
        """Add the sender to the live bucket and return its distinct-user count."""
        key = (tenant_id, fingerprint)
        with self._locks.for_key(key):
            bucket = self._buckets.get(key)
            if bucket is None or self._is_stale(bucket, timestamp):
                bucket = RaidBucket(fingerprint=fingerprint, first_seen_at=timestamp)
                self._buckets[key] = bucket

            bucket.distinct_user_ids.add(user_id)
            return len(bucket.distinct_user_ids)

    def is_raid(self, tenant_id: str, fingerprint: str, user_id: str, timestamp: float) -> bool:
        return self.record(tenant_id, fingerprint, user_id, timestamp) >= self.min_users

    def sweep(self, now: float) -> int:
        """Discard stale buckets."""
        removed = 0
        for key in list(self._buckets):
            with self._locks.for_key(key):
                bucket = self._buckets.get(key)
                if bucket is not None and self._is_stale(bucket, now):
                    del self._buckets[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._buckets)
