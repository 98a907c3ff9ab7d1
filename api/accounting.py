"""Process-wide cost and latency accounting.

Purely additive counters shared by every message task. Increments take a
lock so the tracker can be read from another thread (metrics scrapers)
while the event loop keeps writing.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

import structlog

from api.models import TerminalState

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CostReport:
    """Point-in-time snapshot of the tracker."""

    cheap_calls: int
    expensive_calls: int
    cache_hits: int
    cache_misses: int
    total_cost: float
    messages_processed: int
    outcomes: Dict[str, int] = field(default_factory=dict)
    cache_hit_rate: float = 0.0
    average_cost_per_message: float = 0.0
    average_latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "cheap_calls": self.cheap_calls,
            "expensive_calls": self.expensive_calls,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "total_cost": self.total_cost,
            "messages_processed": self.messages_processed,
            "outcomes": dict(self.outcomes),
            "cache_hit_rate": self.cache_hit_rate,
            "average_cost_per_message": self.average_cost_per_message,
            "average_latency_ms": self.average_latency_ms,
        }


class CostTracker:
    """Counters for paid calls, cache efficiency and per-message latency."""

    def __init__(self, cheap_call_cost: float = 0.00001, expensive_call_cost: float = 0.02):
        self.cheap_call_cost = cheap_call_cost
        self.expensive_call_cost = expensive_call_cost
        self._lock = threading.Lock()
        self._cheap_calls = 0
        self._expensive_calls = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._total_cost = 0.0
        self._messages = 0
        self._latency_total_ms = 0
        self._outcomes: Dict[str, int] = {state.value: 0 for state in TerminalState}

    def record_cheap_call(self) -> float:
        """Count one classifier call and return its cost."""
        with self._lock:
            self._cheap_calls += 1
            self._total_cost += self.cheap_call_cost
        return self.cheap_call_cost

    def record_expensive_call(self) -> float:
        """Count one responder call and return its cost."""
        with self._lock:
            self._expensive_calls += 1
            self._total_cost += self.expensive_call_cost
        return self.expensive_call_cost

    def record_cache_hit(self):
        with self._lock:
            self._cache_hits += 1

    def record_cache_miss(self):
        with self._lock:
            self._cache_misses += 1

    def record_message(self, state: TerminalState, latency_ms: int):
        """Count one finished pipeline run."""
        with self._lock:
            self._messages += 1
            self._latency_total_ms += latency_ms
            self._outcomes[TerminalState(state).value] += 1

    def report(self) -> CostReport:
        """Snapshot the counters; repeated calls without new events are equal."""
        with self._lock:
            lookups = self._cache_hits + self._cache_misses
            paid_calls = self._cheap_calls + self._expensive_calls
            return CostReport(
                cheap_calls=self._cheap_calls,
                expensive_calls=self._expensive_calls,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                total_cost=self._total_cost,
                messages_processed=self._messages,
                outcomes=dict(self._outcomes),
                cache_hit_rate=self._cache_hits / lookups if lookups else 0.0,
                average_cost_per_message=self._total_cost / paid_calls if paid_calls else 0.0,
                average_latency_ms=self._latency_total_ms / self._messages if self._messages else 0.0,
            )

    def reset(self):
        with self._lock:
            self._cheap_calls = 0
            self._expensive_calls = 0
            self._cache_hits = 0
            self._cache_misses = 0
            self._total_cost = 0.0
            self._messages = 0
            self._latency_total_ms = 0
            self._outcomes = {state.value: 0 for state in TerminalState}
        logger.info("Cost tracker reset")
