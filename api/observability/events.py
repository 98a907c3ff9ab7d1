"""
Post-triage events.

The pipeline publishes one TriageEvent after reaching a terminal state.
Listeners (analytics, interaction history, moderation log) run as
fire-and-forget tasks: their failures are logged and never reach the
pipeline, and nothing waits for them unless `drain()` is called.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Set, Union

import structlog

from api.models import DetectionKind, Message, TerminalState, TriageOutcome
from libs.common.text import preview

logger = structlog.get_logger(__name__)

HIGH_SEVERITY_KINDS = {DetectionKind.RAID, DetectionKind.PHISHING}


@dataclass(frozen=True)
class TriageEvent:
    message: Message
    outcome: TriageOutcome


Listener = Callable[[TriageEvent], Union[Awaitable[None], None]]


class EventBus:
    """In-process fan-out of triage events to async listeners."""

    def __init__(self):
        self._listeners: List[Listener] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def publish(self, event: TriageEvent):
        """Schedule every listener; returns immediately."""
        for listener in self._listeners:
            task = asyncio.create_task(self._deliver(listener, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, listener: Listener, event: TriageEvent):
        try:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "Event listener failed",
                listener=getattr(listener, "__qualname__", repr(listener)),
                tenant_id=event.message.server_id,
                error=str(e),
            )

    async def drain(self):
        """Wait for all in-flight listener tasks (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)


def moderation_severity(outcome: TriageOutcome) -> str:
    return "high" if outcome.classification in HIGH_SEVERITY_KINDS else "medium"


def log_moderation(event: TriageEvent):
    """Admin-log record for every moderated message."""
    outcome = event.outcome
    if outcome.state != TerminalState.MODERATED:
        return

    classification = outcome.classification
    logger.warning(
        "Message moderated",
        tenant_id=event.message.server_id,
        channel_id=event.message.channel_id,
        user_id=event.message.user_id,
        username=event.message.username,
        classification=getattr(classification, "value", classification),
        action=outcome.moderation_action.value,
        severity=moderation_severity(outcome),
        message_preview=preview(event.message.text, 100),
    )
