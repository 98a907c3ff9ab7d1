"""
Instant detector bank: the free first stage of triage.

Runs the content and rate detectors in fixed priority order and returns the
first positive result. Nothing here awaits, so a check can never be
interrupted by another message task.
"""

import asyncio
import random
import time
from typing import Callable, Optional

import structlog

from api.detectors.patterns import find_phishing, find_pii, has_zalgo
from api.detectors.sliding_window import RaidTracker, SpamRateTracker
from api.models import DetectionKind, DetectionResult, Message, ModerationAction
from libs.common.text import fingerprint, normalize_text, preview

logger = structlog.get_logger(__name__)

NOTICES = {
    DetectionKind.PII: (
        "🔒 Your message was removed because it looked like it contained personal "
        "information. Please keep phone numbers, emails and addresses private."
    ),
    DetectionKind.PHISHING: (
        "🚫 That message contained a known scam link and was removed. "
        "Never log in through lookalike sites."
    ),
    DetectionKind.ZALGO: "Your message was removed because it contained distorted text.",
    DetectionKind.SPAM: "⏱️ Slow down! You're sending messages too quickly.",
    DetectionKind.RAID: "🛡️ Coordinated spam detected. This message was removed.",
}


def _result(kind: DetectionKind, action: ModerationAction) -> DetectionResult:
    return DetectionResult(classification=kind, action=action, notice=NOTICES[kind])


class InstantDetectorBank:
    """
    PII, phishing, zalgo, spam-rate and raid detectors in priority order.

    Usage:
        bank = InstantDetectorBank()
        result = bank.check(message)
        if result is not None:
            ...  # moderate with result.action and result.notice
    """

    def __init__(
        self,
        spam_window_seconds: float = 10.0,
        spam_max_messages: int = 5,
        raid_window_seconds: float = 30.0,
        raid_min_users: int = 3,
        raid_min_fingerprint_length: int = 1,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.spam = SpamRateTracker(window_seconds=spam_window_seconds, max_messages=spam_max_messages)
        self.raid = RaidTracker(window_seconds=raid_window_seconds, min_users=raid_min_users)
        self.raid_min_fingerprint_length = raid_min_fingerprint_length
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings) -> "InstantDetectorBank":
        return cls(
            spam_window_seconds=settings.spam_window_seconds,
            spam_max_messages=settings.spam_max_messages,
            raid_window_seconds=settings.raid_window_seconds,
            raid_min_users=settings.raid_min_users,
            raid_min_fingerprint_length=settings.raid_min_fingerprint_length,
            sweep_probability=settings.sweep_probability,
        )

    def check(self, message: Message) -> Optional[DetectionResult]:
        """Return the first matching detection for the message, or None."""
        result = self._evaluate(message)

        if self.sweep_probability and self._rng.random() < self.sweep_probability:
            self.sweep()

        if result is not None:
            logger.info(
                "Instant detector matched",
                tenant_id=message.server_id,
                user_id=message.user_id,
                classification=result.classification.value,
                action=result.action.value,
                message_preview=preview(message.text, 30),
            )
        return result

    def _evaluate(self, message: Message) -> Optional[DetectionResult]:
        text = message.text

        if find_pii(text):
            return _result(DetectionKind.PII, ModerationAction.DELETE)

        if find_phishing(text):
            return _result(DetectionKind.PHISHING, ModerationAction.DELETE)

        if has_zalgo(text):
            return _result(DetectionKind.ZALGO, ModerationAction.DELETE)

        received_ts = message.received_ts

        if self.spam.is_spam(message.server_id, message.user_id, received_ts):
            return _result(DetectionKind.SPAM, ModerationAction.TIMEOUT)

        if len(normalize_text(text)) >= self.raid_min_fingerprint_length:
            digest = fingerprint(text)
            if digest and self.raid.is_raid(message.server_id, digest, message.user_id, received_ts):
                return _result(DetectionKind.RAID, ModerationAction.TIMEOUT)

        return None

    def sweep(self, now: Optional[float] = None) -> int:
        """Evict empty rate windows and stale raid buckets."""
        now = self._clock() if now is None else now
        removed = self.spam.sweep(now) + self.raid.sweep(now)
        if removed:
            logger.debug("Detector state swept", removed=removed)
        return removed

    async def run_sweeper(self, interval_seconds: float = 60.0):
        """Sweep on a fixed timer until cancelled."""
        logger.info("Detector sweeper started", interval_seconds=interval_seconds)
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep()
        except asyncio.CancelledError:
            logger.info("Detector sweeper stopped")
            raise
