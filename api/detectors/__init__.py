"""Instant (pre-classification) detectors."""

from api.detectors.bank import NOTICES, InstantDetectorBank
from api.detectors.patterns import find_phishing, find_pii, has_zalgo
from api.detectors.sliding_window import RaidTracker, SpamRateTracker

__all__ = [
    "NOTICES",
    "InstantDetectorBank",
    "RaidTracker",
    "SpamRateTracker",
    "find_phishing",
    "find_pii",
    "has_zalgo",
]
