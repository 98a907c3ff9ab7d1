"""Stateless content detectors.

Each function runs in a single pass over the text and never performs I/O.
"""

import re
import unicodedata
from typing import Optional

# PII families. Street addresses require a capitalized street name so that
# ordinary sentences ("3 apples on the way") do not match.
PII_PATTERNS = {
    "phone": re.compile(r"(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)"),
    "email": re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),
    "national_id": re.compile(r"(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)"),
    "card_number": re.compile(r"(?<!\d)(?:\d{4}[\s-]?){3}\d{4}(?!\d)"),
    "street_address": re.compile(
        r"\b\d{1,5}\s+(?:[A-Z][A-Za-z]*\.?\s+){1,3}"
        r"(?i:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr|court|ct|way|place|pl)\b"
    ),
}

# Typosquats of the platform domain and common scam phrases.
PHISHING_FRAGMENTS = (
    "dlscord",
    "disc0rd",
    "d1scord",
    "discorcl",
    "discordd",
    "dicsord",
    "discord-gift",
    "discord-nitro",
    "discordnitro",
    "discord-app.",
    "nitro-gift",
    "free nitro",
    "free-nitro",
    "claim your nitro",
    "steamcommunlty",
    "steamcomunity",
    "stearncommunity",
    "steam-gift",
    "airdrop-claim",
    "wallet-connect.",
)

ZALGO_RUN_LENGTH = 3


def find_pii(text: str) -> Optional[str]:
    """Return the name of the first PII family found in the text, if any."""
    for name, pattern in PII_PATTERNS.items():
        if pattern.search(text):
            return name
    return None


def find_phishing(text: str) -> Optional[str]:
    """Return the first deceptive fragment contained in the text, if any."""
    lowered = text.lower()
    for fragment in PHISHING_FRAGMENTS:
        if fragment in lowered:
            return fragment
    return None


def has_zalgo(text: str, run_length: int = ZALGO_RUN_LENGTH) -> bool:
    """True if the text has `run_length` or more consecutive combining marks."""
    run = 0
    for char in text:
        if unicodedata.combining(char):
            run += 1
            if run >= run_length:
                return True
        else:
            run = 0
    return False
