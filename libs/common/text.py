"""Text normalization shared by the response cache and raid detection.

Both the cache key and the raid fingerprint are derived from the same
normalized form so that a message that collides in one place collides in
the other.
"""

import hashlib
import re

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def normalize_text(text: str) -> str:
    """Lowercase and strip everything except ASCII letters and digits."""
    if not text:
        return ""
    return _NON_ALPHANUMERIC.sub("", text.lower())


def fingerprint(text: str) -> str:
    """Return a stable hash of the normalized text.

    An empty normalization yields an empty fingerprint so callers can skip
    messages that carry no alphanumeric content (emoji-only, punctuation).
    """
    normalized = normalize_text(text)
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def preview(text: str, length: int = 50) -> str:
    """Short preview of message text for log records."""
    return (text or "")[:length]
