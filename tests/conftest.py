"""
Pytest configuration and fixtures for Hearth tests.

Provides shared fixtures for:
- Mock Redis client (fakeredis)
- Deterministic keyword embedder
- Message factory
- Fully wired orchestrator with mocked model collaborators
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

# Settings are read at import time by api.main; set them before any test module imports it.
os.environ.setdefault("HEARTH_APP_ENV", "test")
os.environ.setdefault("HEARTH_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")

from api.accounting import CostTracker  # noqa: E402
from api.detectors import InstantDetectorBank  # noqa: E402
from api.faq import FAQSystem  # noqa: E402
from api.models import Message  # noqa: E402
from api.observability.events import EventBus  # noqa: E402
from api.orchestrators.triage_orchestrator import TriageOrchestrator  # noqa: E402
from api.rules import RulesBook  # noqa: E402
from api.tools.knowledge_base import KnowledgeBase  # noqa: E402
from libs.caching import ResponseCache  # noqa: E402

BASE_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

KEYWORD_VOCABULARY = ("refund", "shipping", "discord", "events", "moderator", "minecraft")


class KeywordEmbedder:
    """Embeds text as keyword counts so similarity is predictable in tests."""

    def __init__(self, vocabulary=KEYWORD_VOCABULARY):
        self.vocabulary = vocabulary
        self.calls = 0

    async def embed(self, text: str):
        self.calls += 1
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary]


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("HEARTH_APP_ENV", "test")
    monkeypatch.setenv("HEARTH_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")


@pytest.fixture
async def redis_client():
    """
    Provide fakeredis client for testing.

    This avoids requiring actual Redis server during tests.
    """
    from fakeredis import aioredis as fakeredis

    client = fakeredis.FakeRedis(decode_responses=True)

    yield client

    await client.flushdb()
    await client.aclose()


@pytest.fixture
def make_message():
    """Factory for messages at BASE_TIME + offset seconds."""

    def _make(text="hello there", server_id="server-1", user_id="user-1", offset=0.0, **kwargs):
        return Message(
            server_id=server_id,
            user_id=user_id,
            username=kwargs.pop("username", "tester"),
            channel_id=kwargs.pop("channel_id", "general"),
            text=text,
            received_at=BASE_TIME + timedelta(seconds=offset),
            **kwargs,
        )

    return _make


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def classifier():
    mock = AsyncMock()
    mock.classify.return_value = "complex"
    return mock


@pytest.fixture
def responder():
    mock = AsyncMock()
    mock.generate.return_value = "Here is a helpful answer."
    return mock


@pytest.fixture
async def orchestrator(redis_client, classifier, responder, embedder):
    """Orchestrator wired with real in-memory stores and mocked model calls."""
    return TriageOrchestrator(
        detectors=InstantDetectorBank(sweep_probability=0.0),
        classifier=classifier,
        responder=responder,
        knowledge_base=KnowledgeBase(embedder=embedder),
        faq=FAQSystem(),
        rules=RulesBook(),
        cache=ResponseCache(redis_client=redis_client),
        cost_tracker=CostTracker(),
        events=EventBus(),
        classifier_timeout=0.2,
        responder_timeout=0.2,
    )
