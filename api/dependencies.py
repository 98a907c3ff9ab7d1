"""Process-wide service container and FastAPI dependency providers.

Services are built once from settings without any I/O. `start_services`
performs the async wiring (Redis connection, Redis-backed listeners) and is
called from the application lifespan.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import structlog

from api.accounting import CostTracker
from api.analytics import AnalyticsTracker
from api.detectors import InstantDetectorBank
from api.faq import FAQSystem
from api.llm import OpenAIClassifier, OpenAIResponder
from api.observability.events import EventBus, log_moderation
from api.orchestrators.triage_orchestrator import TriageOrchestrator
from api.rules import RulesBook
from api.tools.embeddings import EmbeddingClient
from api.tools.knowledge_base import KnowledgeBase
from libs.caching import ResponseCache
from libs.common.settings import Settings, get_settings
from libs.firebase.client import get_firestore_async_client
from libs.memory import InteractionHistory

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    orchestrator: TriageOrchestrator
    detectors: InstantDetectorBank
    cache: Optional[ResponseCache]
    knowledge_base: KnowledgeBase
    faq: FAQSystem
    rules: RulesBook
    analytics: AnalyticsTracker
    events: EventBus
    cost_tracker: CostTracker
    history: Optional[InteractionHistory] = None


def _firestore_client():
    try:
        return get_firestore_async_client()
    except Exception as e:
        logger.warning("Firestore unavailable, tenant data kept in memory", error=str(e))
        return None


def build_services(settings: Settings) -> Services:
    firestore_client = _firestore_client()
    store_timeout = settings.store_timeout_seconds

    cost_tracker = CostTracker(
        cheap_call_cost=settings.cheap_call_cost,
        expensive_call_cost=settings.expensive_call_cost,
    )
    cache = (
        ResponseCache(ttl_seconds=settings.cache_ttl_seconds, operation_timeout=store_timeout)
        if settings.cache_enabled
        else None
    )
    detectors = InstantDetectorBank.from_settings(settings)
    knowledge_base = KnowledgeBase(
        embedder=EmbeddingClient(model=settings.embedding_model, timeout=settings.embedding_timeout_seconds),
        firestore_client=firestore_client,
        chunk_tokens=settings.rag_chunk_tokens,
        top_k=settings.rag_top_k,
        min_similarity=settings.rag_min_similarity,
        embedding_timeout=settings.embedding_timeout_seconds,
        store_timeout=store_timeout,
    )
    faq = FAQSystem(firestore_client=firestore_client, store_timeout=store_timeout)
    rules = RulesBook(firestore_client=firestore_client, store_timeout=store_timeout)
    analytics = AnalyticsTracker(firestore_client=firestore_client, store_timeout=store_timeout)

    events = EventBus()
    events.subscribe(analytics.handle_event)
    events.subscribe(log_moderation)

    orchestrator = TriageOrchestrator(
        detectors=detectors,
        classifier=OpenAIClassifier(model=settings.classifier_model, timeout=settings.classifier_timeout_seconds),
        responder=OpenAIResponder(model=settings.responder_model, timeout=settings.responder_timeout_seconds),
        knowledge_base=knowledge_base,
        faq=faq,
        rules=rules,
        cache=cache,
        cost_tracker=cost_tracker,
        events=events,
        classifier_timeout=settings.classifier_timeout_seconds,
        responder_timeout=settings.responder_timeout_seconds,
    )

    return Services(
        settings=settings,
        orchestrator=orchestrator,
        detectors=detectors,
        cache=cache,
        knowledge_base=knowledge_base,
        faq=faq,
        rules=rules,
        analytics=analytics,
        events=events,
        cost_tracker=cost_tracker,
    )


async def start_services(services: Services):
    """Connect Redis and subscribe the Redis-backed history listener."""
    if services.cache is None:
        return

    await services.cache.connect()
    if services.cache.available and services.history is None:
        services.history = InteractionHistory(
            services.cache.redis_client,
            max_entries=services.settings.history_max_entries,
            ttl_seconds=services.settings.history_ttl_seconds,
            operation_timeout=services.settings.store_timeout_seconds,
        )
        services.events.subscribe(services.history.handle_event)
        logger.info("Interaction history enabled")


@lru_cache
def get_services() -> Services:
    return build_services(get_settings())


def get_orchestrator() -> TriageOrchestrator:
    return get_services().orchestrator


def get_analytics() -> AnalyticsTracker:
    return get_services().analytics
