"""Static per-tenant FAQ answers matched without any model call."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import structlog

from libs.firestore import faqs as faq_store
from libs.models.firestore import FirestoreFAQ

logger = structlog.get_logger(__name__)

DEFAULT_FAQS: List[FirestoreFAQ] = [
    FirestoreFAQ(
        question="rules",
        variations=["rules", "what are the rules", "server rules", "guidelines"],
        answer=(
            "Please check the rules channel for our community guidelines! The main ones are: "
            "be respectful, no spam, and have fun! 😊"
        ),
        is_default=True,
    ),
    FirestoreFAQ(
        question="roles",
        variations=["how do i get roles", "roles", "color roles", "assign roles"],
        answer="You can get roles by reacting in the roles channel or using the /role command!",
        is_default=True,
    ),
    FirestoreFAQ(
        question="help",
        variations=["help", "support", "i need help", "assistance"],
        answer=(
            "I'm here to help! What do you need assistance with? "
            "You can also ping a moderator if it's urgent."
        ),
        is_default=True,
    ),
    FirestoreFAQ(
        question="pricing",
        variations=["how much", "price", "cost", "is it free", "subscription"],
        answer=(
            "Our Pro tier is $49/mo and Business is $99/mo. Both include unlimited AI responses! "
            "Check our website for details."
        ),
        is_default=True,
    ),
    FirestoreFAQ(
        question="bot",
        variations=["what is this bot", "who are you", "what do you do", "bot help"],
        answer=(
            "I'm Hearth, your community assistant! I can answer questions, help with moderation, "
            "and keep track of community stats."
        ),
        is_default=True,
    ),
]


def _defaults() -> List[FirestoreFAQ]:
    return [faq.model_copy(deep=True) for faq in DEFAULT_FAQS]


def match_faq(text: str, faqs: List[FirestoreFAQ]) -> Optional[FirestoreFAQ]:
    """First FAQ whose question or any variation is a substring of the text."""
    lowered = (text or "").lower()
    for faq in faqs:
        if faq.question and faq.question in lowered:
            return faq
        for variation in faq.variations:
            if variation and variation in lowered:
                return faq
    return None


class FAQSystem:
    """
    Tenant FAQ sets backed by Firestore, with an in-memory copy per tenant.

    Without a Firestore client every tenant starts from the default set.
    Store failures fall back to the defaults.
    """

    def __init__(self, firestore_client=None, store_timeout: float = 5.0):
        self.firestore_client = firestore_client
        self.store_timeout = store_timeout
        self._cache: Dict[str, List[FirestoreFAQ]] = {}

    async def initialize_tenant(self, tenant_id: str):
        """Seed the default FAQ set for a tenant that has none."""
        if self.firestore_client is None:
            self._cache.setdefault(tenant_id, _defaults())
            return

        try:
            if await asyncio.wait_for(faq_store.has_faqs(self.firestore_client, tenant_id), self.store_timeout):
                logger.info("Tenant already has FAQs", tenant_id=tenant_id)
                return

            for faq in _defaults():
                await asyncio.wait_for(faq_store.add_faq(self.firestore_client, tenant_id, faq), self.store_timeout)

            self._cache.pop(tenant_id, None)
            logger.info("Default FAQs initialized", tenant_id=tenant_id)

        except Exception as e:
            logger.error("FAQ initialization error", tenant_id=tenant_id, error=str(e))
            self._cache[tenant_id] = _defaults()

    async def list_faqs(self, tenant_id: str) -> List[FirestoreFAQ]:
        cached = self._cache.get(tenant_id)
        if cached is not None:
            return cached

        if self.firestore_client is None:
            return self._cache.setdefault(tenant_id, _defaults())

        try:
            faqs = await asyncio.wait_for(
                faq_store.load_faqs(self.firestore_client, tenant_id),
                timeout=self.store_timeout,
            )
        except Exception as e:
            logger.error("Load FAQs error", tenant_id=tenant_id, error=str(e))
            return _defaults()

        if not faqs:
            faqs = _defaults()
        self._cache[tenant_id] = faqs
        return faqs

    async def find_answer(self, tenant_id: str, text: str) -> Optional[str]:
        """Return the canned answer for the first matching FAQ, or None."""
        faq = match_faq(text, await self.list_faqs(tenant_id))
        if faq is None:
            return None

        logger.debug("FAQ matched", tenant_id=tenant_id, question=faq.question)
        return faq.answer

    async def add_faq(self, tenant_id: str, question: str, variations: List[str], answer: str) -> FirestoreFAQ:
        """Add a custom FAQ entry. Triggers are stored lowercased."""
        faq = FirestoreFAQ(
            question=question.strip().lower(),
            variations=[v.strip().lower() for v in variations if v.strip()],
            answer=answer,
            is_default=False,
        )

        if self.firestore_client is None:
            faqs = await self.list_faqs(tenant_id)
            faqs.append(faq)
            return faq

        await asyncio.wait_for(faq_store.add_faq(self.firestore_client, tenant_id, faq), self.store_timeout)
        self._cache.pop(tenant_id, None)
        logger.info("FAQ added", tenant_id=tenant_id, question=faq.question)
        return faq
