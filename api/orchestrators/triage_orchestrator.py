"""Triage orchestrator using LangGraph for the Hearth community bot.

This module routes every inbound message through a graph of stages ordered by
cost: free instant detectors, the tenant response cache, a cheap classifier,
and only then the category branch that may retrieve knowledge or call the
expensive responder.

Each node degrades locally when its collaborator fails or times out. Anything
that still escapes the graph ends the run in FailedSafe with an apology and
zero cost; no exception ever reaches the caller.
"""

from __future__ import annotations

import asyncio
import json
import random
import re
import time
from typing import Any, Dict, List, Optional

import structlog
from langgraph.graph import END, StateGraph
from pydantic import ValidationError

from api.accounting import CostReport, CostTracker
from api.agents.personas import get_persona, select_persona
from api.composer.prompts import INSUFFICIENT_CONTEXT
from api.errors import SeverityParseError
from api.llm.clients import PromptContext
from api.models import (
    Category,
    Message,
    ModerationAction,
    PersonaKey,
    ResponseSource,
    SeverityAssessment,
    TerminalState,
    TriageOutcome,
)
from api.observability.events import EventBus, TriageEvent
from api.schemas.triage_state import TriageState
from libs.common.text import preview

logger = structlog.get_logger(__name__)

GREETINGS = (
    "Hey there! 👋 How can I help?",
    "Hello! Welcome to the community! 🎉",
    "Hi! What's up?",
    "Hey! Good to see you! 😊",
)
FALLBACK_RESPONSE = "🤖 I'm having trouble right now. Please try again in a moment!"
APOLOGY_RESPONSE = "🤖 Sorry, something went wrong on my side. Please try again!"
FIRM_TOXIC_NOTICE = (
    "🐻 That message crossed the line and has been removed. "
    "Please review the server rules before posting again."
)
SOFT_TOXIC_NOTICE = "🐻 Let's keep it friendly. That message was removed, please be respectful to everyone here."

DEFAULT_SEVERITY = SeverityAssessment(severity=5, reason="unparseable assessment", action="escalate")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_severity(raw: Optional[str]) -> SeverityAssessment:
    """
    Parse the severity call's JSON output.

    Raises:
        SeverityParseError: If no valid assessment can be extracted
    """
    if not raw:
        raise SeverityParseError("empty severity response")

    match = _JSON_OBJECT.search(raw)
    if match is None:
        raise SeverityParseError("no JSON object in severity response")

    try:
        return SeverityAssessment.model_validate(json.loads(match.group(0)))
    except (ValueError, ValidationError) as e:
        raise SeverityParseError(str(e)) from e


def is_insufficient(answer: Optional[str]) -> bool:
    return not answer or not answer.strip() or INSUFFICIENT_CONTEXT in answer


class TriageOrchestrator:
    """Cost-ordered triage of chat messages."""

    def __init__(
        self,
        detectors,
        classifier,
        responder,
        knowledge_base,
        faq,
        rules,
        cache=None,
        cost_tracker: Optional[CostTracker] = None,
        events: Optional[EventBus] = None,
        classifier_timeout: float = 5.0,
        responder_timeout: float = 20.0,
        rng: Optional[random.Random] = None,
    ):
        self.detectors = detectors
        self.classifier = classifier
        self.responder = responder
        self.knowledge_base = knowledge_base
        self.faq = faq
        self.rules = rules
        self.cache = cache
        self.cost_tracker = cost_tracker or CostTracker()
        self.events = events or EventBus()
        self.classifier_timeout = classifier_timeout
        self.responder_timeout = responder_timeout
        self._rng = rng or random.Random()
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        graph = StateGraph(TriageState)

        graph.add_node("00_instant_check", self._instant_check_node)
        graph.add_node("01_cache_lookup", self._cache_lookup_node)
        graph.add_node("02_classify", self._classify_node)
        graph.add_node("03_greeting", self._greeting_node)
        graph.add_node("03_junk", self._junk_node)
        graph.add_node("03_faq", self._faq_node)
        graph.add_node("03_rules", self._rules_node)
        graph.add_node("03_toxic", self._toxic_node)
        graph.add_node("03_generate", self._generate_node)
        graph.add_node("04_cache_write", self._cache_write_node)

        graph.set_entry_point("00_instant_check")

        graph.add_conditional_edges(
            "00_instant_check",
            self._after_terminal_check,
            {"done": END, "continue": "01_cache_lookup"},
        )
        graph.add_conditional_edges(
            "01_cache_lookup",
            self._after_terminal_check,
            {"done": END, "continue": "02_classify"},
        )
        graph.add_conditional_edges(
            "02_classify",
            self._decide_branch,
            {
                Category.GREETING.value: "03_greeting",
                Category.JUNK.value: "03_junk",
                Category.FAQ.value: "03_faq",
                Category.RULES_INTENT.value: "03_rules",
                Category.TOXIC.value: "03_toxic",
                Category.COMPLEX.value: "03_generate",
            },
        )
        graph.add_conditional_edges(
            "03_faq",
            self._after_terminal_check,
            {"done": "04_cache_write", "continue": "03_generate"},
        )

        graph.add_edge("03_greeting", "04_cache_write")
        graph.add_edge("03_rules", "04_cache_write")
        graph.add_edge("03_generate", "04_cache_write")
        graph.add_edge("03_junk", END)
        graph.add_edge("03_toxic", END)
        graph.add_edge("04_cache_write", END)

        compiled_graph = graph.compile()
        logger.info("Triage graph compiled successfully")
        return compiled_graph

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _after_terminal_check(self, state: TriageState) -> str:
        return "done" if state.terminal_state is not None else "continue"

    def _decide_branch(self, state: TriageState) -> str:
        return (state.category or Category.COMPLEX).value

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    async def _classify(self, text: str) -> Category:
        """Cheap classification; any failure or unknown output becomes COMPLEX."""
        try:
            raw = await asyncio.wait_for(self.classifier.classify(text), timeout=self.classifier_timeout)
        except Exception as e:
            logger.warning(
                "Classifier failed, defaulting to complex",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return Category.COMPLEX

        return Category.coerce(raw)

    async def _respond(self, context: PromptContext) -> Optional[str]:
        """Expensive responder call. Returns None on failure or timeout."""
        try:
            text = await asyncio.wait_for(self.responder.generate(context), timeout=self.responder_timeout)
        except Exception as e:
            logger.error(
                "Responder failed",
                template=context.template,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return None

        return text.strip() if text and text.strip() else None

    def _prompt_context(self, state: TriageState, template: str, persona: PersonaKey, **extra) -> PromptContext:
        message = state.message
        return PromptContext(
            template=template,
            persona=get_persona(persona),
            server_name=message.server_name or "this community",
            username=message.username or "a member",
            message=message.text,
            **extra,
        )

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _instant_check_node(self, state: TriageState) -> Dict[str, Any]:
        """00_instant_check: free pattern and rate detectors."""
        detection = self.detectors.check(state.message)
        if detection is None:
            return {}

        return {
            "detection": detection,
            "terminal_state": TerminalState.MODERATED,
            "response": detection.notice,
            "source": ResponseSource.INSTANT,
            "classification": detection.classification,
            "moderation_action": detection.action,
            "persona": PersonaKey.MODERATION,
        }

    async def _cache_lookup_node(self, state: TriageState) -> Dict[str, Any]:
        """01_cache_lookup: tenant-scoped exact-match cache."""
        if self.cache is None:
            return {}

        try:
            cached = await self.cache.get(state.message.server_id, state.message.text)
        except Exception as e:
            logger.warning("Cache lookup failed, treating as miss", error=str(e))
            cached = None

        if cached is None:
            self.cost_tracker.record_cache_miss()
            return {}

        self.cost_tracker.record_cache_hit()
        return {
            "terminal_state": TerminalState.ANSWERED,
            "response": cached,
            "source": ResponseSource.CACHE,
        }

    async def _classify_node(self, state: TriageState) -> Dict[str, Any]:
        """02_classify: cheap model call, always counted."""
        start_time = time.time()
        category = await self._classify(state.message.text)
        cost = self.cost_tracker.record_cheap_call()

        logger.info(
            "02_classify completed",
            trace_id=state.trace_id,
            category=category.value,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return {
            "category": category,
            "classification": category,
            "cost_units": state.cost_units + cost,
        }

    async def _greeting_node(self, state: TriageState) -> Dict[str, Any]:
        """03_greeting: canned reply, no paid call."""
        return {
            "terminal_state": TerminalState.ANSWERED,
            "response": self._rng.choice(GREETINGS),
            "source": ResponseSource.HARDCODED,
        }

    async def _junk_node(self, state: TriageState) -> Dict[str, Any]:
        """03_junk: stay silent."""
        return {
            "terminal_state": TerminalState.SILENT,
            "response": None,
            "source": ResponseSource.FILTERED,
            "persona": None,
        }

    async def _faq_node(self, state: TriageState) -> Dict[str, Any]:
        """03_faq: static FAQ, then knowledge search with a grounded answer."""
        tenant_id = state.message.server_id

        try:
            answer = await self.faq.find_answer(tenant_id, state.message.text)
        except Exception as e:
            logger.warning("FAQ lookup failed", tenant_id=tenant_id, error=str(e))
            answer = None

        if answer:
            return {
                "terminal_state": TerminalState.ANSWERED,
                "response": answer,
                "source": ResponseSource.FAQ_DB,
            }

        try:
            knowledge = await self.knowledge_base.search(tenant_id, state.message.text)
        except Exception as e:
            logger.warning("Knowledge search failed", tenant_id=tenant_id, error=str(e))
            knowledge = []

        if not knowledge:
            return {}

        cost = self.cost_tracker.record_expensive_call()
        grounded = await self._respond(
            self._prompt_context(state, "grounded", state.persona or PersonaKey.WELCOME, knowledge=knowledge)
        )
        update: Dict[str, Any] = {"knowledge": knowledge, "cost_units": state.cost_units + cost}

        if is_insufficient(grounded):
            logger.info("Grounded answer unsupported, falling through to generation", tenant_id=tenant_id)
            return update

        update.update(
            terminal_state=TerminalState.ANSWERED,
            response=grounded,
            source=ResponseSource.KNOWLEDGE_BASE,
        )
        return update

    async def _rules_node(self, state: TriageState) -> Dict[str, Any]:
        """03_rules: rules-specialist answer."""
        try:
            rules = await self.rules.get_rules(state.message.server_id)
        except Exception as e:
            logger.warning("Rules lookup failed", tenant_id=state.message.server_id, error=str(e))
            rules = []

        cost = self.cost_tracker.record_expensive_call()
        response = await self._respond(self._prompt_context(state, "rules", PersonaKey.RULES, rules=rules))

        return {
            "terminal_state": TerminalState.ANSWERED,
            "response": response or FALLBACK_RESPONSE,
            "source": ResponseSource.RULES_SPECIALIST if response else ResponseSource.FALLBACK,
            "persona": PersonaKey.RULES,
            "cost_units": state.cost_units + cost,
        }

    async def _toxic_node(self, state: TriageState) -> Dict[str, Any]:
        """03_toxic: severity assessment decides between monitoring and removal."""
        cost = self.cost_tracker.record_expensive_call()
        raw = await self._respond(PromptContext(template="severity", message=state.message.text))

        try:
            severity = parse_severity(raw)
        except SeverityParseError as e:
            logger.warning("Severity assessment unparseable, escalating", error=str(e))
            severity = DEFAULT_SEVERITY

        update: Dict[str, Any] = {
            "severity": severity,
            "source": ResponseSource.MODERATION,
            "persona": PersonaKey.MODERATION,
            "cost_units": state.cost_units + cost,
        }

        if severity.severity <= 3:
            update.update(terminal_state=TerminalState.SILENT, response=None)
        else:
            update.update(
                terminal_state=TerminalState.MODERATED,
                response=FIRM_TOXIC_NOTICE if severity.severity >= 7 else SOFT_TOXIC_NOTICE,
                moderation_action=ModerationAction.DELETE,
            )

        logger.info(
            "03_toxic assessed",
            trace_id=state.trace_id,
            tenant_id=state.message.server_id,
            severity=severity.severity,
            action=severity.action,
            reason=severity.reason[:100],
        )
        return update

    async def _generate_node(self, state: TriageState) -> Dict[str, Any]:
        """03_generate: full generation with the persona context."""
        cost = self.cost_tracker.record_expensive_call()
        response = await self._respond(
            self._prompt_context(state, "general", state.persona or PersonaKey.WELCOME)
        )

        return {
            "terminal_state": TerminalState.ANSWERED,
            "response": response or FALLBACK_RESPONSE,
            "source": ResponseSource.GENERATIVE if response else ResponseSource.FALLBACK,
            "cost_units": state.cost_units + cost,
        }

    async def _cache_write_node(self, state: TriageState) -> Dict[str, Any]:
        """04_cache_write: store answered responses; fallbacks are never cached."""
        if (
            self.cache is not None
            and state.terminal_state == TerminalState.ANSWERED
            and state.source not in (ResponseSource.CACHE, ResponseSource.FALLBACK)
            and state.response
        ):
            try:
                await self.cache.put(state.message.server_id, state.message.text, state.response)
            except Exception as e:
                logger.warning("Cache write failed", error=str(e))
        return {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_message(self, message: Message) -> TriageOutcome:
        """Run one message through triage. Never raises (except on cancellation)."""
        start_time = time.monotonic()
        state = TriageState(message=message, persona=select_persona(message.text))

        try:
            result = await self.graph.ainvoke(state)
            if isinstance(result, dict):
                result = state.model_copy(update=result)

            outcome = TriageOutcome(
                state=result.terminal_state,
                response=result.response,
                source=result.source,
                classification=result.classification,
                moderation_action=result.moderation_action,
                cost_units=result.cost_units,
                latency_ms=int((time.monotonic() - start_time) * 1000),
                persona=result.persona,
            )

        except Exception as e:
            logger.error(
                "Triage pipeline failed",
                trace_id=state.trace_id,
                tenant_id=message.server_id,
                user_id=message.user_id,
                error=str(e),
                exc_info=True,
            )
            outcome = TriageOutcome(
                state=TerminalState.FAILED_SAFE,
                response=APOLOGY_RESPONSE,
                source=ResponseSource.FALLBACK,
                cost_units=0.0,
                latency_ms=int((time.monotonic() - start_time) * 1000),
            )

        self.cost_tracker.record_message(outcome.state, outcome.latency_ms)

        logger.info(
            "Message triaged",
            trace_id=state.trace_id,
            tenant_id=message.server_id,
            user_id=message.user_id,
            message_preview=preview(message.text, 30),
            state=outcome.state.value,
            source=outcome.source.value,
            cost_units=outcome.cost_units,
            latency_ms=outcome.latency_ms,
        )

        try:
            self.events.publish(TriageEvent(message=message, outcome=outcome))
        except Exception as e:
            logger.error("Failed to publish triage event", error=str(e))

        return outcome

    def report(self) -> CostReport:
        return self.cost_tracker.report()

    async def ingest_knowledge(self, tenant_id: str, document_text: str, document_name: str = "unknown") -> int:
        chunk_count = await self.knowledge_base.ingest(tenant_id, document_text, document_name)
        if chunk_count:
            await self._invalidate(tenant_id)
        return chunk_count

    async def clear_knowledge(self, tenant_id: str) -> int:
        removed = await self.knowledge_base.clear(tenant_id)
        await self._invalidate(tenant_id)
        return removed

    async def add_faq(self, tenant_id: str, question: str, variations: List[str], answer: str):
        faq = await self.faq.add_faq(tenant_id, question, variations, answer)
        await self._invalidate(tenant_id)
        return faq

    async def set_rules(self, tenant_id: str, rules: List[str]) -> List[str]:
        stored = await self.rules.set_rules(tenant_id, rules)
        await self._invalidate(tenant_id)
        return stored

    async def _invalidate(self, tenant_id: str):
        if self.cache is not None:
            await self.cache.invalidate_tenant(tenant_id)
