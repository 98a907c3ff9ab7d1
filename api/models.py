"""Pydantic models for the Hearth triage service.

This module defines the message/outcome types that flow through the triage
pipeline and the request and response models used by the API endpoints.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    """Closed set of classifier categories."""

    GREETING = "greeting"
    JUNK = "junk"
    FAQ = "faq"
    RULES_INTENT = "rules_intent"
    TOXIC = "toxic"
    COMPLEX = "complex"

    @classmethod
    def coerce(cls, raw: Optional[str]) -> "Category":
        """Map raw classifier output onto a category; anything unknown is COMPLEX."""
        if not isinstance(raw, str):
            return cls.COMPLEX
        token = re.sub(r"[^a-z_]", "", raw.strip().lower().replace("-", "_").replace(" ", "_"))
        try:
            return cls(token)
        except ValueError:
            return cls.COMPLEX


class DetectionKind(str, Enum):
    """Classifications produced by the instant detectors."""

    PII = "pii"
    PHISHING = "phishing"
    ZALGO = "zalgo"
    SPAM = "spam"
    RAID = "raid"


class ModerationAction(str, Enum):
    NONE = "none"
    DELETE = "delete"
    TIMEOUT = "timeout"


class TerminalState(str, Enum):
    ANSWERED = "answered"
    SILENT = "silent"
    MODERATED = "moderated"
    FAILED_SAFE = "failed_safe"


class ResponseSource(str, Enum):
    """Where the outcome's response came from."""

    INSTANT = "instant"
    CACHE = "cache"
    HARDCODED = "hardcoded"
    FILTERED = "filtered"
    FAQ_DB = "faq_db"
    KNOWLEDGE_BASE = "knowledge_base"
    RULES_SPECIALIST = "rules_specialist"
    MODERATION = "moderation"
    GENERATIVE = "generative"
    FALLBACK = "fallback"


class PersonaKey(str, Enum):
    WELCOME = "welcome"
    MODERATION = "moderation"
    ANALYTICS = "analytics"
    RULES = "rules"


Classification = Union[Category, DetectionKind]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """An inbound chat message. Immutable; never persisted by the pipeline."""

    model_config = ConfigDict(frozen=True)

    server_id: str = Field(..., min_length=1, description="Tenant (server) identifier")
    user_id: str = Field(..., min_length=1, description="Sender identifier")
    username: str = Field("", description="Sender display name")
    channel_id: str = Field("", description="Channel the message was posted in")
    text: str = Field(..., max_length=4000, description="Message content")
    received_at: datetime = Field(default_factory=_utcnow, description="Arrival time")
    server_name: Optional[str] = Field(None, description="Tenant display name for prompts")

    @property
    def received_ts(self) -> float:
        """Arrival time as a POSIX timestamp (naive datetimes are taken as UTC)."""
        received = self.received_at
        if received.tzinfo is None:
            received = received.replace(tzinfo=timezone.utc)
        return received.timestamp()


class DetectionResult(BaseModel):
    """Positive result of an instant detector."""

    model_config = ConfigDict(frozen=True)

    classification: DetectionKind
    action: ModerationAction
    notice: str = Field(description="Canned user-facing message")


class TriageOutcome(BaseModel):
    """Result of one pipeline run. Produced once and never mutated."""

    model_config = ConfigDict(frozen=True)

    state: TerminalState
    response: Optional[str] = None
    source: ResponseSource
    classification: Optional[Classification] = None
    moderation_action: ModerationAction = ModerationAction.NONE
    cost_units: float = Field(0.0, ge=0.0)
    latency_ms: int = Field(0, ge=0)
    persona: Optional[PersonaKey] = None


class SeverityAssessment(BaseModel):
    """Structured output of the toxicity severity call."""

    severity: int = Field(ge=1, le=10)
    reason: str = ""
    action: str = "escalate"


# Request/response models for the HTTP surface


class IngestRequest(BaseModel):
    document_text: str = Field(..., min_length=1, max_length=500_000)
    document_name: str = Field("unknown", max_length=256)


class IngestResponse(BaseModel):
    success: bool
    chunk_count: int


class KnowledgeStatsResponse(BaseModel):
    total_chunks: int
    documents: int
    document_names: List[str]


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int = Field(3, ge=1, le=20)


class SearchResponse(BaseModel):
    results: List[str]


class FAQRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=200)
    variations: List[str] = Field(default_factory=list)
    answer: str = Field(..., min_length=1, max_length=2000)


class FAQResponse(BaseModel):
    question: str
    variations: List[str]
    answer: str
    is_default: bool = False


class RulesRequest(BaseModel):
    rules_text: str = Field(..., min_length=1, max_length=10_000)

    @field_validator("rules_text")
    @classmethod
    def text_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rules text must not be empty")
        return v


class RulesResponse(BaseModel):
    rules: List[str]


class CostReportResponse(BaseModel):
    cheap_calls: int
    expensive_calls: int
    cache_hits: int
    cache_misses: int
    total_cost: float
    messages_processed: int
    outcomes: dict[str, int]
    cache_hit_rate: float
    average_cost_per_message: float
    average_latency_ms: float


class AnalyticsSummaryResponse(BaseModel):
    heatmap: List[int]
    sentiment: dict[str, int]
    unanswered_count: int
    unanswered: List[dict]
    top_contributors: List[dict]


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: Literal["healthy", "unhealthy", "ready", "not_ready"] = Field(description="Health status")
    service: str = Field(description="Service name")
    version: str = Field(description="Service version")
    timestamp: float = Field(default_factory=time.time, description="Unix timestamp")
    details: dict[str, str] | None = Field(default=None, description="Optional additional details")
