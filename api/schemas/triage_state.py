"""Triage state schema for the Hearth pipeline.

This module defines the state object that flows through the LangGraph triage
graph. Each node returns a partial update; the final state is converted into
a TriageOutcome by the orchestrator.
"""

from __future__ import annotations

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.models import (
    Category,
    Classification,
    DetectionResult,
    Message,
    ModerationAction,
    PersonaKey,
    ResponseSource,
    SeverityAssessment,
    TerminalState,
)


class TriageState(BaseModel):
    """State of one message moving through the triage graph."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state_version: Literal["v1"] = Field(default="v1", description="State schema version")
    trace_id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Unique trace identifier")

    # Input
    message: Message = Field(description="Inbound message")
    persona: Optional[PersonaKey] = Field(default=None, description="Persona picked from message keywords")

    # Stage results
    detection: Optional[DetectionResult] = Field(default=None, description="Instant detector hit")
    category: Optional[Category] = Field(default=None, description="Coerced classifier category")
    knowledge: List[str] = Field(default_factory=list, description="Retrieved knowledge chunks")
    severity: Optional[SeverityAssessment] = Field(default=None, description="Toxicity assessment")

    # Outcome under construction
    terminal_state: Optional[TerminalState] = Field(default=None, description="Terminal state once reached")
    response: Optional[str] = Field(default=None, description="Text to send back, if any")
    source: Optional[ResponseSource] = Field(default=None, description="Where the response came from")
    classification: Optional[Classification] = Field(default=None, description="Detector kind or category")
    moderation_action: ModerationAction = Field(default=ModerationAction.NONE)
    cost_units: float = Field(default=0.0, ge=0.0, description="Cost incurred by this message")
