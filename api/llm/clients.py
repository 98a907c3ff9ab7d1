"""
Classifier and responder collaborators backed by OpenAI chat models.

Both clients only translate between the triage pipeline and LangChain. They
raise on failure; timeouts and fallbacks are the pipeline's job.
"""

from __future__ import annotations

from typing import List, Literal, Optional

import structlog
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from api.agents.personas import Persona
from api.composer.prompts import INSUFFICIENT_CONTEXT, get_prompt_template
from api.rules import format_rules

logger = structlog.get_logger(__name__)


class PromptContext(BaseModel):
    """Everything the responder needs to render one prompt."""

    template: Literal["general", "grounded", "rules", "severity"] = "general"
    persona: Optional[Persona] = None
    server_name: str = "this community"
    username: str = "a member"
    message: str
    knowledge: List[str] = Field(default_factory=list)
    rules: List[str] = Field(default_factory=list)

    def to_variables(self) -> dict:
        variables = {"message": self.message}
        if self.template == "severity":
            return variables

        persona = self.persona
        variables.update(
            persona_name=persona.name if persona else "Hearth",
            persona_description=persona.description if persona else "a helpful community assistant",
            persona_tone=persona.tone if persona else "friendly, concise",
            server_name=self.server_name,
            username=self.username,
        )
        if self.template == "grounded":
            variables["knowledge"] = "\n\n".join(self.knowledge)
            variables["refusal"] = INSUFFICIENT_CONTEXT
        elif self.template == "rules":
            variables["rules"] = format_rules(self.rules)
        return variables


def _content_text(response) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
    return str(content).strip()


class OpenAIClassifier:
    """Cheap single-word categorization of a message."""

    def __init__(self, model: str = "gpt-4o-mini", timeout: float = 5.0):
        self.model = model
        self.timeout = timeout
        self._llm: Optional[ChatOpenAI] = None

    def _get_llm(self) -> ChatOpenAI:
        if self._llm is None:
            self._llm = ChatOpenAI(model=self.model, temperature=0.0, max_tokens=10, timeout=self.timeout)
        return self._llm

    async def classify(self, text: str) -> str:
        """Return the raw category word produced by the model."""
        messages = get_prompt_template("classifier").format_messages(message=text)
        response = await self._get_llm().ainvoke(messages)
        return _content_text(response).lower()


class OpenAIResponder:
    """Capable model used for answers and severity assessment."""

    def __init__(self, model: str = "gpt-4o", timeout: float = 20.0, max_tokens: int = 500):
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._llm: Optional[ChatOpenAI] = None
        self._json_llm: Optional[ChatOpenAI] = None

    def _get_llm(self, json_mode: bool = False) -> ChatOpenAI:
        if json_mode:
            if self._json_llm is None:
                self._json_llm = ChatOpenAI(
                    model=self.model,
                    temperature=0.0,
                    max_tokens=200,
                    timeout=self.timeout,
                    model_kwargs={"response_format": {"type": "json_object"}},
                )
            return self._json_llm

        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=0.3,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        return self._llm

    async def generate(self, context: PromptContext) -> str:
        messages = get_prompt_template(context.template).format_messages(**context.to_variables())
        response = await self._get_llm(json_mode=context.template == "severity").ainvoke(messages)
        text = _content_text(response)

        logger.debug("Responder completed", template=context.template, response_length=len(text))
        return text
