"""Bot personas and the keyword policy that picks one for a message.

Persona selection is independent of triage: the pipeline only needs the
persona's voice for prompts, and callers use the key to style the reply.
"""

from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict

from api.models import PersonaKey


class Persona(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: PersonaKey
    name: str
    description: str
    tone: str
    greeting: str


PERSONAS: Dict[PersonaKey, Persona] = {
    PersonaKey.WELCOME: Persona(
        key=PersonaKey.WELCOME,
        name="Otter",
        description="a playful, helpful community guide",
        tone="warm, bubbly, enthusiastic",
        greeting="Hey there! Welcome! 🦦",
    ),
    PersonaKey.MODERATION: Persona(
        key=PersonaKey.MODERATION,
        name="Bear",
        description="a protective, gentle-giant moderation specialist",
        tone="firm but kind, protective, fair",
        greeting="Hey, I'm Bear. Let's keep this community safe and friendly. 🐻",
    ),
    PersonaKey.ANALYTICS: Persona(
        key=PersonaKey.ANALYTICS,
        name="Owl",
        description="a wise, data-driven analyst",
        tone="analytical, precise, thoughtful",
        greeting="Greetings. Owl here, monitoring and analyzing. 🦉",
    ),
    PersonaKey.RULES: Persona(
        key=PersonaKey.RULES,
        name="Bear",
        description="the community's rules specialist who explains and drafts server rules",
        tone="clear, fair, precise",
        greeting="Bear here. Let's talk about the rules. 🐻",
    ),
}

MODERATION_KEYWORDS: Tuple[str, ...] = ("ban", "report", "toxic", "harass", "spam", "raid")
ANALYTICS_KEYWORDS: Tuple[str, ...] = ("stats", "analytics", "data", "growth", "metrics")
WELCOME_KEYWORDS: Tuple[str, ...] = ("welcome", "hello", "hi ", "new here", "joining")


def select_persona(text: str) -> PersonaKey:
    """Pick a persona from message keywords. Moderation wins over analytics."""
    content = (text or "").lower()

    if any(keyword in content for keyword in MODERATION_KEYWORDS):
        return PersonaKey.MODERATION
    if any(keyword in content for keyword in ANALYTICS_KEYWORDS):
        return PersonaKey.ANALYTICS
    if any(keyword in content for keyword in WELCOME_KEYWORDS):
        return PersonaKey.WELCOME
    return PersonaKey.WELCOME


def get_persona(key: PersonaKey) -> Persona:
    return PERSONAS[PersonaKey(key)]
