"""
Prompt templates for the Hearth triage collaborators.

Templates:
- classifier: cheap single-word message categorization
- general: persona-voiced answer for complex messages
- grounded: answer restricted to retrieved knowledge, with an explicit
  refusal token when the knowledge does not cover the question
- rules: rules-specialist answer with the tenant's current rules
- severity: structured toxicity assessment returning JSON
"""

from typing import Dict

from langchain_core.prompts import ChatPromptTemplate

INSUFFICIENT_CONTEXT = "INSUFFICIENT_CONTEXT"

# ==============================================================================
# CLASSIFICATION
# ==============================================================================

CLASSIFIER_SYSTEM = """Classify this chat community message into ONE category:
- greeting: "hi", "hello", "hey", "sup", "yo", "morning", "lol", "haha"
- junk: spam, random characters, nonsensical
- faq: questions about rules, roles, pricing, how-to, refunds
- rules_intent: requests to see, change, add or explain server rules
- toxic: insults, harassment, threats, slurs
- complex: everything else that needs a thoughtful answer

Respond with ONLY the category word (greeting/junk/faq/rules_intent/toxic/complex)."""

CLASSIFIER_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", CLASSIFIER_SYSTEM),
    ("user", 'Message: "{message}"'),
])

# ==============================================================================
# RESPONSE GENERATION
# ==============================================================================

PERSONA_SYSTEM = """You are {persona_name}, {persona_description}.
Tone: {persona_tone}

Server Context:
- Server: {server_name}
- User: {username}"""

GENERAL_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", PERSONA_SYSTEM + "\n\nRespond naturally in character. Be helpful but concise (max 2 sentences)."),
    ("user", "{message}"),
])

GROUNDED_SYSTEM = PERSONA_SYSTEM + """

Answer ONLY from the community knowledge below. Do not use outside knowledge.
If the knowledge does not contain the answer, reply with exactly {refusal} and nothing else.

Community knowledge:
{knowledge}"""

GROUNDED_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", GROUNDED_SYSTEM),
    ("user", "{message}"),
])

RULES_SYSTEM = PERSONA_SYSTEM + """

You handle everything about this server's rules: explaining them, pointing members to the
right rule, and drafting wording when someone proposes a change. Proposed changes still need
an admin's approval, so never claim a rule has been changed.

Current rules:
{rules}

Be clear and concise (max 4 sentences)."""

RULES_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", RULES_SYSTEM),
    ("user", "{message}"),
])

# ==============================================================================
# MODERATION
# ==============================================================================

SEVERITY_SYSTEM = """You assess how harmful a chat message is for a community moderation team.

Score severity from 1 (mildly rude) to 10 (threats, hate speech, doxxing).
Return JSON: {{"severity": 1-10, "reason": "short explanation", "action": "monitor|warn|delete|escalate"}}

JSON only. No explanations."""

SEVERITY_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", SEVERITY_SYSTEM),
    ("user", 'Message: "{message}"'),
])


def get_prompt_template(template_name: str) -> ChatPromptTemplate:
    """
    Look up a template by name.

    Raises:
        ValueError: If template_name is not found
    """
    templates: Dict[str, ChatPromptTemplate] = {
        "classifier": CLASSIFIER_TEMPLATE,
        "general": GENERAL_TEMPLATE,
        "grounded": GROUNDED_TEMPLATE,
        "rules": RULES_TEMPLATE,
        "severity": SEVERITY_TEMPLATE,
    }

    if template_name not in templates:
        available = list(templates.keys())
        raise ValueError(f"Unknown template: {template_name}. Available: {available}")

    return templates[template_name]
