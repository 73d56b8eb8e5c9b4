"""
Scope detection for compliance questions.

Two rule sets live here. `is_topic_in_scope` is the general, lenient
classifier. `is_off_topic_short_circuit` is the narrower list the
orchestrator uses to skip retrieval entirely.
"""

from __future__ import annotations

import re
from collections.abc import Callable

COMPLIANCE_KEYWORDS: tuple[str, ...] = (
    # Core compliance topics
    "kcsie", "eyfs", "ofsted", "safeguarding", "dsl", "designated safeguarding lead",
    "ratios", "staff ratio", "supervision", "qualifications", "dbs", "disclosure",
    "inspection", "compliance", "policy", "procedure", "framework", "statutory",
    # Childcare specific
    "nursery", "childcare", "early years", "preschool", "pre-school", "childminder",
    "holiday club", "after school", "out of school", "wrap around care",
    "children", "child protection", "welfare", "development", "learning goals",
    # Safety and health
    "first aid", "paediatric", "risk assessment", "health and safety", "accident",
    "incident", "fire safety", "emergency", "evacuation", "food safety", "allergy",
    # Staff and training
    "training", "cpd", "professional development", "recruitment", "suitability",
    "appraisal", "induction", "probation",
    # Documentation
    "record keeping", "documentation", "registers", "forms", "evidence",
    "assessment", "observation", "tracking", "progress",
    # Specific terms
    "annex", "schedule", "appendix", "regulation", "requirement", "guidance",
    "best practice", "standards", "quality", "improvement",
)

QUESTION_WORDS: tuple[str, ...] = (
    "what", "how", "when", "where", "why", "who", "can", "should", "must", "do", "does",
)

OFF_TOPIC_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # General conversation
        r"^(hi|hello|hey|good morning|good afternoon)\b",
        r"what('s| is) (the|today's) (date|day|time)",
        r"how are you",
        r"who (are you|created you|made you)",
        r"what can you do",
        # Personal questions
        r"tell me about yourself",
        r"what('s| is) your (name|age)",
        r"where (are you|do you live)",
        # General knowledge
        r"what('s| is) the weather",
        r"who is the (prime minister|president)",
        r"what year is it",
        r"how old is",
        # Technology
        r"how do i (use|install|download)",
        r"\b(computer|software|app|phone|internet)\b",
        # Unrelated topics
        r"\b(recipe|cooking|food|restaurant)\b",
        r"\b(sport|football|cricket|rugby)\b",
        r"\b(movie|film|tv|television)\b",
        r"\b(music|song|artist)\b",
        r"\b(car|driving|transport)\b",
        r"\b(holiday|vacation|travel)\b",
    )
)

# Orchestrator-level short-circuit: conversational openers only
SHORT_CIRCUIT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^(hi|hello|hey|good morning|good afternoon|good evening)[\s!.,?]*$",
        r"\bhow are you\b",
        r"\bwho (are you|created you|made you)\b",
        r"\bwhat can you do\b",
        r"\btell me about yourself\b",
        r"\bwhat('s| is) the weather\b",
        r"\bwhat('s| is) (the|today's) (date|day|time)\b",
        r"\bwhat year is it\b",
    )
)

OFF_TOPIC_RESPONSE = (
    "I'm Ask Ed, a specialist AI assistant for UK nursery and club compliance. "
    "I can help with questions about KCSiE, EYFS, Ofsted inspections, safeguarding, "
    "staff ratios, and other compliance topics. Please ask me about nursery or club "
    "compliance matters, and I'll be happy to help!"
)


def _matches_off_topic(query: str) -> bool:
    return any(pattern.search(query) for pattern in OFF_TOPIC_PATTERNS)


def _has_compliance_keyword(query: str) -> bool:
    return any(keyword in query for keyword in COMPLIANCE_KEYWORDS)


def _is_plausible_question(query: str) -> bool:
    if len(query) <= 10:
        return False
    return any(
        query.startswith(f"{word} ") or f" {word} " in query for word in QUESTION_WORDS
    )


# Ordered (predicate, in_scope) rules; first match wins
SCOPE_RULES: tuple[tuple[Callable[[str], bool], bool], ...] = (
    (_matches_off_topic, False),
    (_has_compliance_keyword, True),
    (_is_plausible_question, True),
)


def is_topic_in_scope(query: str) -> bool:
    """
    Decide whether a question belongs to the compliance domain.

    Off-topic patterns are checked before anything else. A compliance
    keyword admits the query; failing that, a question longer than ten
    characters is given the benefit of the doubt.
    """
    normalized = query.lower()
    for predicate, in_scope in SCOPE_RULES:
        if predicate(normalized):
            return in_scope
    return False


def is_off_topic_short_circuit(query: str) -> bool:
    """True when the orchestrator should answer with the off-topic message."""
    normalized = query.lower().strip()
    return any(pattern.search(normalized) for pattern in SHORT_CIRCUIT_PATTERNS)


def get_off_topic_response() -> str:
    """Fixed reply for questions outside the compliance domain."""
    return OFF_TOPIC_RESPONSE
