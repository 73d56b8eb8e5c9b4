"""
Query enhancement.

Normalizes a question before retrieval: acronym expansion, colloquial
term normalization, intent classification, lexical variations for retry
attempts and a response template for the downstream generator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class IntentType(Enum):
    """Kind of answer the question is asking for."""

    DEFINITION = "definition"
    PROCESS = "process"
    REQUIREMENT = "requirement"
    TIMING = "timing"
    RESPONSIBILITY = "responsibility"
    GENERAL = "general"


@dataclass(frozen=True)
class QueryIntent:
    """Classified intent with a heuristic confidence."""

    type: IntentType
    confidence: float


@dataclass
class EnhancedQuery:
    """Output of query enhancement."""

    processed_query: str
    intent: QueryIntent
    variations: list[str] = field(default_factory=list)
    response_template: str = ""


ACRONYM_EXPANSIONS: dict[str, str] = {
    "DSL": "Designated Safeguarding Lead",
    "DDSL": "Deputy Designated Safeguarding Lead",
    "SENCO": "Special Educational Needs Coordinator",
    "DBS": "Disclosure and Barring Service",
    "SCR": "Single Central Record",
    "LAC": "Looked After Children",
    "PLaC": "Previously Looked After Children",
    "FGM": "Female Genital Mutilation",
    "CSE": "Child Sexual Exploitation",
    "CCE": "Child Criminal Exploitation",
    "MASH": "Multi-Agency Safeguarding Hub",
    "LADO": "Local Authority Designated Officer",
    "NSPCC": "National Society for the Prevention of Cruelty to Children",
    "CEOP": "Child Exploitation and Online Protection",
    "CAMHS": "Child and Adolescent Mental Health Services",
}

TERM_NORMALIZATIONS: dict[str, str] = {
    "under-2s": "under 2 years",
    "under 2s": "under 2 years",
    "2-3s": "2-3 years",
    "3-4s": "3-4 years",
    "pre-school": "preschool",
    "childminder": "childminding",
    "nursery school": "nursery",
    "early years": "EYFS",
    "safeguarding lead": "Designated Safeguarding Lead",
}

# Lexical families: any member found in the query is swapped for each other member
VARIATION_FAMILIES: dict[str, tuple[str, ...]] = {
    "annex": ("annex", "appendix", "schedule"),
    "ratio": ("ratios", "ratio", "staff ratio", "adult ratio"),
    "training": ("training", "professional development", "CPD"),
    "record": ("records", "recording", "documentation"),
    "reporting": ("report", "reporting", "referral"),
}

# Ordered (pattern, intent) rules; first match wins
INTENT_RULES: tuple[tuple[re.Pattern[str], QueryIntent], ...] = (
    (
        re.compile(r"^what is|^what are|^define|^explain"),
        QueryIntent(IntentType.DEFINITION, 0.9),
    ),
    (
        re.compile(r"^how to|^how do|^what process|^what steps|^procedure"),
        QueryIntent(IntentType.PROCESS, 0.9),
    ),
    (
        re.compile(r"must|required|mandatory|need to|have to|obligation"),
        QueryIntent(IntentType.REQUIREMENT, 0.8),
    ),
    (
        re.compile(r"when|how often|frequency|deadline|within|days|weeks|months"),
        QueryIntent(IntentType.TIMING, 0.8),
    ),
    (
        re.compile(r"who|whose|responsibility|responsible|role|duty"),
        QueryIntent(IntentType.RESPONSIBILITY, 0.8),
    ),
)

GENERAL_INTENT = QueryIntent(IntentType.GENERAL, 0.5)

TEMPLATE_MIN_CONFIDENCE = 0.7

ANSWER_TEMPLATES: dict[IntentType, str] = {
    IntentType.DEFINITION: (
        "When explaining {topic}, provide:\n"
        "- Clear definition in simple terms\n"
        "- Why it matters for compliance\n"
        "- Key points to remember\n"
        "- Reference to source document"
    ),
    IntentType.PROCESS: (
        "When describing {topic}, outline:\n"
        "- Step-by-step procedure\n"
        "- Who is responsible for each step\n"
        "- Required timescales\n"
        "- Documentation needed\n"
        "- What happens if not followed"
    ),
    IntentType.REQUIREMENT: (
        "For {topic} questions, specify:\n"
        "- What must be done (mandatory vs recommended)\n"
        "- Legal basis or source document\n"
        "- Consequences of non-compliance\n"
        "- How to evidence compliance"
    ),
    IntentType.TIMING: (
        "For {topic} questions, provide:\n"
        "- Specific timeframes or deadlines\n"
        "- When the requirement applies\n"
        "- Frequency of review/renewal\n"
        "- Grace periods or exceptions"
    ),
    IntentType.RESPONSIBILITY: (
        "For {topic} questions, clarify:\n"
        "- Primary responsibility holder\n"
        "- Supporting roles\n"
        "- When responsibility can be delegated\n"
        "- Required qualifications/training"
    ),
}

_ACRONYM_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(rf"\b{re.escape(acronym)}\b", re.IGNORECASE), f"{acronym} {expansion}")
    for acronym, expansion in ACRONYM_EXPANSIONS.items()
)

# "safeguarding lead" is skipped when already part of an expansion
_TERM_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (
        re.compile(rf"(?<!designated )\b{re.escape(term)}\b", re.IGNORECASE),
        replacement,
    )
    for term, replacement in TERM_NORMALIZATIONS.items()
)

_FAMILY_PATTERNS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = tuple(
    (
        re.compile(
            r"\b(?:"
            + "|".join(re.escape(t) for t in sorted({key, *members}, key=len, reverse=True))
            + r")\b",
            re.IGNORECASE,
        ),
        members,
    )
    for key, members in VARIATION_FAMILIES.items()
)

_WHAT_IS = re.compile(r"what is\s+", re.IGNORECASE)
_EYFS_FLAVOUR = re.compile(r"\beyfs\b|\bearly years\b", re.IGNORECASE)
_SAFEGUARDING_FLAVOUR = re.compile(r"safeguarding", re.IGNORECASE)
_ANNEX_FLAVOUR = re.compile(r"\b(annex|appendix)\b", re.IGNORECASE)


def preprocess_query(query: str) -> str:
    """
    Lowercase, trim, expand acronyms and normalize colloquial terms.

    Acronyms are matched as whole words, so "DSL" is expanded but
    "DSLR" is left alone.
    """
    processed = query.lower().strip()

    for pattern, replacement in _ACRONYM_PATTERNS:
        processed = pattern.sub(replacement, processed)

    for pattern, replacement in _TERM_PATTERNS:
        processed = pattern.sub(replacement, processed)

    return processed


def detect_query_intent(query: str) -> QueryIntent:
    """Classify the question with the ordered intent rules."""
    lowered = query.lower()
    for pattern, intent in INTENT_RULES:
        if pattern.search(lowered):
            return intent
    return GENERAL_INTENT


def generate_search_variations(query: str) -> list[str]:
    """
    Alternate phrasings for retry attempts.

    The query itself comes first; duplicates are dropped.
    """
    variations = [query]
    for pattern, members in _FAMILY_PATTERNS:
        if not pattern.search(query):
            continue
        for member in members:
            variations.append(pattern.sub(member, query))
    return list(dict.fromkeys(variations))


def get_response_template(intent: QueryIntent, query: str) -> str:
    """Template for structuring the answer, or "" for low-confidence intents."""
    if intent.confidence < TEMPLATE_MIN_CONFIDENCE:
        return ""

    template = ANSWER_TEMPLATES.get(intent.type)
    if not template:
        return ""

    if "what is" in query.lower():
        topic = _WHAT_IS.sub("", query, count=1).strip()
    else:
        topic = "this topic"
    return template.format(topic=topic)


def enhance_query(query: str) -> EnhancedQuery:
    """
    Run the full enhancement pass.

    Args:
        query: Raw user question.

    Returns:
        EnhancedQuery with processed text, intent, variations and template.
    """
    processed = preprocess_query(query)
    intent = detect_query_intent(processed)
    return EnhancedQuery(
        processed_query=processed,
        intent=intent,
        variations=generate_search_variations(processed),
        response_template=get_response_template(intent, query),
    )


def is_eyfs_query(query: str) -> bool:
    return bool(_EYFS_FLAVOUR.search(query))


def is_safeguarding_query(query: str) -> bool:
    return bool(_SAFEGUARDING_FLAVOUR.search(query))


def is_annex_query(query: str) -> bool:
    return bool(_ANNEX_FLAVOUR.search(query))
