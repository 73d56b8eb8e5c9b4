"""
Curated question/answer pairs for known edge cases.

Checked before retrieval for non-priority questions. A match only
replaces retrieval when it is strong: two or more keyword hits, or the
question equal to the entry's canonical phrasing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

STRONG_MATCH_MIN_HITS = 2


class KnowledgeCategory(Enum):
    RATIOS = "ratios"
    SAFEGUARDING = "safeguarding"
    EYFS = "eyfs"
    OFSTED = "ofsted"
    QUALIFICATIONS = "qualifications"
    GENERAL = "general"


class SettingType(Enum):
    NURSERY = "nursery"
    CLUB = "club"
    BOTH = "both"


@dataclass(frozen=True)
class KnowledgeBaseEntry:
    """A curated answer with the keywords that select it."""

    id: str
    query: str
    category: KnowledgeCategory
    setting: SettingType
    answer: str
    keywords: tuple[str, ...]
    source: str | None = None

    def applies_to(self, setting: str | None) -> bool:
        return not setting or self.setting is SettingType.BOTH or self.setting.value == setting

    def keyword_hits(self, normalized_query: str) -> int:
        return sum(1 for keyword in self.keywords if keyword.lower() in normalized_query)

    def is_exact(self, normalized_query: str) -> bool:
        return _canonical(normalized_query) == _canonical(self.query)

    def context_block(self) -> str:
        return f"[Knowledge Base - {self.source or 'Expert Guidance'}]\n{self.answer}"


KNOWLEDGE_BASE: tuple[KnowledgeBaseEntry, ...] = (
    KnowledgeBaseEntry(
        id="ratio-mixed-ages",
        query="what ratios do I need for mixed age groups",
        category=KnowledgeCategory.RATIOS,
        setting=SettingType.BOTH,
        answer=(
            "For mixed age groups, use the ratio required for the youngest child present. "
            "If you have children aged 2-4 together, you need the 2-year-old ratio (1:4). "
            "This ensures adequate supervision for the most vulnerable children."
        ),
        keywords=("mixed age", "different ages", "age groups", "ratios", "youngest child"),
        source="EYFS Framework",
    ),
    KnowledgeBaseEntry(
        id="disclosure-forget-details",
        query="what if I forget what a child said in a disclosure",
        category=KnowledgeCategory.SAFEGUARDING,
        setting=SettingType.BOTH,
        answer=(
            "If you forget details of a disclosure, write down what you can remember "
            "immediately and note that some details may be incomplete. Speak to your "
            "Designated Safeguarding Lead (DSL) right away - they can help guide you through "
            "the process and may suggest speaking with the child again if appropriate. The key "
            "is to act quickly rather than waiting to remember everything perfectly."
        ),
        keywords=("forget", "disclosure", "remember", "details", "safeguarding", "child protection"),
        source="KCSiE 2025",
    ),
    KnowledgeBaseEntry(
        id="holiday-club-eyfs",
        query="do holiday clubs need to follow EYFS",
        category=KnowledgeCategory.EYFS,
        setting=SettingType.CLUB,
        answer=(
            "Holiday clubs caring for children under 5 must follow the EYFS statutory "
            "framework. For children aged 5 and over during school holidays, EYFS doesn't "
            "apply, but you still need to meet Ofsted registration requirements for childcare "
            "and ensure activities are age-appropriate and safe."
        ),
        keywords=("holiday club", "EYFS", "under 5", "school holidays", "statutory"),
        source="EYFS Framework",
    ),
    KnowledgeBaseEntry(
        id="staff-paediatric-first-aid",
        query="how many staff need paediatric first aid",
        category=KnowledgeCategory.QUALIFICATIONS,
        setting=SettingType.NURSERY,
        answer=(
            "At least one person with a current paediatric first aid certificate must be on "
            "the premises at all times when children are present. For outings, at least one "
            "person with paediatric first aid must accompany the children. The certificate must "
            "be renewed every 3 years."
        ),
        keywords=("first aid", "paediatric", "qualified", "premises", "outings", "3 years"),
        source="EYFS Framework",
    ),
    KnowledgeBaseEntry(
        id="ofsted-inspection-notice",
        query="how much notice do you get for ofsted inspection",
        category=KnowledgeCategory.OFSTED,
        setting=SettingType.BOTH,
        answer=(
            "Ofsted inspections are usually unannounced, meaning you get no advance notice. "
            "Inspectors will arrive and show their identification. For some types of inspection "
            "(like initial registrations), you may receive notice, but routine inspections "
            "happen without warning to see your normal operations."
        ),
        keywords=("notice", "unannounced", "inspection", "advance", "warning", "identification"),
        source="Early Years Inspection Handbook",
    ),
    KnowledgeBaseEntry(
        id="student-placement-ratios",
        query="do students on placement count towards ratios",
        category=KnowledgeCategory.RATIOS,
        setting=SettingType.NURSERY,
        answer=(
            "Students on placement cannot be counted in your ratios unless they are over 17 "
            "and are competent and responsible. They must be supervised at all times and their "
            "presence should enhance rather than maintain minimum staffing levels. Students "
            "under 17 cannot be left alone with children."
        ),
        keywords=("students", "placement", "ratios", "over 17", "supervised", "competent"),
        source="EYFS Framework",
    ),
    KnowledgeBaseEntry(
        id="dbs-pending",
        query="can someone work while DBS is pending",
        category=KnowledgeCategory.SAFEGUARDING,
        setting=SettingType.BOTH,
        answer=(
            "A person can start work before their DBS certificate is received, but only if you "
            "have completed risk assessment procedures and they are appropriately supervised. "
            "They must not be left alone with children and a barred list check must be "
            "completed first. This should only be done when necessary and for the shortest "
            "time possible."
        ),
        keywords=("DBS", "pending", "start work", "risk assessment", "supervised", "barred list"),
        source="KCSiE 2025",
    ),
    KnowledgeBaseEntry(
        id="own-children-ratios",
        query="do my own children count in ratios",
        category=KnowledgeCategory.RATIOS,
        setting=SettingType.NURSERY,
        answer=(
            "Your own children attending the nursery must be counted in the ratios like any "
            "other child. However, if a staff member brings their baby who isn't in childcare "
            "(e.g., breastfeeding), this may be different - check with your local authority "
            "for specific guidance."
        ),
        keywords=("own children", "staff children", "ratios", "count", "breastfeeding", "local authority"),
        source="EYFS Framework",
    ),
)

PRIORITY_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bnew\b",
        r"\bupdate",
        r"\bchange",
        r"\blatest\b",
        r"\b(19|20)\d{2}\b",
        r"\bwhat are\b",
        r"\blist of\b",
        r"\ball the\b",
        r"\btell me about\b",
        r"\b(annex|appendix)\b",
    )
)

_TRAILING_PUNCTUATION = " ?!."


def _canonical(text: str) -> str:
    return " ".join(text.lower().split()).rstrip(_TRAILING_PUNCTUATION)


def search_knowledge_base(query: str, setting: str | None = None) -> list[KnowledgeBaseEntry]:
    """
    Entries relevant to a question.

    Args:
        query: User question.
        setting: "nursery" or "club"; entries for "both" always apply.

    Returns:
        Entries with at least one keyword in the question, or whose
        canonical question contains or is contained in it.
    """
    normalized = query.lower()
    canonical = _canonical(query)

    matches = []
    for entry in KNOWLEDGE_BASE:
        if not entry.applies_to(setting):
            continue
        entry_query = _canonical(entry.query)
        if (
            entry.keyword_hits(normalized) > 0
            or (canonical and (canonical in entry_query or entry_query in canonical))
        ):
            matches.append(entry)
    return matches


def find_strong_match(query: str, setting: str | None = None) -> KnowledgeBaseEntry | None:
    """First relevant entry with enough keyword hits or an exact canonical match."""
    normalized = query.lower()
    for entry in search_knowledge_base(query, setting):
        if entry.keyword_hits(normalized) >= STRONG_MATCH_MIN_HITS or entry.is_exact(normalized):
            return entry
    return None


def is_priority_query(query: str) -> bool:
    """Recency or breadth questions that need full document retrieval."""
    return any(pattern.search(query) for pattern in PRIORITY_PATTERNS)


def get_knowledge_base_by_category(category: KnowledgeCategory | str) -> list[KnowledgeBaseEntry]:
    category = KnowledgeCategory(category)
    return [entry for entry in KNOWLEDGE_BASE if entry.category is category]
