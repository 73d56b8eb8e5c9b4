"""Unit tests for the knowledge base matcher."""

import pytest

from ask_ed.pipeline.knowledge_base import (
    KNOWLEDGE_BASE,
    KnowledgeCategory,
    find_strong_match,
    get_knowledge_base_by_category,
    is_priority_query,
    search_knowledge_base,
)


class TestSearchKnowledgeBase:
    """Tests for keyword and canonical matching."""

    def test_keyword_match(self):
        ids = [e.id for e in search_knowledge_base("my dbs is pending")]
        assert "dbs-pending" in ids

    def test_keyword_match_case_insensitive(self):
        ids = [e.id for e in search_knowledge_base("Unannounced visits")]
        assert "ofsted-inspection-notice" in ids

    def test_setting_filter_excludes_other_setting(self):
        """Nursery-only entries are not returned for clubs."""
        ids = [e.id for e in search_knowledge_base("paediatric first aid", setting="club")]
        assert "staff-paediatric-first-aid" not in ids

    def test_setting_filter_keeps_both(self):
        ids = [e.id for e in search_knowledge_base("dbs pending", setting="club")]
        assert "dbs-pending" in ids

    def test_no_setting_returns_all_settings(self):
        ids = [e.id for e in search_knowledge_base("paediatric first aid")]
        assert "staff-paediatric-first-aid" in ids

    def test_canonical_substring_match(self):
        """A prefix of the canonical question matches with no keyword hits."""
        ids = [e.id for e in search_knowledge_base("can someone work while")]
        assert "dbs-pending" in ids

    def test_no_match(self):
        assert search_knowledge_base("fire evacuation drills") == []


class TestFindStrongMatch:
    """Tests for the strength gate."""

    def test_single_keyword_is_not_strong(self):
        """One keyword hit falls through to retrieval."""
        assert search_knowledge_base("what is the dbs update service")
        assert find_strong_match("what is the dbs update service") is None

    def test_two_keywords_are_strong(self):
        entry = find_strong_match("can someone start work if their dbs is pending")
        assert entry is not None
        assert entry.id == "dbs-pending"

    def test_exact_canonical_query_is_strong(self):
        entry = find_strong_match("How much notice do you get for Ofsted inspection?")
        assert entry is not None
        assert entry.id == "ofsted-inspection-notice"

    def test_mixed_age_scenario(self):
        entry = find_strong_match("what ratios do I need for mixed age groups", "nursery")
        assert entry is not None
        assert entry.id == "ratio-mixed-ages"
        assert entry.keyword_hits("what ratios do i need for mixed age groups") >= 2

    def test_setting_respected(self):
        """Club-only entry is never a strong match for nurseries."""
        entry = find_strong_match("do holiday clubs need to follow EYFS", "nursery")
        assert entry is None or entry.id != "holiday-club-eyfs"


class TestIsPriorityQuery:
    @pytest.mark.parametrize(
        "query",
        [
            "what's new in KCSiE",
            "EYFS updates",
            "what changed in the framework",
            "latest ofsted guidance",
            "KCSiE 2025 ratios",
            "what are the ratios",
            "list of policies",
            "all the training requirements",
            "tell me about safer recruitment",
            "what is in annex b",
            "appendix 3 contents",
        ],
    )
    def test_priority_signals(self, query):
        assert is_priority_query(query) is True

    @pytest.mark.parametrize(
        "query",
        [
            "what ratios do I need for mixed age groups",
            "do my own children count in ratios",
            "renewal of first aid certificates",
        ],
    )
    def test_non_priority(self, query):
        assert is_priority_query(query) is False


class TestKnowledgeBaseContent:
    def test_entries_have_unique_ids(self):
        ids = [e.id for e in KNOWLEDGE_BASE]
        assert len(ids) == len(set(ids))

    def test_by_category(self):
        ratios = get_knowledge_base_by_category("ratios")
        assert {e.id for e in ratios} == {
            "ratio-mixed-ages",
            "student-placement-ratios",
            "own-children-ratios",
        }
        assert get_knowledge_base_by_category(KnowledgeCategory.GENERAL) == []

    def test_context_block_uses_source(self):
        entry = next(e for e in KNOWLEDGE_BASE if e.id == "ratio-mixed-ages")
        assert entry.context_block().startswith("[Knowledge Base - EYFS Framework]\n")
