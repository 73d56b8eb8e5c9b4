"""Unit tests for scope detection."""

import pytest

from ask_ed.pipeline.scope import (
    OFF_TOPIC_RESPONSE,
    get_off_topic_response,
    is_off_topic_short_circuit,
    is_topic_in_scope,
)


class TestIsTopicInScope:
    """Tests for the general scope classifier."""

    @pytest.mark.parametrize(
        "query",
        [
            "What are the KCSiE safeguarding requirements?",
            "EYFS ratios for under 2s",
            "ofsted inspection checklist",
            "Do I need a DBS check for volunteers",
            "paediatric first aid renewal",
        ],
    )
    def test_compliance_keywords_in_scope(self, query):
        """Questions with compliance vocabulary are in scope."""
        assert is_topic_in_scope(query) is True

    @pytest.mark.parametrize(
        "query",
        [
            "hello there",
            "How are you today?",
            "Who created you",
            "What's the weather like",
            "Best cricket team this year",
            "a good pasta recipe",
        ],
    )
    def test_off_topic_patterns_rejected(self, query):
        """Conversational and unrelated questions are out of scope."""
        assert is_topic_in_scope(query) is False

    def test_off_topic_checked_before_keywords(self):
        """An off-topic pattern wins even when a compliance keyword is present."""
        assert is_topic_in_scope("hello, what is the eyfs framework") is False

    def test_question_word_gives_benefit_of_doubt(self):
        """A longer question without keywords is accepted."""
        assert is_topic_in_scope("what should staff wear to work") is True

    def test_short_query_without_keywords_rejected(self):
        """Short non-questions are rejected."""
        assert is_topic_in_scope("blue") is False

    def test_question_word_needs_length(self):
        """Question word alone is not enough for very short input."""
        assert is_topic_in_scope("why so") is False

    def test_word_boundaries_for_unrelated_topics(self):
        """Topic words embedded in domain words do not trigger rejection."""
        assert is_topic_in_scope("what are the appendix rules for childcare") is True
        assert is_topic_in_scope("history of the welfare requirements") is True


class TestOffTopicShortCircuit:
    """Tests for the orchestrator-level short-circuit list."""

    @pytest.mark.parametrize(
        "query",
        ["hello", "Hi!", "good morning", "how are you?", "who are you", "what can you do"],
    )
    def test_conversational_openers_short_circuit(self, query):
        assert is_off_topic_short_circuit(query) is True

    def test_date_and_weather_short_circuit(self):
        assert is_off_topic_short_circuit("what's the weather") is True
        assert is_off_topic_short_circuit("what is today's date") is True

    @pytest.mark.parametrize(
        "query",
        [
            "what are the KCSiE safeguarding requirements",
            "hello, what are the ratios for 2 year olds",
            "football club safeguarding policy",
        ],
    )
    def test_compliance_questions_do_not_short_circuit(self, query):
        assert is_off_topic_short_circuit(query) is False

    def test_short_circuit_list_is_narrower(self):
        """Some out-of-scope queries still reach retrieval."""
        query = "best cricket bat for juniors"
        assert is_topic_in_scope(query) is False
        assert is_off_topic_short_circuit(query) is False


class TestOffTopicResponse:
    def test_response_mentions_domain(self):
        response = get_off_topic_response()
        assert response == OFF_TOPIC_RESPONSE
        assert "KCSiE" in response
        assert "EYFS" in response
