"""Tests for input sanitization."""

import pytest

from ask_ed.utils.sanitize import InputSanitizer, SanitizeStatus


@pytest.fixture
def sanitizer():
    return InputSanitizer()


class TestInputSanitizer:
    """Tests for InputSanitizer."""

    def test_valid_question_passes(self, sanitizer):
        result = sanitizer.sanitize("What are the EYFS ratios for 2 year olds?")
        assert result.passed
        assert result.status == SanitizeStatus.PASSED
        assert result.sanitized_input == "What are the EYFS ratios for 2 year olds?"

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_input(self, sanitizer, text):
        result = sanitizer.sanitize(text)
        assert result.blocked
        assert result.status == SanitizeStatus.EMPTY_INPUT

    def test_only_tags_is_empty(self, sanitizer):
        assert sanitizer.sanitize("<b></b>").status == SanitizeStatus.EMPTY_INPUT

    def test_too_long(self, sanitizer):
        result = sanitizer.sanitize("a b " * 600)
        assert result.status == SanitizeStatus.INPUT_TOO_LONG
        assert "1,000" in result.error_message

    def test_too_short(self):
        result = InputSanitizer(min_length=5).sanitize("dbs")
        assert result.status == SanitizeStatus.INPUT_TOO_SHORT

    def test_strips_html_and_collapses_whitespace(self, sanitizer):
        result = sanitizer.sanitize("  <p>Who is   the\n\nDSL?</p>  ")
        assert result.sanitized_input == "Who is the DSL?"

    def test_removes_invisible_and_control_characters(self, sanitizer):
        result = sanitizer.sanitize("ofsted\u200b inspection\x07 notice")
        assert result.sanitized_input == "ofsted inspection notice"

    def test_nfkc_normalization(self, sanitizer):
        result = sanitizer.sanitize("\uff25\uff39\uff26\uff33 ratios")
        assert result.sanitized_input == "EYFS ratios"

    @pytest.mark.parametrize(
        "text",
        [
            "WHATARETHERATIOSFORBABIES please",
            "help!!!!! ratios",
            "click here for ratios",
            "call 07123456789 now",
        ],
    )
    def test_spam_rejected(self, sanitizer, text):
        assert sanitizer.sanitize(text).status == SanitizeStatus.SPAM

    def test_repeated_characters(self, sanitizer):
        result = sanitizer.sanitize("ratiosssssssssssss")
        assert result.status == SanitizeStatus.REPEATED_CHARACTERS
