"""
Input sanitization for the HTTP boundary.

Deterministic cleaning and validation of user questions before they
reach the retrieval core, which assumes pre-validated input.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

from ask_ed.config import SECURITY

logger = logging.getLogger(__name__)


class SanitizeStatus(Enum):
    """Status codes for input sanitization."""

    PASSED = "passed"
    EMPTY_INPUT = "empty_input"
    INPUT_TOO_SHORT = "input_too_short"
    INPUT_TOO_LONG = "input_too_long"
    SPAM = "spam"
    REPEATED_CHARACTERS = "repeated_characters"


@dataclass
class SanitizeResult:
    """Result of input sanitization."""

    status: SanitizeStatus
    passed: bool
    sanitized_input: str | None = None
    error_message: str | None = None

    @property
    def blocked(self) -> bool:
        return not self.passed


class InputSanitizer:
    """
    Question sanitizer.

    Performs:
    - Unicode normalization (NFKC)
    - Invisible and control character removal
    - HTML tag stripping
    - Whitespace collapsing
    - Length bounds
    - Spam and repeated-character detection
    """

    INVISIBLE_CHARS = re.compile(
        r"[\u200b-\u200f\u2028-\u202f\u2060-\u206f\ufeff\u00ad]"
    )
    CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
    HTML_TAGS = re.compile(r"<[^>]+>")
    WHITESPACE = re.compile(r"\s+")
    REPEATED_CHARS = re.compile(r"(.)\1{10,}")

    SPAM_PATTERNS = [
        re.compile(r"[A-Z]{20,}"),
        re.compile(r"!{5,}"),
        re.compile(r"\b(buy now|click here|free money|viagra|casino|lottery|winner)\b", re.IGNORECASE),
        re.compile(r"(https?://\S+.*){3,}"),
        re.compile(r"\b\d{10,}\b"),
    ]

    def __init__(
        self,
        max_length: int | None = None,
        min_length: int | None = None,
    ) -> None:
        self.max_length = max_length or SECURITY.MAX_INPUT_LENGTH
        self.min_length = min_length or SECURITY.MIN_INPUT_LENGTH

    def sanitize(self, input_text: str) -> SanitizeResult:
        """
        Sanitize and validate a question.

        Args:
            input_text: Raw user input.

        Returns:
            SanitizeResult with the cleaned question or an error message.
        """
        if not input_text or not input_text.strip():
            return SanitizeResult(
                status=SanitizeStatus.EMPTY_INPUT,
                passed=False,
                error_message="Message cannot be empty.",
            )

        text = unicodedata.normalize("NFKC", input_text)
        text = self.INVISIBLE_CHARS.sub("", text)
        text = self.CONTROL_CHARS.sub("", text)
        text = self.HTML_TAGS.sub("", text)
        text = self.WHITESPACE.sub(" ", text).strip()

        if not text:
            return SanitizeResult(
                status=SanitizeStatus.EMPTY_INPUT,
                passed=False,
                error_message="Message cannot be empty.",
            )

        if len(text) > self.max_length:
            return SanitizeResult(
                status=SanitizeStatus.INPUT_TOO_LONG,
                passed=False,
                error_message=(
                    f"Message too long. Please keep questions under {self.max_length:,} characters."
                ),
            )

        if len(text) < self.min_length:
            return SanitizeResult(
                status=SanitizeStatus.INPUT_TOO_SHORT,
                passed=False,
                error_message="Message too short. Please provide more detail.",
            )

        for pattern in self.SPAM_PATTERNS:
            if pattern.search(text):
                logger.info(f"Spam-like input rejected: {pattern.pattern}")
                return SanitizeResult(
                    status=SanitizeStatus.SPAM,
                    passed=False,
                    error_message="Message appears to be spam. Please ask a genuine compliance question.",
                )

        if self.REPEATED_CHARS.search(text):
            return SanitizeResult(
                status=SanitizeStatus.REPEATED_CHARACTERS,
                passed=False,
                error_message="Message contains too many repeated characters.",
            )

        return SanitizeResult(
            status=SanitizeStatus.PASSED,
            passed=True,
            sanitized_input=text,
        )
