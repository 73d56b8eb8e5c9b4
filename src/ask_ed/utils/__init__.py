"""Utility modules."""

from ask_ed.utils.logging import get_logger, setup_logging
from ask_ed.utils.rate_limit import InMemoryRateLimiter, RateLimitResult
from ask_ed.utils.sanitize import InputSanitizer, SanitizeResult

__all__ = [
    "get_logger",
    "setup_logging",
    "InMemoryRateLimiter",
    "RateLimitResult",
    "InputSanitizer",
    "SanitizeResult",
]
