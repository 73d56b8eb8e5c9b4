"""
Structured logging utilities.

Provides JSON logging with request ID propagation, anonymized IP logging
and an audit logger for retrieval pipeline events.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from ask_ed.config import SERVER

# Context variable for request ID propagation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def hash_ip(ip: str) -> str:
    """
    Hash an IP address for anonymized logging.

    Args:
        ip: Raw IP address.

    Returns:
        SHA256 hash of the IP address (first 16 chars).
    """
    return hashlib.sha256(ip.encode()).hexdigest()[:16]


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(
    level: str | None = None,
    json_format: bool = True,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        json_format: Whether to use JSON formatting.
    """
    log_level = getattr(logging, (level or SERVER.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        )

    root_logger.addHandler(console_handler)

    # Set third-party loggers to WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class AuditLogger:
    """
    Specialized logger for retrieval pipeline events.

    Each event is emitted as a structured record so retrieval quality
    can be analysed from logs alone.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger("ask_ed.audit")

    def _emit(self, message: str, event: str, level: int = logging.INFO, **fields: Any) -> None:
        data: dict[str, Any] = {"event": event}
        request_id = request_id_var.get()
        if request_id:
            data["request_id"] = request_id
        data.update(fields)
        self._logger.log(level, message, extra={"extra_data": data})

    def log_scope_rejected(self, query_preview: str) -> None:
        """
        Log an off-topic short-circuit.

        Args:
            query_preview: First N chars of the query.
        """
        self._emit(
            "Query short-circuited as off-topic",
            "scope_rejected",
            query_preview=query_preview[:50],
        )

    def log_cache_hit(self, cache_name: str, key: str) -> None:
        """Log a cache hit for an assembled context or search."""
        self._emit("Cache hit", "cache_hit", cache=cache_name, key=key[:80])

    def log_knowledge_base_match(self, entry_id: str, keyword_hits: int, exact: bool) -> None:
        """
        Log a strong knowledge base match that short-circuits retrieval.

        Args:
            entry_id: Matched entry ID.
            keyword_hits: Number of entry keywords found in the query.
            exact: Whether the query equals the canonical question.
        """
        self._emit(
            "Knowledge base match",
            "knowledge_base_match",
            entry_id=entry_id,
            keyword_hits=keyword_hits,
            exact=exact,
        )

    def log_search_strategy(
        self,
        strategy: str,
        result_count: int,
        threshold: float | None = None,
    ) -> None:
        """
        Log one attempt of the retrieval cascade.

        Args:
            strategy: Strategy name (semantic, variation, relaxed, keyword, fuzzy).
            result_count: Results returned by this attempt.
            threshold: Similarity threshold used, for semantic strategies.
        """
        self._emit(
            "Search strategy attempted",
            "search_strategy",
            level=logging.DEBUG,
            strategy=strategy,
            result_count=result_count,
            threshold=threshold,
        )

    def log_context_assembled(
        self,
        method: str,
        score: float,
        result_count: int,
        sources: list[str],
        context_length: int,
    ) -> None:
        """
        Log the outcome of context assembly.

        Args:
            method: Retrieval method that produced the results.
            score: Confidence score.
            result_count: Number of candidate passages.
            sources: Sources included in the context.
            context_length: Total context character count.
        """
        self._emit(
            "Context assembled",
            "context_assembled",
            method=method,
            score=score,
            result_count=result_count,
            sources=sources,
            context_length=context_length,
        )

    def log_rate_limit(self, ip_hash: str, limit_type: str, current_count: int) -> None:
        """Log a rate limit event."""
        self._emit(
            "Rate limit triggered",
            "rate_limit",
            ip_hash=ip_hash,
            limit_type=limit_type,
            current_count=current_count,
        )

    def log_request_complete(
        self,
        ip_hash: str,
        method: str | None,
        response_time_ms: float,
        error_code: str | None = None,
    ) -> None:
        """
        Log completion of a request.

        Args:
            ip_hash: Anonymized IP hash.
            method: Retrieval method or None on error.
            response_time_ms: Total response time.
            error_code: Error code if the request failed.
        """
        self._emit(
            "Request completed",
            "request_complete",
            ip_hash=ip_hash,
            method=method,
            response_time_ms=round(response_time_ms, 2),
            error_code=error_code,
        )


# Module-level audit logger instance
audit_logger = AuditLogger()
