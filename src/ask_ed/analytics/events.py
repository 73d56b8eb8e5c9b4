"""
Search outcome event log using JSON-lines files.

One file per day under the data directory:
data/analytics/2025-01-15.jsonl

Write failures are logged and swallowed so analytics never break a
request.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ask_ed.config import ANALYTICS, PATHS
from ask_ed.pipeline.documents import SearchConfidence

logger = logging.getLogger(__name__)


class EventType(Enum):
    SEARCH_FAILED = "search_failed"
    QUESTION_ANSWERED = "question_answered"


@dataclass
class SearchEvent:
    """A single analytics event."""

    event_type: str
    timestamp: str
    session_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchEvent:
        return cls(
            event_type=data["event_type"],
            timestamp=data["timestamp"],
            session_id=data.get("session_id"),
            data=data.get("data", {}),
        )


class SearchEventLog:
    """Append-only daily event files."""

    def __init__(self, storage_dir: Path | None = None, enabled: bool | None = None) -> None:
        """
        Initialize event log.

        Args:
            storage_dir: Directory for event files. Defaults to data/analytics.
            enabled: Whether events are written. Defaults to config.
        """
        self.storage_dir = storage_dir or PATHS.DATA_DIR / "analytics"
        self.enabled = ANALYTICS.ENABLED if enabled is None else enabled

    def _get_filepath(self, timestamp: datetime) -> Path:
        return self.storage_dir / f"{timestamp.strftime('%Y-%m-%d')}.jsonl"

    def _append(self, event_type: EventType, session_id: str | None, data: dict[str, Any]) -> SearchEvent | None:
        if not self.enabled:
            return None

        now = datetime.now(UTC)
        event = SearchEvent(
            event_type=event_type.value,
            timestamp=now.isoformat(),
            session_id=session_id,
            data=data,
        )

        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            with open(self._get_filepath(now), "a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write analytics event: {e}")
            return None

        return event

    def record_search_failed(
        self,
        query: str,
        session_id: str | None = None,
        setting_type: str | None = None,
    ) -> SearchEvent | None:
        """Record a question that produced no context."""
        return self._append(
            EventType.SEARCH_FAILED,
            session_id,
            {"query": query, "setting_type": setting_type},
        )

    def record_question_answered(
        self,
        question: str,
        confidence: SearchConfidence,
        session_id: str | None = None,
        setting_type: str | None = None,
    ) -> SearchEvent | None:
        """Record a question answered with its retrieval confidence."""
        return self._append(
            EventType.QUESTION_ANSWERED,
            session_id,
            {
                "question": question,
                "setting_type": setting_type,
                "confidence_score": confidence.score,
                "search_method": confidence.method.value,
                "result_count": confidence.result_count,
                "best_similarity": confidence.best_similarity,
            },
        )

    def read_events(self, day: datetime | None = None) -> list[SearchEvent]:
        """
        Events recorded on a day.

        Args:
            day: Day to read. Defaults to today (UTC).

        Returns:
            Events in write order; unreadable lines are skipped.
        """
        filepath = self._get_filepath(day or datetime.now(UTC))
        if not filepath.exists():
            return []

        events = []
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                for line in f:
                    if not line.strip():
                        continue
                    try:
                        events.append(SearchEvent.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError) as e:
                        logger.warning(f"Skipping malformed analytics line in {filepath}: {e}")
        except OSError as e:
            logger.error(f"Failed to read analytics file {filepath}: {e}")
        return events

    def get_summary(self, day: datetime | None = None) -> dict[str, Any]:
        """Counts per event type and the failed queries for a day."""
        events = self.read_events(day)
        failed = [e for e in events if e.event_type == EventType.SEARCH_FAILED.value]
        answered = [e for e in events if e.event_type == EventType.QUESTION_ANSWERED.value]
        return {
            "search_failed": len(failed),
            "question_answered": len(answered),
            "failed_queries": [e.data.get("query", "") for e in failed],
        }
