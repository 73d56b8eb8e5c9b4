"""
Retrieval data model.

Chunks are produced by the offline ingestion pipeline and are read-only
here. Search results wrap a chunk with a similarity score.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SearchMethod(Enum):
    """Retrieval strategy that produced a result set."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass(frozen=True)
class ChunkMetadata:
    """Location of a chunk within its source document."""

    source: str
    page: int | None = None
    section: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class DocumentChunk:
    """A bounded slice of a source document."""

    content: str
    metadata: ChunkMetadata

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> DocumentChunk:
        """
        Build a chunk from a document store row.

        Column values take precedence over the same keys inside the
        row's JSON `metadata` column.
        """
        raw_meta = row.get("metadata")
        if not isinstance(raw_meta, dict):
            raw_meta = {}
        source = row.get("source_document") or raw_meta.get("source") or "Unknown"
        page = row.get("page_number") or raw_meta.get("page")
        section = row.get("section") or raw_meta.get("section")

        return cls(
            content=(row.get("content") or "").strip(),
            metadata=ChunkMetadata(
                source=source,
                page=_page_number(page),
                section=section or None,
                extra={
                    k: v for k, v in raw_meta.items() if k not in ("source", "page", "section")
                },
            ),
        )


def _page_number(value: Any) -> int | None:
    """Page values that do not parse as an integer are dropped."""
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SearchResult:
    """A chunk with its similarity to the query."""

    chunk: DocumentChunk
    similarity: float

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def metadata(self) -> ChunkMetadata:
        return self.chunk.metadata


@dataclass(frozen=True)
class SearchConfidence:
    """
    Heuristic trust in a retrieval outcome.

    method is NONE exactly when result_count and score are both zero.
    """

    score: float
    method: SearchMethod
    result_count: int
    best_similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "method": self.method.value,
            "result_count": self.result_count,
            "best_similarity": self.best_similarity,
        }


EMPTY_CONFIDENCE = SearchConfidence(
    score=0.0,
    method=SearchMethod.NONE,
    result_count=0,
    best_similarity=0.0,
)


@dataclass(frozen=True)
class ContextResult:
    """Assembled context handed to the downstream generator."""

    context: str
    confidence: SearchConfidence
    response_template: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "response_template": self.response_template,
            "confidence": self.confidence.to_dict(),
        }
