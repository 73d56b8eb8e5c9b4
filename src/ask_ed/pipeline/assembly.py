"""
Context assembly.

Orders retrieved passages, applies source-priority re-ranking for EYFS
questions, formats citations and keeps the result within the context
budget.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ask_ed.config import RETRIEVAL, SECURITY
from ask_ed.pipeline.documents import SearchResult
from ask_ed.pipeline.query import is_eyfs_query

logger = logging.getLogger(__name__)

PASSAGE_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n[Truncated]"


@dataclass
class AssembledContext:
    """Formatted context and the passages it contains."""

    context: str
    results: list[SearchResult] = field(default_factory=list)
    truncated: bool = False

    @property
    def sources(self) -> list[str]:
        return list(dict.fromkeys(r.metadata.source for r in self.results))


def format_citation(result: SearchResult) -> str:
    """Render `[source, p.N, section]` followed by the passage text."""
    meta = result.metadata
    parts = [meta.source]
    if meta.page:
        parts.append(f"p.{meta.page}")
    if meta.section:
        parts.append(meta.section)
    return f"[{', '.join(parts)}]\n{result.content}"


class ContextAssembler:
    """Selects and formats passages for the generator."""

    def __init__(
        self,
        max_context_length: int | None = None,
        default_passages: int | None = None,
        updates_passages: int | None = None,
        other_passages_with_updates: int | None = None,
        updates_marker: str | None = None,
    ) -> None:
        self.max_context_length = max_context_length or SECURITY.MAX_CONTEXT_LENGTH
        self.default_passages = default_passages or RETRIEVAL.DEFAULT_PASSAGES
        self.updates_passages = updates_passages or RETRIEVAL.UPDATES_PASSAGES
        self.other_passages_with_updates = (
            other_passages_with_updates
            if other_passages_with_updates is not None
            else RETRIEVAL.OTHER_PASSAGES_WITH_UPDATES
        )
        self.updates_marker = updates_marker or RETRIEVAL.UPDATES_SOURCE_MARKER

    def _is_updates(self, result: SearchResult) -> bool:
        return self.updates_marker in result.metadata.source

    def select(self, results: Sequence[SearchResult], query: str) -> list[SearchResult]:
        """
        Choose and order passages.

        For EYFS questions with at least one passage from the updates
        source, updates come first (top N by similarity) followed by the
        best remaining passages. Otherwise the top passages by similarity.
        """
        ranked = sorted(results, key=lambda r: r.similarity, reverse=True)

        if is_eyfs_query(query) and any(self._is_updates(r) for r in ranked):
            updates = [r for r in ranked if self._is_updates(r)]
            others = [r for r in ranked if not self._is_updates(r)]
            logger.debug(
                f"Prioritising updates source: {len(updates)} updates, {len(others)} other"
            )
            return (
                updates[: self.updates_passages]
                + others[: self.other_passages_with_updates]
            )

        return ranked[: self.default_passages]

    def assemble(self, results: Sequence[SearchResult], query: str) -> AssembledContext:
        """
        Build the context block.

        Args:
            results: Retrieved passages, any order.
            query: Question used to decide re-ranking.

        Returns:
            AssembledContext. Passages past the length budget are dropped;
            the passage that crosses it is cut with a truncation marker.
        """
        parts: list[str] = []
        included: list[SearchResult] = []
        total_length = 0
        truncated = False

        for result in self.select(results, query):
            separator = len(PASSAGE_SEPARATOR) if parts else 0
            remaining = self.max_context_length - total_length - separator
            if remaining <= 0:
                truncated = True
                break

            block = format_citation(result)
            if len(block) > remaining:
                block = block[:remaining] + TRUNCATION_MARKER
                truncated = True

            total_length += separator

            parts.append(block)
            included.append(result)
            total_length += len(block)

        return AssembledContext(
            context=PASSAGE_SEPARATOR.join(parts),
            results=included,
            truncated=truncated,
        )


def assemble_context(results: Sequence[SearchResult], query: str) -> AssembledContext:
    """Assemble with the configured defaults."""
    return ContextAssembler().assemble(results, query)
