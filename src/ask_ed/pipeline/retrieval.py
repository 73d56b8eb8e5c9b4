"""
Retrieval engine.

Runs the strategy cascade for one question, stopping at the first
strategy that returns anything:

1. semantic search on the processed query at a topic-adjusted threshold
2. the same search on up to N query variations
3. the processed query at the relaxed threshold
4. full-text keyword search on the raw query
5. substring search on the raw query, processed query and first variations

Embedding and vector search errors propagate unchanged. Keyword search
being unavailable is the one recoverable failure and falls through to
substring search.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ask_ed.cache.service import CacheService, generate_embedding_key, generate_search_key
from ask_ed.config import RETRIEVAL
from ask_ed.errors import KeywordSearchUnavailableError, StoreError
from ask_ed.metrics import STRATEGY_ATTEMPTS
from ask_ed.pipeline.documents import SearchMethod, SearchResult
from ask_ed.pipeline.query import (
    EnhancedQuery,
    is_annex_query,
    is_eyfs_query,
    is_safeguarding_query,
)
from ask_ed.utils.logging import audit_logger

if TYPE_CHECKING:
    from ask_ed.models.document_store import DocumentStore
    from ask_ed.models.embedding_client import AsyncEmbeddingClient

logger = logging.getLogger(__name__)


# Ordered (predicate, threshold attribute) rules for the initial threshold
THRESHOLD_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (is_eyfs_query, "EYFS_THRESHOLD"),
    (is_safeguarding_query, "EYFS_THRESHOLD"),
    (is_annex_query, "ANNEX_THRESHOLD"),
)


def initial_threshold(query: str) -> float:
    """Similarity floor for the first semantic attempt."""
    for predicate, attribute in THRESHOLD_RULES:
        if predicate(query):
            return getattr(RETRIEVAL, attribute)
    return RETRIEVAL.DEFAULT_THRESHOLD


@dataclass
class RetrievalOutcome:
    """Results of the cascade and the strategy that produced them."""

    results: list[SearchResult] = field(default_factory=list)
    method: SearchMethod = SearchMethod.NONE
    strategy: str = "none"
    threshold: float | None = None

    @property
    def found(self) -> bool:
        return bool(self.results)


class RetrievalEngine:
    """Strategy cascade over the embedding service and document store."""

    def __init__(
        self,
        embedder: AsyncEmbeddingClient,
        store: DocumentStore,
        cache: CacheService,
        match_count: int | None = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            embedder: Embedding service client.
            store: Document store.
            cache: Shared cache service.
            match_count: Passages requested per search. Defaults to config.
        """
        self.embedder = embedder
        self.store = store
        self.cache = cache
        self.match_count = match_count or RETRIEVAL.MATCH_COUNT

    async def embed(self, text: str) -> list[float]:
        """Embedding for text, through the embedding cache."""
        return await self.cache.cached_embedding(
            generate_embedding_key(text),
            lambda: self.embedder.embed(text),
        )

    async def search_documents(
        self,
        query: str,
        match_count: int | None = None,
        match_threshold: float | None = None,
    ) -> list[SearchResult]:
        """
        Semantic search for a query, memoized in the search cache.

        Args:
            query: Text to embed and search with.
            match_count: Maximum passages.
            match_threshold: Cosine similarity floor.

        Returns:
            Results ordered by descending similarity.
        """
        count = match_count or self.match_count
        threshold = RETRIEVAL.DEFAULT_THRESHOLD if match_threshold is None else match_threshold
        key = f"{generate_search_key(query)}_{count}_{threshold}"

        async def compute() -> list[SearchResult]:
            embedding = await self.embed(query)
            results = await self.store.nearest_neighbors(embedding, count, threshold)
            return sorted(results, key=lambda r: r.similarity, reverse=True)

        return await self.cache.cached_search(key, compute)

    def _record(
        self, strategy: str, results: list[SearchResult], threshold: float | None = None
    ) -> None:
        STRATEGY_ATTEMPTS.labels(
            strategy=strategy, outcome="hit" if results else "empty"
        ).inc()
        audit_logger.log_search_strategy(strategy, len(results), threshold)

    async def retrieve(self, enhanced: EnhancedQuery, raw_query: str) -> RetrievalOutcome:
        """
        Run the cascade for one question.

        Args:
            enhanced: Output of query enhancement.
            raw_query: Question as the user wrote it.

        Returns:
            RetrievalOutcome; method NONE when every strategy came back empty.
        """
        processed = enhanced.processed_query
        threshold = initial_threshold(processed)

        results = await self.search_documents(processed, self.match_count, threshold)
        self._record("semantic", results, threshold)
        if results:
            return RetrievalOutcome(results, SearchMethod.SEMANTIC, "semantic", threshold)

        retries = [v for v in enhanced.variations if v != processed]
        for variation in retries[: RETRIEVAL.MAX_VARIATION_RETRIES]:
            results = await self.search_documents(variation, self.match_count, threshold)
            self._record("variation", results, threshold)
            if results:
                return RetrievalOutcome(results, SearchMethod.SEMANTIC, "variation", threshold)

        relaxed = RETRIEVAL.RELAXED_THRESHOLD
        results = await self.search_documents(processed, self.match_count, relaxed)
        self._record("relaxed", results, relaxed)
        if results:
            return RetrievalOutcome(results, SearchMethod.SEMANTIC, "relaxed", relaxed)

        try:
            results = await self.store.keyword_search(raw_query, self.match_count)
        except KeywordSearchUnavailableError as e:
            logger.info(f"Keyword search unavailable, falling back to substring search: {e}")
            results = []
        except StoreError as e:
            logger.warning(f"Keyword search failed, falling back to substring search: {e}")
            results = []
        self._record("keyword", results)
        if results:
            return RetrievalOutcome(results, SearchMethod.KEYWORD, "keyword")

        results = await self._fuzzy_search(raw_query, enhanced)
        if results:
            return RetrievalOutcome(results, SearchMethod.FUZZY, "fuzzy")

        return RetrievalOutcome()

    async def _fuzzy_search(self, raw_query: str, enhanced: EnhancedQuery) -> list[SearchResult]:
        """Substring search over candidate terms; first non-empty wins."""
        terms = list(
            dict.fromkeys(
                [
                    raw_query,
                    enhanced.processed_query,
                    *enhanced.variations[: RETRIEVAL.FUZZY_VARIATION_TERMS],
                ]
            )
        )

        for term in terms:
            try:
                results = await self.store.substring_search(term, self.match_count)
            except StoreError as e:
                logger.warning(f"Substring search failed for term, trying next: {e}")
                continue
            self._record("fuzzy", results)
            if results:
                return results
        return []
