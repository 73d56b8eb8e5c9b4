"""
Context orchestrator.

Turns a question into a ranked, source-attributed context block:

    context cache -> off-topic short-circuit -> knowledge base (non-priority)
    -> query enhancement -> retrieval cascade -> confidence -> assembly
    -> context cache write

Input is assumed to be validated and rate limited by the caller.
External-service errors propagate; finding nothing is a normal outcome
with method NONE and an empty context.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ask_ed.cache.service import CacheService, generate_context_key
from ask_ed.config import CACHE
from ask_ed.errors import AskEdError
from ask_ed.metrics import CONTEXT_REQUESTS, PIPELINE_DURATION
from ask_ed.pipeline.assembly import ContextAssembler
from ask_ed.pipeline.confidence import calculate_confidence
from ask_ed.pipeline.documents import ContextResult, SearchConfidence, SearchMethod
from ask_ed.pipeline.knowledge_base import KnowledgeBaseEntry, find_strong_match, is_priority_query
from ask_ed.pipeline.query import enhance_query
from ask_ed.pipeline.retrieval import RetrievalEngine
from ask_ed.pipeline.scope import get_off_topic_response, is_off_topic_short_circuit
from ask_ed.utils.logging import audit_logger

if TYPE_CHECKING:
    from ask_ed.models.document_store import DocumentStore
    from ask_ed.models.embedding_client import AsyncEmbeddingClient

logger = logging.getLogger(__name__)

OFF_TOPIC_MARKER = "[Off-topic Response]"

# Off-topic and knowledge base answers are the answer itself
CERTAIN_CONFIDENCE = SearchConfidence(
    score=1.0,
    method=SearchMethod.SEMANTIC,
    result_count=1,
    best_similarity=1.0,
)
KNOWLEDGE_BASE_CONFIDENCE = SearchConfidence(
    score=0.9,
    method=SearchMethod.SEMANTIC,
    result_count=1,
    best_similarity=1.0,
)

COMMON_QUERIES: tuple[str, ...] = (
    "what are the staff ratios for nurseries",
    "kcsie safeguarding requirements",
    "eyfs learning goals",
    "ofsted inspection preparation",
    "what qualifications do staff need",
    "how to report safeguarding concerns",
)


def context_ttl_ms(confidence: SearchConfidence) -> int:
    """Cache lifetime for an assembled context, by how much it can be trusted."""
    if confidence.method is SearchMethod.NONE:
        return CACHE.EMPTY_RESULT_TTL_MS
    if confidence.score > CACHE.HIGH_CONFIDENCE_CUTOFF:
        return CACHE.HIGH_CONFIDENCE_TTL_MS
    return CACHE.LOW_CONFIDENCE_TTL_MS


class ContextOrchestrator:
    """
    Entry point of the retrieval core.

    Clients and the cache service are constructed once by the host and
    injected here.
    """

    def __init__(
        self,
        embedder: AsyncEmbeddingClient,
        store: DocumentStore,
        cache: CacheService,
        assembler: ContextAssembler | None = None,
        retrieval: RetrievalEngine | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            embedder: Embedding service client.
            store: Document store.
            cache: Shared cache service.
            assembler: Context assembler. Defaults to configured limits.
            retrieval: Retrieval engine. Built from embedder and store if omitted.
        """
        self.cache = cache
        self.assembler = assembler or ContextAssembler()
        self.retrieval = retrieval or RetrievalEngine(embedder, store, cache)

    async def get_relevant_context(
        self,
        query: str,
        setting_type: str | None = None,
    ) -> ContextResult:
        """
        Build the context for a question.

        Args:
            query: Validated user question.
            setting_type: "nursery" or "club", used for knowledge base filtering
                and cache keys.

        Returns:
            ContextResult. An empty context means nothing relevant was found.

        Raises:
            EmbeddingError: Embedding service failure.
            StoreError: Document store failure other than keyword search
                being unavailable.
        """
        with PIPELINE_DURATION.time():
            result, label = await self._build(query, setting_type)
        CONTEXT_REQUESTS.labels(method=label).inc()
        return result

    async def _build(self, query: str, setting_type: str | None) -> tuple[ContextResult, str]:
        key = generate_context_key(query, setting_type)

        cached = self.cache.search.get(key)
        if cached is not None:
            audit_logger.log_cache_hit("context", key)
            return cached, "cached"

        if is_off_topic_short_circuit(query):
            result = ContextResult(
                context=f"{OFF_TOPIC_MARKER}\n{get_off_topic_response()}",
                confidence=CERTAIN_CONFIDENCE,
            )
            self.cache.search.set(key, result, CACHE.OFF_TOPIC_TTL_MS)
            audit_logger.log_scope_rejected(query)
            return result, "off_topic"

        if not is_priority_query(query):
            entry = find_strong_match(query, setting_type)
            if entry is not None:
                result = self._knowledge_base_result(entry, query)
                self.cache.search.set(key, result, CACHE.HIGH_CONFIDENCE_TTL_MS)
                return result, "knowledge_base"

        enhanced = enhance_query(query)
        outcome = await self.retrieval.retrieve(enhanced, query)
        confidence = calculate_confidence(outcome.results, outcome.method)
        template = enhanced.response_template or None

        if not outcome.found:
            logger.info(f"No passages found for query: {query[:50]}")
            result = ContextResult(context="", confidence=confidence, response_template=template)
            self.cache.search.set(key, result, context_ttl_ms(confidence))
            return result, SearchMethod.NONE.value

        assembled = self.assembler.assemble(outcome.results, query)
        result = ContextResult(
            context=assembled.context,
            confidence=confidence,
            response_template=template,
        )
        self.cache.search.set(key, result, context_ttl_ms(confidence))

        audit_logger.log_context_assembled(
            method=outcome.strategy,
            score=confidence.score,
            result_count=confidence.result_count,
            sources=assembled.sources,
            context_length=len(assembled.context),
        )
        return result, confidence.method.value

    @staticmethod
    def _knowledge_base_result(entry: KnowledgeBaseEntry, query: str) -> ContextResult:
        normalized = query.lower()
        audit_logger.log_knowledge_base_match(
            entry.id,
            keyword_hits=entry.keyword_hits(normalized),
            exact=entry.is_exact(normalized),
        )
        return ContextResult(
            context=entry.context_block(),
            confidence=KNOWLEDGE_BASE_CONFIDENCE,
        )

    async def warm(self, queries: Iterable[str] = COMMON_QUERIES) -> int:
        """
        Pre-populate the context cache.

        Failures are logged and skipped.

        Returns:
            Number of queries warmed.
        """
        warmed = 0
        for query in queries:
            try:
                await self.get_relevant_context(query)
                warmed += 1
            except AskEdError as e:
                logger.warning(f"Cache warm failed for '{query}': {e}")
        logger.info(f"Cache warmed with {warmed} queries")
        return warmed
