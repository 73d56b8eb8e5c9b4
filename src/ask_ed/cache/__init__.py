"""TTL caching for embeddings, searches and responses."""

from ask_ed.cache.service import (
    CacheService,
    TTLCache,
    generate_context_key,
    generate_embedding_key,
    generate_response_key,
    generate_search_key,
)

__all__ = [
    "CacheService",
    "TTLCache",
    "generate_context_key",
    "generate_embedding_key",
    "generate_response_key",
    "generate_search_key",
]
