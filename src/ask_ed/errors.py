"""
Exception hierarchy with recoverability flags.

External-service failures propagate to the caller unchanged. The one
recoverable condition inside the retrieval cascade is keyword search
being unavailable, which falls through to substring search.
"""

from __future__ import annotations


class AskEdError(RuntimeError):
    """Base exception for Ask Ed retrieval operations."""

    recoverable: bool = False


# Embedding service
class EmbeddingError(AskEdError):
    """Base exception for embedding service failures."""


class EmbeddingConnectionError(EmbeddingError):
    """Network connectivity issues reaching the embedding service."""


class EmbeddingTimeoutError(EmbeddingError):
    """Embedding request timed out."""


class EmbeddingResponseError(EmbeddingError):
    """Invalid or error response from the embedding service."""


# Document store
class StoreError(AskEdError):
    """Base exception for document store failures."""


class StoreConnectionError(StoreError):
    """Network connectivity issues reaching the store."""


class StoreTimeoutError(StoreError):
    """Store request timed out."""


class StoreResponseError(StoreError):
    """Invalid or error response from the store."""


class KeywordSearchUnavailableError(StoreError):
    """Full-text search is not available - recoverable via substring search."""

    recoverable: bool = True
