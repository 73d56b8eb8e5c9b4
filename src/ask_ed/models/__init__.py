"""External service clients."""

from ask_ed.models.document_store import DocumentStore, SupabaseDocumentStore
from ask_ed.models.embedding_client import AsyncEmbeddingClient

__all__ = [
    "AsyncEmbeddingClient",
    "DocumentStore",
    "SupabaseDocumentStore",
]
