"""
Pytest configuration and shared fixtures.

Provides mocked external services, search result factories and a
controllable clock for the ask_ed test suite.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from ask_ed.cache.service import CacheService
from ask_ed.models.document_store import SupabaseDocumentStore
from ask_ed.models.embedding_client import AsyncEmbeddingClient
from ask_ed.pipeline.documents import ChunkMetadata, DocumentChunk, SearchResult
from ask_ed.pipeline.orchestrator import ContextOrchestrator

# ============================================================================
# Search Result Factories
# ============================================================================


def make_result(
    content: str = "Passage text",
    source: str = "KCSiE 2025",
    similarity: float = 0.8,
    page: int | None = None,
    section: str | None = None,
) -> SearchResult:
    """Build a SearchResult without going through the store."""
    return SearchResult(
        chunk=DocumentChunk(
            content=content,
            metadata=ChunkMetadata(source=source, page=page, section=section),
        ),
        similarity=similarity,
    )


@pytest.fixture
def result_factory() -> Callable[..., SearchResult]:
    """Factory fixture for search results."""
    return make_result


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Mock External Services
# ============================================================================


@pytest.fixture
def mock_embedder() -> MagicMock:
    """Mock embedding client returning a fixed vector."""
    embedder = MagicMock(spec=AsyncEmbeddingClient)
    embedder.embed = AsyncMock(return_value=[0.1] * 1536)
    embedder.health_check = AsyncMock(return_value=True)
    embedder.close = AsyncMock()
    return embedder


@pytest.fixture
def mock_store() -> MagicMock:
    """Mock document store where every search comes back empty."""
    store = MagicMock(spec=SupabaseDocumentStore)
    store.nearest_neighbors = AsyncMock(return_value=[])
    store.keyword_search = AsyncMock(return_value=[])
    store.substring_search = AsyncMock(return_value=[])
    store.health_check = AsyncMock(return_value=True)
    store.close = AsyncMock()
    return store


# ============================================================================
# Core Components
# ============================================================================


@pytest.fixture
def cache_service(clock: FakeClock) -> CacheService:
    """Cache service on the fake clock."""
    return CacheService(clock=clock)


@pytest.fixture
def orchestrator(
    mock_embedder: MagicMock,
    mock_store: MagicMock,
    cache_service: CacheService,
) -> ContextOrchestrator:
    """Orchestrator wired to mocked services."""
    return ContextOrchestrator(mock_embedder, mock_store, cache_service)


@pytest.fixture
def analytics_dir(tmp_path: Path) -> Path:
    """Temporary directory for analytics event files."""
    path = tmp_path / "analytics"
    path.mkdir()
    return path
