"""
Document store access.

The retrieval engine depends only on the DocumentStore protocol. The
Supabase implementation talks to PostgREST directly over httpx: a
similarity RPC for vector search, `wfts` filtering for full-text search
and `ilike` filtering for substring search.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol

import httpx

from ask_ed.config import RETRIEVAL, STORE
from ask_ed.errors import (
    KeywordSearchUnavailableError,
    StoreConnectionError,
    StoreResponseError,
    StoreTimeoutError,
)
from ask_ed.metrics import EXTERNAL_CALLS
from ask_ed.pipeline.documents import DocumentChunk, SearchResult

logger = logging.getLogger(__name__)

# PostgREST error codes meaning full-text search cannot run against the column
_FTS_UNAVAILABLE_CODES = frozenset({"42883", "42P01", "42703", "PGRST100"})


class DocumentStore(Protocol):
    """Search interface over the chunk corpus."""

    async def nearest_neighbors(
        self, embedding: list[float], k: int, min_similarity: float
    ) -> list[SearchResult]: ...

    async def keyword_search(self, query: str, k: int) -> list[SearchResult]: ...

    async def substring_search(self, pattern: str, k: int) -> list[SearchResult]: ...


class SupabaseDocumentStore:
    """DocumentStore backed by Supabase's PostgREST API."""

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        table: str | None = None,
        search_rpc: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize store client.

        Args:
            url: Supabase project URL. Defaults to config.
            key: Service or anon key. Defaults to config.
            table: Documents table name. Defaults to config.
            search_rpc: Similarity search function name. Defaults to config.
            timeout: Request timeout in seconds. Defaults to config.
        """
        self.url = (url or STORE.SUPABASE_URL).rstrip("/")
        self.key = key if key is not None else STORE.SUPABASE_KEY
        self.table = table or STORE.DOCUMENTS_TABLE
        self.search_rpc = search_rpc or STORE.SEARCH_RPC
        self.timeout = timeout or STORE.STORE_TIMEOUT
        self._client: httpx.AsyncClient | None = None

    @property
    def rest_url(self) -> str:
        return f"{self.url}/rest/v1"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.key:
                headers["apikey"] = self.key
                headers["Authorization"] = f"Bearer {self.key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> SupabaseDocumentStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to StoreError subclasses."""
        client = await self._get_client()
        start_time = time.time()
        try:
            return await client.request(method, f"{self.rest_url}/{path}", **kwargs)
        except httpx.ConnectError as e:
            logger.warning(f"Connection error to document store: {e}")
            raise StoreConnectionError(f"Failed to connect to document store: {e}") from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout calling document store: {e}")
            raise StoreTimeoutError(f"Document store request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling document store: {e}")
            raise StoreConnectionError(f"HTTP error: {e}") from e
        finally:
            EXTERNAL_CALLS.labels(service="store", operation=operation).observe(
                time.time() - start_time
            )

    @staticmethod
    def _rows(response: httpx.Response) -> list[dict[str, Any]]:
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise StoreResponseError(f"Invalid JSON response: {e}") from e
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreResponseError(f"Expected a list of rows, got {type(data).__name__}")
        if not all(isinstance(row, dict) for row in data):
            raise StoreResponseError("Expected every row to be a JSON object")
        return data

    @staticmethod
    def _error_code(response: httpx.Response) -> str:
        try:
            return str(response.json().get("code", ""))
        except (json.JSONDecodeError, AttributeError):
            return ""

    async def nearest_neighbors(
        self, embedding: list[float], k: int, min_similarity: float
    ) -> list[SearchResult]:
        """
        Vector similarity search via the search RPC.

        Args:
            embedding: Query embedding.
            k: Maximum matches.
            min_similarity: Cosine similarity floor.

        Returns:
            Matches ordered by descending similarity.
        """
        response = await self._request(
            "nearest_neighbors",
            "POST",
            f"rpc/{self.search_rpc}",
            json={
                "query_embedding": embedding,
                "match_count": k,
                "match_threshold": min_similarity,
            },
        )
        if response.status_code != 200:
            raise StoreResponseError(
                f"Search RPC returned status {response.status_code}: {response.text[:500]}"
            )

        results = [
            SearchResult(
                chunk=DocumentChunk.from_row(row),
                similarity=float(row.get("similarity") or 0.0),
            )
            for row in self._rows(response)
        ]
        return sorted(results, key=lambda r: r.similarity, reverse=True)

    async def keyword_search(self, query: str, k: int) -> list[SearchResult]:
        """
        Full-text (websearch syntax) search over chunk content.

        Raises:
            KeywordSearchUnavailableError: Full-text search cannot run.
        """
        response = await self._request(
            "keyword_search",
            "GET",
            self.table,
            params={
                "select": "*",
                "content": f"wfts({STORE.TEXT_SEARCH_CONFIG}).{query}",
                "limit": str(k),
            },
        )
        if response.status_code != 200:
            code = self._error_code(response)
            if response.status_code in (400, 404) or code in _FTS_UNAVAILABLE_CODES:
                raise KeywordSearchUnavailableError(
                    f"Full-text search unavailable (status {response.status_code}, code {code or 'n/a'})"
                )
            raise StoreResponseError(
                f"Keyword search returned status {response.status_code}: {response.text[:500]}"
            )

        return [
            SearchResult(chunk=DocumentChunk.from_row(row), similarity=RETRIEVAL.KEYWORD_SIMILARITY)
            for row in self._rows(response)
        ]

    async def substring_search(self, pattern: str, k: int) -> list[SearchResult]:
        """Case-insensitive substring search over chunk content."""
        response = await self._request(
            "substring_search",
            "GET",
            self.table,
            params={
                "select": "*",
                "content": f"ilike.*{pattern}*",
                "limit": str(k),
            },
        )
        if response.status_code != 200:
            raise StoreResponseError(
                f"Substring search returned status {response.status_code}: {response.text[:500]}"
            )

        return [
            SearchResult(chunk=DocumentChunk.from_row(row), similarity=RETRIEVAL.FUZZY_SIMILARITY)
            for row in self._rows(response)
        ]

    async def health_check(self) -> bool:
        """
        Check if the documents table is reachable.

        Returns:
            True if a one-row select succeeds, False otherwise.
        """
        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.rest_url}/{self.table}",
                params={"select": "id", "limit": "1"},
                timeout=5.0,
            )
            return response.status_code == 200
        except httpx.HTTPError:
            return False
