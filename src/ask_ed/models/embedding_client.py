"""
Async client for an OpenAI-compatible embeddings endpoint.

No retry is performed here; transport timeouts are the only bound and
every failure propagates as an EmbeddingError subclass.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from ask_ed.config import MODELS
from ask_ed.errors import (
    EmbeddingConnectionError,
    EmbeddingResponseError,
    EmbeddingTimeoutError,
)
from ask_ed.metrics import EXTERNAL_CALLS

logger = logging.getLogger(__name__)


class AsyncEmbeddingClient:
    """Async HTTP client for the embeddings API."""

    def __init__(
        self,
        url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize embedding client.

        Args:
            url: API base URL. Defaults to config.
            model: Embedding model name. Defaults to config.
            api_key: Bearer token. Defaults to config.
            timeout: Request timeout in seconds. Defaults to config.
        """
        self.url = (url or MODELS.EMBEDDING_URL).rstrip("/")
        self.model = model or MODELS.EMBEDDING_MODEL
        self.api_key = api_key if api_key is not None else MODELS.OPENAI_API_KEY
        self.timeout = timeout or MODELS.EMBEDDING_TIMEOUT
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> AsyncEmbeddingClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def embed(self, text: str) -> list[float]:
        """
        Generate an embedding for text.

        Args:
            text: Text to embed.

        Returns:
            Embedding vector.

        Raises:
            EmbeddingConnectionError: Network connectivity issues.
            EmbeddingTimeoutError: Request timeout.
            EmbeddingResponseError: Error status or invalid response body.
        """
        client = await self._get_client()
        payload = {"model": self.model, "input": text}
        start_time = time.time()

        try:
            response = await client.post(f"{self.url}/embeddings", json=payload)

            if response.status_code != 200:
                error_text = response.text[:500]
                raise EmbeddingResponseError(
                    f"Embedding service returned status {response.status_code}: {error_text}"
                )

            try:
                data = response.json()
            except json.JSONDecodeError as e:
                raise EmbeddingResponseError(f"Invalid JSON response: {e}") from e

            if not isinstance(data, dict):
                raise EmbeddingResponseError(f"Expected a JSON object, got {type(data).__name__}")
            items = data.get("data") or []
            if not isinstance(items, list) or (items and not isinstance(items[0], dict)):
                raise EmbeddingResponseError("Malformed embedding item in response")
            embedding = items[0].get("embedding", []) if items else []
            if not embedding:
                raise EmbeddingResponseError("Empty embedding from embedding service")

            return embedding

        except httpx.ConnectError as e:
            logger.warning(f"Connection error to embedding service: {e}")
            raise EmbeddingConnectionError(f"Failed to connect to embedding service: {e}") from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout calling embedding service: {e}")
            raise EmbeddingTimeoutError(f"Embedding request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling embedding service: {e}")
            raise EmbeddingConnectionError(f"HTTP error: {e}") from e
        finally:
            EXTERNAL_CALLS.labels(service="embedding", operation="embed").observe(
                time.time() - start_time
            )

    async def health_check(self) -> bool:
        """
        Check if the embedding service is reachable.

        Returns:
            True if the models endpoint answers 200, False otherwise.
        """
        try:
            client = await self._get_client()
            response = await client.get(f"{self.url}/models", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False
