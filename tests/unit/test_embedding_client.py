"""Unit tests for the embedding client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ask_ed.errors import (
    EmbeddingConnectionError,
    EmbeddingError,
    EmbeddingResponseError,
    EmbeddingTimeoutError,
)
from ask_ed.models.embedding_client import AsyncEmbeddingClient


def _response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = json.dumps(body) if body is not None else ""
    response.json.return_value = body
    return response


class TestAsyncEmbeddingClient:
    """Tests for construction and lifecycle."""

    def test_init_custom_values(self):
        client = AsyncEmbeddingClient(
            url="https://api.example.com/v1/",
            model="text-embedding-3-small",
            api_key="sk-test",
        )
        assert client.url == "https://api.example.com/v1"
        assert client.model == "text-embedding-3-small"
        assert client._client is None

    @pytest.mark.asyncio
    async def test_get_client_sets_bearer_header(self):
        client = AsyncEmbeddingClient(api_key="sk-test")
        http_client = await client._get_client()

        assert isinstance(http_client, httpx.AsyncClient)
        assert http_client.headers["Authorization"] == "Bearer sk-test"
        await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with AsyncEmbeddingClient(api_key="") as client:
            assert client is not None


class TestEmbed:
    """Tests for embed()."""

    @pytest.mark.asyncio
    async def test_embed_success(self):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(
                return_value=_response(body={"data": [{"embedding": [0.1, 0.2, 0.3]}]})
            )
            mock_get_client.return_value = mock_client

            client = AsyncEmbeddingClient(url="https://api.example.com/v1", model="m")
            result = await client.embed("staff ratios")

            assert result == [0.1, 0.2, 0.3]
            call = mock_client.post.call_args
            assert call.args[0] == "https://api.example.com/v1/embeddings"
            assert call.kwargs["json"] == {"model": "m", "input": "staff ratios"}

    @pytest.mark.asyncio
    async def test_error_status(self):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(return_value=_response(401, {"error": "bad key"}))
            mock_get_client.return_value = mock_client

            with pytest.raises(EmbeddingResponseError, match="401"):
                await AsyncEmbeddingClient().embed("q")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            response = _response()
            response.json.side_effect = json.JSONDecodeError("bad", "", 0)
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(return_value=response)
            mock_get_client.return_value = mock_client

            with pytest.raises(EmbeddingResponseError, match="Invalid JSON"):
                await AsyncEmbeddingClient().embed("q")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"data": []}, {"data": [{"embedding": []}]}, {}])
    async def test_empty_embedding(self, body):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(return_value=_response(body=body))
            mock_get_client.return_value = mock_client

            with pytest.raises(EmbeddingResponseError, match="Empty embedding"):
                await AsyncEmbeddingClient().embed("q")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("raised", "expected"),
        [
            (httpx.ConnectError("refused"), EmbeddingConnectionError),
            (httpx.ReadTimeout("slow"), EmbeddingTimeoutError),
            (httpx.RemoteProtocolError("broken"), EmbeddingConnectionError),
        ],
    )
    async def test_transport_errors_mapped(self, raised, expected):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(side_effect=raised)
            mock_get_client.return_value = mock_client

            with pytest.raises(expected) as exc_info:
                await AsyncEmbeddingClient().embed("q")
            assert isinstance(exc_info.value, EmbeddingError)
            assert exc_info.value.recoverable is False


    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body", [[{"embedding": [0.1]}], {"data": ["x"]}, {"data": {"embedding": [0.1]}}, "text"]
    )
    async def test_malformed_body(self, body):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(return_value=_response(body=body))
            mock_get_client.return_value = mock_client

            with pytest.raises(EmbeddingResponseError):
                await AsyncEmbeddingClient().embed("q")


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=_response(200, {"data": []}))
            mock_get_client.return_value = mock_client

            assert await AsyncEmbeddingClient().health_check() is True

    @pytest.mark.asyncio
    async def test_unreachable(self):
        with patch.object(AsyncEmbeddingClient, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
            mock_get_client.return_value = mock_client

            assert await AsyncEmbeddingClient().health_check() is False
