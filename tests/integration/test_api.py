"""Integration tests for the HTTP API with mocked external services."""

import pytest
from fastapi.testclient import TestClient

from ask_ed.analytics.events import SearchEventLog
from ask_ed.errors import EmbeddingTimeoutError, StoreConnectionError
from ask_ed.server import NO_CONTEXT_MESSAGE, AppServices, app
from ask_ed.utils.rate_limit import InMemoryRateLimiter
from ask_ed.utils.sanitize import InputSanitizer


@pytest.fixture
def services(mock_embedder, mock_store, cache_service, orchestrator, analytics_dir):
    """Install services on the app without running the lifespan."""
    services = AppServices(
        orchestrator=orchestrator,
        cache=cache_service,
        embedder=mock_embedder,
        store=mock_store,
        rate_limiter=InMemoryRateLimiter(per_ip_per_minute=5, per_ip_per_hour=50),
        sanitizer=InputSanitizer(),
        events=SearchEventLog(storage_dir=analytics_dir, enabled=True),
    )
    app.state.services = services
    yield services
    app.state.services = None


@pytest.fixture
def client(services):
    return TestClient(app)


class TestContextEndpoint:
    """Tests for POST /context."""

    def test_off_topic_greeting(self, client):
        response = client.post("/context", json={"message": "hello"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["context"].startswith("[Off-topic Response]\n")
        assert data["confidence"] == {
            "score": 1.0,
            "method": "semantic",
            "result_count": 1,
            "best_similarity": 1.0,
        }
        assert response.headers["X-Request-ID"]

    def test_knowledge_base_answer(self, client, services, mock_embedder):
        response = client.post(
            "/context",
            json={
                "message": "what ratios do I need for mixed age groups",
                "setting_type": "nursery",
                "session_id": "abc",
            },
        )

        data = response.json()
        assert data["context"].startswith("[Knowledge Base - EYFS Framework]\n")
        assert data["confidence"] == {
            "score": 0.9,
            "method": "semantic",
            "result_count": 1,
            "best_similarity": 1.0,
        }
        assert data["metadata"]["session_id"] == "abc"
        mock_embedder.embed.assert_not_awaited()
        assert services.events.get_summary()["question_answered"] == 1

    def test_semantic_context(self, client, mock_store, result_factory):
        mock_store.nearest_neighbors.return_value = [
            result_factory(content="Two staff per eight children.", source="EYFS Framework", similarity=0.85)
        ]
        response = client.post("/context", json={"message": "staff ratios for toddlers"})

        data = response.json()
        assert data["context"] == "[EYFS Framework]\nTwo staff per eight children."
        assert data["confidence"]["method"] == "semantic"
        assert data["message"] is None

    def test_nothing_found(self, client, services):
        response = client.post("/context", json={"message": "fire drills"})

        data = response.json()
        assert data["success"] is True
        assert data["context"] == ""
        assert data["message"] == NO_CONTEXT_MESSAGE
        assert data["confidence"]["method"] == "none"
        assert services.events.get_summary()["failed_queries"] == ["fire drills"]

    def test_question_sanitized_before_retrieval(self, client, mock_embedder):
        client.post("/context", json={"message": "  <b>staff</b>   ratios  "})
        assert mock_embedder.embed.await_args_list[0].args[0] == "staff ratios"

    def test_spam_rejected(self, client):
        response = client.post("/context", json={"message": "click here for ratios"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    @pytest.mark.parametrize(
        "body",
        [
            {"message": ""},
            {"message": "ratios", "setting_type": "school"},
            {"message": "x" * 1001},
        ],
    )
    def test_request_validation(self, client, body):
        assert client.post("/context", json=body).status_code == 422

    def test_embedding_failure(self, client, mock_embedder):
        mock_embedder.embed.side_effect = EmbeddingTimeoutError("slow")
        response = client.post("/context", json={"message": "staff ratios"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "EMBEDDING_ERROR"

    def test_store_failure(self, client, mock_store):
        mock_store.nearest_neighbors.side_effect = StoreConnectionError("down")
        response = client.post("/context", json={"message": "staff ratios"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SEARCH_ERROR"

    def test_rate_limited(self, client):
        for _ in range(5):
            assert client.post("/context", json={"message": "hello"}).status_code == 200

        response = client.post("/context", json={"message": "hello"})
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert int(response.headers["Retry-After"]) >= 1


class TestOperationalEndpoints:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert set(data["components"]["cache"]) == {"embeddings", "search", "response"}

    def test_health_degraded(self, client, mock_store):
        mock_store.health_check.return_value = False
        data = client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["components"]["store"] is False

    def test_health_without_services(self):
        app.state.services = None
        data = TestClient(app).get("/health").json()
        assert data == {"status": "unhealthy", "reason": "Service not initialized"}

    def test_cache_stats(self, client):
        client.post("/context", json={"message": "hello"})
        data = client.get("/cache/stats").json()
        assert data["search"]["size"] == 1
        assert "timestamp" in data

    def test_metrics(self, client):
        client.post("/context", json={"message": "hello"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "ask_ed_context_requests_total" in response.text

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Ask Ed Context API"
