"""
FastAPI Server

HTTP boundary for the Ask Ed retrieval core.
Provides /context, /health, /cache/stats and /metrics endpoints.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from pydantic import BaseModel, Field

from ask_ed.analytics.events import SearchEventLog
from ask_ed.cache.service import CacheService
from ask_ed.config import CACHE, SECURITY, SERVER
from ask_ed.errors import AskEdError, EmbeddingError
from ask_ed.models.document_store import SupabaseDocumentStore
from ask_ed.models.embedding_client import AsyncEmbeddingClient
from ask_ed.pipeline.orchestrator import ContextOrchestrator
from ask_ed.utils.logging import (
    audit_logger,
    generate_request_id,
    hash_ip,
    request_id_var,
    setup_logging,
)
from ask_ed.utils.rate_limit import InMemoryRateLimiter
from ask_ed.utils.sanitize import InputSanitizer

logger = logging.getLogger(__name__)

API_NAME = "Ask Ed Context API"
API_VERSION = "0.1.0"

NO_CONTEXT_MESSAGE = (
    "I couldn't find relevant information for your question. Please try rephrasing "
    "or ask about KCSiE, EYFS, or Ofsted compliance topics."
)
UNAVAILABLE_MESSAGE = (
    "We're temporarily unable to process your question. Please try again shortly."
)
RATE_LIMITED_MESSAGE = "Too many requests. Please wait a moment and try again."


# Request/Response models
class ContextRequest(BaseModel):
    """Context request body."""

    message: str = Field(..., min_length=1, max_length=SECURITY.MAX_INPUT_LENGTH)
    setting_type: Literal["nursery", "club"] | None = None
    session_id: str | None = Field(None, max_length=100)


class ConfidenceModel(BaseModel):
    score: float
    method: str
    result_count: int
    best_similarity: float


class ErrorContent(BaseModel):
    """Error response content."""

    code: str
    message: str


class ResponseMetadata(BaseModel):
    """Response metadata."""

    request_id: str
    response_time_ms: float
    session_id: str | None = None


class ContextResponseModel(BaseModel):
    """Context API response."""

    success: bool
    context: str = ""
    response_template: str | None = None
    confidence: ConfidenceModel | None = None
    message: str | None = None
    error: ErrorContent | None = None
    metadata: ResponseMetadata


@dataclass
class AppServices:
    """Components built at startup and shared by all requests."""

    orchestrator: ContextOrchestrator
    cache: CacheService
    embedder: AsyncEmbeddingClient
    store: SupabaseDocumentStore
    rate_limiter: InMemoryRateLimiter
    sanitizer: InputSanitizer
    events: SearchEventLog

    async def close(self) -> None:
        await self.cache.stop()
        await self.embedder.close()
        await self.store.close()


def build_services() -> AppServices:
    """Construct clients, cache and orchestrator from configuration."""
    cache = CacheService()
    embedder = AsyncEmbeddingClient()
    store = SupabaseDocumentStore()
    return AppServices(
        orchestrator=ContextOrchestrator(embedder, store, cache),
        cache=cache,
        embedder=embedder,
        store=store,
        rate_limiter=InMemoryRateLimiter(),
        sanitizer=InputSanitizer(),
        events=SearchEventLog(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    setup_logging(level=SERVER.LOG_LEVEL)
    logger.info("Starting Ask Ed server...")

    services = build_services()
    services.cache.start()
    app.state.services = services

    if not await services.embedder.health_check():
        logger.warning("Embedding service not reachable at startup")
    if not await services.store.health_check():
        logger.warning("Document store not reachable at startup")

    if CACHE.WARM_ON_STARTUP:
        await services.orchestrator.warm()

    logger.info(f"Server ready on {SERVER.HOST}:{SERVER.PORT}")

    yield

    logger.info("Shutting down Ask Ed server...")
    await services.close()
    app.state.services = None


# Create FastAPI app
app = FastAPI(
    title=API_NAME,
    description="Retrieval, ranking and context assembly for UK childcare compliance questions",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SERVER.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next: Any) -> Any:
    """Add request ID and timing to all requests."""
    request_id = generate_request_id()
    request_id_var.set(request_id)

    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{duration:.3f}s"

    return response


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return services


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    cf_connecting_ip = request.headers.get("CF-Connecting-IP")
    if cf_connecting_ip:
        return cf_connecting_ip

    return request.client.host if request.client else "unknown"


def _error_response(
    status_code: int,
    code: str,
    message: str,
    start_time: float,
    session_id: str | None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ContextResponseModel(
        success=False,
        error=ErrorContent(code=code, message=message),
        metadata=ResponseMetadata(
            request_id=request_id_var.get(),
            response_time_ms=(time.time() - start_time) * 1000,
            session_id=session_id,
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.post("/context", response_model=ContextResponseModel)
async def get_context(request: Request, body: ContextRequest) -> Any:
    """
    Main context endpoint.

    Validates and rate limits the question, then runs it through the
    retrieval pipeline.
    """
    services = get_services(request)
    start_time = time.time()
    ip_hash = hash_ip(get_client_ip(request))

    rate = await services.rate_limiter.acquire(ip_hash)
    if rate.blocked:
        return _error_response(
            429,
            "RATE_LIMITED",
            RATE_LIMITED_MESSAGE,
            start_time,
            body.session_id,
            headers={"Retry-After": str(int(rate.retry_after) + 1)},
        )

    sanitized = services.sanitizer.sanitize(body.message)
    if sanitized.blocked:
        audit_logger.log_request_complete(
            ip_hash, None, (time.time() - start_time) * 1000, sanitized.status.value
        )
        return _error_response(
            400,
            "INVALID_INPUT",
            sanitized.error_message or "Invalid message.",
            start_time,
            body.session_id,
        )

    question = sanitized.sanitized_input or ""

    try:
        result = await services.orchestrator.get_relevant_context(question, body.setting_type)
    except AskEdError as e:
        logger.error(f"Context retrieval failed: {type(e).__name__}: {e}")
        code = "EMBEDDING_ERROR" if isinstance(e, EmbeddingError) else "SEARCH_ERROR"
        audit_logger.log_request_complete(
            ip_hash, None, (time.time() - start_time) * 1000, code
        )
        return _error_response(503, code, UNAVAILABLE_MESSAGE, start_time, body.session_id)

    message = None
    if not result.context:
        message = NO_CONTEXT_MESSAGE
        services.events.record_search_failed(question, body.session_id, body.setting_type)
    else:
        services.events.record_question_answered(
            question, result.confidence, body.session_id, body.setting_type
        )

    response_time_ms = (time.time() - start_time) * 1000
    audit_logger.log_request_complete(ip_hash, result.confidence.method.value, response_time_ms)

    return ContextResponseModel(
        success=True,
        context=result.context,
        response_template=result.response_template,
        confidence=ConfidenceModel(**result.confidence.to_dict()),
        message=message,
        metadata=ResponseMetadata(
            request_id=request_id_var.get(),
            response_time_ms=response_time_ms,
            session_id=body.session_id,
        ),
    )


@app.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns reachability of external services and cache sizes.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        return {
            "status": "unhealthy",
            "reason": "Service not initialized",
        }

    embedding_ok = await services.embedder.health_check()
    store_ok = await services.store.health_check()
    cache_sizes = {cache.name: cache.size() for cache in services.cache.caches}

    return {
        "status": "healthy" if embedding_ok and store_ok else "unhealthy",
        "components": {
            "embedding": embedding_ok,
            "store": store_ok,
            "cache": cache_sizes,
            "rate_limiter": services.rate_limiter.get_stats(),
        },
    }


@app.get("/cache/stats")
async def cache_stats(request: Request) -> dict[str, Any]:
    """Cache metrics: sizes, keys, hit and miss counts."""
    return get_services(request).cache.get_metrics()


@app.get("/metrics")
async def metrics() -> PlainTextResponse:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "name": API_NAME,
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


def main() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    uvicorn.run(
        "ask_ed.server:app",
        host=SERVER.HOST,
        port=SERVER.PORT,
        reload=SERVER.DEBUG,
        log_level=SERVER.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
