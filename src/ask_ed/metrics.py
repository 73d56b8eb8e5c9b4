"""Prometheus collectors shared by the pipeline and the HTTP boundary."""

from __future__ import annotations

from typing import Any

from prometheus_client import REGISTRY, Counter, Histogram


def _get_or_create_counter(name: str, description: str, labels: list[str]) -> Counter:
    """Get existing counter or create new one."""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]  # type: ignore
    return Counter(name, description, labels)


def _get_or_create_histogram(
    name: str, description: str, labels: list[str] | None = None, buckets: list[float] | None = None
) -> Histogram:
    """Get existing histogram or create new one."""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]  # type: ignore
    kwargs: dict[str, Any] = {}
    if labels:
        kwargs["labelnames"] = labels
    if buckets:
        kwargs["buckets"] = buckets
    return Histogram(name, description, **kwargs)


CONTEXT_REQUESTS = _get_or_create_counter(
    "ask_ed_context_requests_total",
    "Context requests by outcome method",
    ["method"],
)

PIPELINE_DURATION = _get_or_create_histogram(
    "ask_ed_pipeline_duration_seconds",
    "Context pipeline duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

CACHE_LOOKUPS = _get_or_create_counter(
    "ask_ed_cache_lookups_total",
    "Cache lookups by cache and result",
    ["cache", "result"],
)

STRATEGY_ATTEMPTS = _get_or_create_counter(
    "ask_ed_strategy_attempts_total",
    "Retrieval strategy attempts by strategy and outcome",
    ["strategy", "outcome"],
)

EXTERNAL_CALLS = _get_or_create_histogram(
    "ask_ed_external_call_duration_seconds",
    "External service call duration",
    labels=["service", "operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 30.0],
)
