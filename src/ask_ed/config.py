"""
Configuration module with frozen dataclasses and hard minimums.

Immutable config with semantic grouping and environment variable
overrides. Retrieval thresholds, cache TTLs and confidence bands all
live here so they can be tuned without touching pipeline code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _env_str(name: str, default: str) -> str:
    """Load string from environment variable."""
    return os.getenv(name, default)


def _env_int(name: str, default: int, min_val: int | None = None) -> int:
    """
    Load int from env with optional hard minimum.

    The min_val parameter enforces a floor that cannot be bypassed via
    environment variables.
    """
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        value = default

    if min_val is not None:
        return max(value, min_val)
    return value


def _env_float(name: str, default: float, min_val: float | None = None) -> float:
    """Load float from env with optional hard minimum."""
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        value = default

    if min_val is not None:
        return max(value, min_val)
    return value


def _env_bool(name: str, default: bool) -> bool:
    """Load boolean from env ("true"/"false")."""
    return _env_str(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class SecurityLimits:
    """Input and context limits with hard minimums."""

    MAX_INPUT_LENGTH: int = _env_int("MAX_INPUT_LENGTH", 1000, min_val=100)
    MIN_INPUT_LENGTH: int = _env_int("MIN_INPUT_LENGTH", 2, min_val=1)

    # Budget for the assembled context block handed to the generator
    MAX_CONTEXT_LENGTH: int = _env_int("MAX_CONTEXT_LENGTH", 8000, min_val=1000)


@dataclass(frozen=True)
class RateLimits:
    """Rate limiting configuration with sensible defaults."""

    PER_IP_PER_MINUTE: int = _env_int("RATE_LIMIT_PER_IP_PER_MINUTE", 10, min_val=1)
    PER_IP_PER_HOUR: int = _env_int("RATE_LIMIT_PER_IP_PER_HOUR", 100, min_val=10)
    GLOBAL_PER_MINUTE: int = _env_int("RATE_LIMIT_GLOBAL_PER_MINUTE", 1000, min_val=100)


@dataclass(frozen=True)
class ModelConfig:
    """Embedding service configuration."""

    EMBEDDING_URL: str = _env_str("EMBEDDING_URL", "https://api.openai.com/v1")
    EMBEDDING_MODEL: str = _env_str("EMBEDDING_MODEL", "text-embedding-3-small")
    OPENAI_API_KEY: str = _env_str("OPENAI_API_KEY", "")

    EMBEDDING_TIMEOUT: float = _env_float("EMBEDDING_TIMEOUT", 30.0, min_val=5.0)


@dataclass(frozen=True)
class StoreConfig:
    """Document store (Supabase/PostgREST) configuration."""

    SUPABASE_URL: str = _env_str("SUPABASE_URL", "http://localhost:54321")
    SUPABASE_KEY: str = _env_str("SUPABASE_KEY", "")

    DOCUMENTS_TABLE: str = _env_str("DOCUMENTS_TABLE", "ask_ed_documents")
    SEARCH_RPC: str = _env_str("SEARCH_RPC", "ask_ed_search_documents")
    TEXT_SEARCH_CONFIG: str = _env_str("TEXT_SEARCH_CONFIG", "english")

    STORE_TIMEOUT: float = _env_float("STORE_TIMEOUT", 15.0, min_val=2.0)


@dataclass(frozen=True)
class RetrievalConfig:
    """Retrieval cascade tuning."""

    MATCH_COUNT: int = _env_int("MATCH_COUNT", 5, min_val=1)

    # Topic-adjusted initial thresholds
    DEFAULT_THRESHOLD: float = _env_float("DEFAULT_THRESHOLD", 0.6)
    EYFS_THRESHOLD: float = _env_float("EYFS_THRESHOLD", 0.5)
    ANNEX_THRESHOLD: float = _env_float("ANNEX_THRESHOLD", 0.7)
    RELAXED_THRESHOLD: float = _env_float("RELAXED_THRESHOLD", 0.4)

    MAX_VARIATION_RETRIES: int = _env_int("MAX_VARIATION_RETRIES", 3, min_val=0)
    FUZZY_VARIATION_TERMS: int = _env_int("FUZZY_VARIATION_TERMS", 2, min_val=0)

    # Sentinel similarities for non-semantic matches
    KEYWORD_SIMILARITY: float = 1.0
    FUZZY_SIMILARITY: float = 0.8

    # Context assembly
    DEFAULT_PASSAGES: int = _env_int("DEFAULT_PASSAGES", 5, min_val=1)
    UPDATES_PASSAGES: int = _env_int("UPDATES_PASSAGES", 4, min_val=1)
    OTHER_PASSAGES_WITH_UPDATES: int = _env_int("OTHER_PASSAGES_WITH_UPDATES", 2, min_val=0)
    UPDATES_SOURCE_MARKER: str = _env_str("UPDATES_SOURCE_MARKER", "EYFS Updates")


@dataclass(frozen=True)
class CacheConfig:
    """Cache TTLs (milliseconds) and sweep interval (seconds)."""

    EMBEDDING_TTL_MS: int = _env_int("EMBEDDING_CACHE_TTL_MS", 30 * 60 * 1000, min_val=1000)
    SEARCH_TTL_MS: int = _env_int("SEARCH_CACHE_TTL_MS", 5 * 60 * 1000, min_val=1000)
    RESPONSE_TTL_MS: int = _env_int("RESPONSE_CACHE_TTL_MS", 10 * 60 * 1000, min_val=1000)

    SWEEP_INTERVAL_SECONDS: float = _env_float("CACHE_SWEEP_INTERVAL", 120.0, min_val=1.0)

    # Context TTL policy
    OFF_TOPIC_TTL_MS: int = 60 * 1000
    EMPTY_RESULT_TTL_MS: int = 30 * 1000
    HIGH_CONFIDENCE_TTL_MS: int = 10 * 60 * 1000
    LOW_CONFIDENCE_TTL_MS: int = 5 * 60 * 1000
    HIGH_CONFIDENCE_CUTOFF: float = 0.7

    WARM_ON_STARTUP: bool = _env_bool("WARM_CACHE_ON_STARTUP", False)


@dataclass(frozen=True)
class ConfidenceBands:
    """Hand-tuned confidence bands per retrieval method."""

    # Semantic: (exclusive lower bound on best similarity, score)
    SEMANTIC: tuple[tuple[float, float], ...] = ((0.7, 0.9), (0.5, 0.7), (0.3, 0.5))
    SEMANTIC_FLOOR: float = 0.3

    # Keyword / fuzzy: (exclusive lower bound on result count, score)
    KEYWORD: tuple[tuple[int, float], ...] = ((3, 0.8), (1, 0.6))
    KEYWORD_FLOOR: float = 0.4

    FUZZY: tuple[tuple[int, float], ...] = ((5, 0.5), (2, 0.3))
    FUZZY_FLOOR: float = 0.2


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration."""

    HOST: str = _env_str("HOST", "127.0.0.1")
    PORT: int = _env_int("PORT", 8000)
    LOG_LEVEL: str = _env_str("LOG_LEVEL", "INFO")
    DEBUG: bool = _env_bool("DEBUG", False)

    # Comma-separated list of allowed origins
    CORS_ORIGINS: tuple[str, ...] = tuple(
        origin.strip()
        for origin in _env_str("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    )


@dataclass(frozen=True)
class PathConfig:
    """Filesystem paths."""

    BASE_DIR: Path = Path(__file__).parent.parent.parent
    DATA_DIR: Path = Path(_env_str("ASK_ED_DATA_DIR", str(BASE_DIR / "data")))


@dataclass(frozen=True)
class AnalyticsConfig:
    """Search analytics configuration."""

    ENABLED: bool = _env_bool("ANALYTICS_ENABLED", True)


# Module-level singletons (immutable)
SECURITY = SecurityLimits()
RATE_LIMITS = RateLimits()
MODELS = ModelConfig()
STORE = StoreConfig()
RETRIEVAL = RetrievalConfig()
CACHE = CacheConfig()
CONFIDENCE = ConfidenceBands()
SERVER = ServerConfig()
PATHS = PathConfig()
ANALYTICS = AnalyticsConfig()


@lru_cache(maxsize=1)
def get_all_config() -> dict[str, object]:
    """Return all configuration as a dictionary for debugging."""
    return {
        "security": SECURITY,
        "rate_limits": RATE_LIMITS,
        "models": {
            "embedding_url": MODELS.EMBEDDING_URL,
            "embedding_model": MODELS.EMBEDDING_MODEL,
            "api_key_set": bool(MODELS.OPENAI_API_KEY),
        },
        "store": {
            "supabase_url": STORE.SUPABASE_URL,
            "documents_table": STORE.DOCUMENTS_TABLE,
            "search_rpc": STORE.SEARCH_RPC,
            "key_set": bool(STORE.SUPABASE_KEY),
        },
        "retrieval": RETRIEVAL,
        "cache": CACHE,
        "confidence": CONFIDENCE,
        "server": SERVER,
        "paths": {
            "base_dir": str(PATHS.BASE_DIR),
            "data_dir": str(PATHS.DATA_DIR),
        },
        "analytics": ANALYTICS,
    }
