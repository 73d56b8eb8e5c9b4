"""
In-memory rate limiter with sliding window algorithm.

Guards the HTTP boundary; the retrieval core itself is never rate limited.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum

from ask_ed.config import RATE_LIMITS
from ask_ed.utils.logging import audit_logger


class RateLimitStatus(Enum):
    """Rate limit check result status."""

    ALLOWED = "allowed"
    BLOCKED_IP_MINUTE = "blocked_ip_minute"
    BLOCKED_IP_HOUR = "blocked_ip_hour"
    BLOCKED_GLOBAL = "blocked_global"


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    status: RateLimitStatus
    allowed: bool
    retry_after: float = 0.0  # Seconds until the window frees a slot
    current_count: int = 0
    limit: int = 0

    @property
    def blocked(self) -> bool:
        return not self.allowed


@dataclass
class RequestWindow:
    """Sliding window of request timestamps."""

    timestamps: list[float] = field(default_factory=list)

    def add(self, timestamp: float) -> None:
        self.timestamps.append(timestamp)

    def count_since(self, window_start: float) -> int:
        return sum(1 for ts in self.timestamps if ts >= window_start)

    def oldest_since(self, window_start: float, default: float) -> float:
        return min((ts for ts in self.timestamps if ts >= window_start), default=default)

    def cleanup(self, cutoff: float) -> None:
        self.timestamps = [ts for ts in self.timestamps if ts >= cutoff]


class InMemoryRateLimiter:
    """
    In-memory rate limiter with sliding windows.

    Enforces per-client minute and hour limits plus a global minute
    limit. Expired timestamps are pruned once per cleanup interval.
    """

    def __init__(
        self,
        per_ip_per_minute: int | None = None,
        per_ip_per_hour: int | None = None,
        global_per_minute: int | None = None,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            per_ip_per_minute: Max requests per client per minute.
            per_ip_per_hour: Max requests per client per hour.
            global_per_minute: Max global requests per minute.
        """
        self.per_ip_per_minute = per_ip_per_minute or RATE_LIMITS.PER_IP_PER_MINUTE
        self.per_ip_per_hour = per_ip_per_hour or RATE_LIMITS.PER_IP_PER_HOUR
        self.global_per_minute = global_per_minute or RATE_LIMITS.GLOBAL_PER_MINUTE

        self._ip_windows: dict[str, RequestWindow] = {}
        self._global_window = RequestWindow()
        self._lock = asyncio.Lock()
        self._last_cleanup = time.time()
        self._cleanup_interval = 60.0

    def _evaluate(self, ip_hash: str, now: float) -> RateLimitResult:
        """Evaluate all limits for a client. Called with lock held."""
        ip_window = self._ip_windows.setdefault(ip_hash, RequestWindow())

        # (window, span seconds, limit, status when exceeded)
        checks = (
            (ip_window, 60.0, self.per_ip_per_minute, RateLimitStatus.BLOCKED_IP_MINUTE),
            (ip_window, 3600.0, self.per_ip_per_hour, RateLimitStatus.BLOCKED_IP_HOUR),
            (self._global_window, 60.0, self.global_per_minute, RateLimitStatus.BLOCKED_GLOBAL),
        )

        for window, span, limit, status in checks:
            window_start = now - span
            count = window.count_since(window_start)
            if count >= limit:
                oldest = window.oldest_since(window_start, default=now)
                return RateLimitResult(
                    status=status,
                    allowed=False,
                    retry_after=max(0.0, span - (now - oldest)),
                    current_count=count,
                    limit=limit,
                )

        return RateLimitResult(
            status=RateLimitStatus.ALLOWED,
            allowed=True,
            current_count=ip_window.count_since(now - 60.0),
            limit=self.per_ip_per_minute,
        )

    async def check_rate_limit(self, ip_hash: str) -> RateLimitResult:
        """
        Check if a request is allowed without recording it.

        Args:
            ip_hash: SHA256 hash of client IP address.
        """
        async with self._lock:
            now = time.time()
            if now - self._last_cleanup > self._cleanup_interval:
                self._cleanup_expired(now)
                self._last_cleanup = now
            return self._evaluate(ip_hash, now)

    async def record_request(self, ip_hash: str) -> None:
        """Record a request for rate limiting."""
        async with self._lock:
            now = time.time()
            self._ip_windows.setdefault(ip_hash, RequestWindow()).add(now)
            self._global_window.add(now)

    async def acquire(self, ip_hash: str) -> RateLimitResult:
        """
        Check and record in one step.

        The request is only recorded when it is allowed.
        """
        async with self._lock:
            now = time.time()
            if now - self._last_cleanup > self._cleanup_interval:
                self._cleanup_expired(now)
                self._last_cleanup = now

            result = self._evaluate(ip_hash, now)
            if result.allowed:
                self._ip_windows[ip_hash].add(now)
                self._global_window.add(now)
            else:
                audit_logger.log_rate_limit(ip_hash, result.status.value, result.current_count)
            return result

    def _cleanup_expired(self, now: float) -> None:
        """Remove timestamps older than an hour. Called with lock held."""
        hour_ago = now - 3600

        empty_ips = []
        for ip_hash, window in self._ip_windows.items():
            window.cleanup(hour_ago)
            if not window.timestamps:
                empty_ips.append(ip_hash)

        for ip_hash in empty_ips:
            del self._ip_windows[ip_hash]

        self._global_window.cleanup(hour_ago)

    async def cleanup_expired(self) -> None:
        """Public async method to trigger cleanup."""
        async with self._lock:
            self._cleanup_expired(time.time())

    def get_stats(self) -> dict[str, int]:
        """Get rate limiter statistics."""
        return {
            "tracked_clients": len(self._ip_windows),
            "global_requests_last_hour": len(self._global_window.timestamps),
        }
