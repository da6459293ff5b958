"""
=============================================================================
GX SERVICES - RATE LIMITER MODULE
=============================================================================
Per-client rate limiting for the contact form endpoint.

Features:
- In-memory sliding window (default, single instance)
- Redis fixed window (INCR + EXPIRE) when REDIS_URL is set, for
  multi-instance deployments; falls back to memory if Redis is unreachable
  at startup, and counts in memory for any request where Redis fails
- Idle clients are swept from the in-memory map
- RateLimit-Limit / -Remaining / -Reset headers on every response, plus
  Retry-After on 429
- Trusted-proxy validation for X-Forwarded-For
- Window and max count come from RATE_LIMIT_WINDOW_MS and
  RATE_LIMIT_MAX_REQUESTS

Usage:
    from gx_backend.core.rate_limiter import check_send_email_rate_limit

    @router.post("/send-email", dependencies=[Depends(check_send_email_rate_limit)])
    async def send_email():
        ...
=============================================================================
"""

import ipaddress
import logging
import math
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Deque, Dict, List, Optional

import redis
from fastapi import HTTPException, Request, Response, status

from gx_backend.core.config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

_trusted_networks: List[ipaddress.IPv4Network | ipaddress.IPv6Network] = []


def _build_trusted_networks() -> None:
    """Parse TRUSTED_PROXIES setting into network objects."""
    global _trusted_networks
    nets = []
    for entry in settings.TRUSTED_PROXIES:
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("Invalid TRUSTED_PROXIES entry ignored: %s", entry)
    _trusted_networks = nets


_build_trusted_networks()


# =============================================================================
# BACKEND ABSTRACTION
# =============================================================================


@dataclass(frozen=True)
class RateLimitHit:
    """Outcome of recording one request against a client's window."""

    count: int
    reset_after: float

    def allowed(self, limit: int) -> bool:
        return self.count <= limit

    def headers(self, limit: int) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(limit),
            "RateLimit-Remaining": str(max(0, limit - self.count)),
            "RateLimit-Reset": str(max(0, math.ceil(self.reset_after))),
        }


class _RateLimitBackend(ABC):
    """Abstract rate-limit storage backend."""

    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitHit:
        """Record one request for key and return the resulting window state."""

    @abstractmethod
    def reset(self) -> None:
        """Clear all state (for tests)."""

    @abstractmethod
    def stats(self) -> dict:
        """Return debugging stats."""


class _InMemoryBackend(_RateLimitBackend):
    """Thread-safe sliding-window backend (single-instance only).

    Rejected requests are not recorded. Clients whose window has emptied are
    swept at most once per window length, so the map only holds clients seen
    within the last window.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._windows: Dict[str, Deque[float]] = {}
        self._last_sweep: Optional[float] = None

    def _sweep(self, now: float, window_start: float) -> None:
        stale = [
            key
            for key, window in self._windows.items()
            if not window or window[-1] <= window_start
        ]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now

    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitHit:
        now = time.monotonic()
        window_start = now - window_seconds

        with self._lock:
            if self._last_sweep is None:
                self._last_sweep = now
            elif now - self._last_sweep >= window_seconds:
                self._sweep(now, window_start)

            window = self._windows.setdefault(key, deque())
            while window and window[0] <= window_start:
                window.popleft()

            if len(window) >= limit:
                return RateLimitHit(
                    count=len(window) + 1,
                    reset_after=window[0] + window_seconds - now,
                )

            window.append(now)
            return RateLimitHit(
                count=len(window),
                reset_after=window[0] + window_seconds - now,
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = None

    def stats(self) -> dict:
        with self._lock:
            return {
                "backend": "in_memory",
                "windows": {key: len(window) for key, window in self._windows.items()},
            }


class _RedisBackend(_RateLimitBackend):
    """Redis-backed fixed-window counters for multi-instance deployments."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    def hit(self, key: str, limit: int, window_seconds: float) -> RateLimitHit:
        pipe = self._redis.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, max(1, math.ceil(window_seconds)), nx=True)
        pipe.ttl(key)
        results = pipe.execute()
        ttl = int(results[2])
        return RateLimitHit(
            count=int(results[0]),
            reset_after=ttl if ttl >= 0 else window_seconds,
        )

    def reset(self) -> None:
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match="rl:*", count=500)
            if keys:
                self._redis.delete(*keys)
            if cursor == 0:
                break

    def stats(self) -> dict:
        counts = {}
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match="rl:*", count=500)
            for k in keys:
                key_str = k if isinstance(k, str) else k.decode()
                val = self._redis.get(k)
                counts[key_str] = int(val) if val else 0
            if cursor == 0:
                break
        return {"backend": "redis", "counts": counts}


# =============================================================================
# BACKEND INITIALIZATION
# =============================================================================


def _init_backend() -> _RateLimitBackend:
    """Use Redis when configured and reachable, otherwise in-memory."""
    if not settings.REDIS_URL:
        return _InMemoryBackend()
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL, decode_responses=True, socket_connect_timeout=2
        )
        client.ping()
        logger.info("Rate limiter using Redis backend")
        return _RedisBackend(client)
    except redis.RedisError as exc:
        logger.warning(
            "Redis unavailable for rate limiter, using in-memory fallback: %s", exc
        )
        return _InMemoryBackend()


_backend: Optional[_RateLimitBackend] = None
_backend_lock = Lock()
_fallback_backend = _InMemoryBackend()


def _get_backend() -> _RateLimitBackend:
    global _backend
    if _backend is None:
        with _backend_lock:
            if _backend is None:
                _backend = _init_backend()
    return _backend


# =============================================================================
# IP EXTRACTION
# =============================================================================


def _is_trusted_proxy(ip_str: str) -> bool:
    """Check if an IP belongs to the configured trusted proxy ranges."""
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in net for net in _trusted_networks)


def get_client_ip(request: Request) -> str:
    """Extract client IP, trusting X-Forwarded-For only from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and _is_trusted_proxy(direct_ip):
        parts = [p.strip() for p in forwarded.split(",")]
        # Rightmost untrusted hop is the real client
        for ip in reversed(parts):
            if not _is_trusted_proxy(ip):
                return ip
        return parts[0]

    return direct_ip


# =============================================================================
# PUBLIC RATE-LIMIT DEPENDENCIES
# =============================================================================


def _record_hit(key: str, limit: int, window_seconds: float) -> RateLimitHit:
    """Record a hit, counting in memory while the shared backend is failing."""
    backend = _get_backend()
    try:
        return backend.hit(key, limit, window_seconds)
    except redis.RedisError as exc:
        logger.warning(
            "Rate limiter backend error, counting in memory: %s",
            exc,
            extra={"event_type": "rate_limit_backend_error"},
        )
        return _fallback_backend.hit(key, limit, window_seconds)


async def check_send_email_rate_limit(request: Request, response: Response) -> None:
    """Allow RATE_LIMIT_MAX_REQUESTS per RATE_LIMIT_WINDOW_MS per client IP.

    RateLimit-Limit, RateLimit-Remaining and RateLimit-Reset are sent on
    every response of the endpoint; rejected requests also get Retry-After.
    """
    client_ip = get_client_ip(request)
    window_seconds = settings.rate_limit_window_seconds
    limit = settings.RATE_LIMIT_MAX_REQUESTS

    result = _record_hit(f"rl:send-email:{client_ip}", limit, window_seconds)
    headers = result.headers(limit)
    # Error handlers attach these to ApiError responses.
    request.state.rate_limit_headers = headers

    if not result.allowed(limit):
        logger.warning(
            "Rate limit exceeded on %s for %s",
            request.url.path,
            client_ip,
            extra={"event_type": "rate_limit_exceeded", "limit": limit},
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=RATE_LIMIT_MESSAGE,
            headers={**headers, "Retry-After": headers["RateLimit-Reset"]},
        )

    response.headers.update(headers)


# =============================================================================
# TEST / DEBUG HELPERS
# =============================================================================


def reset_rate_limiter_state() -> None:
    """Clear rate limiter state. Intended for tests."""
    _get_backend().reset()
    _fallback_backend.reset()


def get_rate_limit_stats() -> dict:
    """Get current rate limiting statistics (for debugging)."""
    return _get_backend().stats()
