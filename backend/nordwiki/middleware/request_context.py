"""Per-request context: request and caller ids, throttling, timing, access log.

Reads and writes are throttled by separate token buckets. Page loads and
conflict polls are frequent and cheap; saves, merges and comments are not,
so a client hammering PUT does not starve its own page views.

Clients are keyed by the gateway user id when present, otherwise by IP, so
users behind one proxy do not share a bucket.
"""

import logging
import threading
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var, user_id_var

logger = logging.getLogger(__name__)

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Probes and docs are never throttled.
_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})

# Buckets untouched this long are dropped on the next sweep.
_BUCKET_TTL = 120.0
_SWEEP_EVERY = 100


def check_rate_limit(
    bucket: dict[str, tuple[float, float]],
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Take one token for *key* from *bucket*.

    *bucket* maps key to ``(tokens, last_refill)`` and is modified in place.
    Returns ``(allowed, retry_after)`` where *retry_after* is the number of
    seconds until the next token (0.0 when allowed). A limit of 0 disables
    throttling.
    """
    if max_per_minute <= 0:
        return True, 0.0
    if now is None:
        now = time.monotonic()

    per_second = max_per_minute / 60.0
    tokens, last = bucket.get(key, (float(max_per_minute), now))
    tokens = min(float(max_per_minute), tokens + (now - last) * per_second)

    if tokens >= 1.0:
        bucket[key] = (tokens - 1.0, now)
        return True, 0.0
    bucket[key] = (tokens, now)
    return False, (1.0 - tokens) / per_second


class RateLimiter:
    """Thread-safe owner of the in-memory buckets."""

    def __init__(self) -> None:
        self.buckets: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()
        self._calls = 0

    def hit(self, key: str, max_per_minute: int) -> tuple[bool, float]:
        with self._lock:
            now = time.monotonic()
            self._calls += 1
            if self._calls % _SWEEP_EVERY == 0:
                self._sweep(now)
            return check_rate_limit(self.buckets, key, max_per_minute, now=now)

    def _sweep(self, now: float) -> None:
        cutoff = now - _BUCKET_TTL
        for key in [k for k, (_, ts) in self.buckets.items() if ts < cutoff]:
            del self.buckets[key]


_limiter = RateLimiter()
_rate_buckets = _limiter.buckets


def _client_key(request: Request) -> str:
    user_id = request.headers.get("x-user-id")
    if user_id:
        return f"user:{user_id}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def _throttled(request: Request, key: str) -> Optional[float]:
    """Seconds to wait when the request is over a limit, else None."""
    if request.method in _WRITE_METHODS:
        allowed, retry_after = _limiter.hit(f"write:{key}", settings.write_rate_limit_per_minute)
        if not allowed:
            return retry_after
    allowed, retry_after = _limiter.hit(key, settings.rate_limit_per_minute)
    return None if allowed else retry_after


def _too_many_requests(rid: str, retry_after: float) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMITED",
            "message": "Too many requests",
            "details": {"retry_after": round(retry_after, 1)},
        },
        headers={"Retry-After": str(int(retry_after) + 1), "X-Request-ID": rid},
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request id, caller id, rate limit, timing and access log for every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)
        user_id_var.set(request.headers.get("x-user-id", ""))

        if request.url.path not in _EXEMPT_PATHS:
            key = _client_key(request)
            retry_after = _throttled(request, key)
            if retry_after is not None:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "method": request.method, "path": request.url.path,
                           "retry_after": round(retry_after, 1)},
                )
                return _too_many_requests(rid, retry_after)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
