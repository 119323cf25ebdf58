"""HTTP middleware: throttling, request tracing and response hardening."""

import logging
import time

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from settlement_core.config import settings

logger = logging.getLogger(__name__)

# Gateways retry on their own schedule; never throttle them
RATE_LIMIT_EXEMPT_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json", f"{settings.api_prefix}/webhooks")

WINDOW_SECONDS = 60


def client_key(request: Request) -> str:
    """Caller identity for throttling: bearer token if present, else client IP."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        # Tail of the token is enough to tell callers apart
        return f"token:{auth[-32:]}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limit kept in Redis, shared by all instances.

    When Redis cannot be reached requests are let through.
    """

    def __init__(self, app, requests_per_minute: int = 100, redis_url: str | None = None):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def _hits(self, key: str, now: float) -> int:
        """Record this request and return how many preceded it in the window."""
        async with self._client().pipeline(transaction=True) as pipe:
            await pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
            await pipe.zcard(key)
            await pipe.zadd(key, {str(time.time_ns()): now})
            await pipe.expire(key, WINDOW_SECONDS)
            results = await pipe.execute()
        return results[1]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if settings.debug or request.url.path.startswith(RATE_LIMIT_EXEMPT_PREFIXES):
            return await call_next(request)

        now = time.time()
        try:
            hits = await self._hits(f"rate_limit:{client_key(request)}", now)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, not throttling: {e}")
            return await call_next(request)

        reset = str(int(now) + WINDOW_SECONDS)
        if hits >= self.requests_per_minute:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later.", "retryable": True},
                headers={
                    "Retry-After": str(WINDOW_SECONDS),
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": reset,
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_minute - hits - 1))
        response.headers["X-RateLimit-Reset"] = reset
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags every response with a request id and its duration."""

    slow_request_seconds = 1.0

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(time.time_ns())
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        line = (
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {duration:.3f}s request_id={request_id}"
        )
        if duration > self.slow_request_seconds:
            logger.warning(f"SLOW REQUEST: {line}")
        elif response.status_code >= 500:
            logger.warning(line)
        else:
            logger.debug(line)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds hardening headers; status and booking reads are never cached."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers.setdefault("Cache-Control", "no-store")
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
