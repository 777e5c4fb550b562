from __future__ import annotations

import asyncio
import ipaddress
import math
import time
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .metrics import rate_limit_hits_total, rate_limit_requests_total
from .settings import settings

# Request ID for the current request; read by the structlog processors
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def add_cors(app):
    origins = settings.allow_origins
    if not origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)
        headers = {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "no-referrer",
            # the chat front end asks for the device position to resolve the city
            "Permissions-Policy": "camera=(), microphone=(), geolocation=(self)",
        }
        if request.url.scheme in {"https", "wss"}:
            headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        for key, value in headers.items():
            response.headers.setdefault(key, value)
        return response


def add_security_headers(app):
    app.add_middleware(SecurityHeadersMiddleware)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse or mint an X-Request-ID and expose it to logging via `request_id_ctx`."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        token = request_id_ctx.set(request_id)
        # discovery fields bound by a previous request on this context must not leak
        structlog.contextvars.clear_contextvars()
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


def add_request_id_tracing(app):
    app.add_middleware(RequestIDMiddleware)


def get_request_id() -> str:
    return request_id_ctx.get("")


class RateLimiter:
    """Token bucket per client address; buckets idle for three windows are dropped."""

    def __init__(self) -> None:
        self._buckets: dict[str, tuple[float, float]] = {}
        self._lock = asyncio.Lock()
        self._last_cleanup = 0.0

    async def dispatch(self, request: Request, call_next):
        limit = settings.RATE_LIMIT_REQUESTS
        window = settings.RATE_LIMIT_WINDOW_SECONDS
        if not settings.RATE_LIMIT_ENABLED or limit <= 0 or window <= 0:
            return await call_next(request)

        allowed, remaining, reset_in = await self._consume(
            self.client_key(request), limit, window, time.monotonic()
        )
        if not allowed:
            rate_limit_hits_total.inc()
            rate_limit_requests_total.labels(result="throttle").inc()
            retry_after = max(1, math.ceil(reset_in))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests"},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        rate_limit_requests_total.labels(result="allow").inc()
        response.headers.setdefault("X-RateLimit-Limit", str(limit))
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    async def _consume(
        self, key: str, limit: int, window: int, now: float
    ) -> tuple[bool, int, float]:
        refill_rate = limit / window
        async with self._lock:
            tokens, last = self._buckets.get(key, (float(limit), now))
            tokens = min(float(limit), tokens + (now - last) * refill_rate)
            self._cleanup(now, window)
            if tokens >= 1:
                tokens -= 1
                self._buckets[key] = (tokens, now)
                return True, int(tokens), 0.0
            self._buckets[key] = (tokens, now)
            return False, 0, (1 - tokens) / refill_rate

    def _cleanup(self, now: float, window: int) -> None:
        if now - self._last_cleanup < window:
            return
        cutoff = now - window * 3
        for key in [k for k, (_, last) in self._buckets.items() if last < cutoff]:
            del self._buckets[key]
        self._last_cleanup = now

    def reset(self) -> None:
        self._buckets.clear()
        self._last_cleanup = 0.0

    def client_key(self, request: Request) -> str:
        """
        Client address used as the bucket key.

        X-Forwarded-For is honoured only when the direct peer is a trusted proxy; the
        first valid address in the chain is the original client.
        """
        direct = request.client.host if request.client else None
        if not direct or not _is_trusted_proxy(direct):
            return direct or "anonymous"
        forwarded = request.headers.get("x-forwarded-for") or ""
        for candidate in (part.strip() for part in forwarded.split(",")):
            try:
                ipaddress.ip_address(candidate)
            except ValueError:
                continue
            return candidate
        return direct


def _is_trusted_proxy(ip: str) -> bool:
    trusted = settings.TRUSTED_PROXIES.strip()
    if not trusted:
        return False
    if trusted == "*":
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for entry in (part.strip() for part in trusted.split(",")):
        if not entry:
            continue
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def add_rate_limiting(app):
    limiter = RateLimiter()
    app.state.rate_limiter = limiter

    @app.middleware("http")
    async def _rate_limit(request: Request, call_next):  # type: ignore[override]
        return await limiter.dispatch(request, call_next)
