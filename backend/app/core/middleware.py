"""
middleware.py — HTTP Hardening Middleware

- SecurityHeadersMiddleware   fixed security headers on every response
- RequestSizeLimitMiddleware  413 when the request body exceeds the limit
- RateLimitMiddleware         per-client request budget per time window

Middleware runs outside the routers, so rejections are rendered with
core.errors.error_response() instead of being raised.
"""

import threading
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.errors import PayloadTooLargeError, RateLimitExceededError, error_response
from app.core.logging import get_logger

logger = get_logger(__name__)

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; connect-src 'self'; font-src 'self'; object-src 'none'; "
        "base-uri 'self'; form-action 'self'"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}

HSTS_HEADER = "max-age=31536000; includeSubDomains; preload"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


def _format_size(num_bytes: int) -> str:
    if num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    if num_bytes % 1024 == 0:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes} bytes"


class RequestSizeLimitMiddleware:
    """
    413 for bodies over the limit.

    A declared Content-Length is checked up front. Bodies without one
    (chunked transfer) are counted as they stream in; once the count passes
    the limit, reading stops and whatever the app would have answered is
    replaced by the 413.

    Plain ASGI rather than BaseHTTPMiddleware, because it has to wrap
    `receive` and `send`.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = 1024 * 1024):
        self.app = app
        self.max_bytes = max_bytes

    def _too_large(self) -> PayloadTooLargeError:
        return PayloadTooLargeError(
            f"Request entity too large. Maximum size: {_format_size(self.max_bytes)}"
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method, path = scope.get("method", ""), scope.get("path", "")
        content_length = Headers(scope=scope).get("content-length")
        if content_length:
            try:
                declared = int(content_length)
            except ValueError:
                # Unparseable lengths are left to the server to reject
                declared = 0
            if declared > self.max_bytes:
                logger.warning("Rejected %s %s: %d bytes over limit", method, path, declared)
                await error_response(self._too_large())(scope, receive, send)
                return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    exceeded = True
                    raise self._too_large()
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if exceeded and not response_started:
                # The app's own answer to the aborted read is dropped
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except PayloadTooLargeError:
            if not exceeded:
                raise

        if exceeded and not response_started:
            logger.warning("Rejected %s %s: streamed body over %d bytes", method, path, self.max_bytes)
            await error_response(self._too_large())(scope, receive, send)


class RateLimiter:
    """
    In-memory request log per client: a request is allowed while fewer than
    `max_requests` were made within the last `window_seconds`.

    Every `sweep_interval` calls to is_allowed() all clients are pruned, so
    addresses that never come back do not stay in memory.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 1000,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._calls = 0
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self.lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        for identifier in list(self.requests):
            self._prune(identifier, now)

    def _prune(self, identifier: str, now: float) -> List[float]:
        valid = [t for t in self.requests.get(identifier, []) if now - t < self.window_seconds]
        if valid:
            self.requests[identifier] = valid
        else:
            self.requests.pop(identifier, None)
        return valid

    def is_allowed(self, identifier: str) -> bool:
        now = self._clock()
        with self.lock:
            self._calls += 1
            if self._calls % self.sweep_interval == 0:
                self._sweep(now)
            valid = self._prune(identifier, now)
            if len(valid) >= self.max_requests:
                return False
            self.requests[identifier] = valid + [now]
            return True

    def get_retry_after(self, identifier: str) -> int:
        """Seconds until the oldest request in the window expires."""
        now = self._clock()
        with self.lock:
            valid = self._prune(identifier, now)
            if len(valid) < self.max_requests:
                return 0
            return max(0, int(self.window_seconds - (now - min(valid))) + 1)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limiter: Optional[RateLimiter] = None,
        exempt_paths: Iterable[str] = ("/health",),
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter()
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        if not self.limiter.is_allowed(client):
            logger.warning("Rate limit exceeded for %s on %s %s", client, request.method, request.url.path)
            return error_response(RateLimitExceededError(self.limiter.get_retry_after(client)))
        return await call_next(request)
