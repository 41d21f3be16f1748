"""
HTTP middleware: per-IP rate limiting and access logging.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RateLimiter:
    """In-memory sliding window of request timestamps per client."""

    # Idle clients are swept every this many calls, and at least once per window
    SWEEP_EVERY = 1000

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._calls = 0
        self._last_sweep: Optional[float] = None

    def _expire(self, window: Deque[float], now: float) -> None:
        while window and now - window[0] >= self.window_seconds:
            window.popleft()

    def sweep(self, now: Optional[float] = None) -> int:
        """Forget clients with no requests left in their window."""
        now = time.monotonic() if now is None else now
        idle = []
        for client_id, window in self.requests.items():
            self._expire(window, now)
            if not window:
                idle.append(client_id)
        for client_id in idle:
            del self.requests[client_id]
        return len(idle)

    def is_allowed(self, client_id: str, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        self._calls += 1
        if self._last_sweep is None:
            self._last_sweep = now
        elif self._calls % self.SWEEP_EVERY == 0 or now - self._last_sweep >= self.window_seconds:
            self.sweep(now)
            self._last_sweep = now

        window = self.requests[client_id]
        self._expire(window, now)

        if len(window) >= self.max_requests:
            return False
        window.append(now)
        return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_requests: int, window_seconds: int):
        super().__init__(app)
        self.limiter = RateLimiter(max_requests, window_seconds)

    async def dispatch(self, request: Request, call_next):
        client_id = request.client.host if request.client else "unknown"
        if not self.limiter.is_allowed(client_id):
            logger.warning(f"Rate limit exceeded for {client_id}")
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Too many requests from this IP, please try again later.",
                },
            )
        return await call_next(request)


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms"
        )
        return response
