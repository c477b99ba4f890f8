import logging
import os
import time
from collections import defaultdict, deque
from threading import Lock

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# applies to outbound scrapes only
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "30"))   # scrapes allowed per window
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))       # window in seconds
RATE_LIMITED_PATHS = frozenset({"/scrape"})


def client_identity(request: Request) -> str:
    """Principal id when the gateway supplied one, else the client IP."""
    user_id = request.headers.get("X-User-Id")
    if user_id:
        return f"user:{user_id}"
    # honour X-Forwarded-For if behind a proxy / load balancer
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limit on outbound scrapes, per principal."""

    def __init__(
        self,
        app,
        requests_per_window: int = RATE_LIMIT_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW,
        limited_paths: frozenset = RATE_LIMITED_PATHS,
    ):
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.limited_paths = limited_paths
        self._history: dict[str, deque] = defaultdict(deque)
        self._lock = Lock()

    def _retry_after(self, identity: str, now: float) -> int:
        """Seconds until `identity` may scrape again; 0 records the attempt and lets it through."""
        with self._lock:
            history = self._history[identity]
            while history and history[0] <= now - self.window_seconds:
                history.popleft()
            if len(history) >= self.requests_per_window:
                return int(self.window_seconds - (now - history[0])) + 1
            history.append(now)
            return 0

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.limited_paths:
            return await call_next(request)

        identity = client_identity(request)
        retry_after = self._retry_after(identity, time.monotonic())
        if retry_after:
            logger.warning("Scrape rate limit hit for %s", identity)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many scrape requests. Please slow down.", "code": "rate_limit_exceeded"},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s [%s] -> %d (%dms)",
            request.method,
            request.url.path,
            client_identity(request),
            response.status_code,
            int((time.perf_counter() - start) * 1000),
        )
        return response
