"""
Rate limiting middleware for API endpoints.

Implements per-IP rate limiting to prevent abuse, with tighter limits on
the unauthenticated token routes. Uses in-memory storage, so limits are
per process.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Dict, Optional, Tuple
import time

# Job callbacks and provider webhooks are never throttled
EXEMPT_PREFIXES = ("/api/process/", "/api/transcoding/", "/health")


class RateLimiter:
    """
    Simple in-memory sliding window rate limiter.
    """

    def __init__(self):
        # Storage: {key: [(timestamp, count)]}
        self.requests: Dict[str, list[Tuple[float, int]]] = {}
        self.cleanup_interval = 300
        self.last_cleanup = time.time()

    def _cleanup(self):
        """Remove old entries to prevent memory leak."""
        now = time.time()
        if now - self.last_cleanup > self.cleanup_interval:
            cutoff = now - 3600
            for key in list(self.requests.keys()):
                self.requests[key] = [
                    (ts, count) for ts, count in self.requests[key]
                    if ts > cutoff
                ]
                if not self.requests[key]:
                    del self.requests[key]
            self.last_cleanup = now

    def is_allowed(self, key: str, limit: int, window: int) -> Tuple[bool, Dict]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Unique identifier for rate limit (IP and route class)
            limit: Maximum number of requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (allowed, headers_dict) where headers_dict contains
            rate limit information for response headers
        """
        self._cleanup()

        now = time.time()
        window_start = now - window

        current_window_requests = [
            (ts, count) for ts, count in self.requests.get(key, [])
            if ts > window_start
        ]
        self.requests[key] = current_window_requests

        request_count = sum(count for _, count in current_window_requests)
        allowed = request_count < limit

        if allowed:
            self.requests[key].append((now, 1))
            remaining = limit - request_count - 1
        else:
            remaining = 0

        if current_window_requests:
            oldest_ts = min(ts for ts, _ in current_window_requests)
            reset_time = int(oldest_ts + window)
        else:
            reset_time = int(now + window)

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(reset_time)
        }

        return allowed, headers


def classify(path: str) -> Optional[Tuple[str, int, int, str]]:
    """
    Pick the limit bucket for a path.

    Returns:
        (bucket, limit, window, message), or None when the path is exempt
    """
    if path.startswith(EXEMPT_PREFIXES):
        return None
    if path.startswith("/upload/") or path.startswith("/share/"):
        return "public", 20, 60, "Too many requests for this link. Please slow down."
    if path.endswith("/presign"):
        return "presign", 10, 60, "Too many uploads. Please slow down."
    return "api", 100, 60, "Too many requests. Please slow down."


# Global rate limiter instance
rate_limiter = RateLimiter()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to apply rate limiting to requests.

    Public link routes: 20 requests/minute per IP
    Presign endpoints: 10 requests/minute per IP
    Everything else: 100 requests/minute per IP
    Job callbacks and provider webhooks are exempt.
    """

    async def dispatch(self, request: Request, call_next):
        settings = getattr(request.app.state, "settings", None)
        if settings is not None and not settings.rate_limit_enabled:
            return await call_next(request)

        bucket = classify(request.url.path)
        if bucket is None:
            return await call_next(request)

        name, limit, window, message = bucket
        client_ip = request.client.host if request.client else "unknown"
        allowed, headers = rate_limiter.is_allowed(f"{name}:{client_ip}", limit, window)

        if not allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": message},
                headers=headers
            )

        response = await call_next(request)
        for header_name, header_value in headers.items():
            response.headers[header_name] = header_value
        return response
