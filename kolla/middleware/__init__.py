"""
Middleware modules for the Kolla API.
"""

from .rate_limit import RateLimiter, RateLimitMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimiter",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware"
]
