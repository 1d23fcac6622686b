"""
Domain errors raised by services and mapped to HTTP responses in app.py.
"""

from fastapi import status


class KollaError(Exception):
    """Base class for errors that carry their own HTTP status."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(KollaError):
    """Entity missing, or not visible to the caller's team."""
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(KollaError):
    status_code = status.HTTP_403_FORBIDDEN


class ExpiredTokenError(ForbiddenError):
    """Upload or share link used past its expiration."""


class InvalidInputError(KollaError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransitionError(KollaError):
    """Clip is in the wrong status for the requested operation."""
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(KollaError):
    """Object store or transcoding provider call failed."""
    status_code = status.HTTP_502_BAD_GATEWAY
