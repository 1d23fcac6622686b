"""
JWT token utilities for authentication.

Access tokens are issued by the external identity provider and signed with
a shared HS256 secret. create_access_token exists for local development
and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import jwt
from jwt.exceptions import InvalidTokenError

DEFAULT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 24


def create_access_token(
    subject: str,
    secret: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    algorithm: str = DEFAULT_ALGORITHM,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The identity provider's user id
        secret: Signing secret
        email: Optional email claim
        name: Optional display name claim
        algorithm: Signing algorithm
        expires_delta: Token lifetime, defaults to 24 hours

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))

    payload = {
        "sub": subject,
        "type": "access",
        "exp": expire,
        "iat": now
    }
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name

    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = DEFAULT_ALGORITHM) -> Dict:
    """
    Decode and validate a JWT token.

    Raises:
        InvalidTokenError: If the token is invalid or expired
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {str(e)}")
