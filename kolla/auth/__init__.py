"""
Authentication module for the Kolla API.

This module provides:
- JWT token validation for identity provider tokens
- FastAPI dependencies for route protection and team membership
"""

from .jwt import create_access_token, decode_token
from .dependencies import (
    get_current_user,
    get_engine,
    get_settings,
    get_registry,
    get_ingestion,
    get_approval,
    get_transcoding,
    get_store,
    get_team_membership,
    require_role,
    require_coach
)

__all__ = [
    "create_access_token",
    "decode_token",
    "get_current_user",
    "get_engine",
    "get_settings",
    "get_registry",
    "get_ingestion",
    "get_approval",
    "get_transcoding",
    "get_store",
    "get_team_membership",
    "require_role",
    "require_coach",
]
