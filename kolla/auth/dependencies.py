"""
FastAPI dependencies for authentication and authorization.

Provides dependency functions that protect routes and resolve the caller's
team membership. The database engine and settings are read from
app.state, which the application lifespan populates.
"""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt.exceptions import InvalidTokenError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from kolla.config import Settings
from kolla.database import team_memberships, users
from kolla.enums import MembershipRole
from kolla.utils.audit_log import log_auth_event, log_authorization_failure
from .jwt import decode_token

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_engine(request: Request) -> AsyncEngine:
    return request.app.state.engine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request):
    return request.app.state.registry


def get_ingestion(request: Request):
    return request.app.state.ingestion


def get_approval(request: Request):
    return request.app.state.approval


def get_transcoding(request: Request):
    return request.app.state.transcoding


def get_store(request: Request):
    return request.app.state.store


def _user_dict(row) -> dict:
    return {
        "id": row["id"],
        "external_id": row["external_id"],
        "email": row["email"],
        "display_name": row["display_name"],
    }


async def _get_or_create_user(engine: AsyncEngine, payload: dict) -> dict:
    """Look up the user by token subject, creating the row on first sight."""
    subject = str(payload["sub"])
    query = select(users).where(users.c.external_id == subject)

    async with engine.begin() as conn:
        row = (await conn.execute(query)).mappings().first()
        if row:
            return _user_dict(row)

    try:
        async with engine.begin() as conn:
            await conn.execute(
                users.insert().values(
                    external_id=subject,
                    email=payload.get("email"),
                    display_name=payload.get("name"),
                )
            )
    except IntegrityError:
        # Another request provisioned the same subject first
        pass

    async with engine.begin() as conn:
        row = (await conn.execute(query)).mappings().one()
    log_auth_event("user_provisioned", subject, True)
    return _user_dict(row)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Get the current authenticated user (required).

    Raises 401 if no valid token is provided.

    Returns:
        User dictionary
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_settings(request)
    try:
        payload = decode_token(credentials.credentials, settings.jwt_secret, settings.jwt_algorithm)
    except InvalidTokenError as e:
        log_auth_event("token_rejected", None, False, request, details=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type", "access") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return await _get_or_create_user(get_engine(request), payload)


async def get_team_membership(
    team_id: int,
    request: Request,
    current_user: dict = Depends(get_current_user)
) -> dict:
    """
    Resolve the caller's membership in the team named by the route.

    Raises:
        HTTPException: 403 if the user is not a member of the team
    """
    async with get_engine(request).begin() as conn:
        role = (await conn.execute(
            select(team_memberships.c.role).where(
                team_memberships.c.team_id == team_id,
                team_memberships.c.user_id == current_user["id"],
            )
        )).scalar()

    if role is None:
        log_authorization_failure(
            current_user["id"], None, "team", team_id, "access", request, reason="not a member"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access to this team"
        )

    return {"team_id": team_id, "role": role, "user": current_user}


def require_role(required_role: MembershipRole):
    """
    Create a dependency that requires a specific role on the route's team.

    Args:
        required_role: The membership role required

    Returns:
        Dependency function that checks the caller's membership role
    """
    async def role_checker(
        request: Request,
        membership: dict = Depends(get_team_membership)
    ) -> dict:
        if membership["role"] != required_role.value:
            log_authorization_failure(
                membership["user"]["id"], membership["role"], "team", membership["team_id"],
                request.method.lower(), request, reason=f"requires {required_role.value}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires {required_role.value} role"
            )
        return membership

    return role_checker


def require_coach():
    """
    Shorthand dependency for requiring the coach role.
    """
    return require_role(MembershipRole.COACH)
