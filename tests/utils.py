"""
Test utilities and helper functions.

Provides helper functions for creating test data and making authenticated requests.
"""

from datetime import date, timedelta
from typing import Dict, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from kolla.auth import create_access_token
from kolla.database import clips, events, players, team_memberships, teams, upload_links, users, utcnow
from kolla.enums import ClipStatus, EventType, MembershipRole

TEST_JWT_SECRET = "test-secret-key-do-not-use-in-production"


async def create_test_user(
    engine: AsyncEngine,
    external_id: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None
) -> Dict:
    """
    Create a test user and an access token for them.

    Args:
        engine: Database engine
        external_id: Identity provider subject
        email: Optional email address
        display_name: Optional display name

    Returns:
        Dictionary with user data and a bearer token
    """
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(users).values(external_id=external_id, email=email, display_name=display_name)
        )
        user_id = result.inserted_primary_key[0]

    return {
        "id": user_id,
        "external_id": external_id,
        "email": email,
        "display_name": display_name,
        "token": create_access_token(external_id, TEST_JWT_SECRET, email=email, name=display_name)
    }


async def create_test_team(engine: AsyncEngine, coach_id: int, name: str) -> Dict:
    """Create a team with the given user as its coach."""
    async with engine.begin() as conn:
        result = await conn.execute(insert(teams).values(name=name))
        team_id = result.inserted_primary_key[0]
        await conn.execute(
            insert(team_memberships).values(team_id=team_id, user_id=coach_id, role=MembershipRole.COACH.value)
        )

    return {"id": team_id, "name": name}


async def add_member(engine: AsyncEngine, team_id: int, user_id: int, role: MembershipRole) -> int:
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(team_memberships).values(team_id=team_id, user_id=user_id, role=role.value)
        )
    return result.inserted_primary_key[0]


async def create_test_event(
    engine: AsyncEngine,
    team_id: int,
    title: str,
    event_type: EventType = EventType.GAME,
    event_date: Optional[date] = None
) -> Dict:
    event_date = event_date or date(2024, 11, 2)
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(events).values(team_id=team_id, type=event_type.value, title=title, date=event_date)
        )

    return {"id": result.inserted_primary_key[0], "team_id": team_id, "title": title, "date": event_date}


async def create_test_roster_player(engine: AsyncEngine, team_id: int, name: str, number: Optional[int] = None) -> Dict:
    async with engine.begin() as conn:
        result = await conn.execute(insert(players).values(team_id=team_id, name=name, number=number))

    return {"id": result.inserted_primary_key[0], "team_id": team_id, "name": name, "number": number}


async def create_test_upload_link(
    engine: AsyncEngine,
    team_id: int,
    event_id: int,
    token: str,
    expires_in: timedelta = timedelta(days=1)
) -> Dict:
    """Insert an upload link directly, so expired links can be created too."""
    expires_at = utcnow() + expires_in
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(upload_links).values(team_id=team_id, event_id=event_id, token=token, expires_at=expires_at)
        )

    return {"id": result.inserted_primary_key[0], "token": token, "expires_at": expires_at}


async def force_clip_status(engine: AsyncEngine, clip_id: int, status: ClipStatus, **values):
    """Write a clip's status directly, bypassing the transition rules."""
    async with engine.begin() as conn:
        await conn.execute(update(clips).where(clips.c.id == clip_id).values(status=status.value, **values))


async def count_clips(engine: AsyncEngine, event_id: int) -> int:
    async with engine.begin() as conn:
        rows = (await conn.execute(select(clips.c.id).where(clips.c.event_id == event_id))).all()
    return len(rows)


def auth_headers(token: str) -> Dict[str, str]:
    """
    Build an Authorization header for a bearer token.

    Args:
        token: JWT access token

    Returns:
        Headers dictionary
    """
    return {"Authorization": f"Bearer {token}"}
