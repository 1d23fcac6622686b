"""
Teams routes.

Provides endpoints for team management and membership.
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import List
from sqlalchemy import delete, func, insert, select

from kolla.database import team_memberships, teams, users
from kolla.enums import MembershipRole
from kolla.models.team import (
    TeamCreate,
    TeamResponse,
    MemberResponse,
    InviteMemberRequest,
    AddMembersRequest
)
from kolla.auth import get_current_user, get_engine, get_team_membership, require_coach
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(prefix="/teams", tags=["Teams"])


def _member_query(team_id: int):
    return (
        select(
            team_memberships.c.id,
            team_memberships.c.user_id,
            team_memberships.c.role,
            team_memberships.c.created_at,
            users.c.email,
            users.c.display_name,
        )
        .join(users, users.c.id == team_memberships.c.user_id)
        .where(team_memberships.c.team_id == team_id)
    )


def _member_response(row) -> MemberResponse:
    return MemberResponse(
        id=row["id"],
        user_id=row["user_id"],
        email=row["email"],
        display_name=row["display_name"],
        role=row["role"],
        joined_at=row["created_at"]
    )


@router.get("", response_model=List[TeamResponse])
async def list_teams(
    current_user: dict = Depends(get_current_user),
    engine=Depends(get_engine)
):
    """
    List all teams the caller belongs to, with their role on each.
    """
    member_count = (
        select(func.count())
        .where(team_memberships.c.team_id == teams.c.id)
        .correlate(teams)
        .scalar_subquery()
    )
    async with engine.begin() as conn:
        rows = (await conn.execute(
            select(teams, team_memberships.c.role, member_count.label("member_count"))
            .join(team_memberships, team_memberships.c.team_id == teams.c.id)
            .where(team_memberships.c.user_id == current_user["id"])
            .order_by(teams.c.created_at.desc(), teams.c.id.desc())
        )).mappings().all()

    return [
        TeamResponse(
            id=row["id"],
            name=row["name"],
            created_at=row["created_at"],
            role=row["role"],
            member_count=row["member_count"]
        )
        for row in rows
    ]


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team: TeamCreate,
    current_user: dict = Depends(get_current_user),
    engine=Depends(get_engine)
):
    """
    Create a new team.

    The creating user is automatically added as a coach.
    """
    async with engine.begin() as conn:
        result = await conn.execute(insert(teams).values(name=team.name))
        team_id = result.inserted_primary_key[0]

        # Add creator as coach
        await conn.execute(
            insert(team_memberships).values(
                team_id=team_id,
                user_id=current_user["id"],
                role=MembershipRole.COACH.value
            )
        )
        row = (await conn.execute(select(teams).where(teams.c.id == team_id))).mappings().one()

    return TeamResponse(
        id=row["id"],
        name=row["name"],
        created_at=row["created_at"],
        role=MembershipRole.COACH,
        member_count=1
    )


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """
    Get details for a specific team.

    Caller must be a member of the team.
    """
    async with engine.begin() as conn:
        row = (await conn.execute(select(teams).where(teams.c.id == team_id))).mappings().first()
        count = (await conn.execute(
            select(func.count()).where(team_memberships.c.team_id == team_id)
        )).scalar()

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Team not found"
        )

    return TeamResponse(
        id=row["id"],
        name=row["name"],
        created_at=row["created_at"],
        role=membership["role"],
        member_count=count
    )


@router.get("/{team_id}/members", response_model=List[MemberResponse])
async def list_members(
    team_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """List the team's coaches and players."""
    async with engine.begin() as conn:
        rows = (await conn.execute(
            _member_query(team_id).order_by(team_memberships.c.role, team_memberships.c.id)
        )).mappings().all()

    return [_member_response(row) for row in rows]


@router.post("/{team_id}/members/invite", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    team_id: int,
    invite: InviteMemberRequest,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Add an existing user to the team by email.

    The user must have signed in at least once.
    """
    async with engine.begin() as conn:
        user_id = (await conn.execute(
            select(users.c.id).where(func.lower(users.c.email) == invite.email.lower())
        )).scalar()

        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No user with that email"
            )

        existing = (await conn.execute(
            select(team_memberships.c.id).where(
                team_memberships.c.team_id == team_id,
                team_memberships.c.user_id == user_id
            )
        )).scalar()
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User is already a member of this team"
            )

        result = await conn.execute(
            insert(team_memberships).values(team_id=team_id, user_id=user_id, role=invite.role.value)
        )

        row = (await conn.execute(
            _member_query(team_id).where(team_memberships.c.id == result.inserted_primary_key[0])
        )).mappings().one()

    log_sensitive_operation(
        "member_added", membership["user"]["id"], team_id, request, details=f"user {user_id} as {invite.role.value}"
    )
    return _member_response(row)


@router.post("/{team_id}/members", response_model=List[MemberResponse], status_code=status.HTTP_201_CREATED)
async def add_members(
    team_id: int,
    body: AddMembersRequest,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Add existing users to the team by id.

    Users who are already members are left unchanged.
    """
    wanted = list(dict.fromkeys(body.user_ids))
    async with engine.begin() as conn:
        found = set((await conn.execute(select(users.c.id).where(users.c.id.in_(wanted)))).scalars())
        missing = [user_id for user_id in wanted if user_id not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Users not found: {missing}"
            )

        existing = set((await conn.execute(
            select(team_memberships.c.user_id).where(
                team_memberships.c.team_id == team_id,
                team_memberships.c.user_id.in_(wanted)
            )
        )).scalars())

        for user_id in wanted:
            if user_id not in existing:
                await conn.execute(
                    insert(team_memberships).values(team_id=team_id, user_id=user_id, role=body.role.value)
                )

        rows = (await conn.execute(
            _member_query(team_id)
            .where(team_memberships.c.user_id.in_(wanted))
            .order_by(team_memberships.c.id)
        )).mappings().all()

    log_sensitive_operation(
        "members_added", membership["user"]["id"], team_id, request, details=f"users {wanted}"
    )
    return [_member_response(row) for row in rows]


@router.delete("/{team_id}/members/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    team_id: int,
    membership_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Remove a member from the team.

    The last coach cannot be removed.
    """
    async with engine.begin() as conn:
        row = (await conn.execute(
            select(team_memberships).where(
                team_memberships.c.id == membership_id,
                team_memberships.c.team_id == team_id
            )
        )).mappings().first()

        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Member not found"
            )

        if row["role"] == MembershipRole.COACH.value:
            coaches = (await conn.execute(
                select(func.count()).where(
                    team_memberships.c.team_id == team_id,
                    team_memberships.c.role == MembershipRole.COACH.value
                )
            )).scalar()
            if coaches <= 1:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Cannot remove the last coach"
                )

        await conn.execute(delete(team_memberships).where(team_memberships.c.id == membership_id))

    log_sensitive_operation(
        "member_removed", membership["user"]["id"], team_id, request, details=f"user {row['user_id']}"
    )
