"""
Pydantic models for teams, memberships and the player roster.
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from kolla.enums import MembershipRole


class TeamCreate(BaseModel):
    """Request model for creating a team."""
    name: str = Field(..., min_length=1, max_length=100, description="Team name")


class TeamResponse(BaseModel):
    """Response model for team data, with the caller's role."""
    id: int
    name: str
    created_at: datetime
    role: Optional[MembershipRole] = None
    member_count: Optional[int] = None

    class Config:
        from_attributes = True


class MemberResponse(BaseModel):
    """Response model for a team member."""
    id: int = Field(..., description="Membership id")
    user_id: int
    email: Optional[str]
    display_name: Optional[str]
    role: MembershipRole
    joined_at: datetime


class InviteMemberRequest(BaseModel):
    """Add an existing user to the team by email."""
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    role: MembershipRole = MembershipRole.PLAYER


class AddMembersRequest(BaseModel):
    """Add existing users to the team by id."""
    user_ids: List[int] = Field(..., min_length=1, description="User ids to add")
    role: MembershipRole = MembershipRole.PLAYER


class PlayerCreate(BaseModel):
    """Request model for adding a roster player."""
    name: str = Field(..., min_length=1, max_length=100, description="Player's name")
    number: Optional[int] = Field(None, ge=0, le=999, description="Jersey number")
    external_id: Optional[str] = Field(None, max_length=100, description="Id in an outside roster system")


class PlayerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    number: Optional[int] = Field(None, ge=0, le=999)
    external_id: Optional[str] = Field(None, max_length=100)


class PlayerResponse(BaseModel):
    id: int
    team_id: int
    name: str
    number: Optional[int]
    external_id: Optional[str]

    class Config:
        from_attributes = True
