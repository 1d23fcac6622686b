"""
Pydantic models for upload links, share links and their public views.
"""

from typing import Literal, Optional, List
import datetime as dt
from pydantic import BaseModel, Field

from kolla.enums import EventType


class UploadLinkCreate(BaseModel):
    """Request model for an upload link."""
    event_id: int
    duration_days: Literal[1, 3, 7, 30] = Field(1, description="How long the link stays valid")


class UploadLinkResponse(BaseModel):
    id: int
    team_id: int
    event_id: int
    token: str
    expires_at: dt.datetime
    created_by_id: Optional[int]
    created_at: dt.datetime

    class Config:
        from_attributes = True


class UploadLinkPreview(BaseModel):
    """What an anonymous uploader sees before uploading."""
    event_id: int
    event_title: str
    event_date: dt.date
    event_type: EventType
    team_id: int
    team_name: str
    expires_at: dt.datetime


class ShareLinkCreate(BaseModel):
    event_id: int
    expires_at: Optional[dt.datetime] = None
    allow_public: bool = False


class ShareLinkResponse(BaseModel):
    id: int
    team_id: int
    event_id: int
    token: str
    expires_at: Optional[dt.datetime]
    allow_public: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True


class PlaylistShareLinkCreate(BaseModel):
    expires_at: Optional[dt.datetime] = None


class PlaylistShareLinkResponse(BaseModel):
    id: int
    team_id: int
    playlist_id: int
    token: str
    expires_at: Optional[dt.datetime]
    created_at: dt.datetime

    class Config:
        from_attributes = True


class SharedClip(BaseModel):
    """A clip as seen through a share link."""
    id: int
    name: Optional[str]
    index: int
    status: str
    duration_s: Optional[float]
    playback_url: Optional[str] = None
    tags: List[str] = []


class SharedSegment(BaseModel):
    id: int
    clip_id: int
    name: Optional[str]
    index: int
    start_s: float
    end_s: float
    playback_url: Optional[str] = None


class SharedEventResponse(BaseModel):
    event_id: int
    title: str
    type: EventType
    date: dt.date
    allow_public: bool
    clips: List[SharedClip]
    segments: List[SharedSegment]


class SharedPlaylistItem(BaseModel):
    position: int
    clip: Optional[SharedClip] = None
    segment: Optional[SharedSegment] = None


class SharedPlaylistResponse(BaseModel):
    playlist_id: int
    name: str
    description: Optional[str]
    items: List[SharedPlaylistItem]
