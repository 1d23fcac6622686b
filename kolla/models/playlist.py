"""
Pydantic models for playlists.
"""

from typing import Literal, Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class PlaylistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)


class PlaylistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)


class PlaylistItemRef(BaseModel):
    """A clip or a segment to append to a playlist."""
    type: Literal["clip", "segment"]
    id: int


class AddItemsRequest(BaseModel):
    items: List[PlaylistItemRef] = Field(..., min_length=1)


class ReorderRequest(BaseModel):
    item_ids: List[int] = Field(..., description="Every item id of the playlist in the new order")


class PlaylistItemResponse(BaseModel):
    id: int
    position: int
    clip_id: Optional[int]
    segment_id: Optional[int]


class PlaylistResponse(BaseModel):
    id: int
    team_id: int
    creator_id: Optional[int]
    name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime
    item_count: int = 0


class PlaylistDetailResponse(PlaylistResponse):
    items: List[PlaylistItemResponse] = []
