"""
Pydantic models for segments (named time ranges within a clip).
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from .clip import TagResponse


class SegmentCreate(BaseModel):
    event_id: int
    clip_id: int
    name: Optional[str] = Field(None, max_length=255)
    start_s: float = Field(..., ge=0, description="Start offset in seconds")
    end_s: float = Field(..., gt=0, description="End offset in seconds, exclusive")


class SegmentUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    start_s: Optional[float] = Field(None, ge=0)
    end_s: Optional[float] = Field(None, gt=0)


class SegmentResponse(BaseModel):
    id: int
    team_id: int
    event_id: int
    clip_id: int
    creator_id: Optional[int]
    name: Optional[str]
    start_s: float
    end_s: float
    index: int
    created_at: datetime
    tags: List[TagResponse] = []
    player_ids: List[int] = []

    @classmethod
    def from_row(cls, row: dict) -> "SegmentResponse":
        return cls(
            id=row["id"],
            team_id=row["team_id"],
            event_id=row["event_id"],
            clip_id=row["clip_id"],
            creator_id=row["creator_id"],
            name=row["name"],
            start_s=row["start_s"],
            end_s=row["end_s"],
            index=row["sort_index"],
            created_at=row["created_at"],
            tags=row.get("tags", []),
            player_ids=row.get("player_ids", []),
        )
