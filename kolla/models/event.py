"""
Pydantic models for games and practices.
"""

from typing import Optional
import datetime as dt
from pydantic import BaseModel, Field

from kolla.enums import EventType


class EventCreate(BaseModel):
    """Request model for creating an event."""
    type: EventType = Field(..., description="game or practice")
    title: str = Field(..., min_length=1, max_length=255)
    date: dt.date
    venue: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class EventUpdate(BaseModel):
    type: Optional[EventType] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    date: Optional[dt.date] = None
    venue: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class EventResponse(BaseModel):
    id: int
    team_id: int
    type: EventType
    title: str
    date: dt.date
    venue: Optional[str]
    notes: Optional[str]
    created_at: dt.datetime
    clip_count: int = 0

    class Config:
        from_attributes = True
