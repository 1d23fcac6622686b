"""
Pydantic models for clip and segment comments.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from kolla.enums import CommentLevel


class CommentCreate(BaseModel):
    """
    Request model for a comment.

    Private comments are visible to coaches and the target user only.
    """
    body: str = Field(..., min_length=1, max_length=5000)
    level: CommentLevel = CommentLevel.COACHES
    target_user_id: Optional[int] = Field(None, description="Required for private comments")
    parent_id: Optional[int] = Field(None, description="Comment being replied to")


class CommentResponse(BaseModel):
    id: int
    clip_id: Optional[int]
    segment_id: Optional[int]
    author_id: int
    author_name: Optional[str]
    parent_id: Optional[int]
    body: str
    level: CommentLevel
    target_user_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
