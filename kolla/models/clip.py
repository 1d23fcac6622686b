"""
Pydantic models for clips and the upload sequence.
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from kolla.enums import ApprovalStatus, ClipStatus


class TagResponse(BaseModel):
    id: int
    tag: str


class ClipResponse(BaseModel):
    """Response model for a clip."""
    id: int
    team_id: int
    event_id: int
    uploader_id: Optional[int]
    uploader_name: Optional[str]
    name: Optional[str]
    index: int
    storage_key: str
    hls_prefix: Optional[str]
    duration_s: Optional[float]
    width: Optional[int]
    height: Optional[int]
    status: ClipStatus
    fail_reason: Optional[str]
    approval_status: ApprovalStatus
    transcoding_job_id: Optional[str]
    created_at: datetime
    tags: List[TagResponse] = []
    player_ids: List[int] = []

    @classmethod
    def from_row(cls, row: dict) -> "ClipResponse":
        return cls(
            id=row["id"],
            team_id=row["team_id"],
            event_id=row["event_id"],
            uploader_id=row["uploader_id"],
            uploader_name=row["uploader_name"],
            name=row["name"],
            index=row["sort_index"],
            storage_key=row["storage_key"],
            hls_prefix=row["hls_prefix"],
            duration_s=row["duration_s"],
            width=row["width"],
            height=row["height"],
            status=row["status"],
            fail_reason=row["fail_reason"],
            approval_status=row["approval_status"],
            transcoding_job_id=row["transcoding_job_id"],
            created_at=row["created_at"],
            tags=row.get("tags", []),
            player_ids=row.get("player_ids", []),
        )


class NextIndexResponse(BaseModel):
    next_index: int


class PresignRequest(BaseModel):
    """Request a presigned upload URL for one file of a batch."""
    event_id: int
    index: int = Field(..., ge=0, description="Display position within the event")
    content_type: str = Field(..., description="MIME type of the file, must be video/*")
    size: int = Field(..., gt=0, description="File size in bytes")


class PublicPresignRequest(BaseModel):
    """Presign request through an upload link."""
    uploader_name: str = Field(..., min_length=1, max_length=100)
    index: int = Field(..., ge=0)
    content_type: str
    size: int = Field(..., gt=0)


class PresignResponse(BaseModel):
    clip_id: int
    key: str
    presigned_url: str


class ClipNameUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ClipMetadataUpdate(BaseModel):
    """Client-reported media metadata. Fields already recorded are kept."""
    duration_s: Optional[float] = Field(None, gt=0)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)


class TagsUpdate(BaseModel):
    tags: List[str] = Field(..., description="Complete tag set for the clip")


class PlayersUpdate(BaseModel):
    player_ids: List[int] = Field(..., description="Complete set of tagged players")


class ApproveRequest(BaseModel):
    clip_ids: List[int] = Field(..., min_length=1)


class ApproveResponse(BaseModel):
    approved: List[int]


class PlaybackResponse(BaseModel):
    clip_id: int
    url: str
