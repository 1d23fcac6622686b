"""
Pydantic models for the first-party job callback.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ProcessCallback(BaseModel):
    """
    Body posted by the transcode worker when a job finishes.

    Field names follow the worker's camelCase wire format.
    """
    clip_id: int = Field(..., alias="clipId")
    duration_s: Optional[float] = Field(None, alias="durationS", gt=0)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    hls_prefix: Optional[str] = Field(None, alias="hlsPrefix")
    failed: bool = False
    reason: Optional[str] = None

    class Config:
        populate_by_name = True


class CallbackAck(BaseModel):
    ok: bool = True
