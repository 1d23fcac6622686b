"""
Clip ingestion services: registry, upload sequence and approval gate.
"""

from .clip_registry import ClipRegistry
from .approval import ApprovalGate
from .ingestion import IngestionService, UPLOAD_LINK_DURATION_DAYS, new_token, require_event

__all__ = [
    "ClipRegistry",
    "ApprovalGate",
    "IngestionService",
    "UPLOAD_LINK_DURATION_DAYS",
    "new_token",
    "require_event",
]
