"""
API route modules.
"""

from .teams import router as teams_router
from .players import router as players_router
from .events import router as events_router
from .clips import router as clips_router
from .segments import router as segments_router
from .comments import router as comments_router
from .playlists import router as playlists_router
from .shares import router as shares_router
from .upload_links import router as upload_links_router
from .webhooks import router as webhooks_router

__all__ = [
    "teams_router",
    "players_router",
    "events_router",
    "clips_router",
    "segments_router",
    "comments_router",
    "playlists_router",
    "shares_router",
    "upload_links_router",
    "webhooks_router"
]
