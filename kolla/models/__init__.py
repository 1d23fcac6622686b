"""
Pydantic models for request/response validation.
"""

from .team import (
    TeamCreate,
    TeamResponse,
    MemberResponse,
    InviteMemberRequest,
    AddMembersRequest,
    PlayerCreate,
    PlayerUpdate,
    PlayerResponse
)

from .event import (
    EventCreate,
    EventUpdate,
    EventResponse
)

from .clip import (
    TagResponse,
    ClipResponse,
    NextIndexResponse,
    PresignRequest,
    PublicPresignRequest,
    PresignResponse,
    ClipNameUpdate,
    ClipMetadataUpdate,
    TagsUpdate,
    PlayersUpdate,
    ApproveRequest,
    ApproveResponse,
    PlaybackResponse
)

from .segment import (
    SegmentCreate,
    SegmentUpdate,
    SegmentResponse
)

from .comment import (
    CommentCreate,
    CommentResponse
)

from .playlist import (
    PlaylistCreate,
    PlaylistUpdate,
    PlaylistItemRef,
    AddItemsRequest,
    ReorderRequest,
    PlaylistItemResponse,
    PlaylistResponse,
    PlaylistDetailResponse
)

from .links import (
    UploadLinkCreate,
    UploadLinkResponse,
    UploadLinkPreview,
    ShareLinkCreate,
    ShareLinkResponse,
    PlaylistShareLinkCreate,
    PlaylistShareLinkResponse,
    SharedClip,
    SharedSegment,
    SharedEventResponse,
    SharedPlaylistItem,
    SharedPlaylistResponse
)

from .webhook import (
    ProcessCallback,
    CallbackAck
)

__all__ = [
    # Team models
    "TeamCreate",
    "TeamResponse",
    "MemberResponse",
    "InviteMemberRequest",
    "AddMembersRequest",
    "PlayerCreate",
    "PlayerUpdate",
    "PlayerResponse",

    # Event models
    "EventCreate",
    "EventUpdate",
    "EventResponse",

    # Clip models
    "TagResponse",
    "ClipResponse",
    "NextIndexResponse",
    "PresignRequest",
    "PublicPresignRequest",
    "PresignResponse",
    "ClipNameUpdate",
    "ClipMetadataUpdate",
    "TagsUpdate",
    "PlayersUpdate",
    "ApproveRequest",
    "ApproveResponse",
    "PlaybackResponse",

    # Segment models
    "SegmentCreate",
    "SegmentUpdate",
    "SegmentResponse",

    # Comment models
    "CommentCreate",
    "CommentResponse",

    # Playlist models
    "PlaylistCreate",
    "PlaylistUpdate",
    "PlaylistItemRef",
    "AddItemsRequest",
    "ReorderRequest",
    "PlaylistItemResponse",
    "PlaylistResponse",
    "PlaylistDetailResponse",

    # Link models
    "UploadLinkCreate",
    "UploadLinkResponse",
    "UploadLinkPreview",
    "ShareLinkCreate",
    "ShareLinkResponse",
    "PlaylistShareLinkCreate",
    "PlaylistShareLinkResponse",
    "SharedClip",
    "SharedSegment",
    "SharedEventResponse",
    "SharedPlaylistItem",
    "SharedPlaylistResponse",

    # Callback models
    "ProcessCallback",
    "CallbackAck"
]
