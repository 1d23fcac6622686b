"""
Clips routes.

Provides the authenticated upload sequence (presign, confirm, process),
clip editing, the approval gate for link uploads, and playback URLs.
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import List

from kolla.enums import ApprovalStatus, ClipStatus, MembershipRole
from kolla.errors import InvalidTransitionError
from kolla.models.clip import (
    TagResponse,
    ClipResponse,
    NextIndexResponse,
    PresignRequest,
    PresignResponse,
    ClipNameUpdate,
    ClipMetadataUpdate,
    TagsUpdate,
    PlayersUpdate,
    ApproveRequest,
    ApproveResponse,
    PlaybackResponse
)
from kolla.auth import (
    get_approval,
    get_ingestion,
    get_registry,
    get_store,
    get_team_membership,
    get_transcoding,
    require_coach
)
from kolla.services.ingestion import require_event
from kolla.storage import MASTER_PLAYLIST
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(prefix="/teams/{team_id}", tags=["Clips"])


async def _visible_clip(registry, membership: dict, clip_id: int) -> dict:
    """Pending clips are visible to coaches only."""
    clip = await registry.get(membership["team_id"], clip_id)
    if clip["approval_status"] == ApprovalStatus.PENDING.value and membership["role"] != MembershipRole.COACH.value:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clip not found"
        )
    return clip


@router.get("/events/{event_id}/clips", response_model=List[ClipResponse])
async def list_event_clips(
    team_id: int,
    event_id: int,
    membership: dict = Depends(get_team_membership),
    approval=Depends(get_approval)
):
    """
    List an event's approved clips in display order.

    Clips uploaded through an upload link appear here once a coach approves them.
    """
    clips = await approval.listing(team_id, event_id)
    return [ClipResponse.from_row(clip) for clip in clips]


@router.get("/events/{event_id}/clips/pending", response_model=List[ClipResponse])
async def list_pending_clips(
    team_id: int,
    event_id: int,
    membership: dict = Depends(require_coach()),
    approval=Depends(get_approval)
):
    """List clips awaiting approval."""
    clips = await approval.pending_listing(team_id, event_id)
    return [ClipResponse.from_row(clip) for clip in clips]


@router.get("/events/{event_id}/clips/next-index", response_model=NextIndexResponse)
async def get_next_index(
    team_id: int,
    event_id: int,
    membership: dict = Depends(get_team_membership),
    registry=Depends(get_registry)
):
    """
    Starting index for the next upload batch.

    The client assigns next_index, next_index + 1, ... to the files of a batch.
    """
    async with registry.engine.begin() as conn:
        await require_event(conn, team_id, event_id)
    return NextIndexResponse(next_index=await registry.next_index(event_id))


@router.post("/clips/presign", response_model=PresignResponse, status_code=status.HTTP_201_CREATED)
async def presign_clip_upload(
    team_id: int,
    body: PresignRequest,
    membership: dict = Depends(require_coach()),
    ingestion=Depends(get_ingestion)
):
    """
    Create a clip and a presigned PUT URL for its original file.

    The browser uploads directly to storage, then calls confirm.
    """
    result = await ingestion.presign_upload(
        team_id, body.event_id, body.index, body.content_type, membership["user"]["id"]
    )
    return PresignResponse(**result)


@router.post("/clips/approve", response_model=ApproveResponse)
async def approve_clips(
    team_id: int,
    body: ApproveRequest,
    request: Request,
    membership: dict = Depends(require_coach()),
    approval=Depends(get_approval)
):
    """
    Approve a batch of pending clips.

    All ids must belong to the team; otherwise nothing is approved.
    """
    approved = await approval.approve(team_id, body.clip_ids)
    log_sensitive_operation(
        "clips_approved", membership["user"]["id"], team_id, request, details=f"clips {approved}"
    )
    return ApproveResponse(approved=approved)


@router.get("/clips/{clip_id}", response_model=ClipResponse)
async def get_clip(
    team_id: int,
    clip_id: int,
    membership: dict = Depends(get_team_membership),
    registry=Depends(get_registry)
):
    clip = await _visible_clip(registry, membership, clip_id)
    return ClipResponse.from_row(clip)


@router.post("/clips/{clip_id}/confirm", response_model=ClipResponse)
async def confirm_clip_upload(
    team_id: int,
    clip_id: int,
    membership: dict = Depends(require_coach()),
    ingestion=Depends(get_ingestion)
):
    """Acknowledge that the direct upload finished. Does not start processing."""
    clip = await ingestion.confirm_upload(team_id, clip_id)
    return ClipResponse.from_row(clip)


@router.post("/clips/{clip_id}/process", response_model=ClipResponse)
async def process_clip(
    team_id: int,
    clip_id: int,
    membership: dict = Depends(require_coach()),
    transcoding=Depends(get_transcoding)
):
    """
    Submit an uploaded clip for transcoding.

    A provider failure marks the clip failed and returns 502.
    """
    clip = await transcoding.submit_clip(clip_id, team_id=team_id)
    return ClipResponse.from_row(clip)


@router.patch("/clips/{clip_id}", response_model=ClipResponse)
async def rename_clip(
    team_id: int,
    clip_id: int,
    body: ClipNameUpdate,
    membership: dict = Depends(require_coach()),
    registry=Depends(get_registry)
):
    await registry.update_name(team_id, clip_id, body.name)
    return ClipResponse.from_row(await registry.get(team_id, clip_id))


@router.patch("/clips/{clip_id}/metadata", response_model=ClipResponse)
async def update_clip_metadata(
    team_id: int,
    clip_id: int,
    body: ClipMetadataUpdate,
    membership: dict = Depends(get_team_membership),
    registry=Depends(get_registry)
):
    """
    Record duration and dimensions reported by a player's browser.

    Values already recorded are never overwritten.
    """
    await _visible_clip(registry, membership, clip_id)
    await registry.update_metadata(
        clip_id, duration_s=body.duration_s, width=body.width, height=body.height, team_id=team_id
    )
    return ClipResponse.from_row(await registry.get(team_id, clip_id))


@router.put("/clips/{clip_id}/tags", response_model=List[TagResponse])
async def set_clip_tags(
    team_id: int,
    clip_id: int,
    body: TagsUpdate,
    membership: dict = Depends(require_coach()),
    registry=Depends(get_registry)
):
    tags = await registry.set_tags(team_id, clip_id, [tag.strip() for tag in body.tags if tag.strip()])
    return [TagResponse(**tag) for tag in tags]


@router.delete("/clips/{clip_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_clip_tag(
    team_id: int,
    clip_id: int,
    tag_id: int,
    membership: dict = Depends(require_coach()),
    registry=Depends(get_registry)
):
    await registry.delete_tag(team_id, clip_id, tag_id)


@router.put("/clips/{clip_id}/players", response_model=List[int])
async def set_clip_players(
    team_id: int,
    clip_id: int,
    body: PlayersUpdate,
    membership: dict = Depends(require_coach()),
    registry=Depends(get_registry)
):
    """Replace the set of roster players tagged on a clip."""
    return await registry.set_players(team_id, clip_id, body.player_ids)


@router.delete("/clips/{clip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_clip(
    team_id: int,
    clip_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    registry=Depends(get_registry)
):
    """Delete a clip, its original and its HLS files."""
    await registry.delete(team_id, clip_id)
    log_sensitive_operation(
        "clip_deleted", membership["user"]["id"], team_id, request, details=f"clip {clip_id}"
    )


@router.post("/clips/{clip_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_clip(
    team_id: int,
    clip_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    approval=Depends(get_approval)
):
    """Reject a pending clip. The clip and its files are deleted."""
    await approval.reject(team_id, clip_id)
    log_sensitive_operation(
        "clip_rejected", membership["user"]["id"], team_id, request, details=f"clip {clip_id}"
    )


@router.get("/clips/{clip_id}/playback", response_model=PlaybackResponse)
async def get_playback_url(
    team_id: int,
    clip_id: int,
    membership: dict = Depends(get_team_membership),
    registry=Depends(get_registry),
    store=Depends(get_store)
):
    """Presigned URL for the clip's HLS master playlist."""
    clip = await _visible_clip(registry, membership, clip_id)
    if clip["status"] != ClipStatus.READY.value or not clip["hls_prefix"]:
        raise InvalidTransitionError(f"Clip is {clip['status']}, not ready for playback")

    return PlaybackResponse(
        clip_id=clip_id,
        url=store.presigned_get_url(f"{clip['hls_prefix']}{MASTER_PLAYLIST}")
    )
