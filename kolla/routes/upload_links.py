"""
Upload link routes.

Coaches hand out time-limited upload links for an event. Anyone with the
token can upload clips into that event without an account; those clips wait
for a coach's approval.
"""

from fastapi import APIRouter, Request, status, Depends
from typing import List

from kolla.models.clip import ClipResponse, NextIndexResponse, PublicPresignRequest, PresignResponse
from kolla.models.links import UploadLinkCreate, UploadLinkResponse, UploadLinkPreview
from kolla.auth import get_ingestion, get_transcoding, require_coach
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(tags=["Upload Links"])


@router.post("/teams/{team_id}/upload-links", response_model=UploadLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_upload_link(
    team_id: int,
    body: UploadLinkCreate,
    request: Request,
    membership: dict = Depends(require_coach()),
    ingestion=Depends(get_ingestion)
):
    """Create an upload link valid for 1, 3, 7 or 30 days."""
    link = await ingestion.create_upload_link(
        team_id, body.event_id, body.duration_days, membership["user"]["id"]
    )
    log_sensitive_operation(
        "upload_link_created", membership["user"]["id"], team_id, request,
        details=f"event {body.event_id}, {body.duration_days} days"
    )
    return UploadLinkResponse(**link)


@router.get("/teams/{team_id}/events/{event_id}/upload-links", response_model=List[UploadLinkResponse])
async def list_upload_links(
    team_id: int,
    event_id: int,
    membership: dict = Depends(require_coach()),
    ingestion=Depends(get_ingestion)
):
    links = await ingestion.list_upload_links(team_id, event_id)
    return [UploadLinkResponse(**link) for link in links]


@router.delete("/teams/{team_id}/upload-links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_upload_link(
    team_id: int,
    link_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    ingestion=Depends(get_ingestion)
):
    await ingestion.revoke_upload_link(team_id, link_id)
    log_sensitive_operation(
        "upload_link_revoked", membership["user"]["id"], team_id, request, details=f"link {link_id}"
    )


@router.get("/upload/{token}", response_model=UploadLinkPreview)
async def preview_upload_link(token: str, ingestion=Depends(get_ingestion)):
    """
    What the uploader sees before choosing files.

    Raises 404 for an unknown token and 403 once the link has expired.
    """
    link = await ingestion.validate_upload_token(token)
    return UploadLinkPreview(
        event_id=link["event_id"],
        event_title=link["event_title"],
        event_date=link["event_date"],
        event_type=link["event_type"],
        team_id=link["team_id"],
        team_name=link["team_name"],
        expires_at=link["expires_at"]
    )


@router.get("/upload/{token}/next-index", response_model=NextIndexResponse)
async def upload_link_next_index(token: str, ingestion=Depends(get_ingestion)):
    return NextIndexResponse(next_index=await ingestion.next_index_via_token(token))


@router.post("/upload/{token}/presign", response_model=PresignResponse, status_code=status.HTTP_201_CREATED)
async def presign_link_upload(
    token: str,
    body: PublicPresignRequest,
    ingestion=Depends(get_ingestion)
):
    """Create a pending clip and a presigned PUT URL, keyed by the link token."""
    result = await ingestion.presign_public_upload(token, body.uploader_name, body.index, body.content_type)
    return PresignResponse(**result)


@router.post("/upload/{token}/clips/{clip_id}/confirm", response_model=ClipResponse)
async def confirm_link_upload(
    token: str,
    clip_id: int,
    ingestion=Depends(get_ingestion)
):
    clip = await ingestion.confirm_public_upload(token, clip_id)
    return ClipResponse.from_row(clip)


@router.post("/upload/{token}/clips/{clip_id}/process", response_model=ClipResponse)
async def process_link_upload(
    token: str,
    clip_id: int,
    ingestion=Depends(get_ingestion),
    transcoding=Depends(get_transcoding)
):
    """
    Start transcoding a clip uploaded through the link.

    Submission errors are returned to the uploader like any other caller.
    """
    clip = await ingestion.clip_via_token(token, clip_id)
    processed = await transcoding.submit_clip(clip["id"], team_id=clip["team_id"])
    return ClipResponse.from_row(processed)
