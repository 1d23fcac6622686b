"""
Share link routes.

Coaches create read-only links to an event or a playlist. Anyone holding
the token can view approved clips and their segments until the link
expires.
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import Dict, List, Optional
from sqlalchemy import delete, insert, select

from kolla.database import (
    clip_tags,
    clips,
    events,
    playlist_items,
    playlist_share_links,
    playlists,
    segments,
    share_links,
    to_naive_utc,
    utcnow
)
from kolla.enums import ApprovalStatus, ClipStatus
from kolla.errors import ExpiredTokenError, NotFoundError
from kolla.models.links import (
    ShareLinkCreate,
    ShareLinkResponse,
    SharedClip,
    SharedSegment,
    SharedEventResponse,
    SharedPlaylistItem,
    SharedPlaylistResponse
)
from kolla.auth import get_engine, get_store, require_coach
from kolla.services.ingestion import new_token, require_event
from kolla.storage import MASTER_PLAYLIST
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(tags=["Sharing"])


def _check_expiry(link) -> None:
    if link["expires_at"] is not None and link["expires_at"] <= utcnow():
        raise ExpiredTokenError("Share link has expired")


def _playback_url(store, clip) -> Optional[str]:
    if clip["status"] != ClipStatus.READY.value or not clip["hls_prefix"]:
        return None
    return store.presigned_get_url(f"{clip['hls_prefix']}{MASTER_PLAYLIST}")


async def _shared_clips(conn, store, clip_filter) -> Dict[int, SharedClip]:
    rows = (await conn.execute(
        select(clips)
        .where(clip_filter, clips.c.approval_status == ApprovalStatus.APPROVED.value)
        .order_by(clips.c.sort_index, clips.c.id)
    )).mappings().all()

    tags: Dict[int, List[str]] = {row["id"]: [] for row in rows}
    if tags:
        for tag in (await conn.execute(
            select(clip_tags).where(clip_tags.c.clip_id.in_(list(tags))).order_by(clip_tags.c.id)
        )).mappings():
            tags[tag["clip_id"]].append(tag["tag"])

    return {
        row["id"]: SharedClip(
            id=row["id"],
            name=row["name"],
            index=row["sort_index"],
            status=row["status"],
            duration_s=row["duration_s"],
            playback_url=_playback_url(store, row),
            tags=tags[row["id"]]
        )
        for row in rows
    }


async def _shared_segments(conn, shared_clips: Dict[int, SharedClip], segment_filter) -> Dict[int, SharedSegment]:
    rows = (await conn.execute(
        select(segments).where(segment_filter).order_by(segments.c.sort_index, segments.c.id)
    )).mappings().all()

    # Segments of clips that are not visible are dropped
    return {
        row["id"]: SharedSegment(
            id=row["id"],
            clip_id=row["clip_id"],
            name=row["name"],
            index=row["sort_index"],
            start_s=row["start_s"],
            end_s=row["end_s"],
            playback_url=shared_clips[row["clip_id"]].playback_url
        )
        for row in rows
        if row["clip_id"] in shared_clips
    }


@router.post("/teams/{team_id}/share-links", response_model=ShareLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    team_id: int,
    body: ShareLinkCreate,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Create a read-only link to an event.

    The link never expires when expires_at is omitted.
    """
    async with engine.begin() as conn:
        await require_event(conn, team_id, body.event_id)
        result = await conn.execute(
            insert(share_links).values(
                team_id=team_id,
                event_id=body.event_id,
                token=new_token(),
                expires_at=to_naive_utc(body.expires_at),
                allow_public=body.allow_public
            )
        )
        row = (await conn.execute(
            select(share_links).where(share_links.c.id == result.inserted_primary_key[0])
        )).mappings().one()

    log_sensitive_operation(
        "share_link_created", membership["user"]["id"], team_id, request, details=f"event {body.event_id}"
    )
    return ShareLinkResponse(**row)


@router.get("/teams/{team_id}/events/{event_id}/share-links", response_model=List[ShareLinkResponse])
async def list_share_links(
    team_id: int,
    event_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        rows = (await conn.execute(
            select(share_links)
            .where(share_links.c.team_id == team_id, share_links.c.event_id == event_id)
            .order_by(share_links.c.created_at.desc(), share_links.c.id.desc())
        )).mappings().all()

    return [ShareLinkResponse(**row) for row in rows]


@router.delete("/teams/{team_id}/share-links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share_link(
    team_id: int,
    link_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        result = await conn.execute(
            delete(share_links).where(share_links.c.id == link_id, share_links.c.team_id == team_id)
        )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Share link not found"
        )

    log_sensitive_operation(
        "share_link_revoked", membership["user"]["id"], team_id, request, details=f"link {link_id}"
    )


@router.get("/share/playlist/{token}", response_model=SharedPlaylistResponse)
async def view_shared_playlist(
    token: str,
    engine=Depends(get_engine),
    store=Depends(get_store)
):
    """
    Public view of a shared playlist, in playlist order.

    Items whose clip is no longer visible are omitted.
    """
    async with engine.begin() as conn:
        link = (await conn.execute(
            select(playlist_share_links).where(playlist_share_links.c.token == token)
        )).mappings().first()
        if not link:
            raise NotFoundError("Share link not found")
        _check_expiry(link)

        playlist = (await conn.execute(
            select(playlists).where(playlists.c.id == link["playlist_id"])
        )).mappings().one()
        items = (await conn.execute(
            select(playlist_items)
            .where(playlist_items.c.playlist_id == playlist["id"])
            .order_by(playlist_items.c.position, playlist_items.c.id)
        )).mappings().all()

        segment_ids = [item["segment_id"] for item in items if item["segment_id"] is not None]
        segment_clip_ids = list((await conn.execute(
            select(segments.c.clip_id).where(segments.c.id.in_(segment_ids))
        )).scalars()) if segment_ids else []
        clip_ids = [item["clip_id"] for item in items if item["clip_id"] is not None] + segment_clip_ids

        shared_clips = await _shared_clips(conn, store, clips.c.id.in_(clip_ids))
        shared_segments = await _shared_segments(conn, shared_clips, segments.c.id.in_(segment_ids))

    shared_items = []
    for item in items:
        if item["clip_id"] in shared_clips:
            shared_items.append(SharedPlaylistItem(position=item["position"], clip=shared_clips[item["clip_id"]]))
        elif item["segment_id"] in shared_segments:
            shared_items.append(
                SharedPlaylistItem(position=item["position"], segment=shared_segments[item["segment_id"]])
            )

    return SharedPlaylistResponse(
        playlist_id=playlist["id"],
        name=playlist["name"],
        description=playlist["description"],
        items=shared_items
    )


@router.get("/share/{token}", response_model=SharedEventResponse)
async def view_shared_event(
    token: str,
    engine=Depends(get_engine),
    store=Depends(get_store)
):
    """
    Public view of a shared event: approved clips and their segments.

    Raises 404 for an unknown token and 403 once the link has expired.
    """
    async with engine.begin() as conn:
        link = (await conn.execute(
            select(share_links).where(share_links.c.token == token)
        )).mappings().first()
        if not link:
            raise NotFoundError("Share link not found")
        _check_expiry(link)

        event = (await conn.execute(
            select(events).where(events.c.id == link["event_id"])
        )).mappings().one()
        shared_clips = await _shared_clips(conn, store, clips.c.event_id == event["id"])
        shared_segments = await _shared_segments(conn, shared_clips, segments.c.event_id == event["id"])

    return SharedEventResponse(
        event_id=event["id"],
        title=event["title"],
        type=event["type"],
        date=event["date"],
        allow_public=link["allow_public"],
        clips=list(shared_clips.values()),
        segments=list(shared_segments.values())
    )
