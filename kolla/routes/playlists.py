"""
Playlists routes.

A playlist is an ordered list of clips and segments from any of the team's
events. Item positions are kept dense, starting at 0.
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import List
from sqlalchemy import delete, func, insert, select, update

from kolla.database import clips, playlist_items, playlist_share_links, playlists, segments, to_naive_utc, utcnow
from kolla.enums import ApprovalStatus
from kolla.errors import InvalidInputError
from kolla.models.playlist import (
    PlaylistCreate,
    PlaylistUpdate,
    AddItemsRequest,
    ReorderRequest,
    PlaylistItemResponse,
    PlaylistResponse,
    PlaylistDetailResponse
)
from kolla.models.links import PlaylistShareLinkCreate, PlaylistShareLinkResponse
from kolla.auth import get_engine, get_team_membership, require_coach
from kolla.services.ingestion import new_token
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(prefix="/teams/{team_id}/playlists", tags=["Playlists"])


def _item_count():
    return (
        select(func.count())
        .where(playlist_items.c.playlist_id == playlists.c.id)
        .correlate(playlists)
        .scalar_subquery()
        .label("item_count")
    )


def _playlist_fields(row) -> dict:
    return dict(
        id=row["id"],
        team_id=row["team_id"],
        creator_id=row["creator_id"],
        name=row["name"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        item_count=row["item_count"] or 0
    )


async def _fetch(conn, team_id: int, playlist_id: int):
    row = (await conn.execute(
        select(playlists, _item_count()).where(playlists.c.id == playlist_id, playlists.c.team_id == team_id)
    )).mappings().first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Playlist not found"
        )
    return row


async def _items(conn, playlist_id: int) -> List[PlaylistItemResponse]:
    rows = (await conn.execute(
        select(playlist_items)
        .where(playlist_items.c.playlist_id == playlist_id)
        .order_by(playlist_items.c.position, playlist_items.c.id)
    )).mappings().all()
    return [
        PlaylistItemResponse(
            id=row["id"],
            position=row["position"],
            clip_id=row["clip_id"],
            segment_id=row["segment_id"]
        )
        for row in rows
    ]


async def _detail(conn, team_id: int, playlist_id: int) -> PlaylistDetailResponse:
    row = await _fetch(conn, team_id, playlist_id)
    return PlaylistDetailResponse(**_playlist_fields(row), items=await _items(conn, playlist_id))


async def _touch(conn, playlist_id: int):
    await conn.execute(update(playlists).where(playlists.c.id == playlist_id).values(updated_at=utcnow()))


@router.get("", response_model=List[PlaylistResponse])
async def list_playlists(
    team_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        rows = (await conn.execute(
            select(playlists, _item_count())
            .where(playlists.c.team_id == team_id)
            .order_by(playlists.c.updated_at.desc(), playlists.c.id.desc())
        )).mappings().all()

    return [PlaylistResponse(**_playlist_fields(row)) for row in rows]


@router.post("", response_model=PlaylistDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    team_id: int,
    body: PlaylistCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(playlists).values(
                team_id=team_id,
                creator_id=membership["user"]["id"],
                name=body.name,
                description=body.description
            )
        )
        return await _detail(conn, team_id, result.inserted_primary_key[0])


@router.get("/{playlist_id}", response_model=PlaylistDetailResponse)
async def get_playlist(
    team_id: int,
    playlist_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        return await _detail(conn, team_id, playlist_id)


@router.patch("/{playlist_id}", response_model=PlaylistDetailResponse)
async def update_playlist(
    team_id: int,
    playlist_id: int,
    body: PlaylistUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    values = body.model_dump(exclude_unset=True)
    if "name" in values and values["name"] is None:
        del values["name"]

    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        if values:
            await conn.execute(update(playlists).where(playlists.c.id == playlist_id).values(**values))
        return await _detail(conn, team_id, playlist_id)


@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(
    team_id: int,
    playlist_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        await conn.execute(delete(playlists).where(playlists.c.id == playlist_id))


@router.post("/{playlist_id}/items", response_model=PlaylistDetailResponse)
async def add_items(
    team_id: int,
    playlist_id: int,
    body: AddItemsRequest,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Append clips and segments to the end of a playlist.

    Every item must belong to the team and, for clips, be approved. If any
    item fails validation nothing is added.
    """
    clip_ids = [item.id for item in body.items if item.type == "clip"]
    segment_ids = [item.id for item in body.items if item.type == "segment"]

    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)

        found_clips = set((await conn.execute(
            select(clips.c.id).where(
                clips.c.id.in_(clip_ids),
                clips.c.team_id == team_id,
                clips.c.approval_status == ApprovalStatus.APPROVED.value
            )
        )).scalars()) if clip_ids else set()
        found_segments = set((await conn.execute(
            select(segments.c.id).where(segments.c.id.in_(segment_ids), segments.c.team_id == team_id)
        )).scalars()) if segment_ids else set()

        missing = [f"clip {cid}" for cid in clip_ids if cid not in found_clips]
        missing += [f"segment {sid}" for sid in segment_ids if sid not in found_segments]
        if missing:
            raise InvalidInputError(f"Items not found on this team: {', '.join(missing)}")

        last = (await conn.execute(
            select(func.max(playlist_items.c.position)).where(playlist_items.c.playlist_id == playlist_id)
        )).scalar()
        position = -1 if last is None else last

        for item in body.items:
            position += 1
            await conn.execute(
                insert(playlist_items).values(
                    playlist_id=playlist_id,
                    clip_id=item.id if item.type == "clip" else None,
                    segment_id=item.id if item.type == "segment" else None,
                    position=position
                )
            )
        await _touch(conn, playlist_id)
        return await _detail(conn, team_id, playlist_id)


@router.delete("/{playlist_id}/items/{item_id}", response_model=PlaylistDetailResponse)
async def remove_item(
    team_id: int,
    playlist_id: int,
    item_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Remove an item and close the gap it leaves."""
    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        result = await conn.execute(
            delete(playlist_items).where(
                playlist_items.c.id == item_id, playlist_items.c.playlist_id == playlist_id
            )
        )
        if result.rowcount == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Playlist item not found"
            )

        remaining = await _items(conn, playlist_id)
        for position, item in enumerate(remaining):
            if item.position != position:
                await conn.execute(
                    update(playlist_items).where(playlist_items.c.id == item.id).values(position=position)
                )
        await _touch(conn, playlist_id)
        return await _detail(conn, team_id, playlist_id)


@router.put("/{playlist_id}/items/order", response_model=PlaylistDetailResponse)
async def reorder_items(
    team_id: int,
    playlist_id: int,
    body: ReorderRequest,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Reorder a playlist.

    The request must list every current item id exactly once.
    """
    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        current = [item.id for item in await _items(conn, playlist_id)]

        if len(body.item_ids) != len(set(body.item_ids)) or set(body.item_ids) != set(current):
            raise InvalidInputError("Item ids must be a permutation of the playlist's items")

        for position, item_id in enumerate(body.item_ids):
            await conn.execute(
                update(playlist_items).where(playlist_items.c.id == item_id).values(position=position)
            )
        await _touch(conn, playlist_id)
        return await _detail(conn, team_id, playlist_id)


@router.post("/{playlist_id}/share-links", response_model=PlaylistShareLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist_share_link(
    team_id: int,
    playlist_id: int,
    body: PlaylistShareLinkCreate,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Create a read-only link to the playlist. No expiration when expires_at is omitted."""
    expires_at = to_naive_utc(body.expires_at)

    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        result = await conn.execute(
            insert(playlist_share_links).values(
                team_id=team_id,
                playlist_id=playlist_id,
                token=new_token(),
                expires_at=expires_at
            )
        )
        row = (await conn.execute(
            select(playlist_share_links).where(playlist_share_links.c.id == result.inserted_primary_key[0])
        )).mappings().one()

    log_sensitive_operation(
        "playlist_share_link_created", membership["user"]["id"], team_id, request, details=f"playlist {playlist_id}"
    )
    return PlaylistShareLinkResponse(**row)


@router.get("/{playlist_id}/share-links", response_model=List[PlaylistShareLinkResponse])
async def list_playlist_share_links(
    team_id: int,
    playlist_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _fetch(conn, team_id, playlist_id)
        rows = (await conn.execute(
            select(playlist_share_links)
            .where(playlist_share_links.c.playlist_id == playlist_id)
            .order_by(playlist_share_links.c.id.desc())
        )).mappings().all()

    return [PlaylistShareLinkResponse(**row) for row in rows]


@router.delete("/{playlist_id}/share-links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_playlist_share_link(
    team_id: int,
    playlist_id: int,
    link_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        result = await conn.execute(
            delete(playlist_share_links).where(
                playlist_share_links.c.id == link_id,
                playlist_share_links.c.playlist_id == playlist_id,
                playlist_share_links.c.team_id == team_id
            )
        )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Share link not found"
        )

    log_sensitive_operation(
        "playlist_share_link_revoked", membership["user"]["id"], team_id, request, details=f"link {link_id}"
    )

