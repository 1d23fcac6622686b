"""
Segments routes.

A segment is a named time range within a clip. Segments share the event's
display ordering with clips.
"""

from fastapi import APIRouter, HTTPException, status, Depends
from typing import List, Optional
from sqlalchemy import delete, func, insert, select, union_all, update

from kolla.database import clips, players, segment_players, segment_tags, segments
from kolla.errors import InvalidInputError
from kolla.models.clip import TagResponse, TagsUpdate, PlayersUpdate
from kolla.models.segment import SegmentCreate, SegmentUpdate, SegmentResponse
from kolla.auth import get_engine, get_team_membership, require_coach
from kolla.services.ingestion import require_event

router = APIRouter(prefix="/teams/{team_id}", tags=["Segments"])


def validate_range(start_s: float, end_s: float, duration_s: Optional[float]):
    """
    Check a segment's bounds.

    Raises:
        InvalidInputError: range is empty, negative, or past the clip's end
    """
    if start_s < 0:
        raise InvalidInputError("Start time cannot be negative")
    if end_s <= start_s:
        raise InvalidInputError("End time must be after start time")
    if duration_s is not None:
        if start_s >= duration_s:
            raise InvalidInputError("Start time is past the end of the clip")
        if end_s > duration_s:
            raise InvalidInputError("End time is past the end of the clip")


async def _next_index(conn, event_id: int) -> int:
    # Segments and clips share one ordering within an event
    indexes = union_all(
        select(clips.c.sort_index.label("idx")).where(clips.c.event_id == event_id),
        select(segments.c.sort_index.label("idx")).where(segments.c.event_id == event_id),
    ).subquery()
    current = (await conn.execute(select(func.max(indexes.c.idx)))).scalar()
    return (current or 0) + 1


async def _fetch(conn, team_id: int, segment_id: int) -> dict:
    row = (await conn.execute(
        select(segments).where(segments.c.id == segment_id, segments.c.team_id == team_id)
    )).mappings().first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Segment not found"
        )
    return dict(row)


async def _clip_for(conn, team_id: int, clip_id: int) -> dict:
    row = (await conn.execute(
        select(clips).where(clips.c.id == clip_id, clips.c.team_id == team_id)
    )).mappings().first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clip not found"
        )
    return dict(row)


async def _attach(conn, rows: List[dict]) -> List[dict]:
    if not rows:
        return rows
    ids = [row["id"] for row in rows]
    tags = (await conn.execute(
        select(segment_tags).where(segment_tags.c.segment_id.in_(ids)).order_by(segment_tags.c.id)
    )).mappings().all()
    tagged = (await conn.execute(
        select(segment_players).where(segment_players.c.segment_id.in_(ids))
    )).mappings().all()

    by_id = {row["id"]: row for row in rows}
    for row in rows:
        row["tags"] = []
        row["player_ids"] = []
    for tag in tags:
        by_id[tag["segment_id"]]["tags"].append({"id": tag["id"], "tag": tag["tag"]})
    for link in tagged:
        by_id[link["segment_id"]]["player_ids"].append(link["player_id"])
    return rows


@router.get("/events/{event_id}/segments", response_model=List[SegmentResponse])
async def list_event_segments(
    team_id: int,
    event_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """List an event's segments in display order."""
    async with engine.begin() as conn:
        rows = [dict(row) for row in (await conn.execute(
            select(segments)
            .where(segments.c.team_id == team_id, segments.c.event_id == event_id)
            .order_by(segments.c.sort_index, segments.c.id)
        )).mappings()]
        await _attach(conn, rows)

    return [SegmentResponse.from_row(row) for row in rows]


@router.post("/segments", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(
    team_id: int,
    body: SegmentCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Create a segment on a clip.

    The range is checked against the clip's duration once it is known.
    """
    async with engine.begin() as conn:
        await require_event(conn, team_id, body.event_id)
        clip = await _clip_for(conn, team_id, body.clip_id)
        if clip["event_id"] != body.event_id:
            raise InvalidInputError("Clip does not belong to this event")
        validate_range(body.start_s, body.end_s, clip["duration_s"])

        result = await conn.execute(
            insert(segments).values(
                team_id=team_id,
                event_id=body.event_id,
                clip_id=body.clip_id,
                creator_id=membership["user"]["id"],
                name=body.name,
                start_s=body.start_s,
                end_s=body.end_s,
                sort_index=await _next_index(conn, body.event_id)
            )
        )
        row = await _fetch(conn, team_id, result.inserted_primary_key[0])
        await _attach(conn, [row])

    return SegmentResponse.from_row(row)


@router.get("/segments/{segment_id}", response_model=SegmentResponse)
async def get_segment(
    team_id: int,
    segment_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        row = await _fetch(conn, team_id, segment_id)
        await _attach(conn, [row])

    return SegmentResponse.from_row(row)


@router.patch("/segments/{segment_id}", response_model=SegmentResponse)
async def update_segment(
    team_id: int,
    segment_id: int,
    body: SegmentUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Rename or move a segment. The resulting range is revalidated."""
    values = body.model_dump(exclude_unset=True)

    async with engine.begin() as conn:
        row = await _fetch(conn, team_id, segment_id)
        if "start_s" in values or "end_s" in values:
            start_s = values.get("start_s")
            end_s = values.get("end_s")
            start_s = row["start_s"] if start_s is None else start_s
            end_s = row["end_s"] if end_s is None else end_s
            clip = await _clip_for(conn, team_id, row["clip_id"])
            validate_range(start_s, end_s, clip["duration_s"])
            values["start_s"] = start_s
            values["end_s"] = end_s

        if values:
            await conn.execute(update(segments).where(segments.c.id == segment_id).values(**values))
        row = await _fetch(conn, team_id, segment_id)
        await _attach(conn, [row])

    return SegmentResponse.from_row(row)


@router.delete("/segments/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment(
    team_id: int,
    segment_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _fetch(conn, team_id, segment_id)
        await conn.execute(delete(segments).where(segments.c.id == segment_id))


@router.put("/segments/{segment_id}/tags", response_model=List[TagResponse])
async def set_segment_tags(
    team_id: int,
    segment_id: int,
    body: TagsUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Replace the segment's tags, keeping rows for tags that stay."""
    wanted = list(dict.fromkeys(tag.strip() for tag in body.tags if tag.strip()))

    async with engine.begin() as conn:
        await _fetch(conn, team_id, segment_id)
        existing = (await conn.execute(
            select(segment_tags).where(segment_tags.c.segment_id == segment_id)
        )).mappings().all()

        stale = [row["id"] for row in existing if row["tag"] not in wanted]
        present = {row["tag"] for row in existing}
        if stale:
            await conn.execute(delete(segment_tags).where(segment_tags.c.id.in_(stale)))
        for tag in wanted:
            if tag not in present:
                await conn.execute(insert(segment_tags).values(segment_id=segment_id, tag=tag))

        rows = (await conn.execute(
            select(segment_tags).where(segment_tags.c.segment_id == segment_id).order_by(segment_tags.c.id)
        )).mappings().all()

    return [TagResponse(id=row["id"], tag=row["tag"]) for row in rows]


@router.delete("/segments/{segment_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment_tag(
    team_id: int,
    segment_id: int,
    tag_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _fetch(conn, team_id, segment_id)
        result = await conn.execute(
            delete(segment_tags).where(segment_tags.c.id == tag_id, segment_tags.c.segment_id == segment_id)
        )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tag not found"
        )


@router.put("/segments/{segment_id}/players", response_model=List[int])
async def set_segment_players(
    team_id: int,
    segment_id: int,
    body: PlayersUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    wanted = list(dict.fromkeys(body.player_ids))

    async with engine.begin() as conn:
        await _fetch(conn, team_id, segment_id)
        if wanted:
            found = set((await conn.execute(
                select(players.c.id).where(players.c.id.in_(wanted), players.c.team_id == team_id)
            )).scalars())
            missing = [player_id for player_id in wanted if player_id not in found]
            if missing:
                raise InvalidInputError(f"Players not on this team: {missing}")

        await conn.execute(delete(segment_players).where(segment_players.c.segment_id == segment_id))
        for player_id in wanted:
            await conn.execute(insert(segment_players).values(segment_id=segment_id, player_id=player_id))

    return wanted
