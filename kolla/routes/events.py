"""
Events routes.

Games and practices that clips are uploaded into.
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import List
from sqlalchemy import delete, func, insert, select, update

from kolla.database import clips, events
from kolla.enums import ApprovalStatus
from kolla.models.event import EventCreate, EventUpdate, EventResponse
from kolla.auth import get_engine, get_registry, get_team_membership, require_coach
from kolla.utils.audit_log import log_sensitive_operation

router = APIRouter(prefix="/teams/{team_id}/events", tags=["Events"])


def _clip_count():
    # Pending link uploads are not counted until approved
    return (
        select(func.count())
        .where(
            clips.c.event_id == events.c.id,
            clips.c.approval_status == ApprovalStatus.APPROVED.value
        )
        .correlate(events)
        .scalar_subquery()
        .label("clip_count")
    )


def _event_response(row) -> EventResponse:
    return EventResponse(
        id=row["id"],
        team_id=row["team_id"],
        type=row["type"],
        title=row["title"],
        date=row["date"],
        venue=row["venue"],
        notes=row["notes"],
        created_at=row["created_at"],
        clip_count=row["clip_count"] or 0
    )


async def _fetch_event(conn, team_id: int, event_id: int):
    return (await conn.execute(
        select(events, _clip_count()).where(events.c.id == event_id, events.c.team_id == team_id)
    )).mappings().first()


@router.get("", response_model=List[EventResponse])
async def list_events(
    team_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """List the team's events, most recent first."""
    async with engine.begin() as conn:
        rows = (await conn.execute(
            select(events, _clip_count())
            .where(events.c.team_id == team_id)
            .order_by(events.c.date.desc(), events.c.id.desc())
        )).mappings().all()

    return [_event_response(row) for row in rows]


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    team_id: int,
    event: EventCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(events).values(
                team_id=team_id,
                type=event.type.value,
                title=event.title,
                date=event.date,
                venue=event.venue,
                notes=event.notes
            )
        )
        row = await _fetch_event(conn, team_id, result.inserted_primary_key[0])

    return _event_response(row)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    team_id: int,
    event_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        row = await _fetch_event(conn, team_id, event_id)

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found"
        )

    return _event_response(row)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    team_id: int,
    event_id: int,
    update_data: EventUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """
    Update event details.

    Only fields present in the request are changed.
    """
    values = {
        key: value
        for key, value in update_data.model_dump(exclude_unset=True).items()
        if value is not None or key in ("venue", "notes")
    }
    if "type" in values:
        values["type"] = values["type"].value

    async with engine.begin() as conn:
        if values:
            await conn.execute(
                update(events)
                .where(events.c.id == event_id, events.c.team_id == team_id)
                .values(**values)
            )
        row = await _fetch_event(conn, team_id, event_id)

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found"
        )

    return _event_response(row)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    team_id: int,
    event_id: int,
    request: Request,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine),
    registry=Depends(get_registry)
):
    """
    Delete an event and every clip in it.

    Stored objects are removed through the clip registry before the rows go.
    """
    async with engine.begin() as conn:
        exists = (await conn.execute(
            select(events.c.id).where(events.c.id == event_id, events.c.team_id == team_id)
        )).scalar()
        if exists is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Event not found"
            )
        clip_ids = list((await conn.execute(
            select(clips.c.id).where(clips.c.event_id == event_id)
        )).scalars())

    for clip_id in clip_ids:
        await registry.delete(team_id, clip_id)

    async with engine.begin() as conn:
        await conn.execute(delete(events).where(events.c.id == event_id, events.c.team_id == team_id))

    log_sensitive_operation(
        "event_deleted", membership["user"]["id"], team_id, request, details=f"event {event_id}, {len(clip_ids)} clips"
    )
