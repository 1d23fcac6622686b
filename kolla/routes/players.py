"""
Roster routes.

Players are roster entries that clips and segments can be tagged with.
They are not necessarily users.
"""

from fastapi import APIRouter, HTTPException, status, Depends
from typing import List
from sqlalchemy import delete, insert, select, update

from kolla.database import players
from kolla.models.team import PlayerCreate, PlayerUpdate, PlayerResponse
from kolla.auth import get_engine, get_team_membership, require_coach

router = APIRouter(prefix="/teams/{team_id}/players", tags=["Players"])


def _player_response(row) -> PlayerResponse:
    return PlayerResponse(
        id=row["id"],
        team_id=row["team_id"],
        name=row["name"],
        number=row["number"],
        external_id=row["external_id"]
    )


@router.get("", response_model=List[PlayerResponse])
async def list_players(
    team_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """List the roster ordered by jersey number."""
    async with engine.begin() as conn:
        rows = (await conn.execute(
            select(players)
            .where(players.c.team_id == team_id)
            .order_by(players.c.number.is_(None), players.c.number, players.c.name)
        )).mappings().all()

    return [_player_response(row) for row in rows]


@router.post("", response_model=PlayerResponse, status_code=status.HTTP_201_CREATED)
async def create_player(
    team_id: int,
    player: PlayerCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        result = await conn.execute(
            insert(players).values(
                team_id=team_id,
                name=player.name,
                number=player.number,
                external_id=player.external_id
            )
        )
        row = (await conn.execute(
            select(players).where(players.c.id == result.inserted_primary_key[0])
        )).mappings().one()

    return _player_response(row)


@router.patch("/{player_id}", response_model=PlayerResponse)
async def update_player(
    team_id: int,
    player_id: int,
    update_data: PlayerUpdate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Update roster fields. Omitted fields are left unchanged."""
    values = update_data.model_dump(exclude_unset=True)
    if "name" in values and values["name"] is None:
        del values["name"]
    query = select(players).where(players.c.id == player_id, players.c.team_id == team_id)

    async with engine.begin() as conn:
        if values:
            await conn.execute(
                update(players)
                .where(players.c.id == player_id, players.c.team_id == team_id)
                .values(**values)
            )
        row = (await conn.execute(query)).mappings().first()

    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Player not found"
        )

    return _player_response(row)


@router.delete("/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_player(
    team_id: int,
    player_id: int,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    """Remove a player from the roster, untagging them everywhere."""
    async with engine.begin() as conn:
        result = await conn.execute(
            delete(players).where(players.c.id == player_id, players.c.team_id == team_id)
        )

    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Player not found"
        )
