"""
Clip registry.

The persisted record for each uploaded clip: identity, storage key,
lifecycle status, approval status, transcoding job id and failure reason.
Status only moves forward (uploaded -> processing -> ready | failed); every
status write is a conditional UPDATE against the expected current status.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from kolla.database import clip_players, clip_tags, clips, players, utcnow
from kolla.enums import ApprovalStatus, ClipStatus
from kolla.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from kolla.storage import ObjectStore

logger = logging.getLogger(__name__)


class ClipRegistry:
    """Reads and writes clip rows for one database."""

    def __init__(self, engine: AsyncEngine, store: ObjectStore):
        self.engine = engine
        self.store = store

    async def create(
        self,
        team_id: int,
        event_id: int,
        storage_key: str,
        index: int,
        uploader_id: Optional[int] = None,
        uploader_name: Optional[str] = None,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
    ) -> dict:
        """Insert a clip in the uploaded state at a caller-assigned index."""
        async with self.engine.begin() as conn:
            result = await conn.execute(
                insert(clips).values(
                    team_id=team_id,
                    event_id=event_id,
                    storage_key=storage_key,
                    sort_index=index,
                    uploader_id=uploader_id,
                    uploader_name=uploader_name,
                    status=ClipStatus.UPLOADED.value,
                    approval_status=approval_status.value,
                )
            )
            clip_id = result.inserted_primary_key[0]
            row = await self._fetch(conn, clip_id)

        logger.info(f"Created clip {clip_id} in event {event_id} ({approval_status.value})")
        return row

    async def get(self, team_id: int, clip_id: int) -> dict:
        """Read a clip scoped to a team, with its tags and players."""
        async with self.engine.begin() as conn:
            row = await self._fetch(conn, clip_id, team_id)
            if row is None:
                raise NotFoundError("Clip not found")
            await self._attach_associations(conn, [row])
        return row

    async def get_by_id(self, clip_id: int) -> Optional[dict]:
        """Unscoped read, for trusted callers such as the job callback."""
        async with self.engine.begin() as conn:
            return await self._fetch(conn, clip_id)

    async def find_by_job_id(self, job_id: str) -> Optional[dict]:
        async with self.engine.begin() as conn:
            row = (await conn.execute(
                select(clips).where(clips.c.transcoding_job_id == job_id)
            )).mappings().first()
        return dict(row) if row else None

    async def list_by_event(
        self,
        team_id: int,
        event_id: int,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> List[dict]:
        """List an event's clips in display order, optionally by approval status."""
        query = (
            select(clips)
            .where(clips.c.team_id == team_id, clips.c.event_id == event_id)
            .order_by(clips.c.sort_index, clips.c.id)
        )
        if approval_status is not None:
            query = query.where(clips.c.approval_status == approval_status.value)

        async with self.engine.begin() as conn:
            rows = [dict(row) for row in (await conn.execute(query)).mappings()]
            await self._attach_associations(conn, rows)
        return rows

    async def next_index(self, event_id: int) -> int:
        """
        Next display index for an event: max(index) + 1, or 1 when empty.

        Best-effort only. Two batches that read concurrently get the same
        starting index; ties are ordered by clip id.
        """
        async with self.engine.begin() as conn:
            current = (await conn.execute(
                select(func.max(clips.c.sort_index)).where(clips.c.event_id == event_id)
            )).scalar()
        return (current or 0) + 1

    async def update_name(self, team_id: int, clip_id: int, name: str) -> dict:
        async with self.engine.begin() as conn:
            result = await conn.execute(
                update(clips)
                .where(clips.c.id == clip_id, clips.c.team_id == team_id)
                .values(name=name)
            )
            if result.rowcount == 0:
                raise NotFoundError("Clip not found")
            return await self._fetch(conn, clip_id)

    async def update_metadata(
        self,
        clip_id: int,
        duration_s: Optional[float] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> dict:
        """
        Record duration and dimensions. First write wins.

        Each field is written only when provided and not already set, so a
        late or duplicate report never overwrites a recorded value.
        """
        async with self.engine.begin() as conn:
            row = await self._fetch(conn, clip_id, team_id)
            if row is None:
                raise NotFoundError("Clip not found")

            values = {}
            if duration_s is not None and row["duration_s"] is None:
                values["duration_s"] = duration_s
            if width is not None and row["width"] is None:
                values["width"] = width
            if height is not None and row["height"] is None:
                values["height"] = height

            if not values:
                return row

            # The IS NULL guards keep the write-once rule under concurrent reports
            query = update(clips).where(clips.c.id == clip_id)
            for column, value in values.items():
                await conn.execute(query.where(clips.c[column].is_(None)).values({column: value}))
            return await self._fetch(conn, clip_id)

    async def set_tags(self, team_id: int, clip_id: int, tags: Iterable[str]) -> List[dict]:
        """Replace a clip's tag set, keeping rows for tags that stay."""
        wanted = list(dict.fromkeys(tags))
        async with self.engine.begin() as conn:
            await self._require(conn, team_id, clip_id)
            existing = (await conn.execute(
                select(clip_tags).where(clip_tags.c.clip_id == clip_id)
            )).mappings().all()

            stale = [row["id"] for row in existing if row["tag"] not in wanted]
            present = {row["tag"] for row in existing}
            if stale:
                await conn.execute(delete(clip_tags).where(clip_tags.c.id.in_(stale)))
            for tag in wanted:
                if tag not in present:
                    await conn.execute(insert(clip_tags).values(clip_id=clip_id, tag=tag))

            rows = (await conn.execute(
                select(clip_tags).where(clip_tags.c.clip_id == clip_id).order_by(clip_tags.c.id)
            )).mappings().all()
        return [{"id": row["id"], "tag": row["tag"]} for row in rows]

    async def delete_tag(self, team_id: int, clip_id: int, tag_id: int):
        async with self.engine.begin() as conn:
            await self._require(conn, team_id, clip_id)
            result = await conn.execute(
                delete(clip_tags).where(clip_tags.c.id == tag_id, clip_tags.c.clip_id == clip_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("Tag not found")

    async def set_players(self, team_id: int, clip_id: int, player_ids: Iterable[int]) -> List[int]:
        """Replace the players tagged on a clip. Players must be on the team."""
        wanted = list(dict.fromkeys(player_ids))
        async with self.engine.begin() as conn:
            await self._require(conn, team_id, clip_id)
            if wanted:
                found = set((await conn.execute(
                    select(players.c.id).where(players.c.id.in_(wanted), players.c.team_id == team_id)
                )).scalars())
                missing = [pid for pid in wanted if pid not in found]
                if missing:
                    raise InvalidInputError(f"Players not on this team: {missing}")

            await conn.execute(delete(clip_players).where(clip_players.c.clip_id == clip_id))
            for player_id in wanted:
                await conn.execute(insert(clip_players).values(clip_id=clip_id, player_id=player_id))
        return wanted

    async def mark_processing(self, clip_id: int) -> dict:
        return await self._transition(clip_id, ClipStatus.UPLOADED, ClipStatus.PROCESSING)

    async def set_job_id(self, clip_id: int, job_id: str):
        async with self.engine.begin() as conn:
            await conn.execute(
                update(clips)
                .where(clips.c.id == clip_id, clips.c.status == ClipStatus.PROCESSING.value)
                .values(transcoding_job_id=job_id)
            )

    async def mark_ready(self, clip_id: int, hls_prefix: str) -> dict:
        return await self._transition(
            clip_id, ClipStatus.PROCESSING, ClipStatus.READY, hls_prefix=hls_prefix
        )

    async def mark_failed(self, clip_id: int, reason: str) -> dict:
        return await self._transition(
            clip_id, ClipStatus.PROCESSING, ClipStatus.FAILED, fail_reason=reason
        )

    async def delete(self, team_id: int, clip_id: int):
        """
        Delete a clip and its stored objects.

        Storage cleanup is best-effort: failures are logged and the row is
        removed regardless.
        """
        async with self.engine.begin() as conn:
            row = await self._fetch(conn, clip_id, team_id)
        if row is None:
            raise NotFoundError("Clip not found")

        try:
            self.store.remove(row["storage_key"])
        except Exception as e:
            logger.error(f"Error deleting original {row['storage_key']} for clip {clip_id}: {e}")

        if row["hls_prefix"]:
            try:
                self.store.remove_prefix(row["hls_prefix"])
            except Exception as e:
                logger.error(f"Error deleting HLS files under {row['hls_prefix']} for clip {clip_id}: {e}")

        async with self.engine.begin() as conn:
            await conn.execute(delete(clips).where(clips.c.id == clip_id))
        logger.info(f"Deleted clip {clip_id}")

    async def list_stranded(self, older_than: timedelta = timedelta(minutes=30)) -> List[dict]:
        """Clips left in processing without a job id, e.g. after a crash mid-submission."""
        cutoff: datetime = utcnow() - older_than
        async with self.engine.begin() as conn:
            rows = (await conn.execute(
                select(clips)
                .where(
                    clips.c.status == ClipStatus.PROCESSING.value,
                    clips.c.transcoding_job_id.is_(None),
                    clips.c.updated_at < cutoff,
                )
                .order_by(clips.c.updated_at)
            )).mappings().all()
        return [dict(row) for row in rows]

    async def _transition(self, clip_id: int, source: ClipStatus, target: ClipStatus, **values) -> dict:
        if not source.can_transition_to(target):
            raise InvalidTransitionError(f"Clip cannot move from {source.value} to {target.value}")

        async with self.engine.begin() as conn:
            row = await self._fetch(conn, clip_id)
            if row is None:
                raise NotFoundError("Clip not found")
            if row["status"] != source.value:
                raise InvalidTransitionError(
                    f"Clip {clip_id} is {row['status']}, expected {source.value}"
                )

            result = await conn.execute(
                update(clips)
                .where(clips.c.id == clip_id, clips.c.status == source.value)
                .values(status=target.value, **values)
            )
            if result.rowcount == 0:
                raise InvalidTransitionError(f"Clip {clip_id} changed status concurrently")
            row = await self._fetch(conn, clip_id)

        logger.info(f"Clip {clip_id}: {source.value} -> {target.value}")
        return row

    async def _fetch(self, conn: AsyncConnection, clip_id: int, team_id: Optional[int] = None) -> Optional[dict]:
        query = select(clips).where(clips.c.id == clip_id)
        if team_id is not None:
            query = query.where(clips.c.team_id == team_id)
        row = (await conn.execute(query)).mappings().first()
        return dict(row) if row else None

    async def _require(self, conn: AsyncConnection, team_id: int, clip_id: int) -> dict:
        row = await self._fetch(conn, clip_id, team_id)
        if row is None:
            raise NotFoundError("Clip not found")
        return row

    async def _attach_associations(self, conn: AsyncConnection, rows: List[dict]):
        if not rows:
            return
        ids = [row["id"] for row in rows]
        tags = (await conn.execute(
            select(clip_tags).where(clip_tags.c.clip_id.in_(ids)).order_by(clip_tags.c.id)
        )).mappings().all()
        tagged = (await conn.execute(
            select(clip_players).where(clip_players.c.clip_id.in_(ids))
        )).mappings().all()

        by_id = {row["id"]: row for row in rows}
        for row in rows:
            row["tags"] = []
            row["player_ids"] = []
        for tag in tags:
            by_id[tag["clip_id"]]["tags"].append({"id": tag["id"], "tag": tag["tag"]})
        for link in tagged:
            by_id[link["clip_id"]]["player_ids"].append(link["player_id"])
