"""
Upload sequence: presign, direct PUT to storage, confirm.

Coach uploads are authenticated and approved on creation. Uploads through a
public upload link are keyed by the link token, carry only a display name
and start pending approval.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from kolla.database import events, teams, upload_links, utcnow
from kolla.enums import ApprovalStatus, ClipStatus
from kolla.errors import ExpiredTokenError, InvalidInputError, InvalidTransitionError, NotFoundError
from kolla.services.clip_registry import ClipRegistry
from kolla.storage import ObjectStore, original_key

logger = logging.getLogger(__name__)

UPLOAD_LINK_DURATION_DAYS = (1, 3, 7, 30)


async def require_event(conn: AsyncConnection, team_id: int, event_id: int) -> dict:
    row = (await conn.execute(
        select(events).where(events.c.id == event_id, events.c.team_id == team_id)
    )).mappings().first()
    if not row:
        raise NotFoundError("Event not found")
    return dict(row)


def new_token() -> str:
    return secrets.token_hex(16)


class IngestionService:

    def __init__(self, engine: AsyncEngine, registry: ClipRegistry, store: ObjectStore):
        self.engine = engine
        self.registry = registry
        self.store = store

    async def presign_upload(
        self,
        team_id: int,
        event_id: int,
        index: int,
        content_type: str,
        uploader_id: int,
    ) -> dict:
        """Create an approved clip row and a presigned PUT URL for its original."""
        self._check_content_type(content_type)
        async with self.engine.begin() as conn:
            await require_event(conn, team_id, event_id)

        key = original_key(team_id, event_id)
        clip = await self.registry.create(
            team_id, event_id, key, index,
            uploader_id=uploader_id,
            approval_status=ApprovalStatus.APPROVED,
        )
        return {
            "clip_id": clip["id"],
            "key": key,
            "presigned_url": self.store.presigned_put_url(key),
        }

    async def confirm_upload(self, team_id: int, clip_id: int) -> dict:
        clip = await self.registry.get(team_id, clip_id)
        return self._confirm(clip)

    async def validate_upload_token(self, token: str) -> dict:
        """
        Resolve an upload link token.

        Raises:
            NotFoundError: unknown token
            ExpiredTokenError: link is past its expiration
        """
        async with self.engine.begin() as conn:
            row = (await conn.execute(
                select(
                    upload_links,
                    events.c.title.label("event_title"),
                    events.c.date.label("event_date"),
                    events.c.type.label("event_type"),
                    teams.c.name.label("team_name"),
                )
                .join(events, events.c.id == upload_links.c.event_id)
                .join(teams, teams.c.id == upload_links.c.team_id)
                .where(upload_links.c.token == token)
            )).mappings().first()

        if not row:
            raise NotFoundError("Upload link not found")
        if row["expires_at"] <= utcnow():
            raise ExpiredTokenError("This upload link has expired")
        return dict(row)

    async def next_index_via_token(self, token: str) -> int:
        link = await self.validate_upload_token(token)
        return await self.registry.next_index(link["event_id"])

    async def presign_public_upload(
        self,
        token: str,
        uploader_name: str,
        index: int,
        content_type: str,
    ) -> dict:
        """Same as presign_upload, but keyed by link token and forced pending."""
        link = await self.validate_upload_token(token)
        self._check_content_type(content_type)
        uploader_name = uploader_name.strip()
        if not 1 <= len(uploader_name) <= 100:
            raise InvalidInputError("Uploader name must be 1-100 characters")

        key = original_key(link["team_id"], link["event_id"])
        clip = await self.registry.create(
            link["team_id"], link["event_id"], key, index,
            uploader_name=uploader_name,
            approval_status=ApprovalStatus.PENDING,
        )
        return {
            "clip_id": clip["id"],
            "key": key,
            "presigned_url": self.store.presigned_put_url(key),
        }

    async def clip_via_token(self, token: str, clip_id: int) -> dict:
        """A clip uploaded into the link's event."""
        link = await self.validate_upload_token(token)
        clip = await self.registry.get_by_id(clip_id)
        if clip is None or clip["event_id"] != link["event_id"]:
            raise NotFoundError("Clip not found")
        return clip

    async def confirm_public_upload(self, token: str, clip_id: int) -> dict:
        clip = await self.clip_via_token(token, clip_id)
        return self._confirm(clip)

    async def create_upload_link(self, team_id: int, event_id: int, duration_days: int, created_by_id: int) -> dict:
        if duration_days not in UPLOAD_LINK_DURATION_DAYS:
            raise InvalidInputError(f"Duration must be one of {UPLOAD_LINK_DURATION_DAYS} days")

        async with self.engine.begin() as conn:
            await require_event(conn, team_id, event_id)
            result = await conn.execute(
                insert(upload_links).values(
                    team_id=team_id,
                    event_id=event_id,
                    token=new_token(),
                    expires_at=utcnow() + timedelta(days=duration_days),
                    created_by_id=created_by_id,
                )
            )
            row = (await conn.execute(
                select(upload_links).where(upload_links.c.id == result.inserted_primary_key[0])
            )).mappings().one()
        return dict(row)

    async def list_upload_links(self, team_id: int, event_id: int) -> List[dict]:
        async with self.engine.begin() as conn:
            rows = (await conn.execute(
                select(upload_links)
                .where(upload_links.c.team_id == team_id, upload_links.c.event_id == event_id)
                .order_by(upload_links.c.created_at.desc(), upload_links.c.id.desc())
            )).mappings().all()
        return [dict(row) for row in rows]

    async def revoke_upload_link(self, team_id: int, link_id: int):
        async with self.engine.begin() as conn:
            result = await conn.execute(
                delete(upload_links).where(upload_links.c.id == link_id, upload_links.c.team_id == team_id)
            )
        if result.rowcount == 0:
            raise NotFoundError("Upload link not found")

    @staticmethod
    def _check_content_type(content_type: Optional[str]):
        if not content_type or not content_type.startswith("video/"):
            raise InvalidInputError("Only video uploads are accepted")

    @staticmethod
    def _confirm(clip: dict) -> dict:
        """Confirmation is valid only before processing starts; status never regresses."""
        current = ClipStatus(clip["status"])
        if current is not ClipStatus.UPLOADED:
            raise InvalidTransitionError(f"Clip is already {current.value}")
        return clip
