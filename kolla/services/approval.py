"""
Approval gate for clips uploaded through public upload links.

Link uploads start pending and stay out of normal event listings until a
coach approves them. Rejection deletes the clip outright.
"""

import logging
from typing import Iterable, List

from sqlalchemy import select, update

from kolla.database import clips
from kolla.enums import ApprovalStatus
from kolla.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from kolla.services.clip_registry import ClipRegistry

logger = logging.getLogger(__name__)


class ApprovalGate:

    def __init__(self, registry: ClipRegistry):
        self.registry = registry

    async def listing(self, team_id: int, event_id: int) -> List[dict]:
        """Clips visible to every team member."""
        return await self.registry.list_by_event(team_id, event_id, ApprovalStatus.APPROVED)

    async def pending_listing(self, team_id: int, event_id: int) -> List[dict]:
        """Clips awaiting a coach's decision. Callers must check the coach role."""
        return await self.registry.list_by_event(team_id, event_id, ApprovalStatus.PENDING)

    async def approve(self, team_id: int, clip_ids: Iterable[int]) -> List[int]:
        """
        Approve a batch of clips.

        Every id is validated against the team before anything is written.
        If any id is missing the whole batch is refused and no clip changes.
        """
        ids = list(dict.fromkeys(clip_ids))
        if not ids:
            raise InvalidInputError("No clips to approve")

        async with self.registry.engine.begin() as conn:
            found = set((await conn.execute(
                select(clips.c.id).where(clips.c.id.in_(ids), clips.c.team_id == team_id)
            )).scalars())
            missing = [clip_id for clip_id in ids if clip_id not in found]
            if missing:
                raise NotFoundError(f"Clips not found: {missing}")

            await conn.execute(
                update(clips)
                .where(clips.c.id.in_(ids), clips.c.team_id == team_id)
                .values(approval_status=ApprovalStatus.APPROVED.value)
            )

        logger.info(f"Approved clips {ids} for team {team_id}")
        return ids

    async def reject(self, team_id: int, clip_id: int):
        """Delete a pending clip and its stored objects."""
        clip = await self.registry.get(team_id, clip_id)
        approval = ApprovalStatus(clip["approval_status"])
        if approval is ApprovalStatus.APPROVED:
            raise InvalidTransitionError("Only pending clips can be rejected")
        if approval is not ApprovalStatus.PENDING:
            raise ValueError(f"Unhandled approval status: {approval!r}")

        await self.registry.delete(team_id, clip_id)
        logger.info(f"Rejected clip {clip_id} for team {team_id}")
