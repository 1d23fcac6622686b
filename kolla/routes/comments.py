"""
Comments routes.

Coaches comment on clips and segments. Each comment has a visibility level:
all (every team member), coaches (coaches only) or private (coaches and one
target user).
"""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from typing import List, Optional
from sqlalchemy import and_, delete, insert, or_, select

from kolla.database import clips, comments, segments, team_memberships, users
from kolla.enums import ApprovalStatus, CommentLevel, MembershipRole
from kolla.errors import InvalidInputError
from kolla.models.comment import CommentCreate, CommentResponse
from kolla.auth import get_engine, get_team_membership, require_coach
from kolla.utils.audit_log import log_authorization_failure

router = APIRouter(prefix="/teams/{team_id}", tags=["Comments"])


def _comment_query():
    return (
        select(comments, users.c.display_name.label("author_name"))
        .join(users, users.c.id == comments.c.author_id)
    )


def _comment_response(row) -> CommentResponse:
    return CommentResponse(
        id=row["id"],
        clip_id=row["clip_id"],
        segment_id=row["segment_id"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        parent_id=row["parent_id"],
        body=row["body"],
        level=row["level"],
        target_user_id=row["target_user_id"],
        created_at=row["created_at"]
    )


def _visible_to(membership: dict):
    """Filter for the comments a member may read."""
    if membership["role"] == MembershipRole.COACH.value:
        return None
    return or_(
        comments.c.level == CommentLevel.ALL.value,
        and_(
            comments.c.level == CommentLevel.PRIVATE.value,
            comments.c.target_user_id == membership["user"]["id"]
        )
    )


async def _require_clip(conn, membership: dict, clip_id: int):
    row = (await conn.execute(
        select(clips.c.id, clips.c.approval_status).where(
            clips.c.id == clip_id, clips.c.team_id == membership["team_id"]
        )
    )).mappings().first()
    hidden = (
        row is not None
        and row["approval_status"] == ApprovalStatus.PENDING.value
        and membership["role"] != MembershipRole.COACH.value
    )
    if not row or hidden:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clip not found"
        )


async def _require_segment(conn, membership: dict, segment_id: int):
    exists = (await conn.execute(
        select(segments.c.id).where(
            segments.c.id == segment_id, segments.c.team_id == membership["team_id"]
        )
    )).scalar()
    if exists is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Segment not found"
        )


async def _list(engine, membership: dict, target_filter) -> List[CommentResponse]:
    query = _comment_query().where(target_filter).order_by(comments.c.created_at, comments.c.id)
    visibility = _visible_to(membership)
    if visibility is not None:
        query = query.where(visibility)

    async with engine.begin() as conn:
        rows = (await conn.execute(query)).mappings().all()
    return [_comment_response(row) for row in rows]


async def _create(
    engine,
    membership: dict,
    body: CommentCreate,
    clip_id: Optional[int] = None,
    segment_id: Optional[int] = None
) -> CommentResponse:
    if body.level is CommentLevel.PRIVATE and body.target_user_id is None:
        raise InvalidInputError("Private comments need a target user")
    if body.level is not CommentLevel.PRIVATE and body.target_user_id is not None:
        raise InvalidInputError("Only private comments have a target user")

    async with engine.begin() as conn:
        if body.target_user_id is not None:
            is_member = (await conn.execute(
                select(team_memberships.c.id).where(
                    team_memberships.c.team_id == membership["team_id"],
                    team_memberships.c.user_id == body.target_user_id
                )
            )).scalar()
            if is_member is None:
                raise InvalidInputError("Target user is not on this team")

        if body.parent_id is not None:
            parent = (await conn.execute(
                select(comments.c.clip_id, comments.c.segment_id).where(comments.c.id == body.parent_id)
            )).mappings().first()
            if not parent or parent["clip_id"] != clip_id or parent["segment_id"] != segment_id:
                raise InvalidInputError("Reply must be on the same clip or segment as its parent")

        result = await conn.execute(
            insert(comments).values(
                clip_id=clip_id,
                segment_id=segment_id,
                author_id=membership["user"]["id"],
                parent_id=body.parent_id,
                body=body.body,
                level=body.level.value,
                target_user_id=body.target_user_id
            )
        )
        row = (await conn.execute(
            _comment_query().where(comments.c.id == result.inserted_primary_key[0])
        )).mappings().one()

    return _comment_response(row)


@router.get("/clips/{clip_id}/comments", response_model=List[CommentResponse])
async def list_clip_comments(
    team_id: int,
    clip_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """
    List the comments on a clip that the caller may see.

    Coaches see every level; players see comments for all plus private
    comments addressed to them.
    """
    async with engine.begin() as conn:
        await _require_clip(conn, membership, clip_id)
    return await _list(engine, membership, comments.c.clip_id == clip_id)


@router.post("/clips/{clip_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_clip_comment(
    team_id: int,
    clip_id: int,
    body: CommentCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _require_clip(conn, membership, clip_id)
    return await _create(engine, membership, body, clip_id=clip_id)


@router.get("/segments/{segment_id}/comments", response_model=List[CommentResponse])
async def list_segment_comments(
    team_id: int,
    segment_id: int,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _require_segment(conn, membership, segment_id)
    return await _list(engine, membership, comments.c.segment_id == segment_id)


@router.post("/segments/{segment_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment_comment(
    team_id: int,
    segment_id: int,
    body: CommentCreate,
    membership: dict = Depends(require_coach()),
    engine=Depends(get_engine)
):
    async with engine.begin() as conn:
        await _require_segment(conn, membership, segment_id)
    return await _create(engine, membership, body, segment_id=segment_id)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    team_id: int,
    comment_id: int,
    request: Request,
    membership: dict = Depends(get_team_membership),
    engine=Depends(get_engine)
):
    """
    Delete a comment and its replies.

    Only the author may delete a comment.
    """
    team_clip = select(clips.c.id).where(clips.c.team_id == team_id)
    team_segment = select(segments.c.id).where(segments.c.team_id == team_id)

    async with engine.begin() as conn:
        row = (await conn.execute(
            select(comments.c.id, comments.c.author_id).where(
                comments.c.id == comment_id,
                or_(comments.c.clip_id.in_(team_clip), comments.c.segment_id.in_(team_segment))
            )
        )).mappings().first()

        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Comment not found"
            )

        if row["author_id"] != membership["user"]["id"]:
            log_authorization_failure(
                membership["user"]["id"], membership["role"], "comment", comment_id, "delete", request,
                reason="not the author"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the author can delete this comment"
            )

        await conn.execute(delete(comments).where(comments.c.id == comment_id))
