"""
Database schema and engine setup.

Tables are declared with SQLAlchemy Core and queried through the asyncio
engine. SQLite (aiosqlite) is the default embedded store; a
postgresql+asyncpg URL works with the same schema.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from kolla.enums import (
    ApprovalStatus,
    ClipStatus,
    CommentLevel,
    EventType,
    MembershipRole,
    enum_values,
)

logger = logging.getLogger(__name__)

metadata = sa.MetaData()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what both backends hand back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware timestamp to naive UTC. Naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("external_id", sa.String(255), unique=True, nullable=False),
    sa.Column("email", sa.String(320), nullable=True),
    sa.Column("display_name", sa.String(255), nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

teams = sa.Table(
    "teams",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

team_memberships = sa.Table(
    "team_memberships",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column(
        "role",
        sa.String(20),
        sa.CheckConstraint(f"role IN ({enum_values(MembershipRole)})", name="ck_memberships_role"),
        nullable=False,
    ),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    sa.UniqueConstraint("team_id", "user_id", name="uq_memberships_team_user"),
)

players = sa.Table(
    "players",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("number", sa.Integer, nullable=True),
    sa.Column("external_id", sa.String(100), nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

events = sa.Table(
    "events",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column(
        "type",
        sa.String(20),
        sa.CheckConstraint(f"type IN ({enum_values(EventType)})", name="ck_events_type"),
        nullable=False,
    ),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("date", sa.Date, nullable=False),
    sa.Column("venue", sa.String(255), nullable=True),
    sa.Column("notes", sa.Text, nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

clips = sa.Table(
    "clips",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
    # Null for anonymous uploads through an upload link
    sa.Column("uploader_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("uploader_name", sa.String(100), nullable=True),
    sa.Column("name", sa.String(255), nullable=True),
    sa.Column("storage_key", sa.String(500), nullable=False),
    sa.Column("hls_prefix", sa.String(500), nullable=True),
    sa.Column("duration_s", sa.Float, nullable=True),
    sa.Column("width", sa.Integer, nullable=True),
    sa.Column("height", sa.Integer, nullable=True),
    sa.Column(
        "status",
        sa.String(20),
        sa.CheckConstraint(f"status IN ({enum_values(ClipStatus)})", name="ck_clips_status"),
        nullable=False,
        default=ClipStatus.UPLOADED.value,
    ),
    sa.Column("fail_reason", sa.Text, nullable=True),
    sa.Column(
        "approval_status",
        sa.String(20),
        sa.CheckConstraint(
            f"approval_status IN ({enum_values(ApprovalStatus)})", name="ck_clips_approval_status"
        ),
        nullable=False,
        default=ApprovalStatus.APPROVED.value,
    ),
    sa.Column("sort_index", sa.Integer, nullable=False, default=0),
    sa.Column("transcoding_job_id", sa.String(255), nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    sa.Column("updated_at", sa.DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    sa.Index("ix_clips_event", "event_id", "sort_index"),
    sa.Index("ix_clips_transcoding_job_id", "transcoding_job_id"),
)

clip_tags = sa.Table(
    "clip_tags",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("clip_id", sa.Integer, sa.ForeignKey("clips.id", ondelete="CASCADE"), nullable=False),
    sa.Column("tag", sa.String(100), nullable=False),
)

clip_players = sa.Table(
    "clip_players",
    metadata,
    sa.Column("clip_id", sa.Integer, sa.ForeignKey("clips.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("player_id", sa.Integer, sa.ForeignKey("players.id", ondelete="CASCADE"), primary_key=True),
)

segments = sa.Table(
    "segments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
    sa.Column("clip_id", sa.Integer, sa.ForeignKey("clips.id", ondelete="CASCADE"), nullable=False),
    sa.Column("creator_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("name", sa.String(255), nullable=True),
    sa.Column("start_s", sa.Float, nullable=False),
    sa.Column("end_s", sa.Float, nullable=False),
    sa.Column("sort_index", sa.Integer, nullable=False, default=0),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    sa.CheckConstraint("end_s > start_s", name="ck_segments_range"),
)

segment_tags = sa.Table(
    "segment_tags",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("segment_id", sa.Integer, sa.ForeignKey("segments.id", ondelete="CASCADE"), nullable=False),
    sa.Column("tag", sa.String(100), nullable=False),
)

segment_players = sa.Table(
    "segment_players",
    metadata,
    sa.Column("segment_id", sa.Integer, sa.ForeignKey("segments.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("player_id", sa.Integer, sa.ForeignKey("players.id", ondelete="CASCADE"), primary_key=True),
)

comments = sa.Table(
    "comments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("clip_id", sa.Integer, sa.ForeignKey("clips.id", ondelete="CASCADE"), nullable=True),
    sa.Column("segment_id", sa.Integer, sa.ForeignKey("segments.id", ondelete="CASCADE"), nullable=True),
    sa.Column("author_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("parent_id", sa.Integer, sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True),
    sa.Column("body", sa.Text, nullable=False),
    sa.Column(
        "level",
        sa.String(20),
        sa.CheckConstraint(f"level IN ({enum_values(CommentLevel)})", name="ck_comments_level"),
        nullable=False,
        default=CommentLevel.COACHES.value,
    ),
    sa.Column("target_user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    sa.CheckConstraint("(clip_id IS NULL) <> (segment_id IS NULL)", name="ck_comments_target"),
)

upload_links = sa.Table(
    "upload_links",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
    sa.Column("token", sa.String(64), unique=True, nullable=False),
    sa.Column("expires_at", sa.DateTime, nullable=False),
    sa.Column("created_by_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

share_links = sa.Table(
    "share_links",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
    sa.Column("token", sa.String(64), unique=True, nullable=False),
    sa.Column("expires_at", sa.DateTime, nullable=True),
    sa.Column("allow_public", sa.Boolean, nullable=False, default=False),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)

playlists = sa.Table(
    "playlists",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("creator_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    sa.Column("updated_at", sa.DateTime, nullable=False, default=utcnow, onupdate=utcnow),
)

playlist_items = sa.Table(
    "playlist_items",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("playlist_id", sa.Integer, sa.ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False),
    sa.Column("clip_id", sa.Integer, sa.ForeignKey("clips.id", ondelete="CASCADE"), nullable=True),
    sa.Column("segment_id", sa.Integer, sa.ForeignKey("segments.id", ondelete="CASCADE"), nullable=True),
    sa.Column("position", sa.Integer, nullable=False),
    sa.CheckConstraint("(clip_id IS NULL) <> (segment_id IS NULL)", name="ck_playlist_items_target"),
)

playlist_share_links = sa.Table(
    "playlist_share_links",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("team_id", sa.Integer, sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
    sa.Column("playlist_id", sa.Integer, sa.ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False),
    sa.Column("token", sa.String(64), unique=True, nullable=False),
    sa.Column("expires_at", sa.DateTime, nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
)


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, enabling foreign keys on SQLite connections."""
    engine = create_async_engine(database_url)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


async def create_schema(engine: AsyncEngine):
    """Create all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Database schema ready")
