"""
Unit tests for the upload sequence and upload links.
"""

import pytest
from datetime import timedelta

from kolla.enums import ApprovalStatus, ClipStatus
from kolla.errors import ExpiredTokenError, InvalidInputError, InvalidTransitionError, NotFoundError

from tests.utils import count_clips, create_test_event, create_test_upload_link, force_clip_status


@pytest.mark.unit
@pytest.mark.asyncio
class TestCoachUpload:
    """Test the authenticated presign and confirm steps."""

    async def test_presign_creates_approved_clip(self, ingestion, registry, test_team, test_event, test_coach):
        result = await ingestion.presign_upload(test_team["id"], test_event["id"], 3, "video/mp4", test_coach["id"])

        assert result["key"].startswith(f"originals/{test_team['id']}/{test_event['id']}/")
        assert result["presigned_url"].startswith("http://storage.test/kolla-test/originals/")
        clip = await registry.get_by_id(result["clip_id"])
        assert clip["approval_status"] == ApprovalStatus.APPROVED.value
        assert clip["status"] == ClipStatus.UPLOADED.value
        assert clip["uploader_id"] == test_coach["id"]
        assert clip["sort_index"] == 3

    async def test_presign_rejects_non_video(self, ingestion, test_team, test_event, test_coach, engine):
        with pytest.raises(InvalidInputError):
            await ingestion.presign_upload(test_team["id"], test_event["id"], 1, "image/png", test_coach["id"])

        assert await count_clips(engine, test_event["id"]) == 0

    async def test_presign_unknown_event(self, ingestion, test_team, test_coach):
        with pytest.raises(NotFoundError):
            await ingestion.presign_upload(test_team["id"], 9999, 1, "video/mp4", test_coach["id"])

    async def test_confirm_keeps_status(self, ingestion, test_team, test_clip):
        clip = await ingestion.confirm_upload(test_team["id"], test_clip["id"])
        assert clip["status"] == ClipStatus.UPLOADED.value

    async def test_confirm_after_processing(self, ingestion, engine, test_team, test_clip):
        """Test confirming never regresses a clip that already started."""
        await force_clip_status(engine, test_clip["id"], ClipStatus.PROCESSING)

        with pytest.raises(InvalidTransitionError):
            await ingestion.confirm_upload(test_team["id"], test_clip["id"])


@pytest.mark.unit
@pytest.mark.asyncio
class TestLinkUpload:
    """Test uploads keyed by an upload link token."""

    async def test_validate_token(self, ingestion, engine, test_team, test_event):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-valid")

        link = await ingestion.validate_upload_token("tok-valid")

        assert link["event_id"] == test_event["id"]
        assert link["team_name"] == "Falcons"
        assert link["event_title"] == "Falcons vs Hawks"

    async def test_unknown_token(self, ingestion):
        with pytest.raises(NotFoundError):
            await ingestion.validate_upload_token("nope")

    async def test_expired_token_creates_nothing(self, ingestion, engine, test_team, test_event):
        await create_test_upload_link(
            engine, test_team["id"], test_event["id"], "tok-old", expires_in=timedelta(minutes=-1)
        )

        with pytest.raises(ExpiredTokenError):
            await ingestion.presign_public_upload("tok-old", "Grandma", 1, "video/mp4")

        assert await count_clips(engine, test_event["id"]) == 0

    async def test_public_presign_is_pending(self, ingestion, registry, engine, test_team, test_event):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-valid")

        result = await ingestion.presign_public_upload("tok-valid", "  Grandma  ", 1, "video/quicktime")

        clip = await registry.get_by_id(result["clip_id"])
        assert clip["approval_status"] == ApprovalStatus.PENDING.value
        assert clip["uploader_name"] == "Grandma"
        assert clip["uploader_id"] is None

    async def test_public_presign_blank_name(self, ingestion, engine, test_team, test_event):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-valid")

        with pytest.raises(InvalidInputError):
            await ingestion.presign_public_upload("tok-valid", "   ", 1, "video/mp4")

    async def test_next_index_via_token(self, ingestion, registry, engine, test_team, test_event):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-valid")
        await registry.create(test_team["id"], test_event["id"], "originals/a.mp4", 5)

        assert await ingestion.next_index_via_token("tok-valid") == 6

    async def test_clip_from_other_event(self, ingestion, engine, test_team, test_event, test_clip):
        """Test a token only reaches clips of its own event."""
        other_event = await create_test_event(engine, test_team["id"], "Practice")
        await create_test_upload_link(engine, test_team["id"], other_event["id"], "tok-other")

        with pytest.raises(NotFoundError):
            await ingestion.confirm_public_upload("tok-other", test_clip["id"])


@pytest.mark.unit
@pytest.mark.asyncio
class TestUploadLinks:
    """Test upload link management."""

    async def test_create_and_list(self, ingestion, test_team, test_event, test_coach):
        link = await ingestion.create_upload_link(test_team["id"], test_event["id"], 7, test_coach["id"])

        assert len(link["token"]) == 32
        assert link["expires_at"] - link["created_at"] > timedelta(days=6)
        links = await ingestion.list_upload_links(test_team["id"], test_event["id"])
        assert [row["id"] for row in links] == [link["id"]]

    async def test_invalid_duration(self, ingestion, test_team, test_event, test_coach):
        with pytest.raises(InvalidInputError):
            await ingestion.create_upload_link(test_team["id"], test_event["id"], 2, test_coach["id"])

    async def test_revoke(self, ingestion, test_team, test_event, test_coach):
        link = await ingestion.create_upload_link(test_team["id"], test_event["id"], 1, test_coach["id"])

        await ingestion.revoke_upload_link(test_team["id"], link["id"])

        with pytest.raises(NotFoundError):
            await ingestion.validate_upload_token(link["token"])
        with pytest.raises(NotFoundError):
            await ingestion.revoke_upload_link(test_team["id"], link["id"])
