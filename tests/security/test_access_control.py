"""
Security tests for access control.

Tests team isolation, coach-only operations, hidden pending clips and the
shared-secret job callback.
"""

import pytest

from kolla.auth import create_access_token
from kolla.enums import ApprovalStatus, ClipStatus

from tests.utils import auth_headers, create_test_team, force_clip_status


@pytest.mark.security
@pytest.mark.asyncio
class TestAuthentication:
    """Test requests without valid credentials."""

    async def test_no_token(self, async_client, test_team):
        response = await async_client.get(f"/teams/{test_team['id']}")

        assert response.status_code == 401

    async def test_garbage_token(self, async_client, test_team):
        response = await async_client.get(f"/teams/{test_team['id']}", headers=auth_headers("not-a-jwt"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    async def test_token_signed_with_other_secret(self, async_client, test_team):
        token = create_access_token("coach-1", "some-other-secret")
        response = await async_client.get(f"/teams/{test_team['id']}", headers=auth_headers(token))

        assert response.status_code == 401


@pytest.mark.security
@pytest.mark.asyncio
class TestTeamIsolation:
    """Test non-members are kept out of a team."""

    @pytest.mark.parametrize("path", [
        "",
        "/members",
        "/events",
        "/players",
        "/playlists",
    ])
    async def test_outsider_forbidden(self, async_client, outsider_token, test_team, path):
        response = await async_client.get(f"/teams/{test_team['id']}{path}", headers=auth_headers(outsider_token))

        assert response.status_code == 403

    async def test_outsider_cannot_read_clip(self, async_client, outsider_token, test_team, test_clip):
        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}", headers=auth_headers(outsider_token)
        )

        assert response.status_code == 403

    async def test_clip_not_reachable_through_other_team(self, async_client, engine, coach_token, test_coach, test_clip):
        """Test a coach of two teams cannot read one team's clip through the other."""
        other = await create_test_team(engine, test_coach["id"], "Hawks")

        response = await async_client.get(
            f"/teams/{other['id']}/clips/{test_clip['id']}", headers=auth_headers(coach_token)
        )

        assert response.status_code == 404

    async def test_approve_other_teams_clip(self, async_client, engine, registry, coach_token, test_coach, test_clip):
        other = await create_test_team(engine, test_coach["id"], "Hawks")

        response = await async_client.post(
            f"/teams/{other['id']}/clips/approve",
            headers=auth_headers(coach_token),
            json={"clip_ids": [test_clip["id"]]}
        )

        assert response.status_code == 404


@pytest.mark.security
@pytest.mark.asyncio
class TestCoachOnly:
    """Test player callers on coach routes."""

    async def test_player_cannot_presign(self, async_client, player_token, test_team, test_event):
        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/presign",
            headers=auth_headers(player_token),
            json={"event_id": test_event["id"], "index": 1, "content_type": "video/mp4", "size": 10}
        )

        assert response.status_code == 403

    async def test_player_cannot_process(self, async_client, player_token, test_team, test_clip, provider):
        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}/process", headers=auth_headers(player_token)
        )

        assert response.status_code == 403
        assert provider.submitted == []

    async def test_player_cannot_delete_clip(self, async_client, player_token, test_team, test_clip):
        response = await async_client.delete(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}", headers=auth_headers(player_token)
        )

        assert response.status_code == 403

    async def test_player_cannot_list_pending(self, async_client, player_token, test_team, test_event):
        response = await async_client.get(
            f"/teams/{test_team['id']}/events/{test_event['id']}/clips/pending", headers=auth_headers(player_token)
        )

        assert response.status_code == 403

    async def test_player_cannot_create_upload_link(self, async_client, player_token, test_team, test_event):
        response = await async_client.post(
            f"/teams/{test_team['id']}/upload-links",
            headers=auth_headers(player_token),
            json={"event_id": test_event["id"], "duration_days": 1}
        )

        assert response.status_code == 403

    async def test_player_cannot_comment(self, async_client, player_token, test_team, test_clip):
        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}/comments",
            headers=auth_headers(player_token),
            json={"body": "Hi"}
        )

        assert response.status_code == 403

    async def test_player_cannot_delete_coach_comment(self, async_client, coach_token, player_token, test_team, test_clip):
        comment = (await async_client.post(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}/comments",
            headers=auth_headers(coach_token),
            json={"body": "Stay", "level": "all"}
        )).json()

        response = await async_client.delete(
            f"/teams/{test_team['id']}/comments/{comment['id']}", headers=auth_headers(player_token)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Only the author can delete this comment"


@pytest.mark.security
@pytest.mark.asyncio
class TestPendingClipVisibility:
    """Test pending link uploads stay hidden from players."""

    async def _pending(self, registry, test_team, test_event):
        return await registry.create(
            test_team["id"], test_event["id"], "originals/p.mp4", 2,
            uploader_name="Stranger", approval_status=ApprovalStatus.PENDING
        )

    async def test_player_gets_404(self, async_client, registry, player_token, test_team, test_event):
        clip = await self._pending(registry, test_team, test_event)

        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{clip['id']}", headers=auth_headers(player_token)
        )

        assert response.status_code == 404

    async def test_coach_can_review(self, async_client, registry, coach_token, test_team, test_event):
        clip = await self._pending(registry, test_team, test_event)

        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{clip['id']}", headers=auth_headers(coach_token)
        )

        assert response.status_code == 200
        assert response.json()["approval_status"] == "pending"

    async def test_player_cannot_read_comments(self, async_client, registry, player_token, test_team, test_event):
        clip = await self._pending(registry, test_team, test_event)

        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{clip['id']}/comments", headers=auth_headers(player_token)
        )

        assert response.status_code == 404

    async def test_player_cannot_play(self, async_client, engine, registry, player_token, test_team, test_event):
        clip = await self._pending(registry, test_team, test_event)
        await force_clip_status(engine, clip["id"], ClipStatus.READY, hls_prefix="hls/x/")

        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{clip['id']}/playback", headers=auth_headers(player_token)
        )

        assert response.status_code == 404


@pytest.mark.security
@pytest.mark.asyncio
class TestJobCallbackSecret:
    """Test the worker callback's shared secret."""

    async def test_wrong_secret(self, async_client, engine, registry, test_clip):
        await force_clip_status(engine, test_clip["id"], ClipStatus.PROCESSING)

        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": "guess"},
            json={"clipId": test_clip["id"], "hlsPrefix": "hls/evil/"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert (await registry.get_by_id(test_clip["id"]))["status"] == ClipStatus.PROCESSING.value

    async def test_missing_secret(self, async_client, test_clip):
        response = await async_client.post("/api/process/callback", json={"clipId": test_clip["id"]})

        assert response.status_code == 401

    async def test_unset_secret_rejects_everything(self, async_client, settings, test_clip):
        """Test an unconfigured secret cannot be matched by an empty header."""
        settings.job_shared_secret = ""

        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": ""},
            json={"clipId": test_clip["id"]}
        )

        assert response.status_code == 401
