"""
Integration tests for upload links and the approval gate.

Tests the anonymous upload path through a link token and the coach's
approve and reject actions.
"""

import pytest
from datetime import timedelta

from tests.utils import auth_headers, create_test_upload_link


async def _link_upload(async_client, token: str, index: int = 1) -> int:
    response = await async_client.post(
        f"/upload/{token}/presign",
        json={"uploader_name": "Grandma", "index": index, "content_type": "video/mp4", "size": 2048}
    )
    assert response.status_code == 201
    return response.json()["clip_id"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestUploadLinkManagement:
    """Test creating, listing and revoking upload links."""

    async def test_create_and_list(self, async_client, coach_token, test_team, test_event):
        headers = auth_headers(coach_token)

        response = await async_client.post(
            f"/teams/{test_team['id']}/upload-links",
            headers=headers,
            json={"event_id": test_event["id"], "duration_days": 3}
        )
        assert response.status_code == 201
        link = response.json()
        assert link["event_id"] == test_event["id"]
        assert len(link["token"]) == 32

        response = await async_client.get(
            f"/teams/{test_team['id']}/events/{test_event['id']}/upload-links", headers=headers
        )
        assert [row["id"] for row in response.json()] == [link["id"]]

    async def test_invalid_duration(self, async_client, coach_token, test_team, test_event):
        response = await async_client.post(
            f"/teams/{test_team['id']}/upload-links",
            headers=auth_headers(coach_token),
            json={"event_id": test_event["id"], "duration_days": 5}
        )

        assert response.status_code == 422

    async def test_revoke(self, async_client, coach_token, test_team, test_event):
        headers = auth_headers(coach_token)
        link = (await async_client.post(
            f"/teams/{test_team['id']}/upload-links",
            headers=headers,
            json={"event_id": test_event["id"]}
        )).json()

        response = await async_client.delete(f"/teams/{test_team['id']}/upload-links/{link['id']}", headers=headers)
        assert response.status_code == 204

        response = await async_client.get(f"/upload/{link['token']}")
        assert response.status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
class TestLinkUploads:
    """Test the anonymous upload path."""

    async def test_preview(self, async_client, engine, test_team, test_event):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-preview")

        response = await async_client.get("/upload/tok-preview")

        assert response.status_code == 200
        data = response.json()
        assert data["team_name"] == "Falcons"
        assert data["event_title"] == "Falcons vs Hawks"
        assert data["event_type"] == "game"

    async def test_expired_link(self, async_client, engine, test_team, test_event):
        await create_test_upload_link(
            engine, test_team["id"], test_event["id"], "tok-expired", expires_in=timedelta(hours=-1)
        )

        response = await async_client.get("/upload/tok-expired")
        assert response.status_code == 403
        assert response.json()["detail"] == "This upload link has expired"

        response = await async_client.post(
            "/upload/tok-expired/presign",
            json={"uploader_name": "Grandma", "index": 1, "content_type": "video/mp4", "size": 10}
        )
        assert response.status_code == 403

    async def test_unknown_link(self, async_client):
        response = await async_client.get("/upload/does-not-exist/next-index")
        assert response.status_code == 404

    async def test_upload_waits_for_approval(
        self, async_client, engine, coach_token, player_token, test_team, test_event
    ):
        """Test a link upload is hidden until a coach approves it."""
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-upload")
        clip_id = await _link_upload(async_client, "tok-upload")

        response = await async_client.post(f"/upload/tok-upload/clips/{clip_id}/confirm")
        assert response.status_code == 200
        assert response.json()["approval_status"] == "pending"

        response = await async_client.post(f"/upload/tok-upload/clips/{clip_id}/process")
        assert response.status_code == 200
        assert response.json()["status"] == "processing"

        clips_url = f"/teams/{test_team['id']}/events/{test_event['id']}/clips"
        listed = (await async_client.get(clips_url, headers=auth_headers(player_token))).json()
        assert clip_id not in [clip["id"] for clip in listed]

        pending = (await async_client.get(f"{clips_url}/pending", headers=auth_headers(coach_token))).json()
        assert [clip["id"] for clip in pending] == [clip_id]
        assert pending[0]["uploader_name"] == "Grandma"

        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/approve",
            headers=auth_headers(coach_token),
            json={"clip_ids": [clip_id]}
        )
        assert response.status_code == 200
        assert response.json() == {"approved": [clip_id]}

        listed = (await async_client.get(clips_url, headers=auth_headers(player_token))).json()
        assert [clip["id"] for clip in listed] == [clip_id]

    async def test_next_index_via_link(self, async_client, engine, test_team, test_event, test_clip):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-index")

        response = await async_client.get("/upload/tok-index/next-index")

        assert response.json() == {"next_index": 2}

    async def test_reject(self, async_client, engine, coach_token, test_team, test_event, store):
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-reject")
        clip_id = await _link_upload(async_client, "tok-reject")

        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/{clip_id}/reject", headers=auth_headers(coach_token)
        )

        assert response.status_code == 204
        assert len(store.removed) == 1
        response = await async_client.get(
            f"/teams/{test_team['id']}/clips/{clip_id}", headers=auth_headers(coach_token)
        )
        assert response.status_code == 404

    async def test_approve_is_atomic(self, async_client, engine, coach_token, test_team, test_event):
        """Test one unknown id refuses the whole batch."""
        await create_test_upload_link(engine, test_team["id"], test_event["id"], "tok-batch")
        first = await _link_upload(async_client, "tok-batch", 1)
        second = await _link_upload(async_client, "tok-batch", 2)

        response = await async_client.post(
            f"/teams/{test_team['id']}/clips/approve",
            headers=auth_headers(coach_token),
            json={"clip_ids": [first, 9999, second]}
        )

        assert response.status_code == 404
        pending = (await async_client.get(
            f"/teams/{test_team['id']}/events/{test_event['id']}/clips/pending",
            headers=auth_headers(coach_token)
        )).json()
        assert {clip["id"] for clip in pending} == {first, second}
