"""
Integration tests for the worker callback and provider webhook receivers.
"""

import pytest

from kolla.enums import ClipStatus

from tests.utils import auth_headers, force_clip_status

JOB_SECRET = "test-job-secret"


@pytest.mark.integration
@pytest.mark.asyncio
class TestProcessCallback:
    """Test /api/process/callback."""

    async def test_failure_report(self, async_client, engine, coach_token, test_team, test_clip):
        await force_clip_status(engine, test_clip["id"], ClipStatus.PROCESSING)

        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": JOB_SECRET},
            json={"clipId": test_clip["id"], "failed": True, "reason": "ffmpeg exited with status 1"}
        )

        assert response.status_code == 200
        clip = (await async_client.get(
            f"/teams/{test_team['id']}/clips/{test_clip['id']}", headers=auth_headers(coach_token)
        )).json()
        assert clip["status"] == "failed"
        assert clip["fail_reason"] == "ffmpeg exited with status 1"

    async def test_unknown_clip_acknowledged(self, async_client):
        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": JOB_SECRET},
            json={"clipId": 9999, "hlsPrefix": "hls/1/1/9999/"}
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    async def test_malformed_body(self, async_client):
        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": JOB_SECRET, "content-type": "application/json"},
            content=b"{not json"
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid callback payload"}

    async def test_missing_clip_id(self, async_client):
        response = await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": JOB_SECRET},
            json={"hlsPrefix": "hls/1/1/1/"}
        )

        assert response.status_code == 400

    async def test_default_prefix(self, async_client, engine, registry, test_team, test_event, test_clip):
        """Test a success report without a prefix uses the clip's canonical prefix."""
        await force_clip_status(engine, test_clip["id"], ClipStatus.PROCESSING)

        await async_client.post(
            "/api/process/callback",
            headers={"x-job-secret": JOB_SECRET},
            json={"clipId": test_clip["id"]}
        )

        clip = await registry.get_by_id(test_clip["id"])
        assert clip["status"] == "ready"
        assert clip["hls_prefix"] == f"hls/{test_team['id']}/{test_event['id']}/{test_clip['id']}/"


@pytest.mark.integration
@pytest.mark.asyncio
class TestProviderWebhook:
    """Test /api/transcoding/webhook and the diagnostic endpoints."""

    async def test_completed(self, async_client, registry, transcoding, test_clip):
        await transcoding.submit_clip(test_clip["id"])

        response = await async_client.post(
            "/api/transcoding/webhook",
            json={"jobId": f"job-{test_clip['id']}", "status": "completed"}
        )

        assert response.status_code == 200
        assert response.text == "OK"
        assert (await registry.get_by_id(test_clip["id"]))["status"] == "ready"

    async def test_structured_error(self, async_client, registry, transcoding, test_clip):
        await transcoding.submit_clip(test_clip["id"])

        response = await async_client.post(
            "/api/transcoding/webhook",
            json={"jobId": f"job-{test_clip['id']}", "status": "failed", "error": {"code": 1, "message": "boom"}}
        )

        assert response.status_code == 200
        assert response.text == "OK"
        clip = await registry.get_by_id(test_clip["id"])
        assert clip["status"] == "failed"
        assert clip["fail_reason"] == "boom"

    async def test_unknown_job(self, async_client):
        response = await async_client.post(
            "/api/transcoding/webhook", json={"jobId": "nobody", "status": "completed"}
        )

        assert response.status_code == 200
        assert response.text == "OK"

    async def test_non_json_body(self, async_client):
        response = await async_client.post("/api/transcoding/webhook", content=b"ping")

        assert response.status_code == 200
        assert response.text == "OK"

    async def test_ready_probe(self, async_client):
        response = await async_client.get("/api/transcoding/webhook")

        assert response.status_code == 200
        assert response.text == "Webhook endpoint ready"

    async def test_info(self, async_client):
        response = await async_client.get("/api/transcoding/test")

        assert response.json() == {
            "provider": "fake",
            "webhookUrl": "http://api.test/api/transcoding/webhook"
        }

    async def test_parse_sample(self, async_client):
        response = await async_client.post(
            "/api/transcoding/test", json={"jobId": "abc", "status": "finished"}
        )

        data = response.json()
        assert data["provider"] == "fake"
        assert data["parsed"]["job_id"] == "abc"
        assert data["parsed"]["status"] == "completed"

    async def test_parse_invalid_sample(self, async_client):
        response = await async_client.post("/api/transcoding/test", json={"nothing": True})

        assert response.json() == {"provider": "fake", "parsed": None}
