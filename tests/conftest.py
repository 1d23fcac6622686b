"""
Pytest configuration and fixtures for testing.

Provides fixtures for:
- A fresh SQLite database per test
- A recording object store and a scripted transcoding provider
- Authenticated users (coach, player, outsider) and their tokens
- Test data creation (teams, events, roster players, clips)
"""

import os
from typing import AsyncGenerator, Dict, List, Mapping, Optional
import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ["JWT_SECRET"] = "test-secret-key-do-not-use-in-production"
os.environ["JOB_SHARED_SECRET"] = "test-job-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MINIO_ENDPOINT"] = "localhost:9000"
os.environ["MINIO_ACCESS_KEY"] = "minioadmin"
os.environ["MINIO_SECRET_KEY"] = "minioadmin"

from kolla.app import app
from kolla.config import Settings
from kolla.database import create_engine, create_schema
from kolla.enums import MembershipRole, TranscodingStatus
from kolla.services import ApprovalGate, ClipRegistry, IngestionService
from kolla.transcoding import (
    JobStatusResponse,
    SubmitJobOptions,
    TranscodingProvider,
    TranscodingService,
    WebhookPayload,
    map_provider_status
)

from tests.utils import (
    add_member,
    create_test_event,
    create_test_roster_player,
    create_test_team,
    create_test_user
)

TEST_JWT_SECRET = os.environ["JWT_SECRET"]
TEST_JOB_SECRET = os.environ["JOB_SHARED_SECRET"]


class FakeObjectStore:
    """Object store double that records removals instead of calling MinIO."""

    bucket = "kolla-test"

    def __init__(self):
        self.removed: List[str] = []
        self.removed_prefixes: List[str] = []
        self.fail_removals = False

    def ensure_bucket(self):
        pass

    def presigned_put_url(self, key: str) -> str:
        return f"http://storage.test/{self.bucket}/{key}?X-Amz-Signature=put"

    def presigned_get_url(self, key: str) -> str:
        return f"http://storage.test/{self.bucket}/{key}?X-Amz-Signature=get"

    def internal_get_url(self, key: str) -> str:
        return f"http://minio.internal/{self.bucket}/{key}?X-Amz-Signature=get"

    def remove(self, key: str):
        if self.fail_removals:
            raise RuntimeError("storage unavailable")
        self.removed.append(key)

    def remove_prefix(self, prefix: str):
        if self.fail_removals:
            raise RuntimeError("storage unavailable")
        self.removed_prefixes.append(prefix)


class FakeProvider(TranscodingProvider):
    """
    Scripted provider.

    Set `error` to make submit_job raise it. Webhooks are accepted as
    {"jobId", "status", "hlsUrl"?, "error"?} with no signature.
    """

    def __init__(self):
        self.submitted: List[SubmitJobOptions] = []
        self.error: Optional[Exception] = None

    @property
    def name(self) -> str:
        return "fake"

    async def submit_job(self, options: SubmitJobOptions) -> str:
        self.submitted.append(options)
        if self.error is not None:
            raise self.error
        return f"job-{options.clip_id}"

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        return JobStatusResponse(job_id=job_id, status=TranscodingStatus.QUEUED)

    def parse_webhook(self, payload, headers: Mapping[str, str], raw_body: bytes = b""):
        if not isinstance(payload, dict) or "jobId" not in payload:
            return None
        return WebhookPayload(
            provider=self.name,
            job_id=str(payload["jobId"]),
            status=map_provider_status(payload.get("status")),
            hls_url=payload.get("hlsUrl"),
            error=payload.get("error"),
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'kolla.db'}",
        bucket_name=FakeObjectStore.bucket,
        jwt_secret=TEST_JWT_SECRET,
        job_shared_secret=TEST_JOB_SECRET,
        transcoding_webhook_base_url="http://api.test",
        rate_limit_enabled=False,
    )


@pytest.fixture
async def engine(settings):
    """Fresh database for each test."""
    engine = create_engine(settings.database_url)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry(engine, store) -> ClipRegistry:
    return ClipRegistry(engine, store)


@pytest.fixture
def ingestion(engine, registry, store) -> IngestionService:
    return IngestionService(engine, registry, store)


@pytest.fixture
def approval(registry) -> ApprovalGate:
    return ApprovalGate(registry)


@pytest.fixture
def transcoding(provider, registry, store, settings) -> TranscodingService:
    return TranscodingService(provider, registry, store, settings)


@pytest.fixture
def app_state(settings, engine, store, registry, ingestion, approval, transcoding):
    """Install the per-test services where the lifespan would."""
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.registry = registry
    app.state.ingestion = ingestion
    app.state.approval = approval
    app.state.transcoding = transcoding
    return app.state


@pytest.fixture
async def async_client(app_state) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def test_coach(engine) -> Dict:
    return await create_test_user(engine, "coach-1", email="coach@example.com", display_name="Coach Carter")


@pytest.fixture
async def test_player(engine) -> Dict:
    return await create_test_user(engine, "player-1", email="player@example.com", display_name="Pat Player")


@pytest.fixture
async def test_outsider(engine) -> Dict:
    return await create_test_user(engine, "outsider-1", email="outsider@example.com", display_name="Olly Outsider")


@pytest.fixture
def coach_token(test_coach) -> str:
    return test_coach["token"]


@pytest.fixture
def player_token(test_player) -> str:
    return test_player["token"]


@pytest.fixture
def outsider_token(test_outsider) -> str:
    return test_outsider["token"]


@pytest.fixture
async def test_team(engine, test_coach, test_player) -> Dict:
    """A team with test_coach as coach and test_player as player."""
    team = await create_test_team(engine, test_coach["id"], "Falcons")
    await add_member(engine, team["id"], test_player["id"], MembershipRole.PLAYER)
    return team


@pytest.fixture
async def test_event(engine, test_team) -> Dict:
    return await create_test_event(engine, test_team["id"], "Falcons vs Hawks")


@pytest.fixture
async def test_roster_player(engine, test_team) -> Dict:
    return await create_test_roster_player(engine, test_team["id"], "Jordan", 23)


@pytest.fixture
async def test_clip(registry, test_team, test_event, test_coach) -> Dict:
    """An approved clip in uploaded status."""
    return await registry.create(
        test_team["id"], test_event["id"], "originals/test/clip.mp4", 1, uploader_id=test_coach["id"]
    )
