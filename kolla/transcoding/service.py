"""
Transcoding submission and status callbacks.

TranscodingService moves clips from uploaded to processing, hands them to
the configured provider, and applies the provider's terminal outcome to
the clip registry.
"""

import logging
from typing import Any, Mapping, Optional

from kolla.config import Settings
from kolla.enums import ClipStatus, TranscodingStatus
from kolla.errors import InvalidTransitionError, KollaError, NotFoundError, UpstreamError
from kolla.services.clip_registry import ClipRegistry
from kolla.storage import ObjectStore, hls_prefix
from .base import OutputTarget, SubmitJobOptions, TranscodingProvider

logger = logging.getLogger(__name__)


class TranscodingService:

    def __init__(
        self,
        provider: TranscodingProvider,
        registry: ClipRegistry,
        store: ObjectStore,
        settings: Settings,
    ):
        self.provider = provider
        self.registry = registry
        self.store = store
        self.settings = settings

    async def submit_clip(self, clip_id: int, team_id: Optional[int] = None) -> dict:
        """
        Start transcoding an uploaded clip.

        Steps, in order: mark processing, presign a read URL for the
        original, submit to the provider, record the job id. A failure after
        the clip is marked processing is recorded as the clip's fail reason
        and re-raised as UpstreamError. Nothing is retried.

        Raises:
            NotFoundError: clip missing or outside the team
            InvalidTransitionError: clip is not in uploaded status
            UpstreamError: storage or provider call failed
        """
        if team_id is not None:
            clip = await self.registry.get(team_id, clip_id)
        else:
            clip = await self.registry.get_by_id(clip_id)
            if clip is None:
                raise NotFoundError("Clip not found")

        if ClipStatus(clip["status"]) is not ClipStatus.UPLOADED:
            raise InvalidTransitionError(f"Clip {clip_id} is not in uploaded status")

        await self.registry.mark_processing(clip_id)

        try:
            source_url = self._source_url(clip["storage_key"])
            job_id = await self.provider.submit_job(SubmitJobOptions(
                clip_id=clip_id,
                source_url=source_url,
                output=OutputTarget(
                    bucket=self.settings.bucket_name,
                    prefix=hls_prefix(clip["team_id"], clip["event_id"], clip_id),
                    credentials=self._output_credentials(),
                ),
                webhook_url=self.settings.webhook_url,
            ))
            await self.registry.set_job_id(clip_id, job_id)
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.error(f"Transcoding submission failed for clip {clip_id}: {reason}")
            try:
                await self.registry.mark_failed(clip_id, reason)
            except KollaError as record_error:
                logger.error(f"Could not record failure for clip {clip_id}: {record_error}")
            raise UpstreamError(reason) from exc

        logger.info(f"Submitted transcoding job {job_id} for clip {clip_id} via {self.provider.name}")
        return await self.registry.get_by_id(clip_id)

    async def handle_webhook(
        self,
        payload: Any,
        headers: Mapping[str, str],
        raw_body: bytes = b"",
    ) -> Optional[dict]:
        """
        Apply a provider webhook to the registry.

        Invalid deliveries and unknown job ids are logged and dropped so
        providers don't retry them. Returns the updated clip, if any.
        """
        webhook = self.provider.parse_webhook(payload, headers, raw_body)
        if webhook is None:
            logger.warning("Invalid webhook payload received")
            return None

        clip = await self.registry.find_by_job_id(webhook.job_id)
        if clip is None:
            logger.warning(f"No clip found for transcoding job ID: {webhook.job_id}")
            return None

        try:
            if webhook.status is TranscodingStatus.COMPLETED:
                prefix = webhook.hls_url or hls_prefix(clip["team_id"], clip["event_id"], clip["id"])
                return await self.registry.mark_ready(clip["id"], prefix)
            if webhook.status is TranscodingStatus.FAILED:
                return await self.registry.mark_failed(clip["id"], webhook.error or "Transcoding failed")
            if webhook.status in (TranscodingStatus.QUEUED, TranscodingStatus.PROCESSING):
                logger.info(f"Clip {clip['id']} transcoding in progress: {webhook.job_id}")
                return None
            raise ValueError(f"Unhandled transcoding status: {webhook.status!r}")
        except InvalidTransitionError as e:
            logger.warning(f"Ignoring webhook for job {webhook.job_id}: {e}")
            return None

    async def handle_callback(
        self,
        clip_id: int,
        failed: bool = False,
        reason: Optional[str] = None,
        hls_prefix_value: Optional[str] = None,
        duration_s: Optional[float] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Optional[dict]:
        """
        Apply the first-party worker's callback.

        Metadata is recorded first-write-wins before the clip is marked
        ready. Unknown clips and out-of-order callbacks are logged and
        dropped.
        """
        clip = await self.registry.get_by_id(clip_id)
        if clip is None:
            logger.warning(f"Callback for unknown clip {clip_id}")
            return None

        # Metadata is only recorded for a clip that is actually processing
        if ClipStatus(clip["status"]) is not ClipStatus.PROCESSING:
            logger.warning(f"Ignoring callback for clip {clip_id} in status {clip['status']}")
            return None

        try:
            if failed:
                return await self.registry.mark_failed(clip_id, reason or "Processing failed")

            await self.registry.update_metadata(clip_id, duration_s=duration_s, width=width, height=height)
            prefix = hls_prefix_value or hls_prefix(clip["team_id"], clip["event_id"], clip_id)
            return await self.registry.mark_ready(clip_id, prefix)
        except InvalidTransitionError as e:
            logger.warning(f"Ignoring callback for clip {clip_id}: {e}")
            return None

    def _source_url(self, storage_key: str) -> str:
        if self.provider.uses_internal_endpoint:
            return self.store.internal_get_url(storage_key)
        return self.store.presigned_get_url(storage_key)

    def _output_credentials(self) -> Optional[dict]:
        # In-cluster jobs get storage credentials from a Kubernetes secret
        if self.provider.uses_internal_endpoint:
            return None
        return {
            "accessKeyId": self.settings.minio_access_key,
            "secretAccessKey": self.settings.minio_secret_key,
            "endpoint": self.settings.minio_external_endpoint,
        }
