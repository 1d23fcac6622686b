"""
First-party transcoding on Kubernetes.

Submitting a job creates a TranscodeJob custom resource; the transcode
operator turns it into a batch Job running ffmpeg. The worker reports
success or failure through the internal job callback. If the Job itself
fails the operator posts a failure notice to the provider webhook,
authenticated with the same shared job secret.
"""

import asyncio
import hmac
import logging
import uuid
from typing import Any, Mapping, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from kolla.enums import TranscodingStatus
from .base import (
    JobStatusResponse,
    ProviderError,
    SubmitJobOptions,
    TranscodingProvider,
    WebhookPayload,
)

logger = logging.getLogger(__name__)

GROUP = "kolla.io"
VERSION = "v1alpha1"
PLURAL = "transcodejobs"

PHASES = {
    "pending": TranscodingStatus.QUEUED,
    "running": TranscodingStatus.PROCESSING,
    "succeeded": TranscodingStatus.COMPLETED,
    "failed": TranscodingStatus.FAILED,
}


def phase_to_status(phase: Optional[str]) -> TranscodingStatus:
    status = PHASES.get((phase or "").lower())
    if status is None:
        logger.warning(f"Unknown TranscodeJob phase: {phase!r}")
        return TranscodingStatus.QUEUED
    return status


class KubernetesProvider(TranscodingProvider):
    """Creates TranscodeJob resources for the in-cluster operator."""

    uses_internal_endpoint = True

    def __init__(
        self,
        namespace: str,
        job_secret: str,
        callback_url: str,
        api: Optional[client.CustomObjectsApi] = None,
    ):
        self.namespace = namespace
        self.job_secret = job_secret
        self.callback_url = callback_url
        self.api = api or client.CustomObjectsApi()

    @property
    def name(self) -> str:
        return "kubernetes"

    async def _call(self, fn):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn)

    def build_resource(self, job_name: str, options: SubmitJobOptions) -> dict:
        return {
            "apiVersion": f"{GROUP}/{VERSION}",
            "kind": "TranscodeJob",
            "metadata": {
                "name": job_name,
                "namespace": self.namespace,
                "labels": {"kolla.io/clip-id": str(options.clip_id)},
            },
            "spec": {
                "clipId": options.clip_id,
                "sourceUrl": options.source_url,
                "outputBucket": options.output.bucket,
                "outputPrefix": options.output.prefix,
                "callbackUrl": self.callback_url,
                "webhookUrl": options.webhook_url,
                "ttlSecondsAfterFinished": 3600,
                "backoffLimit": 2,
                **options.options,
            },
        }

    async def submit_job(self, options: SubmitJobOptions) -> str:
        job_name = f"transcode-{options.clip_id}-{uuid.uuid4().hex[:6]}"
        body = self.build_resource(job_name, options)

        try:
            await self._call(lambda: self.api.create_namespaced_custom_object(
                group=GROUP,
                version=VERSION,
                namespace=self.namespace,
                plural=PLURAL,
                body=body,
            ))
        except ApiException as e:
            raise ProviderError(f"Failed to create TranscodeJob: {e.status} {e.reason}") from e

        logger.info(f"Created TranscodeJob {job_name} for clip {options.clip_id}")
        return job_name

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        try:
            resource = await self._call(lambda: self.api.get_namespaced_custom_object(
                group=GROUP,
                version=VERSION,
                namespace=self.namespace,
                plural=PLURAL,
                name=job_id,
            ))
        except ApiException as e:
            raise ProviderError(f"Failed to read TranscodeJob {job_id}: {e.status} {e.reason}") from e

        job_status = resource.get("status") or {}
        return JobStatusResponse(
            job_id=job_id,
            status=phase_to_status(job_status.get("phase")),
            error=job_status.get("message"),
            metadata={"jobName": job_status.get("jobName")},
        )

    async def cancel_job(self, job_id: str):
        # The batch Job is owned by the resource and goes with it
        try:
            await self._call(lambda: self.api.delete_namespaced_custom_object(
                group=GROUP,
                version=VERSION,
                namespace=self.namespace,
                plural=PLURAL,
                name=job_id,
            ))
        except ApiException as e:
            raise ProviderError(f"Failed to delete TranscodeJob {job_id}: {e.status} {e.reason}") from e

    def parse_webhook(
        self,
        payload: Any,
        headers: Mapping[str, str],
        raw_body: bytes = b"",
    ) -> Optional[WebhookPayload]:
        supplied = headers.get("x-job-secret", "")
        if not self.job_secret or not hmac.compare_digest(supplied.encode(), self.job_secret.encode()):
            logger.warning("Rejected operator notice with bad job secret")
            return None

        if not isinstance(payload, dict) or not payload.get("jobName"):
            logger.warning("Operator notice missing jobName")
            return None

        return WebhookPayload(
            provider=self.name,
            job_id=str(payload["jobName"]),
            status=phase_to_status(payload.get("phase")),
            hls_url=payload.get("hlsPrefix"),
            error=payload.get("message"),
        )
