"""
HTTP transcoding provider for a self-hosted or third-party job API.

Jobs are created with POST {api_url}/jobs and report back through the
provider webhook. When a webhook secret is configured every delivery must
carry an HMAC-SHA256 signature of the raw body.
"""

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional

import httpx

from .base import (
    JobStatusResponse,
    ProviderError,
    SubmitJobOptions,
    TranscodingProvider,
    WebhookPayload,
    map_provider_status,
    text_field,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("x-webhook-signature", "x-signature")


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class CustomHTTPProvider(TranscodingProvider):
    """Provider speaking a small JSON job API."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        webhook_secret: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_url:
            raise ValueError("TRANSCODING_CUSTOM_API_URL is required for the custom provider")
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.transport = transport

    @property
    def name(self) -> str:
        return "custom"

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def submit_job(self, options: SubmitJobOptions) -> str:
        body = {
            "source": {"url": options.source_url},
            "output": {
                "type": "hls",
                "bucket": options.output.bucket,
                "prefix": options.output.prefix,
                "credentials": options.output.credentials,
            },
            "webhook": {
                "url": options.webhook_url,
                "events": ["job.completed", "job.failed"],
            },
            "metadata": {"clipId": options.clip_id},
            **options.options,
        }

        async with self._client() as client:
            response = await client.post("/jobs", json=body)

        if response.is_error:
            raise ProviderError(f"Failed to submit transcoding job: {response.text}")

        job_id = response.json().get("jobId")
        if not job_id:
            raise ProviderError("Provider response did not include a jobId")
        return str(job_id)

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        async with self._client() as client:
            response = await client.get(f"/jobs/{job_id}")

        if response.is_error:
            raise ProviderError(f"Failed to get job status: {response.status_code} {response.reason_phrase}")

        job = response.json()
        return JobStatusResponse(
            job_id=str(job.get("id", job_id)),
            status=map_provider_status(job.get("status")),
            progress=job.get("progress"),
            hls_url=(job.get("output") or {}).get("hlsUrl"),
            error=text_field(job.get("error")),
            metadata=job.get("metadata") or {},
        )

    async def cancel_job(self, job_id: str):
        async with self._client() as client:
            response = await client.post(f"/jobs/{job_id}/cancel")

        if response.is_error:
            raise ProviderError(f"Failed to cancel job: {response.status_code} {response.reason_phrase}")

    def verify_signature(self, headers: Mapping[str, str], raw_body: bytes) -> bool:
        signature = next((headers[h] for h in SIGNATURE_HEADERS if headers.get(h)), None)
        if not signature:
            return False
        expected = sign_payload(self.webhook_secret, raw_body)
        return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())

    def parse_webhook(
        self,
        payload: Any,
        headers: Mapping[str, str],
        raw_body: bytes = b"",
    ) -> Optional[WebhookPayload]:
        if self.webhook_secret and not self.verify_signature(headers, raw_body):
            logger.warning("Invalid webhook signature")
            return None

        if not isinstance(payload, dict):
            logger.warning("Webhook payload is not a JSON object")
            return None

        job_id = payload.get("jobId")
        if job_id is None or "status" not in payload:
            logger.warning("Webhook payload missing jobId or status")
            return None

        output = payload.get("output") if isinstance(payload.get("output"), dict) else {}
        return WebhookPayload(
            provider=self.name,
            job_id=str(job_id),
            status=map_provider_status(payload.get("status")),
            hls_url=output.get("hlsUrl") or payload.get("hlsUrl"),
            error=payload.get("error"),
            progress=payload.get("progress"),
            metadata=payload.get("metadata") or {},
        )
