"""
Base classes and interfaces for transcoding providers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from kolla.enums import TranscodingStatus

logger = logging.getLogger(__name__)

# Provider status vocabulary, normalized to the canonical four states
STATUS_MAP = {
    "pending": TranscodingStatus.QUEUED,
    "queued": TranscodingStatus.QUEUED,
    "processing": TranscodingStatus.PROCESSING,
    "transcoding": TranscodingStatus.PROCESSING,
    "running": TranscodingStatus.PROCESSING,
    "completed": TranscodingStatus.COMPLETED,
    "finished": TranscodingStatus.COMPLETED,
    "success": TranscodingStatus.COMPLETED,
    "failed": TranscodingStatus.FAILED,
    "error": TranscodingStatus.FAILED,
}


class ProviderError(Exception):
    """A provider call failed or returned something unusable."""


def text_field(value: Any) -> Optional[str]:
    """
    Coerce a provider field to text.

    Structured errors such as {"code": 1, "message": "boom"} yield their
    message; anything else that is not a non-empty string is treated as absent.
    """
    if isinstance(value, dict):
        value = value.get("message")
    if isinstance(value, str) and value.strip():
        return value
    return None


def map_provider_status(value: Optional[str]) -> TranscodingStatus:
    """
    Map a provider's status string to TranscodingStatus.

    Unrecognized values fall back to QUEUED, which never changes a clip.
    """
    status = STATUS_MAP.get(str(value).strip().lower()) if value is not None else None
    if status is None:
        logger.warning(f"Unknown provider status: {value!r}")
        return TranscodingStatus.QUEUED
    return status


@dataclass
class OutputTarget:
    """Where the provider writes the HLS rendition."""
    bucket: str
    prefix: str
    credentials: Optional[Dict[str, str]] = None


@dataclass
class SubmitJobOptions:
    """Everything a provider needs to transcode one clip."""
    clip_id: int
    source_url: str
    output: OutputTarget
    webhook_url: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class JobStatusResponse:
    job_id: str
    status: TranscodingStatus
    progress: Optional[float] = None
    hls_url: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookPayload:
    """Canonical webhook record every provider parser produces."""
    provider: str
    job_id: str
    status: TranscodingStatus
    hls_url: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.hls_url = text_field(self.hls_url)
        self.error = text_field(self.error)
        if isinstance(self.progress, bool) or not isinstance(self.progress, (int, float)):
            self.progress = None
        if not isinstance(self.metadata, dict):
            self.metadata = {}


class TranscodingProvider(ABC):
    """
    Abstract base class for transcoding providers.

    Each provider submits jobs to its backend and parses that backend's
    webhook payloads into WebhookPayload.
    """

    # Whether the provider reads sources from inside the cluster
    uses_internal_endpoint = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def submit_job(self, options: SubmitJobOptions) -> str:
        """
        Submit a clip for transcoding.

        Returns:
            The provider's job id
        """
        pass

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        pass

    async def cancel_job(self, job_id: str):
        """Cancel a job. Optional capability."""
        raise NotImplementedError(f"{self.name} does not support cancelling jobs")

    @abstractmethod
    def parse_webhook(
        self,
        payload: Any,
        headers: Mapping[str, str],
        raw_body: bytes = b"",
    ) -> Optional[WebhookPayload]:
        """
        Parse a webhook delivery.

        Args:
            payload: Body parsed as JSON, or the raw text when it isn't JSON
            headers: Request headers with lower-cased names
            raw_body: Exact request bytes, for signature checks

        Returns:
            WebhookPayload, or None when the delivery is invalid
        """
        pass
