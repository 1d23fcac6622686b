"""
Object store gateway.

Wraps the MinIO client for presigned upload/download URLs and object
removal. Presigned URLs are signed against the external endpoint so they
resolve from the browser; everything else goes through the internal one.
"""

import logging
import uuid
from datetime import timedelta

from minio import Minio
from minio.error import S3Error

from kolla.config import Settings

logger = logging.getLogger(__name__)

MASTER_PLAYLIST = "master.m3u8"


def original_key(team_id: int, event_id: int) -> str:
    """Storage key for a newly uploaded original file."""
    return f"originals/{team_id}/{event_id}/{uuid.uuid4()}.mp4"


def hls_prefix(team_id: int, event_id: int, clip_id: int) -> str:
    """Prefix under which a clip's HLS rendition is written."""
    return f"hls/{team_id}/{event_id}/{clip_id}/"


class ObjectStore:
    """MinIO-backed storage for originals and HLS renditions."""

    def __init__(self, settings: Settings):
        self.bucket = settings.bucket_name
        self.expiry = timedelta(seconds=settings.presign_expiry_seconds)
        self.client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
            region=settings.minio_region,
        )
        # Region is pinned so presigning never has to ask the server
        self.external_client = Minio(
            settings.minio_external_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
            region=settings.minio_region,
        )

    def ensure_bucket(self):
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket {self.bucket}")
        except S3Error as e:
            logger.error(f"Error creating bucket: {e}")

    def presigned_put_url(self, key: str) -> str:
        return self.external_client.presigned_put_object(self.bucket, key, expires=self.expiry)

    def presigned_get_url(self, key: str) -> str:
        return self.external_client.presigned_get_object(self.bucket, key, expires=self.expiry)

    def internal_get_url(self, key: str) -> str:
        """Read URL for in-cluster consumers such as the transcode worker."""
        return self.client.presigned_get_object(self.bucket, key, expires=self.expiry)

    def remove(self, key: str):
        self.client.remove_object(self.bucket, key)

    def remove_prefix(self, prefix: str):
        """Remove every object stored under a prefix."""
        for obj in self.client.list_objects(self.bucket, prefix=prefix, recursive=True):
            self.client.remove_object(self.bucket, obj.object_name)
