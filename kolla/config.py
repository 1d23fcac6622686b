"""
Configuration from environment variables.

Settings are read once at process start and passed to the components that
need them.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Runtime configuration for the API process."""

    database_url: str = "sqlite+aiosqlite:///./kolla.db"

    # Object storage
    minio_endpoint: str = "minio:9000"
    minio_external_endpoint: str = "localhost:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_secure: bool = False
    minio_region: str = "us-east-1"
    bucket_name: str = "kolla-clips"
    presign_expiry_seconds: int = 3600

    # Auth
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    job_shared_secret: str = ""

    # Transcoding
    transcoding_provider: str = "kubernetes"
    transcoding_webhook_base_url: str = "http://localhost:8000"
    transcoding_custom_api_url: str = ""
    transcoding_custom_api_key: str = ""
    transcoding_webhook_secret: str = ""
    kubernetes_namespace: str = "kolla"

    rate_limit_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            minio_endpoint=os.getenv("MINIO_ENDPOINT", cls.minio_endpoint),
            minio_external_endpoint=os.getenv("MINIO_EXTERNAL_ENDPOINT", cls.minio_external_endpoint),
            minio_access_key=os.getenv("MINIO_ACCESS_KEY", cls.minio_access_key),
            minio_secret_key=os.getenv("MINIO_SECRET_KEY", cls.minio_secret_key),
            minio_secure=_env_bool("MINIO_SECURE", "false"),
            minio_region=os.getenv("MINIO_REGION", cls.minio_region),
            bucket_name=os.getenv("S3_BUCKET", cls.bucket_name),
            presign_expiry_seconds=int(os.getenv("PRESIGN_EXPIRY_SECONDS", str(cls.presign_expiry_seconds))),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            job_shared_secret=os.getenv("JOB_SHARED_SECRET", cls.job_shared_secret),
            transcoding_provider=os.getenv("TRANSCODING_PROVIDER", cls.transcoding_provider),
            transcoding_webhook_base_url=os.getenv(
                "TRANSCODING_WEBHOOK_BASE_URL", cls.transcoding_webhook_base_url
            ),
            transcoding_custom_api_url=os.getenv("TRANSCODING_CUSTOM_API_URL", cls.transcoding_custom_api_url),
            transcoding_custom_api_key=os.getenv("TRANSCODING_CUSTOM_API_KEY", cls.transcoding_custom_api_key),
            transcoding_webhook_secret=os.getenv("TRANSCODING_WEBHOOK_SECRET", cls.transcoding_webhook_secret),
            kubernetes_namespace=os.getenv("KUBERNETES_NAMESPACE", cls.kubernetes_namespace),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )

    @property
    def webhook_url(self) -> str:
        return f"{self.transcoding_webhook_base_url.rstrip('/')}/api/transcoding/webhook"
