"""
Transcoding provider interface.

Providers are strategy objects: one is selected from configuration at
startup and injected into TranscodingService.
"""

from kolla.config import Settings
from .base import (
    JobStatusResponse,
    OutputTarget,
    ProviderError,
    SubmitJobOptions,
    TranscodingProvider,
    WebhookPayload,
    map_provider_status,
)
from .custom import CustomHTTPProvider
from .k8s import KubernetesProvider
from .service import TranscodingService


def _custom(settings: Settings) -> TranscodingProvider:
    return CustomHTTPProvider(
        api_url=settings.transcoding_custom_api_url,
        api_key=settings.transcoding_custom_api_key,
        webhook_secret=settings.transcoding_webhook_secret,
    )


def _kubernetes(settings: Settings) -> TranscodingProvider:
    callback_url = f"{settings.transcoding_webhook_base_url.rstrip('/')}/api/process/callback"
    return KubernetesProvider(
        namespace=settings.kubernetes_namespace,
        job_secret=settings.job_shared_secret,
        callback_url=callback_url,
    )


# Registry of available providers
PROVIDERS = {
    'custom': _custom,
    'kubernetes': _kubernetes,
    'k8s': _kubernetes,
}


def get_provider(settings: Settings) -> TranscodingProvider:
    """
    Factory function to build the configured provider.

    Raises:
        ValueError: If the provider name is not recognized
    """
    provider_name = settings.transcoding_provider.lower()
    if provider_name not in PROVIDERS:
        available = ', '.join(PROVIDERS.keys())
        raise ValueError(f"Unknown transcoding provider '{provider_name}'. Available: {available}")

    return PROVIDERS[provider_name](settings)


__all__ = [
    'CustomHTTPProvider',
    'JobStatusResponse',
    'KubernetesProvider',
    'OutputTarget',
    'PROVIDERS',
    'ProviderError',
    'SubmitJobOptions',
    'TranscodingProvider',
    'TranscodingService',
    'WebhookPayload',
    'get_provider',
    'map_provider_status',
]
