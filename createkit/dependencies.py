"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from createkit.config import Settings, get_settings
from createkit.db import DbClient, InMemoryDbClient, PostgresDbClient
from createkit.errors import ProviderUnavailable, Unauthorized
from createkit.generation import TextGenerator
from createkit.identity import (
    Caller,
    ClerkIdentityProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
    QuotaSource,
)
from createkit.jobs import ImageJobClient
from createkit.quota import QuotaGate
from createkit.storage import (
    ImageEffects,
    InMemoryStorageClient,
    S3StorageClient,
    StorageClient,
)
from models.gemini import GeminiTextGenerator
from models.krea import KreaClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_identity_provider: ClerkIdentityProvider | InMemoryIdentityProvider | None = None
_image_job_client: KreaClient | None = None

bearer_scheme = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so the engine and its pool are shared across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
            download_timeout=settings.provider_http_timeout,
        )
    return _storage_client


def get_image_effects(settings: Settings = Depends(get_settings)) -> ImageEffects:
    return ImageEffects(cloud_name=settings.cloudinary_cloud_name)


def _get_identity_backend() -> ClerkIdentityProvider | InMemoryIdentityProvider:
    """
    The identity provider also stores the free-usage counter, so both
    `get_identity_provider` and `get_quota_source` hand out the same instance.
    """
    global _identity_provider
    if _identity_provider:
        return _identity_provider

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.clerk_secret_key
        or not settings.clerk_jwks_url
    ):
        _identity_provider = InMemoryIdentityProvider()
    else:
        _identity_provider = ClerkIdentityProvider(
            secret_key=settings.clerk_secret_key,
            jwks_url=settings.clerk_jwks_url,
            issuer=settings.clerk_issuer,
            api_url=settings.clerk_api_url,
            timeout=settings.provider_http_timeout,
        )
    return _identity_provider


def get_identity_provider() -> IdentityProvider:
    return _get_identity_backend()


def get_quota_source() -> QuotaSource:
    return _get_identity_backend()


def get_quota_gate(
    source: QuotaSource = Depends(get_quota_source),
    settings: Settings = Depends(get_settings),
) -> QuotaGate:
    return QuotaGate(source, free_limit=settings.free_usage_limit)


def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Caller:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Unauthorized")
    return identity.authenticate(credentials.credentials)


def get_text_generator(settings: Settings = Depends(get_settings)) -> TextGenerator:
    if not settings.gemini_api_key:
        raise ProviderUnavailable("Text generation is not configured.")
    return GeminiTextGenerator(settings.gemini_api_key)


def get_image_job_client(
    settings: Settings = Depends(get_settings),
) -> ImageJobClient:
    """
    Return a singleton Krea client so its HTTP session is reused across requests.
    """
    global _image_job_client
    if not settings.krea_api_key:
        raise ProviderUnavailable("Image generation is not configured.")
    if _image_job_client is None:
        _image_job_client = KreaClient(
            settings.krea_api_key,
            base_url=settings.krea_base_url,
            timeout=settings.provider_http_timeout,
        )
    return _image_job_client


def reset_backends() -> None:
    """Drop cached clients (useful in tests)."""
    global _db_client, _storage_client, _identity_provider, _image_job_client
    _db_client = None
    _storage_client = None
    _identity_provider = None
    if _image_job_client is not None:
        _image_job_client.close()
    _image_job_client = None
