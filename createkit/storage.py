"""
Storage abstraction for S3-compatible object storage and in-memory testing,
plus the image CDN used to apply background/object removal effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from createkit.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        ...

    def upload_from_url(self, path: str, source_url: str) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        self.stored_objects[path] = data
        return self._url(path)

    def upload_from_url(self, path: str, source_url: str) -> str:
        # Remote content is not fetched; the source is recorded instead.
        self.stored_objects[path] = source_url
        return self._url(path)


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client.

    Stored objects are addressed through ``public_base_url``. Creation rows keep
    these URLs forever, so the bucket must be fronted by a public host.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str
    download_timeout: float = 30.0

    def __post_init__(self):
        if not self.public_base_url:
            raise ValueError("S3 storage requires a public base URL")
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _url(self, path: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{path}"

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ProviderUnavailable("Image upload failed.") from exc
        logger.info("Uploaded %d bytes to s3://%s/%s", len(data), self.bucket, path)
        return self._url(path)

    def upload_from_url(self, path: str, source_url: str) -> str:
        try:
            response = requests.get(source_url, timeout=self.download_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderUnavailable("Image upload failed.") from exc
        content_type = response.headers.get("Content-Type", "image/png")
        return self.upload_bytes(path, response.content, content_type)


@dataclass
class ImageEffects:
    """
    Builds CDN URLs that apply an effect to a remote image on delivery.
    """

    cloud_name: str
    base_url: str = "https://res.cloudinary.com"

    def effect_url(self, source_url: str, effect: str) -> str:
        return (
            f"{self.base_url}/{self.cloud_name}/image/fetch/"
            f"e_{quote(effect, safe=':')}/{quote(source_url, safe='')}"
        )

    def remove_background(self, source_url: str) -> str:
        return self.effect_url(source_url, "background_removal")

    def remove_object(self, source_url: str, object_name: str) -> str:
        return self.effect_url(source_url, f"gen_remove:{object_name}")
