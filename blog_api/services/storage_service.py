"""Object storage integration for blog images.

Signing and listing go through the storage REST API with ``httpx``; uploads use
the service's S3-compatible endpoint through ``boto3``. Public URLs are built
locally and never touch the network.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol
from urllib.parse import quote, urlparse

import httpx
from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from ..config import get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


@dataclass(frozen=True)
class StorageConfig:
    """Runtime configuration extracted from settings."""

    base_url: str
    service_key: str
    bucket: str
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_region: str = "us-east-1"

    @property
    def s3_endpoint(self) -> str:
        return f"{self.base_url}/storage/v1/s3"


@dataclass(frozen=True, slots=True)
class StorageObject:
    """One entry returned by :meth:`StorageBackend.list`."""

    name: str
    id: str | None


class StorageConfigurationError(RuntimeError):
    """Raised when required storage settings are missing or invalid."""


class StorageError(RuntimeError):
    """Raised when the storage service rejects or fails a request."""


class SigningFailed(StorageError):
    """Raised when a signed URL could not be issued for an object."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Could not sign {path}: {reason}")
        self.path = path
        self.reason = reason


class StorageUploadError(StorageError):
    """Raised when an upload to the bucket fails."""


class StorageBackend(Protocol):
    """Operations the image core needs from the object store."""

    bucket: str
    base_url: str

    def get_public_url(self, path: str) -> str: ...

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str: ...

    async def list(self, prefix: str = "", limit: int | None = None) -> list[StorageObject]: ...

    async def upload(self, path: str, data: bytes, *, content_type: str) -> None: ...


def _normalize_base_url(raw: str) -> str:
    candidate = raw.strip().rstrip("/")
    parsed = urlparse(candidate)
    if not parsed.scheme:
        candidate = f"https://{candidate.lstrip(':/')}"
        parsed = urlparse(candidate)
    if not parsed.netloc:
        raise StorageConfigurationError("SUPABASE_URL must include a hostname.")
    return parsed.geturl().rstrip("/")


@lru_cache(maxsize=1)
def load_storage_config() -> StorageConfig:
    """Read and validate storage configuration from the application settings."""

    settings = get_settings()
    required: dict[str, str | None] = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_SERVICE_KEY": settings.supabase_service_key,
    }
    missing = [name for name, value in required.items() if not value or not value.strip()]
    if missing:
        raise StorageConfigurationError("Missing required storage configuration: " + ", ".join(sorted(missing)))

    try:
        service_key = require_secret("SUPABASE_SERVICE_KEY", settings.supabase_service_key)
        base_url = require_secret("SUPABASE_URL", settings.supabase_url)
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    bucket = settings.storage_bucket.strip()
    if is_placeholder(bucket):
        raise StorageConfigurationError("STORAGE_BUCKET must be set to the target bucket name")

    return StorageConfig(
        base_url=_normalize_base_url(base_url),
        service_key=service_key,
        bucket=bucket,
        s3_access_key=settings.storage_s3_access_key,
        s3_secret_key=settings.storage_s3_secret_key,
        s3_region=settings.storage_s3_region,
    )


def create_s3_client(config: StorageConfig) -> BaseClient:
    """Create a boto3 client for the bucket's S3-compatible endpoint."""

    if is_placeholder(config.s3_access_key) or is_placeholder(config.s3_secret_key):
        raise StorageConfigurationError(
            "STORAGE_S3_ACCESS_KEY and STORAGE_S3_SECRET_KEY are required for uploads"
        )
    session = Session()
    return session.client(
        "s3",
        region_name=config.s3_region,
        endpoint_url=config.s3_endpoint,
        aws_access_key_id=config.s3_access_key,
        aws_secret_access_key=config.s3_secret_key,
    )


def _object_path(path: str) -> str:
    return quote(path.strip().lstrip("/"), safe="/")


class SupabaseStorage:
    """Storage collaborator backed by the hosted storage REST and S3 APIs."""

    def __init__(
        self,
        config: StorageConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        s3_client: BaseClient | None = None,
    ) -> None:
        self.config = config
        self.bucket = config.bucket
        self.base_url = config.base_url
        self._http = http_client
        self._s3 = s3_client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.service_key}",
            "apikey": self.config.service_key,
        }

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=_REQUEST_TIMEOUT)
        return self._http

    def _s3_client(self) -> BaseClient:
        if self._s3 is None:
            self._s3 = create_s3_client(self.config)
        return self._s3

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{_object_path(path)}"

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        endpoint = f"/storage/v1/object/sign/{self.bucket}/{_object_path(path)}"
        try:
            response = await self._client().post(endpoint, json={"expiresIn": ttl_seconds}, headers=self._headers())
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise SigningFailed(path, f"storage responded {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SigningFailed(path, str(exc) or exc.__class__.__name__) from exc

        signed = payload.get("signedURL") or payload.get("signedUrl")
        if not signed:
            raise SigningFailed(path, "no signed URL returned")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1/{signed.lstrip('/')}"

    async def list(self, prefix: str = "", limit: int | None = None) -> list[StorageObject]:
        body: dict[str, Any] = {"prefix": prefix, "offset": 0}
        if limit is not None:
            body["limit"] = limit
        try:
            response = await self._client().post(
                f"/storage/v1/object/list/{self.bucket}", json=body, headers=self._headers()
            )
            response.raise_for_status()
            entries = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Listing bucket %s (prefix=%r) failed: %s", self.bucket, prefix, exc)
            raise StorageError(f"Unable to list bucket {self.bucket}") from exc

        return [StorageObject(name=entry.get("name", ""), id=entry.get("id")) for entry in entries or []]

    async def upload(self, path: str, data: bytes, *, content_type: str) -> None:
        client = self._s3_client()
        key = path.strip().lstrip("/")

        def _upload() -> None:
            try:
                client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
            except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network errors hard to reproduce
                logger.exception("Upload of %s to bucket %s failed", key, self.bucket)
                raise StorageUploadError("Upload to object storage failed") from exc

        await run_in_threadpool(_upload)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


@lru_cache(maxsize=1)
def get_storage() -> SupabaseStorage:
    """Return the process-wide storage collaborator."""

    return SupabaseStorage(load_storage_config())


__all__ = [
    "SigningFailed",
    "StorageBackend",
    "StorageConfig",
    "StorageConfigurationError",
    "StorageError",
    "StorageObject",
    "StorageUploadError",
    "SupabaseStorage",
    "create_s3_client",
    "get_storage",
    "load_storage_config",
]
