"""
Storage gateway for receipt images.

Objects are written under an owner-partitioned prefix
(`receipts/user_<owner>/<uuid>.<ext>`) so objects from different owners never
share a namespace. Every upload creates a new object; identical bytes are
not deduplicated.

Backends:
- Azure Blob Storage (production)
- Local filesystem served from /media (development, used when Azure is not configured)
"""

import asyncio
import hashlib
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient
from loguru import logger
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.errors import StorageError

_SAFE_OWNER = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png"}


@dataclass(frozen=True)
class StoredImage:
    url: str
    storage_ref: str


def owner_segment(owner_id: str) -> str:
    """Path-safe folder name for an owner id"""
    if _SAFE_OWNER.match(owner_id):
        return owner_id
    return hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:32]


def build_object_key(owner_id: str, mime_type: str) -> str:
    extension = _EXTENSIONS.get(mime_type, "")
    return f"receipts/user_{owner_segment(owner_id)}/{uuid.uuid4().hex}{extension}"


class StorageGatewayBase(ABC):
    """Interface shared by all image storage backends"""

    @abstractmethod
    async def upload(self, data: bytes, mime_type: str, owner_id: str) -> StoredImage:
        """
        Store image bytes for an owner.

        Returns:
            StoredImage with a URL the extraction service can fetch and an
            opaque storage_ref for deleting the object later.

        Raises:
            StorageError: the backend failed; nothing was recorded.
        """

    @abstractmethod
    async def delete(self, storage_ref: str) -> None:
        """Release a stored object. Missing objects are not an error."""


class AzureBlobStorageGateway(StorageGatewayBase):
    def __init__(
        self,
        connection_string: str,
        container: str,
        sas_ttl_minutes: int = 0,
        timeout_seconds: float = 30.0,
    ):
        self.connection_string = connection_string
        self.container = container
        self.sas_ttl_minutes = sas_ttl_minutes
        self.timeout_seconds = timeout_seconds

    def _signed_url(self, service: BlobServiceClient, blob_client) -> str:
        if not self.sas_ttl_minutes:
            return blob_client.url

        sas = generate_blob_sas(
            account_name=blob_client.account_name,
            container_name=self.container,
            blob_name=blob_client.blob_name,
            account_key=service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + timedelta(minutes=self.sas_ttl_minutes),
        )
        return f"{blob_client.url}?{sas}"

    async def upload(self, data: bytes, mime_type: str, owner_id: str) -> StoredImage:
        key = build_object_key(owner_id, mime_type)
        try:
            async with BlobServiceClient.from_connection_string(self.connection_string) as service:
                blob_client = service.get_blob_client(container=self.container, blob=key)
                if self.sas_ttl_minutes and not getattr(service.credential, "account_key", None):
                    raise ValueError("SAS URLs need an account-key connection string")
                await asyncio.wait_for(
                    blob_client.upload_blob(
                        data,
                        overwrite=False,
                        content_settings=ContentSettings(content_type=mime_type),
                    ),
                    timeout=self.timeout_seconds,
                )
                url = self._signed_url(service, blob_client)
        except (AzureError, TimeoutError, ValueError) as e:
            logger.error("Blob upload failed", owner_id=owner_id, key=key, error=str(e))
            raise StorageError(f"Blob upload failed: {e}") from e

        logger.info("Stored receipt image in Azure Blob Storage", owner_id=owner_id, key=key, size=len(data))
        return StoredImage(url=url, storage_ref=key)

    async def delete(self, storage_ref: str) -> None:
        try:
            async with BlobServiceClient.from_connection_string(self.connection_string) as service:
                blob_client = service.get_blob_client(container=self.container, blob=storage_ref)
                await asyncio.wait_for(
                    blob_client.delete_blob(delete_snapshots="include"),
                    timeout=self.timeout_seconds,
                )
        except ResourceNotFoundError:
            logger.warning("Blob already gone", key=storage_ref)
        except (AzureError, TimeoutError, ValueError) as e:
            raise StorageError(f"Blob delete failed: {e}") from e


class LocalStorageGateway(StorageGatewayBase):
    """Writes images below a local directory; URLs point at the app's /media mount"""

    def __init__(self, root_dir: str | Path, public_base_url: str):
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, storage_ref: str) -> Path:
        path = (self.root_dir / storage_ref).resolve()
        if self.root_dir.resolve() not in path.parents:
            raise StorageError(f"storage_ref escapes media root: {storage_ref}")
        return path

    def _write(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # "xb" never overwrites an existing object
        with open(path, "xb") as f:
            f.write(data)

    async def upload(self, data: bytes, mime_type: str, owner_id: str) -> StoredImage:
        key = build_object_key(owner_id, mime_type)
        try:
            await run_in_threadpool(self._write, key, data)
        except OSError as e:
            logger.error("Local image write failed", owner_id=owner_id, key=key, error=str(e))
            raise StorageError(f"Local image write failed: {e}") from e

        logger.info("Stored receipt image on local disk", owner_id=owner_id, key=key, size=len(data))
        return StoredImage(url=f"{self.public_base_url}/media/{key}", storage_ref=key)

    async def delete(self, storage_ref: str) -> None:
        path = self._path_for(storage_ref)
        try:
            await run_in_threadpool(path.unlink, True)
        except OSError as e:
            raise StorageError(f"Local image delete failed: {e}") from e


def create_storage_gateway() -> StorageGatewayBase:
    if settings.az_storage_connection_string:
        logger.info("Using Azure Blob Storage for receipt images", container=settings.az_storage_container)
        return AzureBlobStorageGateway(
            connection_string=settings.az_storage_connection_string,
            container=settings.az_storage_container,
            sas_ttl_minutes=settings.az_storage_sas_ttl_minutes,
            timeout_seconds=settings.storage_timeout_seconds,
        )

    logger.warning(
        "Azure Blob Storage not configured - storing images on local disk. "
        "Set AZ_STORAGE_CONNECTION_STRING for durable storage."
    )
    return LocalStorageGateway(settings.local_media_dir, settings.api_base_url)
