"""
Azure Blob Storage backend for callstore.

Uses azure.storage.blob.aio for async I/O. Auth via the storage account's
shared key, which is also what signs read URLs (service SAS); signing is a
local HMAC computation, no API call.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

from callstore.logging_config import get_logger
from callstore.storage.protocol import (
    NotFoundError,
    ObjectMeta,
    ProviderError,
    SigningError,
    StorageError,
    StoragePermissionError,
)

logger = get_logger(__name__)


class AzureBlobBackend:
    """Blob backend backed by an Azure storage account."""

    def __init__(
        self,
        account_name: str,
        account_key: str,
        endpoint_suffix: str = "core.windows.net",
    ) -> None:
        self._account_name = account_name
        self._account_key = account_key
        self._account_url = f"https://{account_name}.blob.{endpoint_suffix}"

        self._service_client: Any = None

    @property
    def account_name(self) -> str:
        return self._account_name

    async def _get_service_client(self) -> Any:
        if self._service_client is None:
            from azure.storage.blob.aio import BlobServiceClient

            self._service_client = BlobServiceClient(
                account_url=self._account_url,
                credential={
                    "account_name": self._account_name,
                    "account_key": self._account_key,
                },
            )
            logger.info("Azure Blob service client initialized", account=self._account_name)
        return self._service_client

    async def _get_container_client(self, container: str) -> Any:
        service = await self._get_service_client()
        return service.get_container_client(container)

    async def _get_blob_client(self, container: str, key: str) -> Any:
        container_client = await self._get_container_client(container)
        return container_client.get_blob_client(key)

    async def list_containers(self) -> list[str]:
        service = await self._get_service_client()
        names: list[str] = []
        try:
            async for container in service.list_containers():
                names.append(container.name)
        except Exception as e:
            raise _translate_error(e) from e
        return names

    async def container_exists(self, container: str) -> bool:
        container_client = await self._get_container_client(container)
        try:
            return bool(await container_client.exists())
        except Exception as e:
            raise _translate_error(e, container) from e

    async def create_container(self, container: str, public_access: str | None = None) -> bool:
        from azure.core.exceptions import ResourceExistsError

        container_client = await self._get_container_client(container)
        try:
            if public_access:
                await container_client.create_container(public_access=public_access)
            else:
                await container_client.create_container()
        except ResourceExistsError:
            return False
        except Exception as e:
            raise _translate_error(e, container) from e
        return True

    async def list_blobs(self, container: str, prefix: str = "") -> list[ObjectMeta]:
        container_client = await self._get_container_client(container)
        results: list[ObjectMeta] = []

        try:
            async for blob in container_client.list_blobs(name_starts_with=prefix or None):
                results.append(
                    ObjectMeta(
                        key=blob.name,
                        size_bytes=blob.size or 0,
                        content_type=(
                            blob.content_settings.content_type
                            if blob.content_settings and blob.content_settings.content_type
                            else "application/octet-stream"
                        ),
                        etag=(blob.etag or "").strip('"'),
                        last_modified=blob.last_modified or datetime.now(UTC),
                        metadata=dict(blob.metadata) if blob.metadata else {},
                        container=container,
                    )
                )
        except Exception as e:
            raise _translate_error(e, container) from e

        return results

    async def head(self, container: str, key: str) -> ObjectMeta:
        blob_client = await self._get_blob_client(container, key)

        try:
            props = await blob_client.get_blob_properties()
        except Exception as e:
            raise _translate_error(e, container, key) from e

        return ObjectMeta(
            key=key,
            size_bytes=props.size or 0,
            content_type=props.content_settings.content_type or "application/octet-stream",
            etag=(props.etag or "").strip('"'),
            last_modified=props.last_modified or datetime.now(UTC),
            metadata=dict(props.metadata) if props.metadata else {},
            container=container,
        )

    async def iter_chunks(self, container: str, key: str) -> AsyncGenerator[bytes, None]:
        blob_client = await self._get_blob_client(container, key)

        try:
            stream = await blob_client.download_blob()
            async for chunk in stream.chunks():
                yield chunk
        except StorageError:
            raise
        except Exception as e:
            raise _translate_error(e, container, key) from e

    async def upload(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> ObjectMeta:
        blob_client = await self._get_blob_client(container, key)

        try:
            response = await blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=_content_settings(content_type),
                metadata=metadata,
            )
        except Exception as e:
            raise _translate_error(e, container, key) from e

        response = response or {}
        return ObjectMeta(
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            etag=str(response.get("etag") or "").strip('"'),
            last_modified=response.get("last_modified") or datetime.now(UTC),
            metadata=metadata or {},
            container=container,
        )

    async def delete(self, container: str, key: str) -> None:
        blob_client = await self._get_blob_client(container, key)

        try:
            await blob_client.delete_blob()
        except Exception as e:
            raise _translate_error(e, container, key) from e

    def blob_url(self, container: str, key: str) -> str:
        return f"{self._account_url}/{container}/{quote(key, safe='/~')}"

    def sign_read_url(
        self,
        container: str,
        key: str,
        *,
        starts_on: datetime,
        expires_on: datetime,
        content_type: str,
        content_disposition: str = "inline",
        cache_control: str = "no-cache",
    ) -> str:
        from azure.storage.blob import BlobSasPermissions, generate_blob_sas

        if not self._account_name or not self._account_key:
            raise SigningError("Storage account credentials are not configured")

        try:
            sas_token = generate_blob_sas(
                account_name=self._account_name,
                container_name=container,
                blob_name=key,
                account_key=self._account_key,
                permission=BlobSasPermissions(read=True),
                start=starts_on,
                expiry=expires_on,
                protocol="https",
                content_disposition=content_disposition,
                content_type=content_type,
                cache_control=cache_control,
            )
        except Exception as e:
            raise SigningError(f"Could not sign read URL for {container}/{key}: {e}") from e

        return f"{self.blob_url(container, key)}?{sas_token}"

    async def close(self) -> None:
        if self._service_client is not None:
            await self._service_client.close()
            self._service_client = None
        logger.info("Azure Blob client closed")


def _content_settings(content_type: str) -> Any:
    """Create ContentSettings for Azure Blob upload."""
    from azure.storage.blob import ContentSettings

    return ContentSettings(content_type=content_type)


def _translate_error(exc: Exception, container: str = "", key: str = "") -> StorageError:
    """Map an Azure SDK exception onto the storage error taxonomy."""
    if _is_not_found(exc):
        return NotFoundError(key, location=container)
    if _is_permission_error(exc):
        return StoragePermissionError(str(exc))
    return ProviderError(str(exc))


def _is_not_found(exc: Exception) -> bool:
    """Check if an Azure exception indicates a 404."""
    from azure.core.exceptions import ResourceNotFoundError

    return isinstance(exc, ResourceNotFoundError)


def _is_permission_error(exc: Exception) -> bool:
    """Check if an Azure exception indicates a permission error."""
    from azure.core.exceptions import ClientAuthenticationError, HttpResponseError

    if isinstance(exc, ClientAuthenticationError):
        return True
    if isinstance(exc, HttpResponseError) and exc.status_code in (401, 403):
        return True
    return False
