"""
Storage backend used when provider credentials are absent.

Holds nothing and accepts nothing. Listings come back empty and lookups
report the object as absent, so read paths degrade to "no recordings";
anything that would write or hand out access raises.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime

from callstore.storage.protocol import (
    ConfigurationError,
    NotFoundError,
    ObjectMeta,
    SigningError,
)


class DisabledBackend:
    """Blob backend for a storage layer running without credentials."""

    def __init__(self, missing: list[str] | None = None) -> None:
        self.missing = list(missing or [])

    def _error(self) -> ConfigurationError:
        detail = ", ".join(self.missing) or "credentials"
        return ConfigurationError(f"Storage is disabled: missing {detail}")

    async def list_containers(self) -> list[str]:
        return []

    async def container_exists(self, container: str) -> bool:
        raise self._error()

    async def create_container(self, container: str, public_access: str | None = None) -> bool:
        raise self._error()

    async def list_blobs(self, container: str, prefix: str = "") -> list[ObjectMeta]:
        return []

    async def head(self, container: str, key: str) -> ObjectMeta:
        raise NotFoundError(key, location=container)

    async def iter_chunks(self, container: str, key: str) -> AsyncGenerator[bytes, None]:
        raise NotFoundError(key, location=container)
        yield b""  # pragma: no cover

    async def upload(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> ObjectMeta:
        raise self._error()

    async def delete(self, container: str, key: str) -> None:
        raise self._error()

    def blob_url(self, container: str, key: str) -> str:
        raise self._error()

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
        raise SigningError(str(self._error()))

    async def close(self) -> None:
        """Nothing to release."""
