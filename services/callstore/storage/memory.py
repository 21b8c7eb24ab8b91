"""
In-memory storage backend for callstore.

Holds containers and objects in process memory. Used in tests.
Read URLs are HMAC-SHA256 signed `memory://` URLs that can be checked with
verify_signature().
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
import urllib.parse
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import UTC, datetime

from callstore.logging_config import get_logger
from callstore.storage.protocol import NotFoundError, ObjectMeta, SigningError

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    etag: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class _Container:
    public_access: str | None
    objects: dict[str, _StoredObject] = field(default_factory=dict)


class InMemoryBackend:
    """Blob backend backed by a dict of containers."""

    def __init__(self, hmac_secret: str = "", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._hmac_secret = hmac_secret or secrets.token_hex(32)
        self._chunk_size = chunk_size
        self._containers: dict[str, _Container] = {}

    def _container(self, container: str) -> _Container:
        try:
            return self._containers[container]
        except KeyError:
            raise NotFoundError("", location=container) from None

    def _object(self, container: str, key: str) -> _StoredObject:
        try:
            return self._container(container).objects[key]
        except KeyError:
            raise NotFoundError(key, location=container) from None

    def _meta(self, container: str, key: str, obj: _StoredObject) -> ObjectMeta:
        return ObjectMeta(
            key=key,
            size_bytes=len(obj.data),
            content_type=obj.content_type,
            etag=obj.etag,
            last_modified=obj.last_modified,
            metadata=dict(obj.metadata),
            container=container,
        )

    async def list_containers(self) -> list[str]:
        return sorted(self._containers)

    async def container_exists(self, container: str) -> bool:
        return container in self._containers

    async def create_container(self, container: str, public_access: str | None = None) -> bool:
        if container in self._containers:
            return False
        self._containers[container] = _Container(public_access=public_access)
        return True

    def public_access(self, container: str) -> str | None:
        return self._container(container).public_access

    async def list_blobs(self, container: str, prefix: str = "") -> list[ObjectMeta]:
        objects = self._container(container).objects
        return [
            self._meta(container, key, obj)
            for key, obj in sorted(objects.items())
            if key.startswith(prefix)
        ]

    async def head(self, container: str, key: str) -> ObjectMeta:
        return self._meta(container, key, self._object(container, key))

    async def iter_chunks(self, container: str, key: str) -> AsyncGenerator[bytes, None]:
        data = self._object(container, key).data
        for offset in range(0, len(data), self._chunk_size):
            yield data[offset : offset + self._chunk_size]

    async def upload(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> ObjectMeta:
        obj = _StoredObject(
            data=bytes(data),
            content_type=content_type,
            etag=hashlib.md5(data).hexdigest(),  # noqa: S324
            last_modified=datetime.now(UTC),
            metadata=dict(metadata or {}),
        )
        self._container(container).objects[key] = obj
        return self._meta(container, key, obj)

    async def delete(self, container: str, key: str) -> None:
        objects = self._container(container).objects
        if key not in objects:
            raise NotFoundError(key, location=container)
        del objects[key]

    def blob_url(self, container: str, key: str) -> str:
        return f"memory://{container}/{urllib.parse.quote(key, safe='/~')}"

    def _sign(self, container: str, key: str, starts: int, expires: int) -> str:
        """Create an HMAC-SHA256 signature for a read URL."""
        message = f"GET:{container}:{key}:{starts}:{expires}"
        return hmac.new(
            self._hmac_secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()

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
        if not container or not key:
            raise SigningError("Container and key are required to sign a URL")
        starts = int(starts_on.timestamp())
        expires = int(expires_on.timestamp())
        query = urllib.parse.urlencode(
            {
                "sp": "r",
                "st": starts,
                "se": expires,
                "rsct": content_type,
                "rscd": content_disposition,
                "rscc": cache_control,
                "sig": self._sign(container, key, starts, expires),
            }
        )
        return f"{self.blob_url(container, key)}?{query}"

    def verify_signature(self, url: str, now: float | None = None) -> bool:
        """Verify a read URL produced by sign_read_url()."""
        parts = urllib.parse.urlsplit(url)
        params = dict(urllib.parse.parse_qsl(parts.query))
        try:
            starts = int(params["st"])
            expires = int(params["se"])
            signature = params["sig"]
        except (KeyError, ValueError):
            return False

        moment = time.time() if now is None else now
        if moment < starts or moment > expires:
            return False

        container = parts.netloc
        key = urllib.parse.unquote(parts.path.lstrip("/"))
        expected = self._sign(container, key, starts, expires)
        return hmac.compare_digest(expected, signature)

    async def close(self) -> None:
        """No resources to release for the in-memory backend."""
