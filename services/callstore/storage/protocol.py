"""
Object storage protocol and types for callstore.

Defines the BlobBackend Protocol that all storage backends must satisfy,
along with shared data types and exceptions.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

# --- Data Types ---


@dataclass(frozen=True)
class ObjectMeta:
    """Metadata about a stored object."""

    key: str
    size_bytes: int
    content_type: str
    etag: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)
    container: str = ""


@dataclass(frozen=True)
class ObjectRef:
    """A (location, key) pair identifying one stored object."""

    location: str
    key: str

    @property
    def folder(self) -> str | None:
        """Virtual folder the key lives in, or None for a flat key."""
        head, sep, _ = self.key.partition("/")
        if sep and head:
            return head
        return None


@dataclass(frozen=True)
class SignedUrlGrant:
    """A time-limited, read-only URL for one stored object.

    Grants are never persisted; the URL stays valid on its own until
    `expires_at`, without this service being consulted again.
    """

    url: str
    location: str
    key: str
    issued_at: datetime
    starts_on: datetime
    expires_at: datetime
    content_type: str
    permissions: str = "r"

    def is_valid_at(self, moment: datetime) -> bool:
        return self.starts_on <= moment <= self.expires_at


@dataclass(frozen=True)
class ObjectDescriptor:
    """Description of an object returned after upload."""

    name: str
    location: str
    url: str
    etag: str
    content_type: str
    size_bytes: int
    last_modified: datetime


@dataclass(frozen=True)
class ItemFailure:
    """One key that a batch operation could not process."""

    key: str
    reason: str


@dataclass
class BatchOperationResult:
    """Outcome of a partially-failable batch operation."""

    success_count: int = 0
    per_item_failures: list[ItemFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.per_item_failures)

    @property
    def ok(self) -> bool:
        return not self.per_item_failures


# --- Exceptions ---


class StorageError(Exception):
    """Base exception for storage layer operations."""


class ValidationError(StorageError, ValueError):
    """Raised for bad caller input. Not retryable without a caller fix."""


class NotFoundError(StorageError):
    """Raised when a requested object or location does not exist."""

    def __init__(
        self,
        key: str,
        location: str = "",
        candidates: list[str] | None = None,
    ) -> None:
        self.key = key
        self.location = location
        self.candidates = list(candidates or [])
        if self.candidates:
            message = f"Object not found: {key} (probed: {', '.join(self.candidates)})"
        elif location and key:
            message = f"Object not found: {location}/{key}"
        elif location:
            message = f"Location not found: {location}"
        else:
            message = f"Object not found: {key}"
        super().__init__(message)


class ConfigurationError(StorageError):
    """Raised when credentials or setup are missing or unusable."""


class SigningError(ConfigurationError):
    """Raised when a signed URL cannot be produced."""


class StoragePermissionError(StorageError):
    """Raised when the provider rejects the credential for the operation."""


class ProviderError(StorageError):
    """Raised for any other provider failure."""


# --- Protocol ---


@runtime_checkable
class BlobBackend(Protocol):
    """Protocol defining the container-addressed storage primitives.

    All I/O methods are async. Implementations must satisfy this interface
    structurally (duck typing); no inheritance required.
    """

    async def list_containers(self) -> list[str]:
        """List every container name in the account."""
        ...

    async def container_exists(self, container: str) -> bool:
        """Check whether a container exists."""
        ...

    async def create_container(self, container: str, public_access: str | None = None) -> bool:
        """Create a container.

        Args:
            container: Container name (already validated).
            public_access: "container" for public read access, None for private.

        Returns:
            True if created, False if it already existed.
        """
        ...

    async def list_blobs(self, container: str, prefix: str = "") -> list[ObjectMeta]:
        """List objects in a container, optionally under a key prefix.

        Raises:
            NotFoundError: If the container does not exist.
        """
        ...

    async def head(self, container: str, key: str) -> ObjectMeta:
        """Get object metadata without transferring the body.

        Raises:
            NotFoundError: If the container or object does not exist.
        """
        ...

    def iter_chunks(self, container: str, key: str) -> AsyncGenerator[bytes, None]:
        """Stream an object's content.

        Raises:
            NotFoundError: If the container or object does not exist.
        """
        ...

    async def upload(
        self,
        container: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> ObjectMeta:
        """Store an object, overwriting any existing one."""
        ...

    async def delete(self, container: str, key: str) -> None:
        """Delete an object.

        Raises:
            NotFoundError: If the object does not exist.
        """
        ...

    def blob_url(self, container: str, key: str) -> str:
        """Unsigned URL of an object."""
        ...

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
        """Produce a signed, read-only URL. No network call.

        Raises:
            SigningError: If the URL cannot be signed.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...
