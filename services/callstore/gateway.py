"""
StorageGateway: the single entry point HTTP handlers use for recordings.

Wires the backend chosen at startup into every component. Each call is
independent; the gateway keeps no state between calls beyond the backend
and its read-only credential.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from callstore.config import StorageConfig
from callstore.services.audio_inspector import AudioDetails, AudioInspector
from callstore.services.batch_service import BatchMutator
from callstore.services.catalog_service import ObjectCatalog
from callstore.services.location_resolver import LocationResolver
from callstore.services.reconciliation_service import MetadataReconciler, ReconciliationResult
from callstore.services.signed_url_service import SignedUrlIssuer
from callstore.services.spreadsheet import MetadataRow
from callstore.storage.protocol import (
    BatchOperationResult,
    BlobBackend,
    ObjectDescriptor,
    ObjectMeta,
    SignedUrlGrant,
)


class StorageGateway:
    """Facade over the storage access and reconciliation components."""

    def __init__(
        self,
        backend: BlobBackend,
        config: StorageConfig | None = None,
        enabled: bool = True,
    ) -> None:
        config = config or StorageConfig()
        self._backend = backend
        self._enabled = enabled
        self.config = config

        self.issuer = SignedUrlIssuer(backend, config)
        self.resolver = LocationResolver(backend, config)
        self.catalog = ObjectCatalog(backend)
        self.inspector = AudioInspector(backend, config)
        self.reconciler = MetadataReconciler(backend, self.catalog, self.inspector)
        self.mutator = BatchMutator(backend, config)

    @property
    def enabled(self) -> bool:
        """False when running without credentials on the disabled backend."""
        return self._enabled

    @property
    def backend(self) -> BlobBackend:
        return self._backend

    # --- Read URLs and resolution ---

    def issue_read_url(
        self,
        location: str,
        key: str,
        ttl_minutes: int | None = None,
        content_type: str | None = None,
    ) -> SignedUrlGrant:
        return self.issuer.issue(location, key, ttl_minutes, content_type)

    async def resolve(self, key: str, identity_hint: str) -> tuple[str, ObjectMeta]:
        return await self.resolver.resolve(key, identity_hint)

    async def resolve_and_issue(
        self,
        key: str,
        identity_hint: str,
        ttl_minutes: int | None = None,
    ) -> SignedUrlGrant:
        """Find where `key` lives and sign a read URL for it there."""
        location, meta = await self.resolver.resolve(key, identity_hint)
        return self.issuer.issue(location, key, ttl_minutes, meta.content_type or None)

    async def open_stream(
        self, key: str, identity_hint: str
    ) -> tuple[ObjectMeta, AsyncGenerator[bytes, None]]:
        """Resolve `key` and return its properties with a chunk iterator.

        The caller owns the iterator; wrap it in contextlib.aclosing().
        """
        location, meta = await self.resolver.resolve(key, identity_hint)
        return meta, self._backend.iter_chunks(location, key)

    async def ensure_home_location(self, identity_hint: str) -> str:
        return await self.resolver.ensure_home_location(identity_hint)

    # --- Catalog ---

    async def list_containers(self) -> list[str]:
        return await self.catalog.list_containers()

    async def list_objects(self, location: str, path_prefix: str | None = None) -> list[ObjectMeta]:
        return await self.catalog.list_objects(location, path_prefix)

    async def list_virtual_folders(self, location: str) -> list[str]:
        return await self.catalog.list_virtual_folders(location)

    async def create_container(self, name: str, is_public: bool = False) -> bool:
        return await self.catalog.create_container(name, is_public)

    async def get_properties(self, location: str, key: str) -> ObjectMeta | None:
        return await self.catalog.get_properties(location, key)

    # --- Inspection and reconciliation ---

    async def inspect_audio(self, location: str, key: str) -> AudioDetails:
        return await self.inspector.inspect(location, key)

    async def reconcile(self, location: str, rows: list[MetadataRow]) -> ReconciliationResult:
        return await self.reconciler.reconcile(location, rows)

    async def reconcile_spreadsheet(
        self,
        location: str,
        data: bytes,
        filename: str | None = None,
    ) -> ReconciliationResult:
        return await self.reconciler.reconcile_spreadsheet(location, data, filename)

    # --- Mutations ---

    async def delete_many(self, location: str, keys: list[str]) -> BatchOperationResult:
        return await self.mutator.delete_many(location, keys)

    async def upload(
        self,
        location: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectDescriptor:
        return await self.mutator.upload(location, key, data, content_type, metadata)

    async def close(self) -> None:
        await self._backend.close()
