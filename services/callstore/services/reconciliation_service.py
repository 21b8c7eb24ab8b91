"""Service layer for reconciling call metadata against stored recordings.

Import flow: list the location once, index keys, then walk the metadata
rows. Rows without a filename cannot be matched and are dropped (counted,
not reported). Rows whose filename is not stored become failure entries
naming the filename. Matched rows are enriched with duration and size.
"""

from contextlib import aclosing
from dataclasses import dataclass, field

from callstore.logging_config import get_logger
from callstore.services.audio_inspector import AudioInspector
from callstore.services.catalog_service import ObjectCatalog
from callstore.services.spreadsheet import MetadataRow, read_spreadsheet
from callstore.storage.protocol import BlobBackend, ObjectMeta, StorageError, ValidationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconciledAsset:
    """A metadata row matched to a stored object."""

    row: MetadataRow
    location: str
    duration_seconds: float
    byte_size: int
    content_type: str

    @property
    def filename(self) -> str:
        return self.row.filename


@dataclass(frozen=True)
class ReconciliationFailure:
    filename: str
    reason: str


@dataclass
class ReconciliationResult:
    assets: list[ReconciledAsset] = field(default_factory=list)
    failures: list[ReconciliationFailure] = field(default_factory=list)
    dropped: int = 0

    @property
    def matched_count(self) -> int:
        return len(self.assets)


class MetadataReconciler:
    """Matches metadata rows to stored objects and enriches them."""

    def __init__(
        self,
        backend: BlobBackend,
        catalog: ObjectCatalog,
        inspector: AudioInspector,
    ) -> None:
        self._backend = backend
        self._catalog = catalog
        self._inspector = inspector

    async def reconcile(self, location: str, rows: list[MetadataRow]) -> ReconciliationResult:
        if not location:
            raise ValidationError("Location is required")

        index: dict[str, ObjectMeta] = {
            meta.key: meta for meta in await self._catalog.list_objects(location)
        }
        result = ReconciliationResult()

        for row in rows:
            filename = row.filename.strip()
            if not filename:
                result.dropped += 1
                continue

            if filename not in index:
                logger.warning(
                    "Metadata references a file that is not stored",
                    filename=filename,
                    container=location,
                )
                result.failures.append(
                    ReconciliationFailure(
                        filename=filename,
                        reason=f"File {filename!r} not found in location {location!r}",
                    )
                )
                continue

            try:
                details = await self._inspector.inspect(location, filename)
            except StorageError as e:
                logger.error(
                    "Could not inspect matched file",
                    filename=filename,
                    container=location,
                    error=str(e),
                )
                result.failures.append(
                    ReconciliationFailure(filename=filename, reason=f"Inspection failed: {e}")
                )
                continue

            result.assets.append(
                ReconciledAsset(
                    row=row,
                    location=location,
                    duration_seconds=details.duration_seconds,
                    byte_size=details.byte_size,
                    content_type=details.content_type,
                )
            )

        logger.info(
            "Reconciliation complete",
            container=location,
            rows=len(rows),
            matched=len(result.assets),
            failed=len(result.failures),
            dropped=result.dropped,
        )
        return result

    async def reconcile_spreadsheet(
        self,
        location: str,
        data: bytes,
        filename: str | None = None,
    ) -> ReconciliationResult:
        """Parse an uploaded spreadsheet and reconcile its rows."""
        return await self.reconcile(location, read_spreadsheet(data, filename))

    async def load_rows_from_object(self, location: str, key: str) -> list[MetadataRow]:
        """Parse a spreadsheet that is itself stored in `location`."""
        buffer = bytearray()
        async with aclosing(self._backend.iter_chunks(location, key)) as chunks:
            async for chunk in chunks:
                buffer.extend(chunk)
        return read_spreadsheet(bytes(buffer), key)
