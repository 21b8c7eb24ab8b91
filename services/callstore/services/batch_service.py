"""Service layer for bulk deletes and single uploads."""

import asyncio

from callstore.config import StorageConfig
from callstore.logging_config import get_logger
from callstore.storage.content_types import DEFAULT_UPLOAD_CONTENT_TYPE, content_type_for
from callstore.storage.protocol import (
    BatchOperationResult,
    BlobBackend,
    ItemFailure,
    NotFoundError,
    ObjectDescriptor,
    StorageError,
    ValidationError,
)

logger = get_logger(__name__)


class BatchMutator:
    """Deletes many objects in parallel and uploads single objects."""

    def __init__(self, backend: BlobBackend, config: StorageConfig) -> None:
        self._backend = backend
        self._concurrency = config.delete_concurrency

    async def delete_many(self, location: str, keys: list[str]) -> BatchOperationResult:
        """Delete `keys` from `location`, at most `delete_concurrency` at a time.

        Per-key problems are collected in the result; only an empty location
        raises.
        """
        if not location:
            raise ValidationError("Location is required")

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _delete_one(key: str) -> ItemFailure | None:
            if not key:
                return ItemFailure(key=key, reason="Key is required")
            async with semaphore:
                try:
                    await self._backend.delete(location, key)
                except NotFoundError:
                    return ItemFailure(key=key, reason="Object not found")
                except StorageError as e:
                    return ItemFailure(key=key, reason=str(e) or type(e).__name__)
            return None

        logger.info("Deleting objects", container=location, count=len(keys))
        outcomes = await asyncio.gather(*(_delete_one(key) for key in keys))

        result = BatchOperationResult()
        for outcome in outcomes:
            if outcome is None:
                result.success_count += 1
            else:
                result.per_item_failures.append(outcome)

        for failure in result.per_item_failures:
            logger.warning(
                "Delete failed", container=location, key=failure.key, reason=failure.reason
            )
        logger.info(
            "Bulk delete complete",
            container=location,
            deleted=result.success_count,
            failed=result.failed_count,
        )
        return result

    async def upload(
        self,
        location: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectDescriptor:
        """Upload one object into an existing location.

        Raises:
            ValidationError: Missing location, key or data.
            NotFoundError: The location does not exist; it is never created here.
        """
        if not location or not key:
            raise ValidationError("Location and key are required")
        if data is None:
            raise ValidationError("Upload data is required")

        if not await self._backend.container_exists(location):
            raise NotFoundError("", location=location)

        resolved_type = content_type or content_type_for(key, DEFAULT_UPLOAD_CONTENT_TYPE)
        await self._backend.upload(location, key, data, resolved_type, metadata)
        props = await self._backend.head(location, key)

        logger.info(
            "Object uploaded",
            container=location,
            key=key,
            size_bytes=props.size_bytes,
            content_type=props.content_type,
        )
        return ObjectDescriptor(
            name=key,
            location=location,
            url=self._backend.blob_url(location, key),
            etag=props.etag,
            content_type=props.content_type or resolved_type,
            size_bytes=props.size_bytes or len(data),
            last_modified=props.last_modified,
        )
