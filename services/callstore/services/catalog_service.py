"""Service layer for browsing locations and their objects.

Folders are virtual: they are derived from the part of each key before the
first "/", never from provider-side directory metadata.
"""

from datetime import date, datetime

from callstore.logging_config import get_logger
from callstore.storage.naming import validate_location_name
from callstore.storage.protocol import (
    BlobBackend,
    NotFoundError,
    ObjectMeta,
    ObjectRef,
    ValidationError,
)

logger = get_logger(__name__)

FOLDER_DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d", "%d-%m-%Y", "%d%m%Y", "%Y-%m")


def parse_folder_date(name: str) -> date | None:
    """Parse a date-named folder, or return None."""
    for fmt in FOLDER_DATE_FORMATS:
        try:
            return datetime.strptime(name, fmt).date()
        except ValueError:
            continue
    return None


def folders_from_keys(keys: list[str], location: str = "") -> list[str]:
    """Distinct first path segments, newest first when they are all dates."""
    folders = {ref.folder for ref in (ObjectRef(location, key) for key in keys) if ref.folder}

    dated = {name: parse_folder_date(name) for name in folders}
    if folders and all(value is not None for value in dated.values()):
        return sorted(folders, key=lambda name: (dated[name], name), reverse=True)
    return sorted(folders)


class ObjectCatalog:
    """Lists and creates locations and lists the objects inside them."""

    def __init__(self, backend: BlobBackend) -> None:
        self._backend = backend

    async def list_containers(self) -> list[str]:
        names = await self._backend.list_containers()
        logger.debug("Listed containers", count=len(names))
        return names

    async def list_objects(self, location: str, path_prefix: str | None = None) -> list[ObjectMeta]:
        """List objects in a location. A missing location yields []."""
        if not location:
            raise ValidationError("Location is required")
        try:
            objects = await self._backend.list_blobs(location, path_prefix or "")
        except NotFoundError:
            logger.info("Location does not exist", container=location)
            return []
        logger.debug(
            "Listed objects", container=location, prefix=path_prefix or "", count=len(objects)
        )
        return objects

    async def list_virtual_folders(self, location: str) -> list[str]:
        objects = await self.list_objects(location)
        folders = folders_from_keys([meta.key for meta in objects], location)
        logger.debug("Listed virtual folders", container=location, count=len(folders))
        return folders

    async def create_container(self, name: str, is_public: bool = False) -> bool:
        """Create a location. Succeeds if it already exists.

        Raises:
            ValidationError: If the name breaks naming rules (no network call).
        """
        validate_location_name(name)
        if await self._backend.container_exists(name):
            logger.info("Container already exists", container=name)
            return True

        created = await self._backend.create_container(name, "container" if is_public else None)
        if created:
            logger.info("Container created", container=name, public=is_public)
        else:
            logger.info("Container already exists", container=name)
        return True

    async def get_properties(self, location: str, key: str) -> ObjectMeta | None:
        """Object properties, or None if the object (or location) is absent."""
        if not location or not key:
            raise ValidationError("Location and key are required")
        try:
            return await self._backend.head(location, key)
        except NotFoundError:
            return None

    async def exists(self, location: str, key: str) -> bool:
        return await self.get_properties(location, key) is not None
