"""Locate the container that actually holds a bare object key.

Recordings land in different containers depending on how they were
ingested, so a filename alone does not say where it lives. Candidates are
probed one at a time, in configured order, with a properties request (no
body transfer); the first hit wins.
"""

from callstore.config import StorageConfig
from callstore.logging_config import get_logger
from callstore.storage.naming import (
    IDENTITY_PLACEHOLDER,
    expand_candidates,
    sanitize_identity,
    validate_location_name,
)
from callstore.storage.protocol import BlobBackend, NotFoundError, ObjectMeta, ValidationError

logger = get_logger(__name__)


class LocationResolver:
    """Resolves a key to the first candidate location containing it."""

    def __init__(self, backend: BlobBackend, config: StorageConfig) -> None:
        self._backend = backend
        self._templates = list(config.candidate_locations)
        self._home_template = config.home_location_template

    def candidates(self, identity_hint: str) -> list[str]:
        """Ordered candidate locations for an identity. Deterministic."""
        return expand_candidates(self._templates, identity_hint)

    async def resolve(self, key: str, identity_hint: str) -> tuple[str, ObjectMeta]:
        """Find the location holding `key`.

        Raises:
            ValidationError: If `key` is empty.
            NotFoundError: If no candidate holds the key; lists every
                location probed.
        """
        if not key:
            raise ValidationError("Key is required")

        probed: list[str] = []
        for location in self.candidates(identity_hint):
            probed.append(location)
            try:
                meta = await self._backend.head(location, key)
            except NotFoundError:
                logger.debug("Key not in candidate location", key=key, container=location)
                continue

            logger.info(
                "Key resolved",
                key=key,
                container=location,
                probes=len(probed),
            )
            return location, meta

        logger.warning("Key not found in any candidate location", key=key, probed=probed)
        raise NotFoundError(key, candidates=probed)

    def home_location(self, identity_hint: str) -> str:
        """Name of the identity's own location."""
        if not identity_hint or not sanitize_identity(identity_hint).strip("-"):
            raise ValidationError("Identity is required")
        name = self._home_template.replace(IDENTITY_PLACEHOLDER, sanitize_identity(identity_hint))
        return validate_location_name(name)

    async def ensure_home_location(self, identity_hint: str) -> str:
        """Create the identity's own private location if it is missing."""
        location = self.home_location(identity_hint)
        if await self._backend.create_container(location, None):
            logger.info("Created private location", container=location)
        return location
