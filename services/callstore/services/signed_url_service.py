"""Read URL issuance for stored recordings.

A grant is a read-only, HTTPS-only URL signed with the account key. The
validity window starts a few minutes in the past so that a client whose
clock runs slightly behind can use the URL immediately.
"""

from datetime import UTC, datetime, timedelta

from callstore.config import StorageConfig
from callstore.logging_config import get_logger, redact_url
from callstore.storage.content_types import DEFAULT_AUDIO_CONTENT_TYPE, content_type_for
from callstore.storage.protocol import BlobBackend, SignedUrlGrant, SigningError, ValidationError

logger = get_logger(__name__)


class SignedUrlIssuer:
    """Issues time-bounded read grants for single objects."""

    def __init__(self, backend: BlobBackend, config: StorageConfig) -> None:
        self._backend = backend
        self._default_ttl_minutes = config.default_url_ttl_minutes
        self._clock_skew = timedelta(minutes=config.clock_skew_minutes)

    def issue(
        self,
        location: str,
        key: str,
        ttl_minutes: int | None = None,
        content_type: str | None = None,
    ) -> SignedUrlGrant:
        """Sign a read URL for `location`/`key`.

        Raises:
            ValidationError: Empty location or key, or a ttl that is not a
                positive integer. Raised before the backend is touched.
            SigningError: The backend could not sign (credential problem).
        """
        if not location:
            raise ValidationError("Location is required")
        if not key:
            raise ValidationError("Key is required")

        ttl = self._default_ttl_minutes if ttl_minutes is None else ttl_minutes
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise ValidationError(f"ttl_minutes must be a positive integer, got {ttl_minutes!r}")

        now = datetime.now(UTC)
        starts_on = (now - self._clock_skew).replace(microsecond=0)
        expires_on = (now + timedelta(minutes=ttl)).replace(microsecond=0)
        resolved_type = content_type or content_type_for(key, DEFAULT_AUDIO_CONTENT_TYPE)

        url = self._backend.sign_read_url(
            location,
            key,
            starts_on=starts_on,
            expires_on=expires_on,
            content_type=resolved_type,
            content_disposition="inline",
            cache_control="no-cache",
        )
        if "sig=" not in url:
            raise SigningError(f"Signed URL for {location}/{key} carries no signature")

        logger.info(
            "Read URL issued",
            container=location,
            key=key,
            url=redact_url(url),
            content_type=resolved_type,
            expires_at=expires_on.isoformat(),
        )

        return SignedUrlGrant(
            url=url,
            location=location,
            key=key,
            issued_at=now,
            starts_on=starts_on,
            expires_at=expires_on,
            content_type=resolved_type,
        )
