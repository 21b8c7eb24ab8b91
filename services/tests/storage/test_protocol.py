"""
Tests for the storage protocol types and exceptions.
"""

from datetime import UTC, datetime, timedelta

from callstore.storage.azure import AzureBlobBackend
from callstore.storage.disabled import DisabledBackend
from callstore.storage.memory import InMemoryBackend
from callstore.storage.protocol import (
    BatchOperationResult,
    BlobBackend,
    ConfigurationError,
    ItemFailure,
    NotFoundError,
    ObjectMeta,
    ObjectRef,
    SignedUrlGrant,
    SigningError,
    StorageError,
    ValidationError,
)


class TestObjectMeta:
    def test_creation(self) -> None:
        meta = ObjectMeta(
            key="2024-01-01/a.wav",
            size_bytes=100,
            content_type="audio/wav",
            etag="abc123",
            last_modified=datetime.now(UTC),
        )
        assert meta.key == "2024-01-01/a.wav"
        assert meta.metadata == {}
        assert meta.container == ""

    def test_frozen(self) -> None:
        meta = ObjectMeta(
            key="a.wav",
            size_bytes=1,
            content_type="audio/wav",
            etag="e",
            last_modified=datetime.now(UTC),
        )
        try:
            meta.key = "other"  # type: ignore[misc]
            raise AssertionError("Should not be able to set attributes on frozen dataclass")
        except AttributeError:
            pass


class TestObjectRef:
    def test_folder_from_key(self) -> None:
        assert ObjectRef("audio", "2024-01-01/a.wav").folder == "2024-01-01"

    def test_flat_key_has_no_folder(self) -> None:
        assert ObjectRef("audio", "flat.wav").folder is None

    def test_leading_slash_has_no_folder(self) -> None:
        assert ObjectRef("audio", "/odd.wav").folder is None


class TestSignedUrlGrant:
    def test_validity_window(self) -> None:
        now = datetime.now(UTC)
        grant = SignedUrlGrant(
            url="https://acct.blob.core.windows.net/audio/a.wav?sig=abc",
            location="audio",
            key="a.wav",
            issued_at=now,
            starts_on=now - timedelta(minutes=5),
            expires_at=now + timedelta(minutes=60),
            content_type="audio/wav",
        )
        assert grant.permissions == "r"
        assert grant.is_valid_at(now)
        assert grant.is_valid_at(now - timedelta(minutes=4))
        assert not grant.is_valid_at(now + timedelta(minutes=61))


class TestBatchOperationResult:
    def test_defaults(self) -> None:
        result = BatchOperationResult()
        assert result.success_count == 0
        assert result.ok
        assert result.failed_count == 0

    def test_with_failures(self) -> None:
        result = BatchOperationResult(
            success_count=2, per_item_failures=[ItemFailure("y", "Object not found")]
        )
        assert not result.ok
        assert result.failed_count == 1


class TestExceptions:
    def test_hierarchy(self) -> None:
        assert issubclass(ValidationError, StorageError)
        assert issubclass(ValidationError, ValueError)
        assert issubclass(NotFoundError, StorageError)
        assert issubclass(SigningError, ConfigurationError)
        assert issubclass(ConfigurationError, StorageError)

    def test_not_found_names_object(self) -> None:
        err = NotFoundError("a.wav", location="audio")
        assert err.key == "a.wav"
        assert err.location == "audio"
        assert "audio/a.wav" in str(err)

    def test_not_found_lists_candidates(self) -> None:
        err = NotFoundError("a.wav", candidates=["alice-media", "audio"])
        assert err.candidates == ["alice-media", "audio"]
        assert "alice-media, audio" in str(err)

    def test_location_not_found(self) -> None:
        assert "Location not found: missing" in str(NotFoundError("", location="missing"))


class TestProtocolConformance:
    def test_memory_backend_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryBackend(), BlobBackend)

    def test_azure_backend_satisfies_protocol(self) -> None:
        backend = AzureBlobBackend(account_name="acct", account_key="a2V5")
        assert isinstance(backend, BlobBackend)

    def test_disabled_backend_satisfies_protocol(self) -> None:
        assert isinstance(DisabledBackend(), BlobBackend)
