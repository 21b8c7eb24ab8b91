"""
Tests for the storage gateway and backend selection at startup.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import patch

import pytest

import callstore.storage as storage_module
from callstore.config import Settings
from callstore.gateway import StorageGateway
from callstore.storage import (
    build_gateway,
    close_storage,
    get_gateway,
    get_gateway_or_none,
    init_storage,
)
from callstore.storage.azure import AzureBlobBackend
from callstore.storage.disabled import DisabledBackend
from callstore.storage.memory import InMemoryBackend
from callstore.storage.protocol import (
    BlobBackend,
    ConfigurationError,
    NotFoundError,
    SigningError,
)


def _settings(name: str = "", key: str = "") -> Settings:
    return Settings(
        azure_storage_account_name=name,
        azure_storage_account_key=key,
        json_logs=False,
        log_level="DEBUG",
    )


@pytest.fixture(autouse=True)
def _reset_gateway() -> Iterator[None]:
    storage_module._gateway = None
    yield
    storage_module._gateway = None


class TestBackendSelection:
    def test_credentials_select_azure(self) -> None:
        gateway = build_gateway(_settings("acct", "a2V5"))
        assert gateway.enabled
        assert isinstance(gateway.backend, AzureBlobBackend)
        assert isinstance(gateway.backend, BlobBackend)

    @pytest.mark.parametrize("name,key", [("", ""), ("acct", ""), ("", "a2V5"), ("  ", "  ")])
    def test_missing_secret_disables_storage(self, name: str, key: str) -> None:
        with patch("callstore.storage.logger") as mock_logger:
            gateway = build_gateway(_settings(name, key))

        assert not gateway.enabled
        assert isinstance(gateway.backend, DisabledBackend)
        mock_logger.error.assert_called_once()
        missing = mock_logger.error.call_args.kwargs["missing"]
        if not key.strip():
            assert "AZURE_STORAGE_ACCOUNT_KEY" in missing
        if not name.strip():
            assert "AZURE_STORAGE_ACCOUNT_NAME" in missing

    async def test_init_and_close(self) -> None:
        gateway = await init_storage(_settings())
        assert get_gateway() is gateway
        assert get_gateway_or_none() is gateway

        await close_storage()
        assert get_gateway_or_none() is None

    def test_disabled_gateway_issues_no_urls(self) -> None:
        with patch("callstore.storage.logger"):
            gateway = build_gateway(_settings())

        with pytest.raises(SigningError, match="AZURE_STORAGE_ACCOUNT_KEY"):
            gateway.issue_read_url("audiofiles", "call.wav")

    async def test_disabled_gateway_rejects_writes(self, wav_bytes: bytes) -> None:
        with patch("callstore.storage.logger"):
            gateway = build_gateway(_settings())

        with pytest.raises(ConfigurationError):
            await gateway.create_container("audiofiles")
        with pytest.raises(ConfigurationError):
            await gateway.upload("audiofiles", "call.wav", wav_bytes, "audio/wav")

        result = await gateway.delete_many("audiofiles", ["a.wav", "b.wav"])
        assert result.success_count == 0
        assert result.failed_count == 2
        assert "disabled" in result.per_item_failures[0].reason

    async def test_disabled_gateway_reads_empty(self) -> None:
        with patch("callstore.storage.logger"):
            gateway = build_gateway(_settings())

        assert await gateway.list_containers() == []
        assert await gateway.list_objects("audiofiles") == []
        assert await gateway.list_virtual_folders("audiofiles") == []
        assert await gateway.get_properties("audiofiles", "call.wav") is None
        with pytest.raises(NotFoundError):
            await gateway.resolve_and_issue("call.wav", "sam")

    def test_get_gateway_before_init(self) -> None:
        with pytest.raises(ConfigurationError):
            get_gateway()

    async def test_close_without_init_is_noop(self) -> None:
        await close_storage()
        assert get_gateway_or_none() is None


class TestStorageGateway:
    async def test_resolve_and_issue(
        self, gateway: StorageGateway, memory_backend: InMemoryBackend, wav_bytes: bytes
    ) -> None:
        await memory_backend.create_container("audiofiles")
        await memory_backend.upload("audiofiles", "2024-02-01/call.wav", wav_bytes, "audio/wav")

        grant = await gateway.resolve_and_issue("2024-02-01/call.wav", "sam", ttl_minutes=5)
        assert grant.location == "audiofiles"
        assert grant.content_type == "audio/wav"
        assert memory_backend.verify_signature(grant.url)

    async def test_resolve_and_issue_not_found(self, gateway: StorageGateway) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await gateway.resolve_and_issue("ghost.wav", "sam")
        assert exc_info.value.candidates == gateway.resolver.candidates("sam")

    async def test_open_stream(
        self, gateway: StorageGateway, memory_backend: InMemoryBackend, wav_bytes: bytes
    ) -> None:
        await memory_backend.create_container("sam-media")
        await memory_backend.upload("sam-media", "call.wav", wav_bytes, "audio/wav")

        meta, chunks = await gateway.open_stream("call.wav", "sam")
        assert meta.size_bytes == len(wav_bytes)
        assert b"".join([chunk async for chunk in chunks]) == wav_bytes

    async def test_end_to_end_import(self, gateway: StorageGateway, wav_bytes: bytes) -> None:
        location = await gateway.ensure_home_location("sam")
        assert await gateway.create_container(location)

        await gateway.upload(location, "2024-03-01/a.wav", wav_bytes)
        await gateway.upload(location, "2024-03-02/b.wav", wav_bytes)
        assert await gateway.list_virtual_folders(location) == ["2024-03-02", "2024-03-01"]
        assert len(await gateway.list_objects(location, "2024-03-01/")) == 1

        result = await gateway.reconcile_spreadsheet(
            location, b"filename\n2024-03-01/a.wav\n2024-03-09/c.wav\n", "import.csv"
        )
        assert result.matched_count == 1
        assert result.failures[0].filename == "2024-03-09/c.wav"

        details = await gateway.inspect_audio(location, "2024-03-02/b.wav")
        assert details.duration_seconds == pytest.approx(2.0, abs=0.01)

        deleted = await gateway.delete_many(location, ["2024-03-01/a.wav", "2024-03-02/b.wav"])
        assert deleted.success_count == 2
        assert await gateway.get_properties(location, "2024-03-01/a.wav") is None
        assert await gateway.list_containers() == ["sam-media"]

    def test_issue_read_url(self, gateway: StorageGateway) -> None:
        grant = gateway.issue_read_url("audio", "a.mp3", ttl_minutes=1)
        assert grant.content_type == "audio/mpeg"
