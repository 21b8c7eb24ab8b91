"""
Tests for audio duration and size inspection.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from unittest.mock import MagicMock

import pytest

from callstore.config import StorageConfig
from callstore.services.audio_inspector import AudioInspector, parse_duration
from callstore.storage.memory import InMemoryBackend
from callstore.storage.protocol import NotFoundError, ValidationError

GARBAGE = b"this is definitely not an audio file " * 8


class TestParseDuration:
    def test_wav_with_hint(self, wav_bytes: bytes) -> None:
        assert parse_duration(wav_bytes, "audio/wav") == pytest.approx(2.0, abs=0.01)

    def test_wav_detected_without_hint(self, wav_bytes: bytes) -> None:
        assert parse_duration(wav_bytes) == pytest.approx(2.0, abs=0.01)

    def test_wrong_hint_falls_back_to_detection(self, wav_bytes: bytes) -> None:
        assert parse_duration(wav_bytes, "audio/mpeg") == pytest.approx(2.0, abs=0.01)

    def test_garbage_is_zero(self) -> None:
        assert parse_duration(GARBAGE, "audio/wav") == 0.0

    def test_empty_is_zero(self) -> None:
        assert parse_duration(b"", "audio/wav") == 0.0


class TestAudioInspector:
    @pytest.fixture
    def inspector(
        self, memory_backend: InMemoryBackend, storage_config: StorageConfig
    ) -> AudioInspector:
        return AudioInspector(memory_backend, storage_config)

    async def test_inspect_wav(
        self,
        inspector: AudioInspector,
        memory_backend: InMemoryBackend,
        wav_factory: Callable[..., bytes],
    ) -> None:
        data = wav_factory(3.5)
        await memory_backend.create_container("audio")
        await memory_backend.upload("audio", "2024-01-01/call.wav", data, "audio/wav")

        details = await inspector.inspect("audio", "2024-01-01/call.wav")
        assert details.duration_seconds == pytest.approx(3.5, abs=0.01)
        assert details.byte_size == len(data)
        assert details.content_type == "audio/wav"

    async def test_corrupt_object_keeps_size(
        self, inspector: AudioInspector, memory_backend: InMemoryBackend
    ) -> None:
        await memory_backend.create_container("audio")
        await memory_backend.upload("audio", "broken.wav", GARBAGE, "audio/wav")

        details = await inspector.inspect("audio", "broken.wav")
        assert details.duration_seconds == 0.0
        assert details.byte_size == len(GARBAGE)

    async def test_missing_object(self, inspector: AudioInspector, memory_backend: InMemoryBackend) -> None:
        await memory_backend.create_container("audio")
        with pytest.raises(NotFoundError):
            await inspector.inspect("audio", "missing.wav")

    async def test_requires_location_and_key(self, inspector: AudioInspector) -> None:
        with pytest.raises(ValidationError):
            await inspector.inspect("", "a.wav")
        with pytest.raises(ValidationError):
            await inspector.inspect("audio", "")

    async def test_oversized_object_not_downloaded(
        self, memory_backend: InMemoryBackend, wav_bytes: bytes
    ) -> None:
        await memory_backend.create_container("audio")
        await memory_backend.upload("audio", "long.wav", wav_bytes, "audio/wav")
        inspector = AudioInspector(memory_backend, StorageConfig(inspect_max_bytes=100))

        memory_backend.iter_chunks = MagicMock(side_effect=AssertionError("downloaded"))  # type: ignore[method-assign]
        details = await inspector.inspect("audio", "long.wav")
        assert details.duration_seconds == 0.0
        assert details.byte_size == len(wav_bytes)


class _StallingBackend(InMemoryBackend):
    """Serves one chunk per object, then stalls or yields junk on request."""

    def __init__(self, second_chunk: object = None) -> None:
        super().__init__()
        self.second_chunk = second_chunk
        self.first_chunk_sent = asyncio.Event()
        self.stream_closed = False

    async def iter_chunks(self, container: str, key: str) -> AsyncGenerator[bytes, None]:
        try:
            yield b"RIFF"
            self.first_chunk_sent.set()
            if self.second_chunk is None:
                await asyncio.Event().wait()
            yield self.second_chunk  # type: ignore[misc]
        finally:
            self.stream_closed = True


class TestInspectStreamCleanup:
    async def _backend_with_object(self, backend: _StallingBackend) -> _StallingBackend:
        await backend.create_container("audio")
        await backend.upload("audio", "call.wav", b"RIFF" * 8, "audio/wav")
        return backend

    async def test_cancel_mid_stream_closes_download(self) -> None:
        backend = await self._backend_with_object(_StallingBackend())
        inspector = AudioInspector(backend, StorageConfig())

        task = asyncio.create_task(inspector.inspect("audio", "call.wav"))
        await asyncio.wait_for(backend.first_chunk_sent.wait(), timeout=5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert backend.stream_closed

    async def test_consumer_error_closes_download(self) -> None:
        backend = await self._backend_with_object(_StallingBackend(second_chunk=12345))
        inspector = AudioInspector(backend, StorageConfig())

        with pytest.raises(TypeError):
            await inspector.inspect("audio", "call.wav")
        assert backend.stream_closed
