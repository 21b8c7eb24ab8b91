"""
Top-level test configuration for callstore.
"""

from __future__ import annotations

import io
import os
import wave
from collections.abc import Callable

import pytest

# Ensure test-friendly defaults
os.environ.setdefault("CALLSTORE_JSON_LOGS", "false")
os.environ.setdefault("CALLSTORE_LOG_LEVEL", "DEBUG")

from callstore.config import StorageConfig  # noqa: E402
from callstore.gateway import StorageGateway  # noqa: E402
from callstore.storage.memory import InMemoryBackend  # noqa: E402


def make_wav(seconds: float = 1.0, rate: int = 8000) -> bytes:
    """A mono 16-bit PCM WAV file of silence."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * int(seconds * rate))
    return buffer.getvalue()


@pytest.fixture
def wav_bytes() -> bytes:
    return make_wav(2.0)


@pytest.fixture
def wav_factory() -> Callable[..., bytes]:
    return make_wav


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig()


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend(hmac_secret="test-secret-key-for-hmac-signing", chunk_size=1024)


@pytest.fixture
def gateway(memory_backend: InMemoryBackend, storage_config: StorageConfig) -> StorageGateway:
    return StorageGateway(memory_backend, storage_config)
