"""Extract intrinsic audio properties from stored recordings.

Duration is best-effort enrichment: the object is downloaded into memory and
handed to mutagen, and any parsing failure yields a duration of 0 rather than
an error. Byte size always comes from the object's stored properties.

Whole-object download is fine for call recordings (minutes long); objects
above `inspect_max_bytes` are not downloaded at all.
"""

import io
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

import mutagen
from mutagen.aac import AAC
from mutagen.asf import ASF
from mutagen.flac import FLAC
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4
from mutagen.oggvorbis import OggVorbis
from mutagen.wave import WAVE

from callstore.config import StorageConfig
from callstore.logging_config import get_logger
from callstore.storage.protocol import BlobBackend, ValidationError

logger = get_logger(__name__)

# Parser tried first for a declared content type; mutagen.File auto-detection
# is the fallback.
PARSERS_BY_CONTENT_TYPE: dict[str, Any] = {
    "audio/mpeg": MP3,
    "audio/mp3": MP3,
    "audio/wav": WAVE,
    "audio/x-wav": WAVE,
    "audio/wave": WAVE,
    "audio/ogg": OggVorbis,
    "audio/mp4": MP4,
    "audio/x-m4a": MP4,
    "audio/aac": AAC,
    "audio/flac": FLAC,
    "audio/x-flac": FLAC,
    "audio/x-ms-wma": ASF,
}


@dataclass(frozen=True)
class AudioDetails:
    duration_seconds: float
    byte_size: int
    content_type: str


def parse_duration(data: bytes, content_type: str | None = None) -> float:
    """Duration in seconds of an in-memory audio file, 0.0 if unparseable."""
    if not data:
        return 0.0

    parser = PARSERS_BY_CONTENT_TYPE.get((content_type or "").split(";")[0].strip().lower())
    if parser is not None:
        try:
            return _length_of(parser(io.BytesIO(data)))
        except Exception as e:
            logger.debug("Hinted audio parser failed", content_type=content_type, error=str(e))

    try:
        audio = mutagen.File(io.BytesIO(data))
    except Exception as e:
        logger.warning("Could not parse audio metadata", content_type=content_type, error=str(e))
        return 0.0
    if audio is None:
        logger.warning("Unrecognised audio container", content_type=content_type)
        return 0.0
    return _length_of(audio)


def _length_of(audio: Any) -> float:
    length = getattr(getattr(audio, "info", None), "length", None)
    return float(length) if length else 0.0


class AudioInspector:
    """Reads duration and size for one stored object."""

    def __init__(self, backend: BlobBackend, config: StorageConfig) -> None:
        self._backend = backend
        self._max_bytes = config.inspect_max_bytes

    async def inspect(self, location: str, key: str) -> AudioDetails:
        """Inspect `location`/`key`.

        Raises:
            ValidationError: If location or key is empty.
            NotFoundError: If the object does not exist.
        """
        if not location or not key:
            raise ValidationError("Location and key are required")

        props = await self._backend.head(location, key)
        if props.size_bytes > self._max_bytes:
            logger.warning(
                "Object too large to inspect, skipping duration",
                container=location,
                key=key,
                size_bytes=props.size_bytes,
                max_bytes=self._max_bytes,
            )
            return AudioDetails(0.0, props.size_bytes, props.content_type)

        buffer = bytearray()
        async with aclosing(self._backend.iter_chunks(location, key)) as chunks:
            async for chunk in chunks:
                buffer.extend(chunk)

        duration = parse_duration(bytes(buffer), props.content_type)
        logger.debug(
            "Audio inspected",
            container=location,
            key=key,
            duration_seconds=duration,
            size_bytes=props.size_bytes,
        )
        return AudioDetails(duration, props.size_bytes, props.content_type)
