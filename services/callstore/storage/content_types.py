"""
Audio content type helpers.

Maps a key's file extension to the MIME type stored with the object and
advertised in read URLs.
"""

DEFAULT_AUDIO_CONTENT_TYPE = "audio/mpeg"
DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"

AUDIO_CONTENT_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "webm": "audio/webm",
    "3gp": "audio/3gpp",
    "amr": "audio/amr",
    "wma": "audio/x-ms-wma",
}


def extension_of(key: str) -> str:
    """Lowercased extension of the last path segment, without the dot."""
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def content_type_for(key: str, default: str = DEFAULT_AUDIO_CONTENT_TYPE) -> str:
    """Content type for a key based on its extension."""
    return AUDIO_CONTENT_TYPES.get(extension_of(key), default)
