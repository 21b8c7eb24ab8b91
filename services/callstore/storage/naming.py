"""
Location naming helpers.

Container names follow the provider's rules: 3-63 characters, lowercase
letters, digits and dashes, starting and ending with a letter or digit,
no consecutive dashes.
"""

import re

from callstore.storage.protocol import ValidationError

_LOCATION_NAME_RE = re.compile(r"^[a-z0-9](?!.*--)[a-z0-9-]{1,61}[a-z0-9]$")
_IDENTITY_UNSAFE_RE = re.compile(r"[^a-z0-9]")

IDENTITY_PLACEHOLDER = "{identity}"


def is_valid_location_name(name: str) -> bool:
    """True if `name` is an acceptable container name."""
    return bool(name) and _LOCATION_NAME_RE.match(name) is not None


def validate_location_name(name: str) -> str:
    """Return `name` unchanged, or raise ValidationError."""
    if not name:
        raise ValidationError("Location name is required")
    if not is_valid_location_name(name):
        raise ValidationError(
            f"Invalid location name {name!r}: must be 3-63 characters of lowercase "
            "letters, numbers and single dashes, starting and ending with a letter or number"
        )
    return name


def sanitize_identity(identity: str) -> str:
    """Lowercase an identity and replace anything outside [a-z0-9] with a dash."""
    return _IDENTITY_UNSAFE_RE.sub("-", identity.strip().lower())


def expand_candidates(templates: list[str], identity: str) -> list[str]:
    """Expand location templates for an identity.

    Order is preserved. Names that come out invalid (e.g. an identity too
    short to stand alone) and duplicates are dropped.
    """
    safe_identity = sanitize_identity(identity) if identity else ""
    names: list[str] = []
    for template in templates:
        if IDENTITY_PLACEHOLDER in template:
            if not safe_identity:
                continue
            name = template.replace(IDENTITY_PLACEHOLDER, safe_identity)
        else:
            name = template
        if is_valid_location_name(name) and name not in names:
            names.append(name)
    return names
