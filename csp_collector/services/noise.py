from __future__ import annotations

from typing import Any

# Scheme prefixes include the colon and are matched case-insensitively.
EXTENSION_SCHEMES = (
    "chrome-extension:",
    "moz-extension:",
    "safari-extension:",
    "edge-extension:",
)

# blob: is deliberately absent; it is a real blocked-uri value for worker-src.
IGNORABLE_SCHEMES = (
    "about:",
    "data:",
)


def _has_scheme(uri: Any, schemes) -> bool:
    if uri is None:
        return False
    value = str(uri)
    if not value:
        return False
    return value.lower().startswith(schemes)


def is_extension_noise(uri: Any) -> bool:
    """True when the blocked resource was injected by a browser extension."""
    return _has_scheme(uri, EXTENSION_SCHEMES)


def is_ignorable(uri: Any) -> bool:
    """True for about: and data: pseudo-schemes."""
    return _has_scheme(uri, IGNORABLE_SCHEMES)


def is_noise(uri: Any) -> bool:
    return is_extension_noise(uri) or is_ignorable(uri)
