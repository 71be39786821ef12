"""Detect a file's language from its extension."""

from __future__ import annotations

from pathlib import PurePosixPath

from codeatlas.config import EXTENSION_MAP


def detect_language(path: str) -> str | None:
    """Return the language name for ``path`` or None if unrecognised."""
    suffix = PurePosixPath(path).suffix
    if not suffix:
        return None
    return EXTENSION_MAP.get(suffix) or EXTENSION_MAP.get(suffix.lower())
