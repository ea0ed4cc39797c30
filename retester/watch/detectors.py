"""Change detection strategies.

A detector turns a path into a signature; the tracker treats any
signature difference as a change. Modification time is the default.
Content hashing trades a full read per poll for immunity to touch-only
edits and to copies that preserve mtime.
"""

from __future__ import annotations

import hashlib
import os
from typing import Protocol, runtime_checkable

from retester.core.errors import FileUnavailableError
from retester.core.types import Signature

_HASH_CHUNK = 64 * 1024


@runtime_checkable
class ChangeDetector(Protocol):
    """Protocol for change detection strategies."""

    name: str

    def observe(self, path: str) -> Signature:
        ...


class MtimeDetector:
    """Signature is the file's modification time in nanoseconds."""

    name = "mtime"

    def observe(self, path: str) -> Signature:
        try:
            return os.stat(path).st_mtime_ns
        except OSError as e:
            raise FileUnavailableError(path, e) from e


class ContentHashDetector:
    """Signature is the SHA-256 digest of the file contents."""

    name = "hash"

    def observe(self, path: str) -> Signature:
        hasher = hashlib.sha256()
        try:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
                    hasher.update(chunk)
        except OSError as e:
            raise FileUnavailableError(path, e) from e
        return hasher.hexdigest()


_DETECTORS: dict[str, type] = {
    MtimeDetector.name: MtimeDetector,
    ContentHashDetector.name: ContentHashDetector,
}


def get_detector(name: str) -> ChangeDetector:
    """Return a detector instance by name (``mtime`` or ``hash``)."""
    try:
        return _DETECTORS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown change detection strategy {name!r}; expected one of {sorted(_DETECTORS)}"
        ) from None
