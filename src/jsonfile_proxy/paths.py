from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import FilesystemError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


@dataclass(frozen=True)
class Target:
    """Resolved identity of the file a proxy persists to."""

    directory: Path
    filename: str
    full_path: Path

    @property
    def lock_path(self) -> Path:
        """Sibling lock file signalling an in-progress write."""
        return self.full_path.with_name(self.filename + LOCK_SUFFIX)


def resolve_target(path: str | os.PathLike[str]) -> Target:
    """Resolve a configured (possibly non-existent) file path into a Target.

    Args:
        path: Relative or absolute path to the JSON file. ``~`` is expanded.

    Returns:
        The Target with an absolute directory and full path.

    Raises:
        ValueError: If the path is empty or names no file.
    """
    raw = os.fspath(path)
    if not str(raw).strip():
        raise ValueError("path must be non-empty")
    full_path = Path(raw).expanduser().resolve()
    if not full_path.name:
        raise ValueError(f"path does not name a file: {raw!r}")
    return Target(directory=full_path.parent, filename=full_path.name, full_path=full_path)


def ensure_directory(directory: Path) -> None:
    """Create *directory* and every missing ancestor.

    Walks up to the nearest existing ancestor first, then creates the missing
    segments top-down in a loop, so deep paths never recurse.

    Raises:
        FilesystemError: If a segment is occupied by a non-directory or the
            directory cannot be created (permissions, I/O).
    """
    directory = Path(directory)
    missing: list[Path] = []
    current = directory
    while not current.exists():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent

    if current.exists() and not current.is_dir():
        raise FilesystemError(f"cannot create {directory}: {current} exists and is not a directory")

    for segment in reversed(missing):
        try:
            segment.mkdir()
        except FileExistsError:
            # Created concurrently by another writer; fine as long as it is a directory.
            if not segment.is_dir():
                raise FilesystemError(
                    f"cannot create {directory}: {segment} exists and is not a directory"
                ) from None
        except OSError as exc:
            raise FilesystemError(f"cannot create directory {segment}: {exc}") from exc
        logger.debug("Created directory: %s", segment)
