from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Callable

from .cipher import CipherCodec
from .errors import FilesystemError, FormatError, LockHeldError
from .events import FETCH, SAVE, EventEmitter
from .locking import LockManager
from .models import DataSource, Envelope, SourceType, source_type
from .paths import Target, ensure_directory
from .serialization import to_envelope_json

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]

_NEW_FILE_MODE = 0o644

_ENCRYPTED_FORMAT_MESSAGE = (
    "Unrecognized or encrypted format detected in {path}. "
    "If the file is encrypted, the proxy must have an encryption key configured."
)


def _atomic_write_text(path: Path, content: str) -> None:
    """Replace *path* with *content* via a same-directory temp file and ``os.replace``.

    Readers see either the old file or the new one, never a partial write.
    The permission bits of an existing file carry over; new files get 0644.
    """
    try:
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise FilesystemError(f"cannot write {path}: {exc}") from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        try:
            mode = stat.S_IMODE(os.stat(path).st_mode)
        except FileNotFoundError:
            mode = _NEW_FILE_MODE
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, str(path))
    except BaseException as exc:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        if isinstance(exc, OSError):
            raise FilesystemError(f"cannot write {path}: {exc}") from exc
        raise


def _read_text(path: Path) -> str | None:
    """Return the file text, or None when the file does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as exc:
        raise FormatError(f"{path} contains invalid UTF-8 data") from exc
    except OSError as exc:
        raise FilesystemError(f"cannot read {path}: {exc}") from exc


class PersistenceEngine:
    """Save and fetch one data source to and from one target file.

    Saves follow check-lock, ensure-directory, serialize, encrypt, lock,
    write, unlock, notify. Fetches follow read, decrypt, parse, apply, notify.
    Failures propagate to the caller; nothing is retried.
    """

    def __init__(
        self,
        target: Target,
        *,
        codec: CipherCodec | None = None,
        locks: LockManager | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        self.target = target
        self.codec = codec
        self.locks = locks if locks is not None else LockManager()
        self.events = events if events is not None else EventEmitter()

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, source: DataSource) -> str:
        """Render the source's current data as envelope text, encrypted when a key is set."""
        mode = source_type(source)
        data = source.data
        if mode is SourceType.MODEL and not isinstance(data, dict):
            raise FormatError(f"model source data must be a mapping, got {type(data).__name__}")
        if mode is SourceType.STORE:
            data = list(data)
        content = to_envelope_json(data)
        if self.codec is not None:
            content = self.codec.encrypt(content)
        return content

    def decode(self, content: str, mode: SourceType) -> Envelope:
        """Parse file text into an envelope, decrypting it first when it is not plain JSON.

        Raises:
            FormatError: If the text is encrypted and no key is configured, or
                does not parse as an envelope for *mode*.
            DecryptionError: If decryption fails.
        """
        if not content.lstrip().startswith("{"):
            if self.codec is None:
                raise FormatError(_ENCRYPTED_FORMAT_MESSAGE.format(path=self.target.full_path))
            content = self.codec.decrypt(content)
        return Envelope.parse(content, mode)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def save(self, source: DataSource, callback: Callback | None = None) -> None:
        """Persist the source's data to the target file.

        Raises:
            LockHeldError: If another writer holds the lock. Nothing is written.
            FilesystemError: If the directory, data file or lock file cannot
                be written. The lock is released before a write error escapes.
            FormatError: If the data cannot be serialized.
        """
        if self.locks.is_locked(self.target):
            raise LockHeldError(self.locks.lock_owner(self.target), str(self.target.full_path))

        ensure_directory(self.target.directory)
        content = self.encode(source)

        lock = self.locks.acquire(self.target)
        try:
            _atomic_write_text(self.target.full_path, content)
        except BaseException:
            try:
                self.locks.release(lock)
            except FilesystemError as release_exc:
                logger.warning("Could not release %s after failed write: %s", lock.lock_path, release_exc)
            raise
        self.locks.release(lock)
        logger.debug("Saved %d characters to %s", len(content), self.target.full_path)

        self.events.emit(SAVE)
        if callback is not None:
            callback()

    def fetch(self, source: DataSource, callback: Callback | None = None) -> Envelope:
        """Load the target file into the source and return the decoded envelope.

        A missing or blank file loads an empty dataset. In-memory state is left
        untouched when reading or decoding fails.

        Raises:
            FilesystemError: If the file exists but cannot be read.
            FormatError: If the content is encrypted without a configured key,
                fails to decrypt, or does not parse.
        """
        mode = source_type(source)
        content = _read_text(self.target.full_path)
        if content is None or not content.strip():
            logger.debug("No stored data at %s; loading empty dataset", self.target.full_path)
            envelope = Envelope.empty(mode)
        else:
            envelope = self.decode(content, mode)

        if mode is SourceType.MODEL:
            source.load(envelope.data)
        else:
            source.reload(envelope.data)
        logger.debug("Fetched %s", self.target.full_path)

        self.events.emit(FETCH, envelope)
        if callback is not None:
            callback()
        return envelope
