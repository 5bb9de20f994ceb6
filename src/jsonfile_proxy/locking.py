"""Advisory lock-file protocol guarding writes to a target file.

The lock is a sibling ``<filename>.lock`` file holding the writer's process
id. Its existence is the lock signal. Cooperating proxies check it before
writing; a process that ignores the convention can still clobber the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .errors import FilesystemError, LockHeldError
from .paths import Target

logger = logging.getLogger(__name__)

NO_OWNER = "None"


@dataclass(frozen=True)
class Lock:
    """Handle for a held lock file."""

    lock_path: Path
    owner_pid: int
    acquired_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class LockManager:
    """Creates, inspects, and removes lock files. Never waits on contention."""

    def __init__(self, *, pid: int | None = None) -> None:
        self.pid = pid if pid is not None else os.getpid()

    def is_locked(self, target: Target) -> bool:
        return target.lock_path.exists()

    def lock_owner(self, target: Target) -> str:
        """Return the pid recorded in the lock file, or ``"None"`` when unlocked."""
        try:
            owner = target.lock_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return NO_OWNER
        except OSError as exc:
            raise FilesystemError(f"cannot read lock file {target.lock_path}: {exc}") from exc
        return owner or NO_OWNER

    def acquire(self, target: Target) -> Lock:
        """Atomically create the lock file for *target*.

        Raises:
            LockHeldError: If a lock file already exists.
            FilesystemError: If the lock file cannot be created.
        """
        try:
            fd = os.open(target.lock_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            raise LockHeldError(self.lock_owner(target), str(target.full_path)) from None
        except OSError as exc:
            raise FilesystemError(f"cannot create lock file {target.lock_path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(str(self.pid))
        except OSError as exc:
            target.lock_path.unlink(missing_ok=True)
            raise FilesystemError(f"cannot write lock file {target.lock_path}: {exc}") from exc

        logger.debug("Acquired lock %s (pid %s)", target.lock_path, self.pid)
        return Lock(lock_path=target.lock_path, owner_pid=self.pid)

    def release(self, lock: Lock) -> None:
        """Delete the lock file.

        Raises:
            FilesystemError: If the lock file is already gone or cannot be removed.
        """
        try:
            lock.lock_path.unlink()
        except FileNotFoundError as exc:
            logger.warning("Lock file vanished before release: %s", lock.lock_path)
            raise FilesystemError(f"lock file {lock.lock_path} was removed by another actor") from exc
        except OSError as exc:
            raise FilesystemError(f"cannot remove lock file {lock.lock_path}: {exc}") from exc
        logger.debug("Released lock %s", lock.lock_path)
