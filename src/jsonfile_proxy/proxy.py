from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from .cipher import CipherCodec
from .engine import Callback, PersistenceEngine
from .errors import ConfigurationError
from .events import EventEmitter, Handler
from .live_sync import LiveSyncBridge
from .locking import LockManager
from .models import DataSource, Envelope, source_type
from .paths import Target, resolve_target
from .settings import ProxyConfig

logger = logging.getLogger(__name__)


class JsonFileProxy:
    """Persist a record or a record store to a single JSON file.

    Construct with a file path, a mapping (``directory`` and optional
    ``encryptionKey``) or a :class:`ProxyConfig`, then bind a data source with
    :meth:`init` (data sources do this when given ``proxy=``).

    Events: ``save``, ``fetch`` (with the envelope), ``live.create``,
    ``live.update``, ``live.delete``.
    """

    def __init__(self, config: str | Path | dict[str, Any] | ProxyConfig, *, locks: LockManager | None = None) -> None:
        self.config = ProxyConfig.coerce(config)
        try:
            self.target: Target = resolve_target(self.config.directory)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        if not self.target.directory.is_dir():
            logger.warning(
                "%s does not exist or cannot be found. It will be created automatically "
                "if any data operation is requested.",
                self.target.directory,
            )

        self.codec = CipherCodec(self.config.encryption_key) if self.config.encryption_key else None
        self.events = EventEmitter()
        self.engine = PersistenceEngine(self.target, codec=self.codec, locks=locks, events=self.events)
        self.live_sync = LiveSyncBridge(self.engine, self.events)
        self._source: DataSource | None = None

    def __repr__(self) -> str:
        return f"JsonFileProxy({str(self.target.full_path)!r}, type={self.type!r})"

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def init(self, source: DataSource) -> None:
        """Bind the model or store this proxy persists."""
        source_type(source)
        if self._source is not None and self._source is not source:
            self.live_sync.disable()
        self._source = source

    @property
    def source(self) -> DataSource:
        if self._source is None:
            raise ConfigurationError("No data source bound to this proxy; call init() first")
        return self._source

    @property
    def type(self) -> str | None:
        """``"model"`` or ``"store"`` once a source is bound."""
        if self._source is None:
            return None
        return source_type(self._source).value

    # ------------------------------------------------------------------
    # Target identity and diagnostics
    # ------------------------------------------------------------------

    @property
    def directory(self) -> Path:
        return self.target.directory

    @property
    def file(self) -> str:
        return self.target.filename

    @property
    def dbfile(self) -> Path:
        return self.target.full_path

    @property
    def lockfile(self) -> Path:
        return self.target.lock_path

    @property
    def is_locked(self) -> bool:
        return self.engine.locks.is_locked(self.target)

    locked = is_locked

    @property
    def lock_owner(self) -> str:
        return self.engine.locks.lock_owner(self.target)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, callback: Callback | None = None) -> None:
        """Write the bound source to disk, then emit ``save`` and run *callback*."""
        self.engine.save(self.source, callback)

    def fetch(self, callback: Callback | None = None) -> Envelope:
        """Load the file into the bound source, then emit ``fetch`` and run *callback*."""
        return self.engine.fetch(self.source, callback)

    def enable_live_sync(self) -> None:
        """Save on every mutation of the bound source and emit ``live.*`` afterwards."""
        self.live_sync.enable(self.source)

    def disable_live_sync(self) -> None:
        self.live_sync.disable()

    # ------------------------------------------------------------------
    # Encryption pass-throughs
    # ------------------------------------------------------------------

    def encrypt(self, text: str) -> str:
        if self.codec is None:
            raise ConfigurationError("No encryption key configured")
        return self.codec.encrypt(text)

    def decrypt(self, text: str) -> str:
        if self.codec is None:
            raise ConfigurationError("No encryption key configured")
        return self.codec.decrypt(text)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> Handler:
        return self.events.on(event, handler)

    def once(self, event: str, handler: Handler) -> Handler:
        return self.events.once(event, handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        self.events.off(event, handler)
