from importlib.metadata import version

from .cipher import CipherCodec, decrypt, encrypt
from .datasets import Record, RecordStore
from .engine import PersistenceEngine
from .errors import (
    ConfigurationError,
    DecryptionError,
    FilesystemError,
    FormatError,
    JsonFileProxyError,
    LockHeldError,
)
from .events import EventEmitter
from .live_sync import LiveSyncBridge
from .locking import Lock, LockManager
from .models import DataSource, Envelope, PersistenceAdapter, SourceType
from .paths import Target, ensure_directory, resolve_target
from .proxy import JsonFileProxy
from .settings import ProxyConfig


def get_version() -> str:
    try:
        return version("jsonfile-proxy")
    except Exception:
        return "0.0.0"


__all__ = [
    "CipherCodec",
    "ConfigurationError",
    "DataSource",
    "DecryptionError",
    "Envelope",
    "EventEmitter",
    "FilesystemError",
    "FormatError",
    "JsonFileProxy",
    "JsonFileProxyError",
    "LiveSyncBridge",
    "Lock",
    "LockHeldError",
    "LockManager",
    "PersistenceAdapter",
    "PersistenceEngine",
    "ProxyConfig",
    "Record",
    "RecordStore",
    "SourceType",
    "Target",
    "decrypt",
    "encrypt",
    "ensure_directory",
    "resolve_target",
]
