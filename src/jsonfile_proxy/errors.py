from __future__ import annotations


class JsonFileProxyError(RuntimeError):
    """Base class for every error raised by the JSON file proxy."""


class ConfigurationError(JsonFileProxyError, ValueError):
    """Raised when the proxy is constructed or used without a usable configuration."""


class FilesystemError(JsonFileProxyError, OSError):
    """Raised when a directory, data file, or lock file operation fails.

    The originating ``OSError`` is always chained as ``__cause__``.
    """


class LockHeldError(JsonFileProxyError):
    """Raised when a save is attempted while another writer holds the lock.

    Callers decide whether to retry; the proxy never waits on a lock.
    """

    def __init__(self, owner: str, path: str) -> None:
        self.owner = owner
        self.path = path
        super().__init__(f"Process ID {owner} has a lock on {path}. Cannot save.")


class FormatError(JsonFileProxyError, ValueError):
    """Raised when persisted content cannot be parsed or serialized."""


class DecryptionError(FormatError):
    """Raised when ciphertext is malformed or was produced under a different key."""
