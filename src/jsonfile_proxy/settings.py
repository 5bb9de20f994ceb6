from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError

PATH_ENV = "JSONFILE_PROXY_PATH"
ENCRYPTION_KEY_ENV = "JSONFILE_PROXY_ENCRYPTION_KEY"


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy configuration with fail-fast validation.

    ``directory`` is the path of the JSON file itself (the name is kept for
    compatibility with existing configurations). ``encryption_key`` turns on
    at-rest obfuscation.
    """

    directory: str
    encryption_key: str | None = None

    @classmethod
    def coerce(cls, value: Any) -> "ProxyConfig":
        """Build a config from a path, a mapping, or an existing ProxyConfig.

        Mappings accept ``directory`` plus ``encryptionKey`` or ``encryption_key``.

        Raises:
            ConfigurationError: If no path is given or a value is invalid.
        """
        if isinstance(value, ProxyConfig):
            return value.normalized()
        if isinstance(value, (str, os.PathLike)):
            return cls(directory=os.fspath(value)).normalized()
        if isinstance(value, Mapping):
            directory = value.get("directory")
            key = value.get("encryptionKey", value.get("encryption_key"))
            if directory is None:
                raise ConfigurationError("No database configuration detected: 'directory' is required")
            if not isinstance(directory, (str, os.PathLike)):
                raise ConfigurationError(f"'directory' must be a path, got {type(directory).__name__}")
            if key is not None and not isinstance(key, str):
                raise ConfigurationError(f"encryption key must be a string, got {type(key).__name__}")
            return cls(directory=os.fspath(directory), encryption_key=key).normalized()
        if value is None:
            raise ConfigurationError("No database configuration detected.")
        raise ConfigurationError(f"Unsupported proxy configuration type: {type(value).__name__}")

    @classmethod
    def from_env(cls, repo_root: Path | None = None) -> "ProxyConfig":
        """Read the configuration from the environment, loading ``.env`` first if present.

        Args:
            repo_root: Directory searched for ``.env`` (default: cwd).

        Raises:
            ConfigurationError: If JSONFILE_PROXY_PATH is unset or invalid.
        """
        root = repo_root if repo_root is not None else Path.cwd()
        env_path = root / ".env"
        if env_path.is_file():
            load_dotenv(env_path)

        directory = os.getenv(PATH_ENV)
        if directory is None:
            raise ConfigurationError(f"{PATH_ENV} is required")
        return cls(directory=directory, encryption_key=os.getenv(ENCRYPTION_KEY_ENV) or None).normalized()

    def normalized(self) -> "ProxyConfig":
        """Validate and normalize all fields. Raises ConfigurationError on invalid configuration."""
        directory = self.directory.strip()
        if not directory:
            raise ConfigurationError("No database configuration detected: path must be non-empty")
        if self.encryption_key is not None and not self.encryption_key:
            raise ConfigurationError("encryption key must be non-empty when provided")
        return ProxyConfig(directory=directory, encryption_key=self.encryption_key)
