from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigurationError, FormatError


class SourceType(str, Enum):
    MODEL = "model"
    STORE = "store"


class Envelope(BaseModel):
    """On-disk wrapper: ``{"data": <record fields> | [<record fields>, ...]}``."""

    model_config = ConfigDict(extra="ignore")

    data: dict[str, Any] | list[dict[str, Any]]

    @classmethod
    def empty(cls, mode: SourceType) -> "Envelope":
        return cls(data={} if mode is SourceType.MODEL else [])

    @classmethod
    def parse(cls, text: str, mode: SourceType) -> "Envelope":
        """Parse envelope text and check it matches the bound source mode.

        Raises:
            FormatError: If the text is not a valid envelope for *mode*.
        """
        try:
            envelope = cls.model_validate_json(text)
        except ValidationError as exc:
            raise FormatError(f"content is not a valid JSON file proxy envelope: {exc}") from exc
        if mode is SourceType.MODEL and not isinstance(envelope.data, dict):
            raise FormatError("expected a single record under 'data', found a record list")
        if mode is SourceType.STORE and not isinstance(envelope.data, list):
            raise FormatError("expected a record list under 'data', found a single record")
        return envelope


class DataSource(Protocol):
    """The model or store a proxy persists.

    Model sources implement ``load(fields)``; store sources implement
    ``reload(records)``. Both expose a ``data`` snapshot in the same shape.
    """

    @property
    def type(self) -> str: ...

    @property
    def data(self) -> dict[str, Any] | list[dict[str, Any]]: ...

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...


class PersistenceAdapter(Protocol):
    """Interface a data source expects from an injected persistence proxy."""

    def init(self, source: DataSource) -> None: ...

    def save(self, callback: Callable[[], Any] | None = None) -> None: ...

    def fetch(self, callback: Callable[[], Any] | None = None) -> Envelope: ...

    def enable_live_sync(self) -> None: ...


def source_type(source: DataSource) -> SourceType:
    kind = getattr(source, "type", None)
    try:
        return SourceType(kind)
    except ValueError as exc:
        raise ConfigurationError(f"data source type must be 'model' or 'store', got {kind!r}") from exc
