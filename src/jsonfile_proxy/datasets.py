"""In-memory data sources that a JsonFileProxy can persist.

``Record`` is a single record ("model" mode) and ``RecordStore`` an ordered
collection of records ("store" mode). Both emit the mutation events live sync
listens to:

- Record: ``field.create``, ``field.update``, ``field.remove``,
  ``relationship.create``, ``relationship.remove``
- RecordStore: ``record.create``, ``record.update``, ``record.delete``, ``clear``

``load`` / ``reload`` and ``set_silent`` change data without emitting events.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from .errors import FormatError
from .events import EventEmitter, Handler
from .models import PersistenceAdapter, SourceType


class Record:
    """A single record with named fields and nested related records."""

    type = SourceType.MODEL.value

    def __init__(
        self,
        fields: Mapping[str, Any] | None = None,
        values: Mapping[str, Any] | None = None,
        *,
        relationships: Mapping[str, Mapping[str, Any]] | None = None,
        proxy: PersistenceAdapter | None = None,
    ) -> None:
        self._defaults: dict[str, Any] = dict(fields or {})
        self._values: dict[str, Any] = {name: copy.deepcopy(default) for name, default in self._defaults.items()}
        self._relationships: dict[str, Record] = {}
        self._bubblers: dict[str, Handler] = {}
        self._events = EventEmitter()
        for name, related_fields in (relationships or {}).items():
            self._attach(name, Record(related_fields))
        if values:
            self.validate(values)
            self._apply(values)
        self.proxy = proxy
        if proxy is not None:
            proxy.init(self)

    def __repr__(self) -> str:
        return f"Record({self.data!r})"

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> Handler:
        return self._events.on(event, handler)

    def once(self, event: str, handler: Handler) -> Handler:
        return self._events.once(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self._events.off(event, handler)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    @property
    def fields(self) -> list[str]:
        return list(self._values)

    @property
    def relationships(self) -> list[str]:
        return list(self._relationships)

    def has_field(self, name: str) -> bool:
        return name in self._values

    def related(self, name: str) -> "Record":
        return self._relationships[name]

    def get(self, name: str) -> Any:
        if name in self._relationships:
            return self._relationships[name]
        return self._values[name]

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values or name in self._relationships

    def set(self, name: str, value: Any) -> None:
        """Change a field value and emit ``field.update`` with the change."""
        if name not in self._values:
            raise KeyError(f"unknown field: {name}")
        old = self._values[name]
        if old == value:
            return
        self._values[name] = value
        self._events.emit("field.update", {"field": name, "old": old, "new": value})

    def set_silent(self, name: str, value: Any) -> None:
        if name not in self._values:
            raise KeyError(f"unknown field: {name}")
        self._values[name] = value

    # ------------------------------------------------------------------
    # Schema changes
    # ------------------------------------------------------------------

    def add_field(self, name: str, default: Any = None) -> None:
        if name in self:
            raise ValueError(f"field already exists: {name}")
        self._defaults[name] = default
        self._values[name] = copy.deepcopy(default)
        self._events.emit("field.create", name)

    def remove_field(self, name: str) -> None:
        if name not in self._values:
            raise KeyError(f"unknown field: {name}")
        del self._values[name]
        self._defaults.pop(name, None)
        self._events.emit("field.remove", name)

    def add_relationship(self, name: str, fields: Mapping[str, Any] | None = None) -> "Record":
        if name in self:
            raise ValueError(f"field already exists: {name}")
        related = self._attach(name, Record(fields))
        self._events.emit("relationship.create", name)
        return related

    def remove_relationship(self, name: str) -> None:
        related = self._relationships.pop(name)
        related.off("field.update", self._bubblers.pop(name))
        self._events.emit("relationship.remove", name)

    def _attach(self, name: str, related: "Record") -> "Record":
        def _bubble(change: Mapping[str, Any]) -> None:
            self._events.emit("field.update", {**change, "field": f"{name}.{change['field']}"})

        related.on("field.update", _bubble)
        self._relationships[name] = related
        self._bubblers[name] = _bubble
        return related

    # ------------------------------------------------------------------
    # Snapshot / load
    # ------------------------------------------------------------------

    @property
    def data(self) -> dict[str, Any]:
        snapshot = copy.deepcopy(self._values)
        for name, related in self._relationships.items():
            snapshot[name] = related.data
        return snapshot

    def validate(self, fields: Any) -> None:
        """Check that *fields* can be loaded into this record.

        Raises:
            FormatError: If *fields*, or the value of any relationship, is not
                a mapping.
        """
        if not isinstance(fields, Mapping):
            raise FormatError(f"record fields must be a mapping, got {type(fields).__name__}")
        for name, related in self._relationships.items():
            value = fields.get(name)
            if value is not None:
                try:
                    related.validate(value)
                except FormatError as exc:
                    raise FormatError(f"relationship {name!r}: {exc}") from exc

    def load(self, fields: Mapping[str, Any]) -> None:
        """Replace every value from *fields* without emitting events.

        Fields absent from *fields* fall back to their defaults; unknown keys
        become new fields. Nothing changes when *fields* has the wrong shape.

        Raises:
            FormatError: If *fields* fails :meth:`validate`.
        """
        self.validate(fields)
        self._values = {name: copy.deepcopy(default) for name, default in self._defaults.items()}
        for related in self._relationships.values():
            related.load({})
        self._apply(fields)

    def _apply(self, fields: Mapping[str, Any]) -> None:
        for name, value in fields.items():
            if name in self._relationships:
                self._relationships[name].load(value or {})
                continue
            if name not in self._defaults:
                self._defaults[name] = None
            self._values[name] = copy.deepcopy(value)


class RecordStore:
    """An ordered collection of records sharing one schema."""

    type = SourceType.STORE.value

    def __init__(
        self,
        fields: Mapping[str, Any] | None = None,
        *,
        relationships: Mapping[str, Mapping[str, Any]] | None = None,
        proxy: PersistenceAdapter | None = None,
    ) -> None:
        self._fields = dict(fields or {})
        self._relationships = dict(relationships or {})
        self._records: list[Record] = []
        self._watchers: dict[int, Handler] = {}
        self._events = EventEmitter()
        self.proxy = proxy
        if proxy is not None:
            proxy.init(self)

    def __repr__(self) -> str:
        return f"RecordStore({len(self)} records)"

    def on(self, event: str, handler: Handler) -> Handler:
        return self._events.on(event, handler)

    def once(self, event: str, handler: Handler) -> Handler:
        return self._events.once(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self._events.off(event, handler)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))

    def __getitem__(self, index: int) -> Record:
        return self._records[index]

    @property
    def records(self) -> list[Record]:
        return list(self._records)

    @property
    def first(self) -> Record | None:
        return self._records[0] if self._records else None

    @property
    def last(self) -> Record | None:
        return self._records[-1] if self._records else None

    @property
    def data(self) -> list[dict[str, Any]]:
        return [record.data for record in self._records]

    def create_record(self, values: Mapping[str, Any] | None = None) -> Record:
        return Record(self._fields, values, relationships=self._relationships)

    def add(self, values: Mapping[str, Any] | Record) -> Record:
        """Append a record and emit ``record.create``."""
        record = values if isinstance(values, Record) else self.create_record(values)
        self._track(record)
        self._events.emit("record.create", record)
        return record

    def remove(self, record: Record | int) -> Record:
        """Remove a record (or the record at an index) and emit ``record.delete``."""
        if isinstance(record, int):
            record = self._records[record]
        if record not in self._records:
            raise ValueError("record is not part of this store")
        self._untrack(record)
        self._events.emit("record.delete", record)
        return record

    def clear(self) -> None:
        for record in list(self._records):
            self._untrack(record)
        self._events.emit("clear")

    def reload(self, records: list[Mapping[str, Any]]) -> None:
        """Replace the whole collection, in order, without emitting events.

        Every incoming record is built before the current ones are dropped, so
        a bad record raises ``FormatError`` and leaves the collection as it was.
        """
        fresh = [self.create_record(values) for values in records]
        for record in list(self._records):
            self._untrack(record)
        for record in fresh:
            self._track(record)

    def _track(self, record: Record) -> None:
        def _watch(change: Mapping[str, Any]) -> None:
            self._events.emit("record.update", record, change)

        record.on("field.update", _watch)
        self._watchers[id(record)] = _watch
        self._records.append(record)

    def _untrack(self, record: Record) -> None:
        self._records.remove(record)
        record.off("field.update", self._watchers.pop(id(record)))
