from __future__ import annotations

import logging
from typing import Any, Callable

from .engine import PersistenceEngine
from .events import LIVE_CREATE, LIVE_DELETE, LIVE_UPDATE, EventEmitter
from .models import DataSource, SourceType, source_type

logger = logging.getLogger(__name__)

# relationship.create is left out on purpose: a new relationship carries no
# data yet, and the field update that fills it triggers its own save.
MODEL_EVENT_MAP: dict[str, str] = {
    "field.create": LIVE_CREATE,
    "field.update": LIVE_UPDATE,
    "field.remove": LIVE_DELETE,
    "relationship.remove": LIVE_DELETE,
}

STORE_EVENT_MAP: dict[str, str] = {
    "record.create": LIVE_CREATE,
    "record.update": LIVE_UPDATE,
    "record.delete": LIVE_DELETE,
    "clear": LIVE_DELETE,
}


class LiveSyncBridge:
    """Saves the source after every mutation event and re-emits ``live.*`` events.

    Each event runs one full save (lock, write, unlock) before its ``live.*``
    notification fires. Bursts are not coalesced. A failed save propagates
    out of the mutation that triggered it and emits nothing.
    """

    def __init__(self, engine: PersistenceEngine, events: EventEmitter) -> None:
        self.engine = engine
        self.events = events
        self._source: DataSource | None = None
        self._subscriptions: list[tuple[str, Callable[..., Any]]] = []

    @property
    def enabled(self) -> bool:
        return self._source is not None

    @property
    def subscriptions(self) -> list[str]:
        return [event for event, _ in self._subscriptions]

    def enable(self, source: DataSource) -> None:
        if self._source is source:
            return
        if self._source is not None:
            self.disable()

        mode = source_type(source)
        event_map = MODEL_EVENT_MAP if mode is SourceType.MODEL else STORE_EVENT_MAP
        forward_payload = mode is SourceType.STORE
        for event, live_event in event_map.items():
            handler = self._relay(source, live_event, forward_payload=forward_payload)
            source.on(event, handler)
            self._subscriptions.append((event, handler))
        self._source = source
        logger.info("Live sync enabled for %s (%s mode)", self.engine.target.full_path, mode.value)

    def disable(self) -> None:
        source = self._source
        if source is None:
            return
        off = getattr(source, "off", None)
        if callable(off):
            for event, handler in self._subscriptions:
                off(event, handler)
        self._subscriptions.clear()
        self._source = None
        logger.info("Live sync disabled for %s", self.engine.target.full_path)

    def _relay(self, source: DataSource, live_event: str, *, forward_payload: bool) -> Callable[..., None]:
        def _handler(*args: Any) -> None:
            payload = args if forward_payload else ()
            self.engine.save(source, callback=lambda: self.events.emit(live_event, *payload))

        return _handler
