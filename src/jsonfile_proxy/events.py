from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

SAVE = "save"
FETCH = "fetch"
LIVE_CREATE = "live.create"
LIVE_UPDATE = "live.update"
LIVE_DELETE = "live.delete"


class EventEmitter:
    """Callback registry keyed by event name.

    Handlers run synchronously in registration order. Exceptions raised by a
    handler propagate to the caller of :meth:`emit`.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> Handler:
        self._handlers[event].append(handler)
        return handler

    def once(self, event: str, handler: Handler) -> Handler:
        def _once(*args: Any) -> Any:
            self.off(event, _once)
            return handler(*args)

        _once.__wrapped__ = handler  # type: ignore[attr-defined]
        return self.on(event, _once)

    def off(self, event: str, handler: Handler) -> None:
        """Remove *handler*, whether it was registered with :meth:`on` or :meth:`once`."""
        handlers = self._handlers.get(event)
        if not handlers:
            return
        for registered in handlers:
            if registered == handler or getattr(registered, "__wrapped__", None) == handler:
                handlers.remove(registered)
                return

    def emit(self, event: str, *args: Any) -> None:
        # Copy so once-handlers can unregister while we iterate.
        for handler in list(self._handlers.get(event, ())):
            handler(*args)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))
