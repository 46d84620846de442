# src/game/emitter.py
"""
Minimal synchronous event emitter used by game connections.

Handlers registered with on() fire on every emit(); handlers registered with
once() fire on the next emit() only. A handler that raises is logged and the
remaining handlers still run.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Tuple


log = logging.getLogger(__name__)

Handler = Callable[..., None]


class EventEmitter:
    def __init__(self) -> None:
        # event -> [(handler, once)]
        self._handlers: Dict[str, List[Tuple[Handler, bool]]] = {}

    def on(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append((handler, False))

    def once(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append((handler, True))

    def off(self, event: str, handler: Handler) -> None:
        """Remove every registration of `handler` for `event`. Safe if absent."""
        entries = self._handlers.get(event)
        if not entries:
            return
        self._handlers[event] = [(h, once) for (h, once) in entries if h is not handler]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        entries = self._handlers.get(event)
        if not entries:
            return

        # once-handlers are dropped before dispatch so re-entrant emits skip them
        self._handlers[event] = [(h, once) for (h, once) in entries if not once]

        for handler, _ in entries:
            try:
                handler(*args)
            except Exception:
                log.exception("Handler for %r raised", event)

    def remove_all_listeners(self) -> None:
        self._handlers.clear()
