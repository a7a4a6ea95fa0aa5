from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

PREVIEW_DONE = "preview-done"
ITEM_STARTED = "item-started"
ITEM_FINISHED = "item-finished"
BATCH_FINISHED = "batch-finished"

Handler = Callable[[Any], None]
Unlisten = Callable[[], None]
Dispatch = Callable[[Callable[[], None]], None]


class EventBus:
    """
    Named event channels between the engine and the orchestrator.

    `emit` may be called from any thread. Delivery goes through `dispatch`
    (normally the scheduler's `call_soon`) so handlers always run on the
    orchestrator's loop. Handlers are looked up at delivery time: a handler
    removed before delivery never sees the event.
    """

    def __init__(self, dispatch: Optional[Dispatch] = None):
        self._dispatch = dispatch
        self._lock = threading.Lock()
        self._handlers: dict[str, dict[int, Handler]] = {}
        self._ids = itertools.count(1)

    def bind(self, dispatch: Dispatch) -> None:
        self._dispatch = dispatch

    def listen(self, event: str, handler: Handler) -> Unlisten:
        with self._lock:
            handler_id = next(self._ids)
            self._handlers.setdefault(event, {})[handler_id] = handler

        def unlisten() -> None:
            with self._lock:
                channel = self._handlers.get(event)
                if channel is not None:
                    channel.pop(handler_id, None)
                    if not channel:
                        del self._handlers[event]

        return unlisten

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, {}))

    def emit(self, event: str, payload: Any = None) -> None:
        if self._dispatch is None:
            self._deliver(event, payload)
        else:
            self._dispatch(lambda: self._deliver(event, payload))

    def _deliver(self, event: str, payload: Any) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, {}).values())
        if not handlers:
            logger.debug("No listener for %s", event)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)
