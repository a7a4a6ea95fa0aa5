from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from rimages.app.scheduler import Scheduler, TimerHandle
from rimages.app.store import WorkItemStore
from rimages.app.subscriptions import SubscriptionRegistry
from rimages.core.events import PREVIEW_DONE, EventBus
from rimages.core.models import BatchConfiguration, PreviewResult
from rimages.engine.base import CompressionEngine

logger = logging.getLogger(__name__)

PREVIEW_DELAY_MS = 600
PREVIEW_ITEM_LIMIT = 3

ConfigFactory = Callable[[tuple[str, ...]], BatchConfiguration]


def parse_preview_payload(payload: Any) -> tuple[Optional[int], list[PreviewResult]]:
    """
    Accepts either a bare list of results (no request id) or
    `{"request_id": int, "results": [...]}`.
    """
    if isinstance(payload, (list, tuple)):
        return None, [PreviewResult.from_payload(raw) for raw in payload]
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected preview payload: {payload!r}")
    results = [PreviewResult.from_payload(raw) for raw in payload.get("results") or ()]
    request_id = payload.get("request_id")
    return (int(request_id) if request_id is not None else None), results


class PreviewDebouncer:
    """
    Coalesces settings / item-set changes into a single speculative preview request.

    Each change bumps `generation` and restarts the quiet-period timer. A
    response is applied only if no change happened since its request went
    out; older responses are dropped.
    """

    def __init__(
        self,
        store: WorkItemStore,
        engine: CompressionEngine,
        bus: EventBus,
        scheduler: Scheduler,
        make_config: ConfigFactory,
        *,
        delay_ms: int = PREVIEW_DELAY_MS,
        item_limit: int = PREVIEW_ITEM_LIMIT,
    ):
        self.store = store
        self.engine = engine
        self.bus = bus
        self.scheduler = scheduler
        self.make_config = make_config
        self.delay_ms = delay_ms
        self.item_limit = item_limit

        self.generation = 0
        self.requests_sent = 0
        self._timer: Optional[TimerHandle] = None
        self._active_request: Optional[int] = None
        self._subscriptions = SubscriptionRegistry("preview")

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def listening(self) -> bool:
        return len(self._subscriptions) > 0

    def notify_change(self) -> int:
        self.generation += 1
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.delay_ms, self._fire)
        return self.generation

    def cancel(self) -> None:
        """Drop the pending timer and any outstanding request (Clear All)."""
        self.generation += 1
        self._cancel_timer()
        self._subscriptions.dispose_all()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        paths = tuple(self.store.paths[: self.item_limit])
        if not paths:
            return

        try:
            config = self.make_config(paths)
        except ValueError as e:
            logger.warning("Preview skipped, invalid settings: %s", e)
            return

        generation = self.generation
        self._subscriptions.dispose_all()
        self._active_request = generation

        def on_preview_done(payload: Any) -> None:
            try:
                request_id, results = parse_preview_payload(payload)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Malformed preview response: %s", e)
                self._subscriptions.dispose_all()
                return
            if request_id is not None and request_id != generation:
                # Response to some other request; keep waiting for ours.
                return
            self._subscriptions.dispose_all()
            if generation != self.generation:
                logger.debug("Discarding stale preview (generation %d, current %d)", generation, self.generation)
                return
            self.store.merge_preview(results)

        self._subscriptions.register(self.bus.listen(PREVIEW_DONE, on_preview_done))
        self.requests_sent += 1
        logger.debug("Requesting preview for %d file(s), generation %d", len(paths), generation)

        def on_error(err: BaseException) -> None:
            logger.warning("Preview request failed: %s", err)
            if self._active_request == generation:
                self._subscriptions.dispose_all()

        self.scheduler.run_in_background(
            lambda: self.engine.preview_images(config, generation),
            on_error=on_error,
        )
