from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from rimages.app.dispatcher import BatchDispatcher
from rimages.app.metadata import MetadataResolver
from rimages.app.preview import PREVIEW_DELAY_MS, PREVIEW_ITEM_LIMIT, PreviewDebouncer
from rimages.app.progress import ProgressSummary, summarize
from rimages.app.scheduler import Scheduler
from rimages.app.state import AppState
from rimages.app.store import WorkItemStore
from rimages.core.events import EventBus
from rimages.core.models import (
    MAX_QUALITY,
    MIN_QUALITY,
    OUTPUT_FORMATS,
    BatchConfiguration,
    RunState,
    WorkItem,
    normalize_format,
)
from rimages.engine.base import CompressionEngine

logger = logging.getLogger(__name__)

Observer = Callable[[], None]


class Orchestrator:
    """
    Entry point for every user intent.

    Owns the item store, the session settings, the preview debouncer and the
    batch dispatcher. The engine's events reach it through `bus`, which must
    deliver on the same loop as `scheduler`.
    """

    def __init__(
        self,
        engine: CompressionEngine,
        bus: EventBus,
        scheduler: Scheduler,
        state: Optional[AppState] = None,
        *,
        preview_delay_ms: int = PREVIEW_DELAY_MS,
        preview_limit: int = PREVIEW_ITEM_LIMIT,
    ):
        self.engine = engine
        self.bus = bus
        self.scheduler = scheduler
        self.state = state or AppState()
        self.store = WorkItemStore()
        self._observers: list[Observer] = []

        self.metadata = MetadataResolver(self.store, engine, scheduler)
        self.preview = PreviewDebouncer(
            self.store,
            engine,
            bus,
            scheduler,
            self._preview_config,
            delay_ms=preview_delay_ms,
            item_limit=preview_limit,
        )
        self.dispatcher = BatchDispatcher(
            self.store,
            engine,
            bus,
            scheduler,
            self._batch_config,
            on_state_change=self._on_run_state,
        )
        self.store.subscribe(self._notify)

    # ---------- Observers ----------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback()
            except Exception:
                logger.exception("Observer failed")

    def _on_run_state(self, run: RunState) -> None:
        self.state.run = run
        self._notify()

    # ---------- Derived view ----------

    @property
    def items(self) -> list[WorkItem]:
        return self.store.items

    @property
    def run(self) -> RunState:
        return self.state.run

    @property
    def is_processing(self) -> bool:
        return self.state.run.is_processing

    @property
    def can_start(self) -> bool:
        return len(self.store) > 0 and bool(self.state.output_dir) and not self.is_processing

    def summary(self) -> ProgressSummary:
        return summarize(self.store.items, self.state.run)

    # ---------- Item set ----------

    def add_files(self, paths: Iterable[str]) -> list[WorkItem]:
        added = self.store.add_items(paths)
        if added:
            logger.info("Added %d file(s)", len(added))
            self.metadata.resolve([item.path for item in added])
            self.preview.notify_change()
        return added

    def remove_file(self, path: str) -> bool:
        if not self.store.remove_item(path):
            return False
        self.preview.notify_change()
        return True

    def clear(self) -> None:
        self.preview.cancel()
        self.dispatcher.reset()
        self.store.clear()
        self.state.reset()
        self._notify()

    # ---------- Settings ----------

    def set_format(self, fmt: str) -> None:
        value = normalize_format(fmt)
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {fmt!r}")
        self._update_preview_setting("format", value)

    def set_quality(self, quality: int) -> None:
        if not (MIN_QUALITY <= int(quality) <= MAX_QUALITY):
            raise ValueError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}")
        self._update_preview_setting("quality", int(quality))

    def set_max_width(self, value: Optional[int]) -> None:
        self._update_preview_setting("max_width", _positive_or_none(value, "max_width"))

    def set_max_height(self, value: Optional[int]) -> None:
        self._update_preview_setting("max_height", _positive_or_none(value, "max_height"))

    def set_output_dir(self, path: str) -> None:
        self.state.output_dir = path or ""
        self._notify()

    def set_naming(self, prefix: Optional[str] = None, suffix: Optional[str] = None) -> None:
        """
        Set output naming rules.

        An empty prefix is the same as no prefix. The suffix is stored as is:
        None means the engine default ("-compressed"), "" means no suffix.
        """
        self.state.prefix = prefix or None
        self.state.suffix = suffix
        self._notify()

    def _update_preview_setting(self, name: str, value: object) -> None:
        if getattr(self.state, name) == value:
            return
        setattr(self.state, name, value)
        if len(self.store):
            self.preview.notify_change()
        self._notify()

    # ---------- Runs ----------

    def start_compression(self) -> bool:
        if not self.can_start:
            return False
        return self.dispatcher.start()

    def open_output_folder(self) -> None:
        folder = self.state.output_dir
        if not folder:
            return
        self.scheduler.run_in_background(
            lambda: self.engine.open_folder(folder),
            on_error=lambda err: logger.warning("Could not open %s: %s", folder, err),
        )

    def _preview_config(self, paths: tuple[str, ...]) -> BatchConfiguration:
        return self.state.snapshot(paths).for_preview(paths)

    def _batch_config(self, paths: tuple[str, ...]) -> BatchConfiguration:
        return self.state.snapshot(paths)


def _positive_or_none(value: Optional[int], name: str) -> Optional[int]:
    if value is None:
        return None
    if int(value) <= 0:
        raise ValueError(f"{name} must be a positive integer or None")
    return int(value)
