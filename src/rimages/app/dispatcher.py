from __future__ import annotations

import itertools
import logging
from typing import Any, Callable

from rimages.app.scheduler import Scheduler
from rimages.app.store import WorkItemStore
from rimages.app.subscriptions import SubscriptionRegistry
from rimages.core.events import BATCH_FINISHED, ITEM_FINISHED, ITEM_STARTED, EventBus
from rimages.core.models import BatchConfiguration, ItemStatus, ProcessResult, RunPhase, RunState
from rimages.engine.base import CompressionEngine

logger = logging.getLogger(__name__)

ConfigFactory = Callable[[tuple[str, ...]], BatchConfiguration]
RunStateSink = Callable[[RunState], None]


class BatchDispatcher:
    """
    Runs one full batch at a time: IDLE -> DISPATCHING -> RUNNING -> FINISHED.

    Per-item events are folded into the store keyed by path. The success count
    is derived from item statuses, so a repeated item-finished event cannot
    count twice.
    """

    def __init__(
        self,
        store: WorkItemStore,
        engine: CompressionEngine,
        bus: EventBus,
        scheduler: Scheduler,
        make_config: ConfigFactory,
        on_state_change: RunStateSink | None = None,
    ):
        self.store = store
        self.engine = engine
        self.bus = bus
        self.scheduler = scheduler
        self.make_config = make_config
        self.on_state_change = on_state_change

        self.run = RunState()
        self.last_config: BatchConfiguration | None = None
        self._subscriptions = SubscriptionRegistry("batch")
        self._run_ids = itertools.count(1)

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    def start(self) -> bool:
        paths = tuple(self.store.paths)
        if not paths or self.run.is_processing:
            return False

        try:
            config = self.make_config(paths)
        except ValueError as e:
            logger.warning("Batch not started, invalid settings: %s", e)
            return False
        if not config.output_dir:
            return False

        self._subscriptions.dispose_all()
        self.store.reset_statuses()
        run_id = next(self._run_ids)
        self._set_run(RunState(phase=RunPhase.DISPATCHING, run_id=run_id, total_count=len(paths)))
        self.last_config = config

        self._subscriptions.register(self.bus.listen(ITEM_STARTED, lambda p: self._on_item_started(run_id, p)))
        self._subscriptions.register(self.bus.listen(ITEM_FINISHED, lambda p: self._on_item_finished(run_id, p)))
        self._subscriptions.register(self.bus.listen(BATCH_FINISHED, lambda _p: self._on_batch_finished(run_id)))

        logger.info(
            "Starting batch %d: %d file(s) -> %s (%s, quality %d)",
            run_id, len(paths), config.output_dir, config.format, config.quality,
        )
        self.run.phase = RunPhase.RUNNING
        self._changed()

        self.scheduler.run_in_background(
            lambda: self.engine.compress_images(config),
            on_error=lambda err: self._on_dispatch_failed(run_id, err),
        )
        return True

    def reset(self) -> None:
        """Drop listeners and return to IDLE (Clear All)."""
        self._subscriptions.dispose_all()
        self._set_run(RunState())

    # ---------- Event handlers ----------

    def _is_current(self, run_id: int) -> bool:
        return run_id == self.run.run_id and self.run.phase is RunPhase.RUNNING

    def _on_item_started(self, run_id: int, payload: Any) -> None:
        if not self._is_current(run_id):
            return
        path = str(payload)
        item = self.store.get(path)
        if item is None or item.status.is_terminal:
            return
        self.store.set_status(path, ItemStatus.PROCESSING)

    def _on_item_finished(self, run_id: int, payload: Any) -> None:
        if not self._is_current(run_id):
            return
        try:
            result = payload if isinstance(payload, ProcessResult) else ProcessResult.from_payload(payload)
        except (KeyError, TypeError) as e:
            logger.warning("Malformed item-finished payload %r: %s", payload, e)
            return

        item = self.store.get(result.original)
        if item is None:
            logger.debug("item-finished for unknown path ignored: %s", result.original)
            return
        if item.status.is_terminal:
            logger.debug("Duplicate item-finished ignored: %s", result.original)
            return

        if result.succeeded:
            self.store.set_status(result.original, ItemStatus.SUCCESS, output_path=result.new_path)
        else:
            message = result.error_msg or "Unknown error"
            logger.warning("Failed to compress %s: %s", result.original, message)
            self.store.set_status(result.original, ItemStatus.ERROR, error_message=message)

    def _on_batch_finished(self, run_id: int) -> None:
        if not self._is_current(run_id):
            return
        self.run.phase = RunPhase.FINISHED
        self.run.is_complete = True
        self._subscriptions.dispose_all()
        logger.info("Batch %d finished", run_id)
        self._changed()

    def _on_dispatch_failed(self, run_id: int, err: BaseException) -> None:
        logger.error("Batch %d could not be dispatched: %s", run_id, err)
        if not self._is_current(run_id):
            return
        self.run.phase = RunPhase.FINISHED
        self.run.error = str(err) or err.__class__.__name__
        self._subscriptions.dispose_all()
        self._changed()

    # ---------- Helpers ----------

    def _set_run(self, run: RunState) -> None:
        self.run = run
        self._changed()

    def _changed(self) -> None:
        if self.on_state_change is not None:
            self.on_state_change(self.run)
