from __future__ import annotations

import heapq
import itertools
import logging
import queue
import threading
import time
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]
ResultCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """
    The single cooperative loop every store mutation runs on.

    `run_in_background` executes a blocking call on a worker thread and posts
    its outcome back to the loop: exactly one of `on_done` / `on_error` runs.
    """

    def call_soon(self, callback: Callback) -> None: ...

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle: ...

    def run_in_background(
        self,
        func: Callable[[], Any],
        on_done: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None: ...


def _background(
    scheduler: Scheduler,
    func: Callable[[], Any],
    on_done: Optional[ResultCallback],
    on_error: Optional[ErrorCallback],
) -> None:
    def worker() -> None:
        try:
            result = func()
        except Exception as e:
            err = e

            def fail_on_loop() -> None:
                if on_error is not None:
                    on_error(err)
                else:
                    logger.error("Background call failed: %s", err, exc_info=err)

            scheduler.call_soon(fail_on_loop)
            return

        if on_done is not None:
            scheduler.call_soon(lambda: on_done(result))

    threading.Thread(target=worker, daemon=True).start()


class _TkTimer:
    def __init__(self, master: Any, after_id: str):
        self._master = master
        self._after_id: Optional[str] = after_id

    def cancel(self) -> None:
        if self._after_id is None:
            return
        try:
            self._master.after_cancel(self._after_id)
        except Exception:
            logger.debug("after_cancel failed for %s", self._after_id)
        self._after_id = None


class TkScheduler:
    """Scheduler backed by the Tk event loop (`after` / `after_cancel`)."""

    def __init__(self, master: Any):
        self.master = master

    def call_soon(self, callback: Callback) -> None:
        self.master.after(0, callback)

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle:
        return _TkTimer(self.master, self.master.after(delay_ms, callback))

    def run_in_background(
        self,
        func: Callable[[], Any],
        on_done: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        _background(self, func, on_done, on_error)


class _LoopTimer:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class LoopScheduler:
    """
    Headless scheduler: callbacks are queued from any thread and executed by
    whichever thread calls `run_until` (the CLI's main thread).
    """

    def __init__(self) -> None:
        self._ready: queue.Queue[Callback] = queue.Queue()
        self._timers: list[tuple[float, int, _LoopTimer, Callback]] = []
        self._timers_lock = threading.Lock()
        self._seq = itertools.count()

    def call_soon(self, callback: Callback) -> None:
        self._ready.put(callback)

    def call_later(self, delay_ms: int, callback: Callback) -> TimerHandle:
        timer = _LoopTimer()
        due = time.monotonic() + max(0, delay_ms) / 1000.0
        with self._timers_lock:
            heapq.heappush(self._timers, (due, next(self._seq), timer, callback))
        return timer

    def run_in_background(
        self,
        func: Callable[[], Any],
        on_done: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        _background(self, func, on_done, on_error)

    def _pop_due_timers(self) -> tuple[list[Callback], Optional[float]]:
        now = time.monotonic()
        due: list[Callback] = []
        with self._timers_lock:
            while self._timers and self._timers[0][0] <= now:
                _, _, timer, callback = heapq.heappop(self._timers)
                if not timer.cancelled:
                    due.append(callback)
            next_due = self._timers[0][0] if self._timers else None
        return due, next_due

    def run_until(self, predicate: Callable[[], bool], timeout: Optional[float] = None) -> bool:
        """Run callbacks until `predicate()` is true. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            due, next_due = self._pop_due_timers()
            for callback in due:
                callback()
            if due:
                continue

            now = time.monotonic()
            if deadline is not None and now >= deadline:
                return False
            wait = 0.1
            if next_due is not None:
                wait = min(wait, max(0.0, next_due - now))
            if deadline is not None:
                wait = min(wait, max(0.0, deadline - now))
            try:
                callback = self._ready.get(timeout=wait)
            except queue.Empty:
                continue
            callback()
        return True
