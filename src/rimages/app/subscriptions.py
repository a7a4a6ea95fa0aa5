from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Disposer = Callable[[], None]


class SubscriptionRegistry:
    """
    Owns the disposers of every event-channel listener installed for one run.

    `dispose_all` is idempotent and must run before a new listener set is
    installed and again whenever the run ends, whatever the exit path.
    """

    def __init__(self, name: str = "run"):
        self.name = name
        self._disposers: list[Disposer] = []

    def __len__(self) -> int:
        return len(self._disposers)

    def register(self, disposer: Disposer) -> None:
        self._disposers.append(disposer)

    def dispose_all(self) -> int:
        # Swap first: a disposer that triggers another dispose_all sees an empty registry.
        disposers, self._disposers = self._disposers, []
        for disposer in disposers:
            try:
                disposer()
            except Exception:
                logger.exception("Failed to dispose a %s listener", self.name)
        if disposers:
            logger.debug("Disposed %d %s listener(s)", len(disposers), self.name)
        return len(disposers)
