from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from rimages.core.events import EventBus
from rimages.core.models import BatchConfiguration


class EngineError(Exception):
    pass


class CodecError(EngineError):
    pass


class CompressionEngine(ABC):
    """
    Contract of the compression engine.

    Requests are plain blocking calls; the orchestrator runs them off its loop.
    Progress and results come back as events on `bus`:

      preview_images  -> one "preview-done" {"request_id", "results"}
      compress_images -> per path "item-started" then "item-finished",
                         finally one "batch-finished"
    """

    def __init__(self, bus: EventBus):
        self.bus = bus

    @abstractmethod
    def get_images_metadata(self, paths: list[str]) -> list[dict[str, Any]]:
        """Return {path, width, height, size} for every readable path."""

    @abstractmethod
    def preview_images(self, config: BatchConfiguration, request_id: int) -> None:
        """Estimate output sizes without writing anything."""

    @abstractmethod
    def compress_images(self, config: BatchConfiguration) -> None:
        """Compress every path into config.output_dir. Raising means nothing was dispatched."""

    @abstractmethod
    def open_folder(self, path: str) -> None:
        """Show `path` in the platform file browser."""
