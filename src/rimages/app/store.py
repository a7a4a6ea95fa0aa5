from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional

from rimages.core.models import (
    ImageMetadata,
    ItemStatus,
    PreviewResult,
    WorkItem,
    is_accepted_path,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]


class WorkItemStore:
    """
    Ordered, unique-by-path collection of WorkItems.

    Every public mutation finishes updating all affected items before change
    observers are notified, so observers never see a half-applied merge.
    """

    def __init__(self) -> None:
        self._items: list[WorkItem] = []
        self._by_path: dict[str, WorkItem] = {}
        self._observers: list[ChangeCallback] = []

    # ---------- Read access ----------

    @property
    def items(self) -> list[WorkItem]:
        return list(self._items)

    @property
    def paths(self) -> list[str]:
        return [item.path for item in self._items]

    def get(self, path: str) -> Optional[WorkItem]:
        return self._by_path.get(path)

    def statuses(self) -> dict[str, ItemStatus]:
        return {item.path: item.status for item in self._items if item.status is not ItemStatus.IDLE}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __iter__(self) -> Iterator[WorkItem]:
        return iter(list(self._items))

    # ---------- Observers ----------

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
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
                logger.exception("Store observer failed")

    # ---------- Item set ----------

    def add_items(self, paths: Iterable[str]) -> list[WorkItem]:
        """Append accepted, not-yet-present paths. Returns the new items in order."""
        added: list[WorkItem] = []
        for path in paths:
            if not path or path in self._by_path:
                continue
            if not is_accepted_path(path):
                logger.debug("Ignoring unsupported file: %s", path)
                continue
            item = WorkItem.from_path(path)
            self._items.append(item)
            self._by_path[path] = item
            added.append(item)

        if added:
            # A preview computed for the previous item set no longer applies.
            self._clear_previews()
            self._notify()
        return added

    def remove_item(self, path: str) -> bool:
        item = self._by_path.pop(path, None)
        if item is None:
            return False
        self._items.remove(item)
        self._clear_previews()
        self._notify()
        return True

    def clear(self) -> None:
        self._items.clear()
        self._by_path.clear()
        self._notify()

    # ---------- Merges keyed by path ----------

    def merge_metadata(self, records: Iterable[ImageMetadata]) -> int:
        updated = 0
        for record in records:
            item = self._by_path.get(record.path)
            if item is None:
                logger.debug("Metadata for unknown path ignored: %s", record.path)
                continue
            item.width = record.width
            item.height = record.height
            item.original_size = record.size
            updated += 1
        if updated:
            self._notify()
        return updated

    def merge_preview(self, results: Iterable[PreviewResult]) -> int:
        updated = 0
        for result in results:
            item = self._by_path.get(result.path)
            if item is None:
                continue
            item.original_size = result.original_size
            item.preview_size = result.preview_size
            updated += 1
        if updated:
            self._notify()
        return updated

    def clear_previews(self) -> None:
        if self._clear_previews():
            self._notify()

    def _clear_previews(self) -> bool:
        changed = False
        for item in self._items:
            if item.preview_size is not None:
                item.preview_size = None
                changed = True
        return changed

    # ---------- Status ----------

    def set_status(
        self,
        path: str,
        status: ItemStatus,
        error_message: Optional[str] = None,
        output_path: Optional[str] = None,
    ) -> bool:
        item = self._by_path.get(path)
        if item is None:
            return False
        item.status = status
        item.error_message = error_message if status is ItemStatus.ERROR else None
        item.output_path = output_path if status is ItemStatus.SUCCESS else None
        self._notify()
        return True

    def reset_statuses(self) -> None:
        for item in self._items:
            item.status = ItemStatus.IDLE
            item.error_message = None
            item.output_path = None
        self._notify()
