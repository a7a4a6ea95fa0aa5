from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from rimages.core.models import ItemStatus, RunState, WorkItem


@dataclass(frozen=True)
class ProgressSummary:
    processed_count: int
    failed_count: int
    total_count: int
    total_bytes_saved: int
    is_processing: bool
    is_complete: bool

    @property
    def finished_count(self) -> int:
        """Items no longer pending (successes and errors)."""
        return self.processed_count + self.failed_count

    @property
    def fraction(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return min(1.0, self.processed_count / self.total_count)


def summarize(items: Iterable[WorkItem], run: RunState) -> ProgressSummary:
    """Derive progress from item statuses and the run state. Holds no state of its own."""
    processed = 0
    failed = 0
    saved = 0
    count = 0
    for item in items:
        count += 1
        if item.status is ItemStatus.SUCCESS:
            processed += 1
            if item.original_size is not None and item.preview_size is not None:
                saved += item.original_size - item.preview_size
        elif item.status is ItemStatus.ERROR:
            failed += 1

    total = run.total_count if run.run_id else count
    return ProgressSummary(
        processed_count=processed,
        failed_count=failed,
        total_count=total,
        total_bytes_saved=saved,
        is_processing=run.is_processing,
        is_complete=run.is_complete,
    )
