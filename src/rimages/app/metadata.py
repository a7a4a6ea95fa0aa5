from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from rimages.app.scheduler import Scheduler
from rimages.app.store import WorkItemStore
from rimages.core.models import ImageMetadata
from rimages.engine.base import CompressionEngine

logger = logging.getLogger(__name__)


def parse_metadata(records: Iterable[Any]) -> list[ImageMetadata]:
    parsed: list[ImageMetadata] = []
    for record in records or ():
        if isinstance(record, ImageMetadata):
            parsed.append(record)
            continue
        try:
            parsed.append(ImageMetadata.from_payload(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed metadata record %r: %s", record, e)
    return parsed


class MetadataResolver:
    """Fetches width/height/size for newly added paths and merges them into the store."""

    def __init__(self, store: WorkItemStore, engine: CompressionEngine, scheduler: Scheduler):
        self.store = store
        self.engine = engine
        self.scheduler = scheduler

    def resolve(self, paths: Sequence[str]) -> None:
        paths = list(paths)
        if not paths:
            return

        def on_done(records: Any) -> None:
            merged = self.store.merge_metadata(parse_metadata(records))
            if merged < len(paths):
                logger.info("Metadata unavailable for %d of %d file(s)", len(paths) - merged, len(paths))

        def on_error(err: BaseException) -> None:
            logger.warning("Metadata request failed: %s", err)

        self.scheduler.run_in_background(
            lambda: self.engine.get_images_metadata(paths),
            on_done=on_done,
            on_error=on_error,
        )
