from __future__ import annotations

import concurrent.futures as _futures
import logging
import os
import platform
import subprocess
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from rimages.core.events import BATCH_FINISHED, ITEM_FINISHED, ITEM_STARTED, PREVIEW_DONE, EventBus
from rimages.core.models import BatchConfiguration, ImageMetadata, PreviewResult, ProcessResult
from rimages.engine import codecs
from rimages.engine.base import CompressionEngine, EngineError

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
PROXY_SIZE = 256
DEFAULT_SUFFIX = "-compressed"


def write_unique(path: Path, data: bytes) -> Path:
    """
    Write `data` to `path`, or to `stem-1.ext`, `stem-2.ext`, ... when taken.

    Exclusive creation keeps two workers from claiming the same name.
    """
    candidate = path
    counter = 1
    while True:
        try:
            with open(candidate, "xb") as handle:
                handle.write(data)
            return candidate
        except FileExistsError:
            candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
            counter += 1


def output_name(source: str, config: BatchConfiguration) -> str:
    ext = "jpg" if config.format in ("jpg", "jpeg") else config.format
    custom = (config.custom_names or {}).get(source)
    if custom:
        return f"{Path(custom).stem}.{ext}"
    stem = Path(source).stem
    suffix = DEFAULT_SUFFIX if config.suffix is None else config.suffix
    return f"{config.prefix or ''}{stem}{suffix}.{ext}"


def estimate_size(path: str, config: BatchConfiguration, proxy_size: int = PROXY_SIZE) -> PreviewResult:
    """
    Estimate the compressed size of `path` without writing anything.

    Large outputs are encoded from a small proxy and the byte count is scaled
    by the area ratio between the final size and the proxy.
    """
    original_size = os.path.getsize(path)
    img = codecs.load_image(path)
    final_w, final_h = codecs.fit_within(img.width, img.height, config.max_width, config.max_height)

    if final_w > proxy_size:
        proxy = img.copy()
        proxy.thumbnail((proxy_size, proxy_size), Image.BILINEAR)
        ratio = (final_w * final_h) / float(proxy.width * proxy.height)
    else:
        proxy = img.resize((final_w, final_h), Image.BILINEAR) if (final_w, final_h) != img.size else img
        ratio = 1.0

    encoded = codecs.encode(proxy, config.format, config.quality)
    return PreviewResult(path=path, original_size=original_size, preview_size=int(len(encoded) * ratio))


def compress_one(path: str, config: BatchConfiguration) -> ProcessResult:
    try:
        img = codecs.load_image(path)
    except (OSError, ValueError) as e:
        return ProcessResult(original=path, status="error", error_msg=f"Open failed: {e}")

    try:
        final_img = codecs.resize_to_fit(img, config.max_width, config.max_height)
        data = codecs.encode(final_img, config.format, config.quality)
        target = write_unique(Path(config.output_dir) / output_name(path, config), data)
    except (EngineError, OSError) as e:
        return ProcessResult(original=path, status="error", error_msg=str(e))

    return ProcessResult(original=path, status="success", new_path=str(target))


class LocalEngine(CompressionEngine):
    """In-process engine: Pillow encoders on a thread pool."""

    def __init__(self, bus: EventBus, max_workers: int = DEFAULT_WORKERS, proxy_size: int = PROXY_SIZE):
        super().__init__(bus)
        self.max_workers = max_workers
        self.proxy_size = proxy_size

    def get_images_metadata(self, paths: list[str]) -> list[dict[str, Any]]:
        with _futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            found = list(pool.map(self._read_metadata, paths))
        return [meta.to_payload() for meta in found if meta is not None]

    @staticmethod
    def _read_metadata(path: str) -> Optional[ImageMetadata]:
        try:
            size = os.path.getsize(path)
            # Opening is lazy: only the header is parsed.
            with Image.open(path) as img:
                width, height = img.size
        except (OSError, ValueError) as e:
            logger.debug("No metadata for %s: %s", path, e)
            return None
        return ImageMetadata(path=path, width=width, height=height, size=size)

    def preview_images(self, config: BatchConfiguration, request_id: int) -> None:
        def estimate(path: str) -> Optional[PreviewResult]:
            try:
                return estimate_size(path, config, self.proxy_size)
            except (EngineError, OSError, ValueError) as e:
                logger.debug("Preview skipped for %s: %s", path, e)
                return None

        with _futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = [r for r in pool.map(estimate, config.paths) if r is not None]

        self.bus.emit(
            PREVIEW_DONE,
            {"request_id": request_id, "results": [r.to_payload() for r in results]},
        )

    def compress_images(self, config: BatchConfiguration) -> None:
        if not config.output_dir:
            raise EngineError("No output directory")
        try:
            Path(config.output_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EngineError(f"Cannot use output directory {config.output_dir}: {e}") from e

        def work(path: str) -> None:
            self.bus.emit(ITEM_STARTED, path)
            try:
                result = compress_one(path, config)
            except Exception as e:
                logger.error(f"Failed to process {path}: {e}", exc_info=True)
                result = ProcessResult(original=path, status="error", error_msg=str(e))
            self.bus.emit(ITEM_FINISHED, result.to_payload())

        try:
            with _futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                list(pool.map(work, config.paths))
        finally:
            self.bus.emit(BATCH_FINISHED, None)

    def open_folder(self, path: str) -> None:
        system = platform.system()
        if system == "Windows":
            command = ["explorer", path]
        elif system == "Darwin":
            command = ["open", path]
        else:
            command = ["xdg-open", path]
        subprocess.Popen(command)
