#!/usr/bin/env python3
"""
Compress a batch of images from the command line.

Usage:
  python -m rimages.cli photos/*.jpg --output out/
  python -m rimages.cli a.png b.png -o out --format avif --quality 60 --max-width 1920
  python -m rimages.cli a.png -o out --preview

Runs the same orchestrator as the desktop window, on a headless loop.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from rimages.app.orchestrator import Orchestrator
from rimages.app.scheduler import LoopScheduler
from rimages.app.state import AppState
from rimages.core import log
from rimages.core.events import EventBus
from rimages.core.formatting import format_bytes, format_gain, gain_percent
from rimages.core.models import MAX_QUALITY, MIN_QUALITY, OUTPUT_FORMATS, ItemStatus, normalize_format
from rimages.engine.local_engine import LocalEngine

PREVIEW_TIMEOUT_SECONDS = 120.0


def _quality(value: str) -> int:
    quality = int(value)
    if not (MIN_QUALITY <= quality <= MAX_QUALITY):
        raise argparse.ArgumentTypeError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}")
    return quality


def _dimension(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("dimension must be a positive integer")
    return number


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Compress images to WebP, AVIF, JPEG or PNG.")
    p.add_argument("images", nargs="+", help="Input images (.jpg .jpeg .png .webp .avif)")
    p.add_argument("--output", "-o", required=True, help="Output directory")
    p.add_argument("--format", "-f", default="webp", choices=OUTPUT_FORMATS + ("jpeg",), help="Output format (default: webp)")
    p.add_argument("--quality", "-q", type=_quality, default=85, help="Quality 10-100 (default: 85)")
    p.add_argument("--max-width", type=_dimension, default=None, help="Shrink wider images to this width")
    p.add_argument("--max-height", type=_dimension, default=None, help="Shrink taller images to this height")
    p.add_argument("--prefix", default=None, help="Prefix for output file names")
    p.add_argument("--suffix", default=None, help="Suffix for output file names (default: -compressed)")
    p.add_argument("--preview", action="store_true", help="Only estimate sizes for the first images; write nothing")
    p.add_argument("--workers", type=int, default=4, help="Parallel encoder threads (default: 4)")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p


def _run_preview(orchestrator: Orchestrator, scheduler: LoopScheduler) -> int:
    debouncer = orchestrator.preview

    def done() -> bool:
        return debouncer.requests_sent > 0 and not debouncer.pending and not debouncer.listening

    if not scheduler.run_until(done, timeout=PREVIEW_TIMEOUT_SECONDS):
        print("ERROR: preview timed out", file=sys.stderr)
        return 2
    for item in orchestrator.items[: debouncer.item_limit]:
        if item.preview_size is None:
            print(f"{item.display_name}{item.extension}: no estimate")
            continue
        gain = format_gain(gain_percent(item.original_size, item.preview_size))
        print(f"{item.display_name}{item.extension}: {format_bytes(item.original_size)} -> ~{format_bytes(item.preview_size)} ({gain})")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    log.configure(logging.DEBUG if args.verbose else log.level_from_env(logging.WARNING))

    scheduler = LoopScheduler()
    bus = EventBus(scheduler.call_soon)
    engine = LocalEngine(bus, max_workers=max(1, args.workers))
    state = AppState(
        output_dir=args.output,
        format=normalize_format(args.format),
        quality=args.quality,
        max_width=args.max_width,
        max_height=args.max_height,
        prefix=args.prefix,
        suffix=args.suffix,
    )
    orchestrator = Orchestrator(engine, bus, scheduler, state, preview_delay_ms=0)

    added = orchestrator.add_files(args.images)
    if not added:
        print("ERROR: no supported images given", file=sys.stderr)
        return 2

    if args.preview:
        return _run_preview(orchestrator, scheduler)

    orchestrator.preview.cancel()
    if not orchestrator.start_compression():
        print("ERROR: nothing to compress", file=sys.stderr)
        return 2
    scheduler.run_until(lambda: not orchestrator.is_processing)

    run = orchestrator.run
    if run.error:
        print(f"ERROR: {run.error}", file=sys.stderr)
        return 2

    for item in orchestrator.items:
        if item.status is ItemStatus.SUCCESS:
            print(f"Saved: {item.output_path}")
        else:
            print(f"Failed: {item.path}: {item.error_message or 'not processed'}", file=sys.stderr)

    summary = orchestrator.summary()
    print(f"{summary.processed_count} / {summary.total_count} compressed")
    return 0 if summary.processed_count == summary.total_count else 1


if __name__ == "__main__":
    raise SystemExit(main())
