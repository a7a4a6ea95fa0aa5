from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from rimages.core.models import MAX_QUALITY, MIN_QUALITY, BatchConfiguration, RunState

DEFAULT_FORMAT = "webp"
DEFAULT_QUALITY = 85


@dataclass
class AppState:
    """
    Mutable state for a single session.

    The UI edits the settings fields; the orchestrator snapshots them into an
    immutable BatchConfiguration whenever a preview or a batch starts.
    """
    # Output settings
    output_dir: str = ""
    format: str = DEFAULT_FORMAT
    quality: int = DEFAULT_QUALITY
    max_width: Optional[int] = None
    max_height: Optional[int] = None

    # Naming rules
    prefix: Optional[str] = None
    suffix: Optional[str] = None

    # Current batch run
    run: RunState = field(default_factory=RunState)

    def preview_key(self) -> tuple:
        """The settings a preview estimate depends on."""
        return (self.format, self.quality, self.max_width, self.max_height)

    def snapshot(self, paths: Iterable[str], output_dir: Optional[str] = None) -> BatchConfiguration:
        return BatchConfiguration(
            paths=tuple(paths),
            output_dir=self.output_dir if output_dir is None else output_dir,
            format=self.format,
            quality=self.quality,
            max_width=self.max_width,
            max_height=self.max_height,
            prefix=self.prefix,
            suffix=self.suffix,
        )

    def reset(self) -> None:
        """Forget the current run (used by Clear All). Settings are kept."""
        self.run = RunState()


def clamp_quality(value: object) -> int:
    try:
        quality = int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_QUALITY
    return max(MIN_QUALITY, min(MAX_QUALITY, quality))


def parse_dimension(value: object) -> Optional[int]:
    """Text field value -> positive int, or None for empty/invalid ("no constraint")."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = int(float(text))
    except ValueError:
        return None
    return number if number > 0 else None
