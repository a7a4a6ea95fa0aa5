from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

ACCEPTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".avif")
OUTPUT_FORMATS = ("webp", "avif", "jpg", "png")
FORMAT_ALIASES = {"jpeg": "jpg"}

MIN_QUALITY = 10
MAX_QUALITY = 100


class ItemStatus(Enum):
    """Lifecycle of a single file through a batch run."""
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCESS, ItemStatus.ERROR)


class RunPhase(Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    RUNNING = "running"
    FINISHED = "finished"


def split_display_name(path: str) -> tuple[str, str]:
    """
    Split a path into (display name, extension).

    The file name is whatever follows the last `/` or `\\`; the extension starts
    at its last dot and keeps the dot ("photo.JPG" -> ("photo", ".JPG")).
    """
    name = path.replace("\\", "/").rsplit("/", 1)[-1] or "image"
    dot = name.rfind(".")
    if dot < 0:
        return name, ""
    return name[:dot], name[dot:]


def is_accepted_path(path: str) -> bool:
    return path.lower().endswith(ACCEPTED_EXTENSIONS)


def normalize_format(fmt: str) -> str:
    value = (fmt or "").strip().lower()
    return FORMAT_ALIASES.get(value, value)


@dataclass
class WorkItem:
    """One user-selected file tracked through ingestion, preview and compression."""
    path: str
    display_name: str
    extension: str
    original_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    preview_size: Optional[int] = None
    status: ItemStatus = ItemStatus.IDLE
    error_message: Optional[str] = None
    output_path: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "WorkItem":
        name, extension = split_display_name(path)
        return cls(path=path, display_name=name, extension=extension)

    @property
    def has_dimensions(self) -> bool:
        return bool(self.width and self.height)


@dataclass(frozen=True)
class BatchConfiguration:
    """
    Immutable snapshot of the settings a run (preview or full batch) was started with.

    output_dir:
        Destination folder. Empty for previews, which never write to disk.
    quality:
        Encoder quality, 10..100 inclusive.
    max_width / max_height:
        Bounding box the output must fit in. None means no constraint.
    prefix / suffix / custom_names:
        Optional naming rules for written files. custom_names maps an input
        path to the output stem to use for it.
    """
    paths: tuple[str, ...]
    output_dir: str = ""
    format: str = "webp"
    quality: int = 85
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    custom_names: Optional[dict[str, str]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(self.paths))
        object.__setattr__(self, "format", normalize_format(self.format))
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {self.format!r}")
        if isinstance(self.quality, bool) or not isinstance(self.quality, int):
            raise ValueError("quality must be an integer")
        if not (MIN_QUALITY <= self.quality <= MAX_QUALITY):
            raise ValueError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}")
        for name in ("max_width", "max_height"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
                raise ValueError(f"{name} must be a positive integer or None")

    @property
    def is_preview(self) -> bool:
        return not self.output_dir

    def to_payload(self) -> dict[str, Any]:
        return {
            "paths": list(self.paths),
            "output_dir": self.output_dir,
            "format": self.format,
            "quality": self.quality,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "prefix": self.prefix,
            "suffix": self.suffix,
            "custom_names": dict(self.custom_names) if self.custom_names is not None else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BatchConfiguration":
        return cls(
            paths=tuple(payload.get("paths") or ()),
            output_dir=payload.get("output_dir") or "",
            format=payload.get("format", "webp"),
            quality=payload.get("quality", 85),
            max_width=payload.get("max_width"),
            max_height=payload.get("max_height"),
            prefix=payload.get("prefix"),
            suffix=payload.get("suffix"),
            custom_names=payload.get("custom_names"),
        )

    def for_preview(self, paths: tuple[str, ...]) -> "BatchConfiguration":
        return replace(self, paths=tuple(paths), output_dir="", prefix=None, suffix=None, custom_names=None)


@dataclass
class RunState:
    """State of the current full batch run. A fresh instance means no run yet."""
    phase: RunPhase = RunPhase.IDLE
    run_id: int = 0
    total_count: int = 0
    is_complete: bool = False
    error: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self.phase in (RunPhase.DISPATCHING, RunPhase.RUNNING)


@dataclass(frozen=True)
class ImageMetadata:
    path: str
    width: int
    height: int
    size: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ImageMetadata":
        return cls(
            path=str(payload["path"]),
            width=int(payload["width"]),
            height=int(payload["height"]),
            size=int(payload["size"]),
        )

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "width": self.width, "height": self.height, "size": self.size}


@dataclass(frozen=True)
class PreviewResult:
    path: str
    original_size: int
    preview_size: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PreviewResult":
        return cls(
            path=str(payload["path"]),
            original_size=int(payload["original_size"]),
            preview_size=int(payload["preview_size"]),
        )

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "original_size": self.original_size, "preview_size": self.preview_size}


@dataclass(frozen=True)
class ProcessResult:
    """Payload of an item-finished event."""
    original: str
    status: str
    error_msg: Optional[str] = None
    new_path: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ItemStatus.SUCCESS.value

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProcessResult":
        return cls(
            original=str(payload["original"]),
            status=str(payload.get("status", ItemStatus.ERROR.value)),
            error_msg=payload.get("error_msg"),
            new_path=payload.get("new_path"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "original": self.original,
            "status": self.status,
            "error_msg": self.error_msg,
            "new_path": self.new_path,
        }

