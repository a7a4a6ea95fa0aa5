from __future__ import annotations

import math
from typing import Optional

UNKNOWN = "--"
_UNITS = ("B", "KB", "MB", "GB")


def format_bytes(size: Optional[int]) -> str:
    """Human readable size ("1.5 KB"); "--" when the size is not known yet."""
    if size is None:
        return UNKNOWN
    if size == 0:
        return "0 B"
    magnitude = abs(size)
    exponent = 0
    while magnitude >= 1024 and exponent < len(_UNITS) - 1:
        magnitude /= 1024
        exponent += 1
    value = round(size / (1024 ** exponent), 1)
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[exponent]}"


def gain_percent(original_size: Optional[int], preview_size: Optional[int]) -> Optional[int]:
    """Percentage saved by the estimate; negative when the output would grow."""
    if not original_size or preview_size is None:
        return None
    ratio = (original_size - preview_size) / original_size * 100
    return int(math.floor(ratio + 0.5))


def format_gain(percent: Optional[int]) -> str:
    if percent is None:
        return ""
    if percent > 0:
        return f"-{percent}%"
    return f"+{abs(percent)}%"


def format_dimensions(width: Optional[int], height: Optional[int]) -> str:
    if not width or not height:
        return UNKNOWN
    return f"{width}×{height}"
