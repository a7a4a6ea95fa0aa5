"""
Pillow encoders used by the local engine.

Each encoder takes an already loaded (and resized) image and returns the
encoded bytes; callers decide whether to measure or write them.
"""

from __future__ import annotations

import io
from typing import Callable, Optional, Tuple

import numpy as np
from PIL import Image, ImageOps

from rimages.engine.base import CodecError

AVIF_SPEED = 4
PNG_QUALITY_SPREAD = 20


def load_image(path: str) -> Image.Image:
    """Open an image and apply its EXIF orientation."""
    img = Image.open(path)
    img = ImageOps.exif_transpose(img)
    img.load()
    return img


def _has_transparency(img: Image.Image) -> bool:
    if img.mode in ("RGBA", "LA"):
        alpha = np.asarray(img.getchannel("A"))
        return bool(alpha.size) and int(alpha.min()) < 255
    if img.mode == "P":
        return "transparency" in img.info
    return False


def _flatten(img: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """RGB copy of `img`; transparent areas are composited onto `background`."""
    if not _has_transparency(img):
        return img.convert("RGB") if img.mode != "RGB" else img
    rgba = img.convert("RGBA")
    base = Image.new("RGBA", rgba.size, background + (255,))
    return Image.alpha_composite(base, rgba).convert("RGB")


def _color_mode(img: Image.Image) -> Image.Image:
    if _has_transparency(img):
        return img.convert("RGBA") if img.mode != "RGBA" else img
    return img.convert("RGB") if img.mode != "RGB" else img


def fit_within(width: int, height: int, max_width: Optional[int], max_height: Optional[int]) -> Tuple[int, int]:
    """Largest size with the same aspect ratio inside the bounds. Never upscales."""
    if width <= 0 or height <= 0:
        return width, height
    scale = 1.0
    if max_width:
        scale = min(scale, max_width / width)
    if max_height:
        scale = min(scale, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, int(width * scale)), max(1, int(height * scale))


def resize_to_fit(
    img: Image.Image,
    max_width: Optional[int],
    max_height: Optional[int],
    resample: int = Image.LANCZOS,
) -> Image.Image:
    new_size = fit_within(img.width, img.height, max_width, max_height)
    if new_size == img.size:
        return img
    return img.resize(new_size, resample)


def png_colors_for_quality(quality: int) -> int:
    """Palette size for PNG quantization: 256 colors at quality 100, fewer below."""
    low = max(0, quality - PNG_QUALITY_SPREAD)
    target = (low + quality) / 2.0
    return max(2, min(256, int(round(256 * target / 100.0))))


def encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    _flatten(img).save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def encode_webp(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    _color_mode(img).save(buf, format="WEBP", quality=quality, method=4)
    return buf.getvalue()


def encode_avif(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    try:
        _color_mode(img).save(buf, format="AVIF", quality=quality, speed=AVIF_SPEED)
    except KeyError as e:
        raise CodecError("AVIF encoding is not available in this Pillow build") from e
    return buf.getvalue()


def encode_png(img: Image.Image, quality: int) -> bytes:
    colors = png_colors_for_quality(quality)
    src = _color_mode(img)
    method = Image.Quantize.FASTOCTREE if src.mode == "RGBA" else Image.Quantize.MEDIANCUT
    quantized = src.quantize(colors=colors, method=method, dither=Image.Dither.FLOYDSTEINBERG)
    buf = io.BytesIO()
    quantized.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


ENCODERS: dict[str, Callable[[Image.Image, int], bytes]] = {
    "jpg": encode_jpeg,
    "webp": encode_webp,
    "avif": encode_avif,
    "png": encode_png,
}


def encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    encoder = ENCODERS.get(fmt)
    if encoder is None:
        raise CodecError(f"Unsupported output format: {fmt}")
    try:
        return encoder(img, quality)
    except CodecError:
        raise
    except (OSError, ValueError, KeyError) as e:
        raise CodecError(f"{fmt.upper()} encoding failed: {e}") from e
