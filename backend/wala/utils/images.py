"""Image upload validation and resizing with Pillow."""

from __future__ import annotations

import io
import logging

from PIL import Image

_LOGGER = logging.getLogger("wala.images")

MAX_WIDTH = 800
MAX_HEIGHT = 600
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}
_FORMATS = {"image/png": "PNG", "image/gif": "GIF"}


def validate_image(data: bytes, content_type: str | None, max_bytes: int) -> None:
    """Raise ValueError unless `data` is an allowed, decodable image within `max_bytes`."""
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError("image must be JPEG, PNG or GIF")
    if len(data) > max_bytes:
        raise ValueError(f"image too large (max {max_bytes // (1024 * 1024)} MB)")
    try:
        Image.open(io.BytesIO(data)).verify()
    except Exception:
        raise ValueError("file is not a valid image")


def _format_name(content_type: str | None) -> str:
    return _FORMATS.get(content_type or "", "JPEG")


def resize_image(data: bytes, content_type: str | None) -> bytes:
    """Return `data` scaled to fit within MAX_WIDTH x MAX_HEIGHT.

    Images already inside the box are returned untouched. Larger ones keep
    their aspect ratio and are re-encoded in the format implied by
    `content_type` (JPEG by default).
    """
    img = Image.open(io.BytesIO(data))
    width, height = img.size
    if width <= MAX_WIDTH and height <= MAX_HEIGHT:
        return data
    fmt = _format_name(content_type)
    resized = img.copy()
    resized.thumbnail((MAX_WIDTH, MAX_HEIGHT), Image.Resampling.LANCZOS)
    if fmt == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    out = io.BytesIO()
    resized.save(out, format=fmt)
    _LOGGER.info("image resized from %dx%d to %dx%d", width, height, *resized.size)
    return out.getvalue()
