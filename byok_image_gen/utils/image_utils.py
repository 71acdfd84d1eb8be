from __future__ import annotations

from collections.abc import Iterable
from math import gcd

from ..shard import constants as C


def mime_for_format(image_format: str | None, default: str = C.DEFAULT_MIME) -> str:
    """Turn a short format ('png', 'jpeg') or a full mime type into a mime type."""
    if not image_format:
        return default
    fmt = image_format.strip().lower()
    if fmt.startswith("image/"):
        return fmt
    if fmt == "jpg":
        fmt = "jpeg"
    return f"image/{fmt}"


def to_data_url(b64: str, mime: str = C.DEFAULT_MIME) -> str:
    return f"data:{mime};base64,{b64}"


def to_image_url(url: str | None, b64: str | None, *, want_b64: bool, mime: str = C.DEFAULT_MIME) -> str | None:
    """Pick the caller-visible form of one generated image.

    Base64 is wrapped as a data URL when requested or when it is the only
    payload the provider sent. Returns None when the item carries neither.
    """
    if b64 and (want_b64 or not url):
        return to_data_url(b64, mime)
    if url:
        return url
    return None


def size_to_aspect_ratio(size: str | None, allowed: Iterable[str], default: str) -> str:
    """Convert a 'WIDTHxHEIGHT' size to the closest allowed 'W:H' ratio.

    Unparseable sizes return ``default``.
    """
    if not size or "x" not in size.lower():
        return default
    try:
        width, height = (int(part) for part in size.lower().split("x", 1))
    except ValueError:
        return default
    if width <= 0 or height <= 0:
        return default

    divisor = gcd(width, height)
    exact = f"{width // divisor}:{height // divisor}"
    options = list(allowed)
    if exact in options:
        return exact

    target = width / height

    def _distance(ratio: str) -> float:
        w, h = ratio.split(":")
        return abs(int(w) / int(h) - target)

    return min(options, key=_distance) if options else default


__all__ = ["mime_for_format", "to_data_url", "to_image_url", "size_to_aspect_ratio"]
