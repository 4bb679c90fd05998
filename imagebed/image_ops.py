"""Image manipulation utilities.

This module wraps the Pillow operations the pipeline needs: decoding
uploaded bytes, resampling to new dimensions and re-encoding into a
given container. The compressor and the format converter build on these
helpers and never touch Pillow directly.

Only four source containers are accepted (JPEG, PNG, GIF and WebP).
Encoders map the pipeline's single 0-100 quality knob onto what each
container understands; for PNG a higher quality means a *lower* zlib
compression level.
"""

from __future__ import annotations

from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError  # type: ignore[import]

SOURCE_FORMATS = ("JPEG", "PNG", "GIF", "WEBP")

MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "AVIF": "image/avif",
}

EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "AVIF": "avif",
}


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded as an image."""


class EncodeError(RuntimeError):
    """Raised when Pillow fails to encode an image."""


def open_image(data: bytes) -> Image.Image:
    """Decode raw image bytes, loading the pixel data eagerly.

    Raises:
        DecodeError: If Pillow does not recognise or cannot read the data,
            or the pixel count exceeds Pillow's decompression-bomb limit.
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(str(exc)) from exc
    return img


def has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info


def codec_available(fmt: str) -> bool:
    """Whether the installed Pillow can write ``fmt`` (e.g. ``"WEBP"``)."""
    Image.init()
    return fmt.upper() in Image.SAVE


def png_compress_level(quality: int) -> int:
    """Map a 0-100 quality onto zlib level 9-0."""
    return int(9 - (quality / 100) * 9)


def resample(img: Image.Image, size: Tuple[int, int], fmt: str) -> Image.Image:
    """Resize ``img`` to ``size`` in a mode suitable for ``fmt``.

    PNG and WebP keep their alpha channel; JPEG is flattened to RGB.
    Palette images are expanded first so resampling is not limited to
    nearest-neighbour.
    """
    width, height = max(1, size[0]), max(1, size[1])
    if fmt in ("PNG", "WEBP", "GIF") and has_alpha(img):
        work = img.convert("RGBA")
    elif img.mode not in ("RGB", "L"):
        work = img.convert("RGB")
    else:
        work = img
    if work.size == (width, height):
        return work.copy() if work is img else work
    return work.resize((width, height), Image.Resampling.LANCZOS)


def encode(img: Image.Image, fmt: str, quality: Optional[int] = None) -> bytes:
    """Encode ``img`` into container ``fmt`` and return the bytes.

    Args:
        img: Decoded image.
        fmt: Pillow format name, e.g. ``"JPEG"`` or ``"AVIF"``.
        quality: 0-100; ignored for GIF, mapped to a compression level for PNG.

    Raises:
        EncodeError: If Pillow cannot write the image.
    """
    params = {}
    if fmt == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        params = {"quality": quality if quality is not None else 85, "optimize": True}
    elif fmt == "PNG":
        params = {"compress_level": png_compress_level(quality if quality is not None else 85)}
    elif fmt in ("WEBP", "AVIF"):
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if has_alpha(img) else "RGB")
        params = {"quality": quality if quality is not None else 85}
    buffer = BytesIO()
    try:
        img.save(buffer, format=fmt, **params)
    except (OSError, KeyError, ValueError) as exc:
        raise EncodeError(f"cannot encode {fmt}: {exc}") from exc
    return buffer.getvalue()
