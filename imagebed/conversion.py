"""Re-encoding uploads into WebP or AVIF on request."""

from __future__ import annotations

from . import image_ops
from .models import FailureKind, Result, UploadCandidate

TARGET_FORMATS = {"webp": "WEBP", "avif": "AVIF"}
CONVERT_QUALITY = 85


class FormatConverter:
    """One-shot re-encode into WebP or AVIF. Stateless; never retries."""

    def convert(self, candidate: UploadCandidate, target: str) -> Result[UploadCandidate]:
        fmt = TARGET_FORMATS.get(target.lower())
        if fmt is None:
            return Result.fail(FailureKind.UNSUPPORTED_FORMAT, f"Unsupported target format: {target}")
        if not image_ops.codec_available(fmt):
            return Result.fail(
                FailureKind.CODEC_UNAVAILABLE,
                f"{target.upper()} conversion is not supported by the installed image library",
            )

        try:
            img = image_ops.open_image(candidate.read())
        except image_ops.DecodeError as exc:
            return Result.fail(FailureKind.DECODE_FAILED, "Could not read image information", str(exc))
        if img.format not in image_ops.SOURCE_FORMATS:
            return Result.fail(FailureKind.UNSUPPORTED_FORMAT, "Unsupported image format")

        try:
            encoded = image_ops.encode(img, fmt, CONVERT_QUALITY)
        except image_ops.EncodeError as exc:
            return Result.fail(FailureKind.ENCODE_FAILED, "Format conversion failed", str(exc))

        name = f"{candidate.stem}.{image_ops.EXTENSIONS[fmt]}"
        return Result.success(candidate.replace(name, image_ops.MIME_TYPES[fmt], encoded))
