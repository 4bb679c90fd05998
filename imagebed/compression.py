"""Adaptive compression to a byte budget.

The compressor re-encodes an image in its own container until the
result fits under the budget. Quality is lowered first, in steps of 10
from 85 down to the floor of 30. Once quality is exhausted the
dimensions shrink by 10% and quality starts again at 85. The search
stops at the first encoding that fits, or fails after ten attempts or
once the scale would fall to 0.3.

Example::
    compressor = AdaptiveCompressor()
    result = compressor.compress(candidate, budget=8 * 1024 * 1024)
    if result.ok:
        upload(result.value.candidate)
"""

from __future__ import annotations

import logging

from . import image_ops
from .models import CompressionResult, FailureKind, Result, UploadCandidate, format_file_size

logger = logging.getLogger(__name__)

INITIAL_QUALITY = 85
QUALITY_FLOOR = 30
QUALITY_STEP = 10
INITIAL_SCALE = 1.0
SCALE_FLOOR = 0.3
SCALE_STEP = 0.9
MAX_ATTEMPTS = 10


class AdaptiveCompressor:
    def __init__(self, max_attempts: int = MAX_ATTEMPTS) -> None:
        self.max_attempts = max_attempts

    def compress(self, candidate: UploadCandidate, budget: int) -> Result[CompressionResult]:
        original_size = candidate.size
        if original_size <= budget:
            return Result.success(CompressionResult(candidate=candidate, original_size=original_size))

        try:
            img = image_ops.open_image(candidate.read())
        except image_ops.DecodeError as exc:
            return Result.fail(FailureKind.DECODE_FAILED, "Could not read image information", str(exc))
        fmt = img.format
        if fmt not in image_ops.SOURCE_FORMATS:
            return Result.fail(FailureKind.UNSUPPORTED_FORMAT, "Unsupported image format, cannot compress")

        width, height = img.size
        quality = INITIAL_QUALITY
        scale = INITIAL_SCALE
        trail = []

        while True:
            target = (int(width * scale), int(height * scale))
            trail.append((scale, quality))
            try:
                encoded = image_ops.encode(image_ops.resample(img, target, fmt), fmt, quality)
            except image_ops.EncodeError as exc:
                return Result.fail(FailureKind.ENCODE_FAILED, "Image compression failed", str(exc))

            if len(encoded) <= budget:
                logger.debug(
                    "Compressed %s from %s to %s after %d attempt(s)",
                    candidate.name,
                    format_file_size(original_size),
                    format_file_size(len(encoded)),
                    len(trail),
                )
                return Result.success(
                    CompressionResult(
                        candidate=candidate.replace(candidate.name, candidate.mime_type, encoded),
                        original_size=original_size,
                        quality=quality,
                        scale=scale,
                        trail=trail,
                    )
                )

            if quality > QUALITY_FLOOR:
                quality -= QUALITY_STEP
            else:
                scale *= SCALE_STEP
                quality = INITIAL_QUALITY

            if len(trail) >= self.max_attempts or scale <= SCALE_FLOOR:
                break

        return Result.fail(
            FailureKind.TARGET_UNREACHABLE,
            "Could not compress the image to the target size, please upload a smaller image",
            {"attempts": len(trail), "budget": budget},
        )
