"""Input validation and naming for uploaded files.

Each upload is checked against the allowed MIME types and the maximum
size, then given a collision-resistant ``img_<timestamp>_<rand6>`` name
that keeps the original extension. ``content_hash`` derives the cache
key from the received bytes.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime
from pathlib import PurePath
from typing import Callable, Optional

from .config import Settings
from .models import FailureKind, Result, UploadCandidate, format_file_size


def generate_name(original: str, now: Optional[datetime] = None) -> str:
    """Build ``img_<YYYYmmddHHMMSS>_<random6>.<ext>`` from an upload name."""
    extension = PurePath(original).suffix
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return f"img_{stamp}_{uuid.uuid4().hex[:6]}{extension}"


def content_hash(data: bytes) -> str:
    """Cache key for a byte stream. Not meant to resist deliberate collisions."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


class Validator:
    """Checks declared type and size, then renames the candidate."""

    def __init__(self, settings: Settings, namer: Callable[[str], str] = generate_name) -> None:
        self.allowed_types = frozenset(t.lower() for t in settings.allowed_types)
        self.max_file_size = settings.max_file_size
        self._namer = namer

    def validate(self, candidate: UploadCandidate) -> Result[UploadCandidate]:
        if (candidate.mime_type or "").lower() not in self.allowed_types:
            return Result.fail(FailureKind.INVALID_TYPE)
        if candidate.size > self.max_file_size:
            return Result.fail(
                FailureKind.FILE_TOO_LARGE,
                f"File size cannot exceed {format_file_size(self.max_file_size)}",
            )
        candidate.name = self._namer(candidate.name)
        return Result.success(candidate)
