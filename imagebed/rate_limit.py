"""Per-client sliding-window rate limiting.

Each client address owns a small document holding the integer
timestamps of its admitted requests. On every call the timestamps older
than the window are dropped; the request is admitted only while the
survivors number fewer than the ceiling, and its own timestamp is then
recorded. The whole check runs under the store's exclusive lock so two
handlers for the same client cannot both slip under the ceiling.
"""

from __future__ import annotations

import hashlib
import time
from typing import Callable, Optional

from .config import Settings
from .models import FailureKind, Result
from .storage import FileJsonStore, JsonStore, StorageError


def _window_file(client_id: str) -> str:
    digest = hashlib.md5(client_id.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"imagebed_rate_limit_{digest}.json"


class RateLimiter:
    def __init__(
        self,
        settings: Settings,
        store: Optional[JsonStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.enabled = settings.enable_rate_limit
        self.ceiling = settings.rate_limit_requests
        self.window = settings.rate_limit_window
        self.store = store or FileJsonStore(
            settings.rate_limit_dir,
            lock_timeout=settings.lock_timeout,
            filename=_window_file,
        )
        self._clock = clock

    def admit(self, client_id: str) -> Result[None]:
        if not self.enabled:
            return Result.success()
        now = int(self._clock())
        try:
            with self.store.update(client_id, []) as doc:
                stamps = doc.value if isinstance(doc.value, list) else []
                recent = [ts for ts in stamps if isinstance(ts, int) and now - ts < self.window]
                if len(recent) >= self.ceiling:
                    if len(recent) != len(stamps):
                        doc.commit(recent)
                    return Result.fail(FailureKind.RATE_LIMITED)
                recent.append(now)
                doc.commit(recent)
        except StorageError as exc:
            return Result.fail(FailureKind.STORAGE, "Could not record request", str(exc))
        return Result.success()
