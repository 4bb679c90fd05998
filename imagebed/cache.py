"""Content-addressed cache of upload results.

Entries are keyed by the hash of the raw uploaded bytes and stored as
``{"timestamp": <epoch seconds>, "data": <upload data>}``, one document
per hash. An entry older than the TTL, or one without a numeric
timestamp, counts as absent and is deleted the next time it is looked
up. The deletion re-checks the entry under the store lock so a fresh
entry saved in the meantime survives.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .models import FailureKind, Result
from .storage import FileJsonStore, JsonStore, StorageError

logger = logging.getLogger(__name__)


class CacheStore:
    def __init__(
        self,
        settings: Settings,
        store: Optional[JsonStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.enabled = settings.enable_cache
        self.ttl = settings.cache_ttl
        self.store = store or FileJsonStore(settings.cache_dir, lock_timeout=settings.lock_timeout)
        self._clock = clock

    def lookup(self, digest: str) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        entry = self.store.load(digest)
        if entry is None:
            return None
        if self._fresh(entry):
            return entry.get("data")
        try:
            self.store.remove(digest, when=lambda current: current is not None and not self._fresh(current))
        except StorageError as exc:
            logger.warning("Could not purge expired cache entry %s: %s", digest, exc)
        return None

    def _fresh(self, entry: Any) -> bool:
        timestamp = entry.get("timestamp") if isinstance(entry, dict) else None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return False
        return self._clock() - timestamp < self.ttl

    def save(self, digest: str, data: Dict[str, Any]) -> Result[None]:
        if not self.enabled:
            return Result.success()
        try:
            with self.store.update(digest) as doc:
                doc.commit({"timestamp": int(self._clock()), "data": data})
        except StorageError as exc:
            return Result.fail(FailureKind.STORAGE, "Could not write cache entry", str(exc))
        return Result.success()
