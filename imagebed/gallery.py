"""Durable catalogue of uploaded images.

The gallery is a single JSON array, newest record first, capped at
``gallery_limit`` entries. Every mutation reads the whole array, changes
it in memory and writes it back while holding the store's exclusive
lock, so concurrent writers are serialised and never lose each other's
updates.

Records on disk are handled as plain dicts when mutated so that fields
this version does not know about survive a rewrite.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .config import Settings
from .models import FailureKind, GalleryRecord, Result, UploadData
from .storage import FileJsonStore, JsonStore, StorageError

logger = logging.getLogger(__name__)

Records = List[Dict[str, Any]]


class GalleryStore:
    def __init__(self, settings: Settings, store: Optional[JsonStore] = None) -> None:
        self.limit = settings.gallery_limit
        self.default_category = settings.default_category
        if store is None:
            path = settings.gallery_file
            store = FileJsonStore(
                path.parent,
                indent=4,
                lock_timeout=settings.lock_timeout,
                filename=lambda key: path.name,
            )
        self.store = store
        self.key = settings.gallery_file.stem

    def _category(self, value: Optional[str]) -> str:
        value = (value or "").strip()
        return value or self.default_category

    def snapshot(self) -> Records:
        data = self.store.load(self.key, [])
        return data if isinstance(data, list) else []

    def record_for(self, data: UploadData, category: Optional[str] = None) -> GalleryRecord:
        return GalleryRecord(
            id=uuid.uuid4().hex,
            file_name=data.file_name,
            url=data.url,
            size=data.size,
            upload_time=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            category=self._category(category),
        )

    def _mutate(self, change: Callable[[Records], Result[Dict[str, Any]]]) -> Result[Dict[str, Any]]:
        try:
            with self.store.update(self.key, []) as doc:
                records = doc.value if isinstance(doc.value, list) else []
                result = change(records)
                if result.ok:
                    doc.commit(records)
                return result
        except StorageError as exc:
            logger.error("Gallery write failed: %s", exc)
            return Result.fail(FailureKind.STORAGE, detail=str(exc))

    def append(self, record: GalleryRecord) -> Result[Dict[str, Any]]:
        def change(records: Records) -> Result[Dict[str, Any]]:
            records.insert(0, record.model_dump(by_alias=True))
            del records[self.limit:]
            return Result.success({"id": record.id, "total": len(records)})

        return self._mutate(change)

    def delete(self, record_id: str) -> Result[Dict[str, Any]]:
        def change(records: Records) -> Result[Dict[str, Any]]:
            for index, item in enumerate(records):
                if isinstance(item, dict) and item.get("id") == record_id:
                    del records[index]
                    return Result.success({"removed": 1, "total": len(records)})
            return Result.fail(FailureKind.NOT_FOUND)

        return self._mutate(change)

    def set_category(self, record_id: str, category: Optional[str]) -> Result[Dict[str, Any]]:
        category = self._category(category)

        def change(records: Records) -> Result[Dict[str, Any]]:
            for item in records:
                if isinstance(item, dict) and item.get("id") == record_id:
                    item["category"] = category
                    return Result.success({"id": record_id, "category": category})
            return Result.fail(FailureKind.NOT_FOUND)

        return self._mutate(change)

    def _recategorize(self, source: str, target: str) -> Callable[[Records], Result[Dict[str, Any]]]:
        def change(records: Records) -> Result[Dict[str, Any]]:
            count = 0
            for item in records:
                if isinstance(item, dict) and item.get("category", "") == source:
                    item["category"] = target
                    count += 1
            if count == 0:
                return Result.fail(FailureKind.NO_CHANGES)
            return Result.success({"count": count})

        return change

    def rename_category(self, source: str, target: str) -> Result[Dict[str, Any]]:
        result = self._mutate(self._recategorize(source, target))
        if not result.ok:
            return result
        return Result.success({"updated": result.value["count"]})

    def delete_category(self, name: str, replacement: Optional[str] = None) -> Result[Dict[str, Any]]:
        replacement = self._category(replacement)
        result = self._mutate(self._recategorize(name, replacement))
        if not result.ok:
            return result
        return Result.success({"moved": result.value["count"], "to": replacement})
