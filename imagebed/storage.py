"""Storage backend abstraction for small JSON documents.

The gallery, the result cache and the rate-limit windows all persist
tiny JSON documents that several request handlers may modify at the
same time. This module hides that behind ``JsonStore``:

- ``load(key)`` reads a document without locking. Readers accept that
  they may see the state from just before a concurrent writer finishes.
- ``update(key)`` is a context manager that holds an exclusive lock for
  the whole read-modify-write. Call ``doc.commit(value)`` inside the
  block to have the new value written when the block exits.
- ``remove(key, when=None)`` deletes a document under the same lock.
  When ``when`` is given it is called with the current value inside the
  lock and the document is only deleted if it returns true.

``FileJsonStore`` keeps one file per key and serialises writers across
processes with ``filelock``. Files are written to a temporary sibling
and swapped in with ``os.replace``, so an unlocked reader never sees a
half-written document. ``MemoryJsonStore`` is a drop-in replacement for
tests.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a document cannot be locked or written."""


class Document:
    """Mutable handle yielded by ``JsonStore.update``."""

    def __init__(self, value: Any) -> None:
        self.value = value
        self.modified = False

    def commit(self, value: Any) -> None:
        self.value = value
        self.modified = True


class JsonStore(ABC):
    @abstractmethod
    def load(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def update(self, key: str, default: Any = None) -> Iterator[Document]:
        ...

    @abstractmethod
    def remove(self, key: str, when: Optional[Callable[[Any], bool]] = None) -> None:
        ...


class FileJsonStore(JsonStore):
    """One JSON file per key under ``root``.

    Args:
        root: Directory holding the documents. Created on first write.
        indent: Indentation for written files; ``None`` writes compact JSON.
        lock_timeout: Seconds to wait for the exclusive lock before giving up.
        filename: Maps a key to its file name. Defaults to ``<key>.json``.
    """

    def __init__(
        self,
        root: Path,
        indent: Optional[int] = None,
        lock_timeout: float = 10.0,
        filename: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.root = Path(root)
        self.indent = indent
        self.lock_timeout = lock_timeout
        self._filename = filename or (lambda key: f"{key}.json")

    def path_for(self, key: str) -> Path:
        return self.root / self._filename(key)

    def load(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return default
        if not text:
            return default
        try:
            return json.loads(text)
        except ValueError:
            logger.warning("Ignoring malformed JSON in %s", path)
            return default

    @contextmanager
    def _locked(self, key: str) -> Iterator[Path]:
        path = self.path_for(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create {self.root}: {exc}") from exc
        lock = FileLock(f"{path}.lock", timeout=self.lock_timeout)
        try:
            lock.acquire()
        except Timeout as exc:
            raise StorageError(f"timed out waiting for lock on {path}") from exc
        try:
            yield path
        finally:
            lock.release()

    @contextmanager
    def update(self, key: str, default: Any = None) -> Iterator[Document]:
        with self._locked(key) as path:
            doc = Document(self.load(key, default))
            yield doc
            if doc.modified:
                self._write(path, doc.value)

    def remove(self, key: str, when: Optional[Callable[[Any], bool]] = None) -> None:
        with self._locked(key) as path:
            if when is not None and not when(self.load(key)):
                return
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise StorageError(f"cannot remove {path}: {exc}") from exc

    def _write(self, path: Path, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, indent=self.indent)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"cannot write {path}: {exc}") from exc


class MemoryJsonStore(JsonStore):
    """In-process store with the same locking contract, for tests."""

    def __init__(self) -> None:
        self._items: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._items:
                return default
            return copy.deepcopy(self._items[key])

    @contextmanager
    def update(self, key: str, default: Any = None) -> Iterator[Document]:
        with self._lock:
            doc = Document(self.load(key, default))
            yield doc
            if doc.modified:
                self._items[key] = copy.deepcopy(doc.value)

    def remove(self, key: str, when: Optional[Callable[[Any], bool]] = None) -> None:
        with self._lock:
            if when is not None and not when(self.load(key)):
                return
            self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items
