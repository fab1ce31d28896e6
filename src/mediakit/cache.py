"""Session-scoped caches shared by every request made through a context."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional


class PathCache:
    """Maps requested asset names to their case-correct bundled names.

    Entries are never invalidated: bundled names do not change while the
    session is alive.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> Optional[str]:
        return self._entries.get(path)

    def put(self, path: str, name: str) -> None:
        with self._lock:
            self._entries[path] = name

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TempFileCache:
    """Maps requested media paths to local temp files holding their bytes.

    An entry only counts as a hit while its file still exists on disk. A
    per-path lock lets concurrent first requests for the same path share a
    single copy.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Path] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> Optional[Path]:
        cached = self._entries.get(path)
        if cached is None or not cached.exists():
            return None
        return cached

    def put(self, path: str, file: Path) -> None:
        with self._lock:
            self._entries[path] = file

    @contextmanager
    def locked(self, path: str) -> Iterator[None]:
        with self._lock:
            key_lock = self._key_locks.setdefault(path, threading.Lock())
        with key_lock:
            yield

    def files(self) -> List[Path]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
