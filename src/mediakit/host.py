"""Concrete collaborators backing a session on a plain filesystem."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, List, Optional
from urllib.parse import unquote, urlparse

from .errors import MediaError, PermissionDeniedError

logger = logging.getLogger(__name__)


class DirectoryAssetStore:
    """Bundled assets stored under a directory; only top-level names are listed."""

    def __init__(self, root: Optional[Path]) -> None:
        self.root = root

    def list_names(self) -> List[str]:
        if self.root is None or not self.root.is_dir():
            return []
        return sorted(os.listdir(self.root))

    def open(self, name: str) -> BinaryIO:
        if self.root is None:
            raise MediaError(f"No asset directory configured, cannot open {name}")
        target = self.root / name
        if self.root.resolve() not in target.resolve().parents:
            raise FileNotFoundError(f"Asset not found: {name}")
        # Exact match only, even on case-insensitive filesystems.
        if not target.is_file() or target.name not in os.listdir(target.parent):
            raise FileNotFoundError(f"Asset not found: {name}")
        return target.open("rb")


class StaticPermissionHost:
    def __init__(self, granted: Iterable[str] = ()) -> None:
        self.granted = set(granted)

    def grant(self, permission: str) -> None:
        self.granted.add(permission)

    def assert_permission(self, permission: str) -> None:
        if permission not in self.granted:
            raise PermissionDeniedError(permission)


class LocalContentResolver:
    """Serves ``content://authority/path`` handles from ``<root>/authority/path``.

    A contact's photo lives in a ``photo`` file inside the contact's directory.
    """

    def __init__(self, root: Optional[Path]) -> None:
        self.root = root

    def open_stream(self, handle: str) -> BinaryIO:
        target = self._locate(handle)
        if target is None or not target.is_file():
            raise MediaError(f"Unable to open content {handle}")
        return target.open("rb")

    def open_contact_photo(self, handle: str) -> Optional[BinaryIO]:
        target = self._locate(handle)
        if target is None:
            return None
        photo = target / "photo"
        if not photo.is_file():
            return None
        return photo.open("rb")

    def _locate(self, handle: str) -> Optional[Path]:
        if self.root is None:
            return None
        parsed = urlparse(handle)
        if parsed.scheme != "content" or not parsed.netloc:
            return None
        relative = unquote(parsed.path).strip("/")
        candidate = (self.root / parsed.netloc / relative).resolve()
        if self.root.resolve() not in candidate.parents:
            return None
        return candidate


class StaticDisplay:
    def __init__(
        self,
        width_px: int = 1080,
        height_px: int = 1920,
        density_scale: float = 1.0,
        compatibility: bool = False,
    ) -> None:
        self.width_px = width_px
        self.height_px = height_px
        self.density_scale = density_scale
        self.compatibility = compatibility

    def width(self) -> int:
        return self.width_px

    def height(self) -> int:
        return self.height_px

    def density(self) -> float:
        return self.density_scale

    def compatibility_mode(self) -> bool:
        return self.compatibility


class ThreadPoolRunner:
    """Fire-and-forget execution on a shared thread pool."""

    def __init__(self, max_workers: Optional[int] = None) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mediakit")

    def schedule(self, task: Callable[[], None]) -> None:
        future = self._executor.submit(task)
        future.add_done_callback(_log_task_failure)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _log_task_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background task failed", exc_info=exc)
