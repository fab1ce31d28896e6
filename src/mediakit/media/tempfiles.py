from __future__ import annotations

import atexit
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ..models import SourceKind
from ..sources.classifier import classify
from ..sources.resolver import StreamResolver

if TYPE_CHECKING:
    from ..context import MediaContext

logger = logging.getLogger(__name__)

TEMP_FILE_PREFIX = "mediakit_"

_exit_files: List[Path] = []
_exit_lock = threading.Lock()


def materialize(context: "MediaContext", path: str, kind: Optional[SourceKind] = None) -> Path:
    """Return a local temp file holding the bytes of *path*.

    The copy is made once per session and reused for as long as the file
    still exists; a file deleted from under the cache is copied again.
    """

    cached = context.temp_files.get(path)
    if cached is not None:
        return cached

    with context.temp_files.locked(path):
        cached = context.temp_files.get(path)
        if cached is not None:
            return cached
        if kind is None:
            kind = classify(context, path)
        logger.info("Copying media %s to temp file...", path)
        temp_file = copy_media_to_temp_file(context, path, kind)
        logger.info("Finished copying media %s to temp file %s", path, temp_file)
        context.temp_files.put(path, temp_file)
        return temp_file


def copy_media_to_temp_file(
    context: "MediaContext", path: str, kind: Optional[SourceKind] = None
) -> Path:
    source = StreamResolver(context).open(path, kind)
    target: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(prefix=TEMP_FILE_PREFIX, delete=False) as handle:
            target = Path(handle.name)
            _delete_on_exit(target)
            shutil.copyfileobj(source, handle)
        return target
    except Exception:
        if target is not None:
            logger.error("Could not copy media %s to temp file %s", path, target)
            target.unlink(missing_ok=True)
        else:
            logger.error("Could not copy media %s to temp file.", path)
        raise
    finally:
        source.close()


def _delete_on_exit(path: Path) -> None:
    with _exit_lock:
        _exit_files.append(path)


@atexit.register
def _remove_exit_files() -> None:
    with _exit_lock:
        files = list(_exit_files)
        _exit_files.clear()
    for path in files:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Unable to remove temp file %s", path, exc_info=True)
