from __future__ import annotations

import logging
from typing import TYPE_CHECKING, BinaryIO, Optional

if TYPE_CHECKING:
    from ..context import MediaContext

logger = logging.getLogger(__name__)


def resolve_case_insensitive(context: "MediaContext", path: str) -> Optional[str]:
    """Return the bundled asset name equal to *path* ignoring case, or ``None``.

    Successful lookups are remembered in the session's path cache, so the
    asset listing is scanned at most once per requested path.
    """

    cached = context.path_cache.get(path)
    if cached is not None:
        logger.debug("Path cache hit for %s -> %s", path, cached)
        return cached

    folded = path.casefold()
    for name in context.assets.list_names():
        if name.casefold() == folded:
            context.path_cache.put(path, name)
            logger.debug("Resolved asset %s as %s", path, name)
            return name
    return None


def open_asset(context: "MediaContext", path: str) -> BinaryIO:
    """Open a bundled asset by exact name, retrying with a case-insensitive match."""

    try:
        return context.assets.open(path)
    except OSError:
        name = resolve_case_insensitive(context, path)
        if name is None:
            raise
        return context.assets.open(name)
