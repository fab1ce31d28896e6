from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from ..errors import MediaError
from ..models import SourceKind

if TYPE_CHECKING:
    from ..context import MediaContext

logger = logging.getLogger(__name__)

LEGACY_SDCARD_PREFIX = "/sdcard/"
CONTACTS_PREFIX = "content://contacts/"
CONTENT_PREFIX = "content://"

# Protocols a URL may name and still count as well formed. mailto is accepted
# for classification even though it can never be opened as media.
URL_SCHEMES = frozenset({"http", "https", "ftp", "file", "jar", "mailto"})

_SCHEME_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):")


def classify(context: "MediaContext", path: str) -> SourceKind:
    """Return the single :class:`SourceKind` *path* refers to.

    The checks run in a fixed order because the prefixes overlap: a
    ``content://contacts/`` handle is also a ``content://`` handle, and an
    external storage path may look like anything.
    """

    if _is_removable_storage_path(context, path):
        kind = SourceKind.REMOVABLE_STORAGE
    elif path.startswith(CONTACTS_PREFIX):
        kind = SourceKind.CONTACT_PHOTO
    elif path.startswith(CONTENT_PREFIX):
        kind = SourceKind.CONTENT_HANDLE
    elif is_well_formed_url(path):
        kind = SourceKind.FILE_URL if path.startswith("file:") else SourceKind.REMOTE_URL
    elif context.is_live_session:
        kind = SourceKind.REMOTE_ASSET
    else:
        kind = SourceKind.ASSET
    logger.debug("classify: %s -> %s", path, kind.name)
    return kind


def is_well_formed_url(path: str) -> bool:
    match = _SCHEME_PATTERN.match(path)
    if not match:
        return False
    return match.group(1).lower() in URL_SCHEMES


def is_external_file_url(context: "MediaContext", path: str) -> bool:
    if context.scoped_storage:
        return False
    return path.startswith("file://" + context.external_storage_path) or path.startswith(
        "file:///sdcard"
    )


def is_external_file(context: "MediaContext", path: str) -> bool:
    if context.scoped_storage:
        return False
    return _is_removable_storage_path(context, path) or is_external_file_url(context, path)


def file_url_to_path(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme.lower() != "file" or parsed.netloc not in ("", "localhost") or not parsed.path:
        raise MediaError(f"Unable to determine file path of file url {url}")
    path = unquote(parsed.path)
    if not path.startswith("/"):
        raise MediaError(f"Unable to determine file path of file url {url}")
    return path


def _is_removable_storage_path(context: "MediaContext", path: str) -> bool:
    prefix = context.external_storage_path
    return (bool(prefix) and path.startswith(prefix)) or path.startswith(LEGACY_SDCARD_PREFIX)
