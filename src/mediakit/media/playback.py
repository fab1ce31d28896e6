"""Locations for playback sinks.

Sound pools, media players and video views take a location rather than a
stream. These helpers pick the location for a media path, copying the media
to a temp file when the sink cannot reach it any other way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import READ_EXTERNAL_STORAGE, MediaError
from ..models import PlaybackSource, SourceKind
from ..sources.classifier import classify, file_url_to_path, is_external_file_url
from .tempfiles import materialize

if TYPE_CHECKING:
    from ..context import MediaContext


def sound_source(context: "MediaContext", path: str) -> str:
    """Return a local file path a sound pool can load *path* from."""

    kind = classify(context, path)
    if kind in (SourceKind.ASSET, SourceKind.CONTENT_HANDLE, SourceKind.REMOTE_URL):
        return str(materialize(context, path, kind))
    if kind is SourceKind.CONTACT_PHOTO:
        raise MediaError(f"Unable to load audio for contact {path}.")
    return _local_location(context, path, kind)


def player_source(context: "MediaContext", path: str) -> PlaybackSource:
    """Return the data source for an audio/video player; URLs are streamed."""

    kind = classify(context, path)
    if kind is SourceKind.ASSET:
        return PlaybackSource(str(materialize(context, path, kind)), is_local_file=True)
    if kind in (SourceKind.REMOTE_URL, SourceKind.CONTENT_HANDLE):
        return PlaybackSource(path, is_local_file=False)
    if kind is SourceKind.CONTACT_PHOTO:
        raise MediaError(f"Unable to load audio or video for contact {path}.")
    return PlaybackSource(_local_location(context, path, kind), is_local_file=True)


def video_source(context: "MediaContext", path: str) -> PlaybackSource:
    kind = classify(context, path)
    if kind in (SourceKind.ASSET, SourceKind.REMOTE_URL):
        return PlaybackSource(str(materialize(context, path, kind)), is_local_file=True)
    if kind is SourceKind.CONTENT_HANDLE:
        return PlaybackSource(path, is_local_file=False)
    if kind is SourceKind.CONTACT_PHOTO:
        raise MediaError(f"Unable to load video for contact {path}.")
    return PlaybackSource(_local_location(context, path, kind), is_local_file=True)


def _local_location(context: "MediaContext", path: str, kind: SourceKind) -> str:
    if kind is SourceKind.REMOTE_ASSET:
        context.permissions.assert_permission(READ_EXTERNAL_STORAGE)
        return str(context.repl_asset_path(path))
    if kind is SourceKind.REMOVABLE_STORAGE:
        context.permissions.assert_permission(READ_EXTERNAL_STORAGE)
        return path
    if kind is SourceKind.FILE_URL:
        if is_external_file_url(context, path):
            context.permissions.assert_permission(READ_EXTERNAL_STORAGE)
        return file_url_to_path(path)
    raise MediaError(f"Unable to load media {path}.")
