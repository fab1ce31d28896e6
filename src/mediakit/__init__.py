from .cache import PathCache, TempFileCache
from .config import MediaConfig, load_config
from .context import MediaContext
from .errors import READ_EXTERNAL_STORAGE, MediaError, PermissionDeniedError
from .image_processing.pipeline import ImagePipeline, load_image, load_image_async
from .image_processing.sizing import sample_factor
from .media.playback import player_source, sound_source, video_source
from .media.tempfiles import copy_media_to_temp_file, materialize
from .models import DecodeOptions, Failure, PlaybackSource, ScaledImage, SourceKind, Success
from .sources.assets import resolve_case_insensitive
from .sources.classifier import classify, is_external_file, is_external_file_url
from .sources.resolver import StreamResolver, open_media

__all__ = [
    "PathCache",
    "TempFileCache",
    "MediaConfig",
    "load_config",
    "MediaContext",
    "READ_EXTERNAL_STORAGE",
    "MediaError",
    "PermissionDeniedError",
    "ImagePipeline",
    "load_image",
    "load_image_async",
    "sample_factor",
    "player_source",
    "sound_source",
    "video_source",
    "copy_media_to_temp_file",
    "materialize",
    "DecodeOptions",
    "Failure",
    "PlaybackSource",
    "ScaledImage",
    "SourceKind",
    "Success",
    "resolve_case_insensitive",
    "classify",
    "is_external_file",
    "is_external_file_url",
    "StreamResolver",
    "open_media",
]
