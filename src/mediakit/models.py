from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from PIL import Image

from .errors import PERMISSION_DENIED_PREFIX, decode_permission_denied


class SourceKind(Enum):
    """Where a media path points."""

    ASSET = "asset"
    REMOTE_ASSET = "remote_asset"
    REMOVABLE_STORAGE = "removable_storage"
    FILE_URL = "file_url"
    REMOTE_URL = "remote_url"
    CONTENT_HANDLE = "content_handle"
    CONTACT_PHOTO = "contact_photo"


@dataclass(frozen=True, slots=True)
class DecodeOptions:
    target_width: int
    target_height: int
    sample_factor: int = 1


@dataclass(slots=True)
class ScaledImage:
    """A decoded image together with the display density it targets."""

    image: Image.Image
    density: float
    sample_factor: int = 1

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True, slots=True)
class Success:
    image: Optional[ScaledImage]


@dataclass(frozen=True, slots=True)
class Failure:
    message: str

    @property
    def is_permission_denied(self) -> bool:
        return self.message.startswith(PERMISSION_DENIED_PREFIX)

    @property
    def permission(self) -> Optional[str]:
        if not self.is_permission_denied:
            return None
        return decode_permission_denied(self.message)


ImageResult = Union[Success, Failure]


@dataclass(frozen=True, slots=True)
class PlaybackSource:
    """Location handed to a playback sink: a local file or a URI it streams."""

    location: str
    is_local_file: bool
