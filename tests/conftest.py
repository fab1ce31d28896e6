from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from mediakit.context import MediaContext
from mediakit.errors import READ_EXTERNAL_STORAGE
from mediakit.host import StaticDisplay, StaticPermissionHost


class FakeAssetStore:
    def __init__(self, files: Dict[str, bytes]) -> None:
        self.files = files
        self.list_calls = 0
        self.opened: List[str] = []

    def list_names(self) -> List[str]:
        self.list_calls += 1
        return list(self.files)

    def open(self, name: str):
        if name not in self.files:
            raise FileNotFoundError(name)
        self.opened.append(name)
        return io.BytesIO(self.files[name])


class FakeContentResolver:
    def __init__(
        self,
        streams: Optional[Dict[str, bytes]] = None,
        photos: Optional[Dict[str, bytes]] = None,
    ) -> None:
        self.streams = streams or {}
        self.photos = photos or {}

    def open_stream(self, handle: str):
        if handle not in self.streams:
            raise FileNotFoundError(handle)
        return io.BytesIO(self.streams[handle])

    def open_contact_photo(self, handle: str):
        data = self.photos.get(handle)
        return io.BytesIO(data) if data is not None else None


class InlineRunner:
    def __init__(self) -> None:
        self.scheduled = 0

    def schedule(self, task: Callable[[], None]) -> None:
        self.scheduled += 1
        task()


def build_context(
    assets: Optional[Dict[str, bytes]] = None,
    *,
    granted=(READ_EXTERNAL_STORAGE,),
    content: Optional[FakeContentResolver] = None,
    display: Optional[StaticDisplay] = None,
    runner=None,
    **kwargs,
) -> MediaContext:
    return MediaContext(
        assets=FakeAssetStore(assets or {}),
        permissions=StaticPermissionHost(granted),
        content=content or FakeContentResolver(),
        display=display or StaticDisplay(width_px=1000, height_px=1000, density_scale=1.0),
        runner=runner or InlineRunner(),
        **kwargs,
    )


@pytest.fixture
def context() -> MediaContext:
    return build_context({"Logo.PNG": b"logo-bytes", "beep.wav": b"RIFF"})


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "storage" / "emulated" / "0"
    root.mkdir(parents=True)
    return root
