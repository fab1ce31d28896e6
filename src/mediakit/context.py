from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol, Sequence

import httpx

from .cache import PathCache, TempFileCache
from .config import MediaConfig
from .host import (
    DirectoryAssetStore,
    LocalContentResolver,
    StaticDisplay,
    StaticPermissionHost,
    ThreadPoolRunner,
)


class AssetStore(Protocol):
    def list_names(self) -> Sequence[str]: ...

    def open(self, name: str) -> BinaryIO: ...


class PermissionHost(Protocol):
    def assert_permission(self, permission: str) -> None: ...


class ContentResolver(Protocol):
    def open_stream(self, handle: str) -> BinaryIO: ...

    def open_contact_photo(self, handle: str) -> Optional[BinaryIO]: ...


class DisplayOracle(Protocol):
    def width(self) -> int: ...

    def height(self) -> int: ...

    def density(self) -> float: ...

    def compatibility_mode(self) -> bool: ...


class BackgroundRunner(Protocol):
    def schedule(self, task: Callable[[], None]) -> None: ...


@dataclass
class MediaContext:
    """The hosting session: collaborators plus the caches every request shares."""

    assets: AssetStore
    permissions: PermissionHost
    content: ContentResolver
    display: DisplayOracle
    runner: BackgroundRunner
    external_storage_path: str = "/sdcard"
    repl_asset_dir: Optional[Path] = None
    repl_assets_loaded: bool = False
    scoped_storage: bool = False
    http_timeout: float = 20.0
    max_redirects: int = 10
    user_agent: str = "mediakit/0.1"
    http_transport: Optional[httpx.BaseTransport] = None
    path_cache: PathCache = field(default_factory=PathCache)
    temp_files: TempFileCache = field(default_factory=TempFileCache)

    @property
    def is_live_session(self) -> bool:
        return self.repl_asset_dir is not None and self.repl_assets_loaded

    def repl_asset_path(self, path: str) -> Path:
        if self.repl_asset_dir is None:
            raise ValueError("No live asset directory configured for this session")
        target = self.repl_asset_dir / path
        if self.repl_asset_dir.resolve() not in target.resolve().parents:
            raise FileNotFoundError(f"Asset not found: {path}")
        return target

    @classmethod
    def from_config(cls, config: MediaConfig) -> "MediaContext":
        return cls(
            assets=DirectoryAssetStore(config.asset_dir),
            permissions=StaticPermissionHost(config.granted_permissions),
            content=LocalContentResolver(config.content_root),
            display=StaticDisplay(
                width_px=config.display_width,
                height_px=config.display_height,
                density_scale=config.density,
                compatibility=config.compatibility_mode,
            ),
            runner=ThreadPoolRunner(),
            external_storage_path=config.external_storage,
            repl_asset_dir=config.repl_asset_dir,
            repl_assets_loaded=config.repl_assets_loaded,
            scoped_storage=config.scoped_storage,
            http_timeout=config.http_timeout,
            max_redirects=config.max_redirects,
            user_agent=config.user_agent,
        )
