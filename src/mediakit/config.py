from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

ENV_PREFIX = "MEDIAKIT_"
_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class MediaConfig:
    asset_dir: Optional[Path] = None
    external_storage: str = "/sdcard"
    repl_asset_dir: Optional[Path] = None
    repl_assets_loaded: bool = False
    content_root: Optional[Path] = None
    display_width: int = 1080
    display_height: int = 1920
    density: float = 1.0
    compatibility_mode: bool = False
    granted_permissions: Tuple[str, ...] = ()
    scoped_storage: bool = False
    http_timeout: float = 20.0
    max_redirects: int = 10
    user_agent: str = "mediakit/0.1"


def load_config(
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> MediaConfig:
    """Build a :class:`MediaConfig` from ``MEDIAKIT_*`` variables.

    Variables missing from the environment are looked up in *env_file*
    (``.env`` in the working directory by default).
    """

    environ = os.environ if environ is None else environ
    file_values = _read_env_file(env_file if env_file is not None else Path(".env"))

    def lookup(key: str) -> Optional[str]:
        value = environ.get(ENV_PREFIX + key)
        if value is None:
            value = file_values.get(ENV_PREFIX + key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    defaults = MediaConfig()
    granted = lookup("GRANTED_PERMISSIONS")
    return MediaConfig(
        asset_dir=_as_path(lookup("ASSET_DIR")),
        external_storage=lookup("EXTERNAL_STORAGE") or defaults.external_storage,
        repl_asset_dir=_as_path(lookup("REPL_ASSET_DIR")),
        repl_assets_loaded=_as_bool(lookup("REPL_ASSETS_LOADED")),
        content_root=_as_path(lookup("CONTENT_ROOT")),
        display_width=_as_number(int, "DISPLAY_WIDTH", lookup("DISPLAY_WIDTH"), defaults.display_width),
        display_height=_as_number(int, "DISPLAY_HEIGHT", lookup("DISPLAY_HEIGHT"), defaults.display_height),
        density=_as_number(float, "DENSITY", lookup("DENSITY"), defaults.density),
        compatibility_mode=_as_bool(lookup("COMPATIBILITY_MODE")),
        granted_permissions=tuple(p.strip() for p in granted.split(",") if p.strip()) if granted else (),
        scoped_storage=_as_bool(lookup("SCOPED_STORAGE")),
        http_timeout=_as_number(float, "HTTP_TIMEOUT", lookup("HTTP_TIMEOUT"), defaults.http_timeout),
        max_redirects=_as_number(int, "MAX_REDIRECTS", lookup("MAX_REDIRECTS"), defaults.max_redirects),
        user_agent=lookup("USER_AGENT") or defaults.user_agent,
    )


def _read_env_file(env_path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    if not env_path.exists():
        return values
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            key, raw_value = stripped.split("=", 1)
            values[key.strip()] = raw_value.strip().strip('"').strip("'")
    except OSError:
        logger.debug("Unable to read %s", env_path, exc_info=True)
    return values


def _as_path(value: Optional[str]) -> Optional[Path]:
    return Path(value).expanduser() if value else None


def _as_bool(value: Optional[str]) -> bool:
    return value is not None and value.lower() in _TRUE_VALUES


def _as_number(kind, key: str, value: Optional[str], default):
    if value is None:
        return default
    try:
        return kind(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{key} must be a {kind.__name__}, got {value!r}") from exc
