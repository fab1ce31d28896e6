from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Tuple

from ..models import DecodeOptions

if TYPE_CHECKING:
    from ..context import DisplayOracle

logger = logging.getLogger(__name__)

# Budget used in compatibility mode: twice the legacy 360x420 screen.
COMPATIBILITY_MAX_WIDTH = 360 * 2
COMPATIBILITY_MAX_HEIGHT = 420 * 2


def sample_factor(native_width: int, native_height: int, max_width: int, max_height: int) -> int:
    """Smallest power of two bringing either dimension within the budget.

    Images that already fit in one dimension are left at factor 1 so that
    intentionally small images are never shrunk further.
    """

    factor = 1
    while native_width // factor > max_width and native_height // factor > max_height:
        factor *= 2
    return factor


def bitmap_budget(display: "DisplayOracle") -> Tuple[int, int]:
    if display.compatibility_mode():
        return COMPATIBILITY_MAX_WIDTH, COMPATIBILITY_MAX_HEIGHT
    density = display.density()
    return int(display.width() / density), int(display.height() / density)


def decode_options(display: "DisplayOracle", native_width: int, native_height: int) -> DecodeOptions:
    max_width, max_height = bitmap_budget(display)
    factor = sample_factor(native_width, native_height, max_width, max_height)
    logger.debug(
        "decode_options: sample_factor=%s max=%sx%s native=%sx%s",
        factor,
        max_width,
        max_height,
        native_width,
        native_height,
    )
    return DecodeOptions(
        target_width=max(native_width // factor, 1),
        target_height=max(native_height // factor, 1),
        sample_factor=factor,
    )
