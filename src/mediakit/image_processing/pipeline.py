from __future__ import annotations

import functools
import logging
import threading
from io import BytesIO
from typing import TYPE_CHECKING, BinaryIO, Callable, Optional

import numpy as np
from PIL import Image

from ..errors import MediaError, PermissionDeniedError, encode_permission_denied
from ..models import Failure, ImageResult, ScaledImage, SourceKind, Success
from ..sources.classifier import classify
from ..sources.resolver import StreamResolver
from .sizing import decode_options

try:
    import cv2
except ImportError as exc:  # pragma: no cover - optional dependency guard
    raise RuntimeError("OpenCV is required for placeholder rendering") from exc

if TYPE_CHECKING:
    from ..context import MediaContext

logger = logging.getLogger(__name__)

Continuation = Callable[[ImageResult], None]

_DECODABLE_MODES = ("L", "LA", "RGB", "RGBA")

_BOUNDS_LOCK = threading.Lock()


def render_placeholder(size: int = 48) -> Image.Image:
    """Draw the picture-frame image shown for contacts without a photo."""

    canvas = np.zeros((size, size, 4), np.uint8)
    border = max(size // 8, 1)
    cv2.rectangle(canvas, (0, 0), (size - 1, size - 1), (139, 94, 60, 255), thickness=-1)
    cv2.rectangle(
        canvas,
        (border, border),
        (size - 1 - border, size - 1 - border),
        (235, 235, 225, 255),
        thickness=-1,
    )
    horizon = size - 1 - border - size // 4
    peak = (size // 2, border + size // 4)
    mountain = np.array([[border, horizon], peak, [size - 1 - border, horizon]], np.int32)
    cv2.fillPoly(canvas, [mountain], (96, 128, 96, 255))
    return Image.fromarray(canvas, "RGBA")


class Synchronizer:
    """Single-slot rendezvous between a background producer and a waiting caller."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._result: Optional[ImageResult] = None

    def deliver(self, result: ImageResult) -> None:
        with self._condition:
            if self._result is not None:
                raise RuntimeError("Result already delivered")
            self._result = result
            self._condition.notify_all()

    def wait(self) -> ImageResult:
        with self._condition:
            self._condition.wait_for(lambda: self._result is not None)
            assert self._result is not None
            return self._result


class DensityScaler:
    """Scales natively decoded images up (or down) to the display density."""

    def scale(self, image: Image.Image, density: float) -> Image.Image:
        target_width = max(int(density * image.width), 1)
        target_height = max(int(density * image.height), 1)
        logger.debug(
            "Scaling %sx%s image by density %s to %sx%s",
            image.width,
            image.height,
            density,
            target_width,
            target_height,
        )
        return image.resize((target_width, target_height), Image.Resampling.NEAREST)


class ImagePipeline:
    """Loads images in the background, sized for the session's display.

    Remote images are read fresh on every request and never cached to a temp
    file, since the image behind a URL (a web cam, say) may change.
    """

    def __init__(
        self,
        context: "MediaContext",
        resolver: StreamResolver | None = None,
        scaler: DensityScaler | None = None,
    ) -> None:
        self.context = context
        self.resolver = resolver or StreamResolver(context)
        self.scaler = scaler or DensityScaler()
        self._placeholder: Optional[Image.Image] = None

    def load_async(self, path: Optional[str], continuation: Continuation) -> None:
        if not path:
            continuation(Success(None))
            return
        kind = classify(self.context, path)
        self.context.runner.schedule(functools.partial(self._load, path, kind, continuation))

    def load(self, path: Optional[str]) -> Optional[ScaledImage]:
        """Blocking wrapper around :meth:`load_async`.

        The calling thread waits until the background load finishes. Only
        meant for callers that cannot be asynchronous themselves.
        """

        if not path:
            return None
        synchronizer = Synchronizer()
        self.load_async(path, synchronizer.deliver)
        result = synchronizer.wait()
        if isinstance(result, Success):
            return result.image
        if result.is_permission_denied:
            raise PermissionDeniedError(result.permission)
        raise MediaError(result.message)

    def decode(self, data: bytes, path: str = "") -> ScaledImage:
        density = self.context.display.density()
        image = _open_bounds(data)
        native_width, native_height = image.size
        options = decode_options(self.context.display, native_width, native_height)
        logger.debug("decode: path=%s sample_factor=%s", path, options.sample_factor)

        if options.sample_factor > 1:
            # Only JPEG honours draft; other formats decode at full size.
            image.draft(image.mode, (options.target_width, options.target_height))
        _check_decoded_size(image, native_width, native_height)
        image.load()
        if image.mode not in _DECODABLE_MODES:
            image = image.convert("RGBA")
        remaining = max(1, options.sample_factor * image.width // native_width)
        if remaining > 1:
            image = image.reduce(remaining)

        # A sampled image was not sized for this app, so it is not scaled further.
        if options.sample_factor != 1 or density == 1.0:
            return ScaledImage(image=image, density=density, sample_factor=options.sample_factor)
        scaled = self.scaler.scale(image, density)
        return ScaledImage(image=scaled, density=density, sample_factor=1)

    def placeholder(self) -> ScaledImage:
        if self._placeholder is None:
            self._placeholder = render_placeholder()
        return ScaledImage(image=self._placeholder, density=self.context.display.density())

    def _load(self, path: str, kind: SourceKind, continuation: Continuation) -> None:
        logger.debug("mediaPath = %s", path)
        try:
            data = self._read_all(path, kind)
        except PermissionDeniedError as exc:
            continuation(Failure(encode_permission_denied(exc.permission)))
            return
        except OSError as exc:
            if kind is SourceKind.CONTACT_PHOTO:
                logger.debug("No photo for contact %s, using placeholder", path)
                continuation(Success(self.placeholder()))
                return
            logger.debug("I/O error reading %s", path, exc_info=True)
            continuation(Failure(_message(exc)))
            return
        except Exception as exc:
            logger.warning("Unable to read media %s", path, exc_info=True)
            continuation(Failure(_message(exc)))
            return

        try:
            image = self.decode(data, path)
        except Exception as exc:
            logger.warning("Exception while loading media %s", path, exc_info=True)
            continuation(Failure(_message(exc)))
            return
        continuation(Success(image))

    def _read_all(self, path: str, kind: SourceKind) -> bytes:
        stream: BinaryIO = self.resolver.open(path, kind)
        try:
            return stream.read()
        finally:
            try:
                stream.close()
            except OSError:
                logger.warning("Unexpected error on close of %s", path, exc_info=True)


def load_image_async(context: "MediaContext", path: Optional[str], continuation: Continuation) -> None:
    ImagePipeline(context).load_async(path, continuation)


def load_image(context: "MediaContext", path: Optional[str]) -> Optional[ScaledImage]:
    return ImagePipeline(context).load(path)


def _message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _open_bounds(data: bytes) -> Image.Image:
    # Image.open checks the native size against MAX_IMAGE_PIXELS, but only the
    # sampled size is ever held in memory. The limit is process-wide state.
    with _BOUNDS_LOCK:
        limit = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            return Image.open(BytesIO(data))
        finally:
            Image.MAX_IMAGE_PIXELS = limit


def _check_decoded_size(image: Image.Image, native_width: int, native_height: int) -> None:
    limit = Image.MAX_IMAGE_PIXELS
    pixels = image.width * image.height
    if limit is not None and pixels > limit:
        raise MediaError(
            f"Image of {native_width}x{native_height} would decode to {pixels} pixels, "
            f"over the limit of {limit}"
        )
