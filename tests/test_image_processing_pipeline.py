from __future__ import annotations

import threading
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image

from conftest import FakeContentResolver, build_context
from mediakit.errors import READ_EXTERNAL_STORAGE, MediaError, PermissionDeniedError
from mediakit.host import StaticDisplay, ThreadPoolRunner
from mediakit.image_processing.pipeline import (
    ImagePipeline,
    Synchronizer,
    load_image,
    load_image_async,
    render_placeholder,
)
from mediakit.image_processing.sizing import (
    COMPATIBILITY_MAX_HEIGHT,
    COMPATIBILITY_MAX_WIDTH,
    bitmap_budget,
    decode_options,
    sample_factor,
)
from mediakit.models import Failure, Success


def _png(width: int, height: int, color=(255, 0, 0)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.mark.parametrize(
    "native, budget, expected",
    [
        ((4000, 3000), (1000, 1000), 4),
        ((500, 500), (1000, 1000), 1),
        ((4000, 500), (1000, 1000), 1),
        ((2002, 2002), (1000, 1000), 4),
        ((2000, 2000), (1000, 1000), 2),
        ((1000, 1000), (1000, 1000), 1),
    ],
)
def test_sample_factor(native, budget, expected) -> None:
    assert sample_factor(*native, *budget) == expected


def test_bitmap_budget_modes() -> None:
    responsive = StaticDisplay(width_px=1080, height_px=1920, density_scale=2.0)
    compatible = StaticDisplay(width_px=1080, height_px=1920, density_scale=2.0, compatibility=True)

    assert bitmap_budget(responsive) == (540, 960)
    assert bitmap_budget(compatible) == (COMPATIBILITY_MAX_WIDTH, COMPATIBILITY_MAX_HEIGHT)


def test_decode_options_targets_sampled_size() -> None:
    display = StaticDisplay(width_px=1000, height_px=1000)
    options = decode_options(display, 4000, 3000)
    assert (options.target_width, options.target_height, options.sample_factor) == (1000, 750, 4)


def test_empty_path_succeeds_synchronously_without_scheduling() -> None:
    context = build_context()
    results = []

    load_image_async(context, "", results.append)
    load_image_async(context, None, results.append)

    assert results == [Success(None), Success(None)]
    assert context.runner.scheduled == 0
    assert load_image(context, "") is None


def test_large_image_is_sampled_and_not_rescaled() -> None:
    display = StaticDisplay(width_px=1000, height_px=1000, density_scale=2.0)
    context = build_context({"big.png": _png(4000, 3000)}, display=display)

    image = load_image(context, "big.png")

    # Budget is 500x500 at density 2, so the factor is 8.
    assert image is not None
    assert image.sample_factor == 8
    assert (image.width, image.height) == (500, 375)
    assert image.density == 2.0


def test_small_image_is_scaled_by_density() -> None:
    display = StaticDisplay(width_px=1000, height_px=1000, density_scale=1.5)
    context = build_context({"icon.png": _png(40, 20)}, display=display)

    image = load_image(context, "icon.png")

    assert image is not None
    assert image.sample_factor == 1
    assert (image.width, image.height) == (60, 30)
    assert image.image.getpixel((0, 0))[:3] == (255, 0, 0)


def test_density_one_keeps_native_size() -> None:
    context = build_context({"icon.png": _png(40, 20)})
    image = load_image(context, "icon.png")
    assert image is not None
    assert (image.width, image.height) == (40, 20)


def test_jpeg_is_sampled_while_decoding() -> None:
    buffer = BytesIO()
    Image.new("RGB", (3200, 3200), (0, 0, 255)).save(buffer, format="JPEG")
    context = build_context({"photo.jpg": buffer.getvalue()})

    image = load_image(context, "photo.jpg")

    assert image is not None
    assert image.sample_factor == 4
    assert (image.width, image.height) == (800, 800)


def test_permission_failure_is_tagged(tmp_path: Path) -> None:
    target = tmp_path / "a.png"
    target.write_bytes(_png(10, 10))
    context = build_context(granted=(), external_storage_path=str(tmp_path))
    results = []

    load_image_async(context, str(target), results.append)

    assert results == [Failure(f"PERMISSION_DENIED:{READ_EXTERNAL_STORAGE}")]
    assert results[0].permission == READ_EXTERNAL_STORAGE


def test_blocking_load_raises_permission_error_then_succeeds_once_granted(tmp_path: Path) -> None:
    target = tmp_path / "a.png"
    target.write_bytes(_png(10, 10))
    context = build_context(granted=(), external_storage_path=str(tmp_path))

    with pytest.raises(PermissionDeniedError) as excinfo:
        load_image(context, str(target))
    assert excinfo.value.permission == READ_EXTERNAL_STORAGE

    context.permissions.grant(READ_EXTERNAL_STORAGE)
    image = load_image(context, str(target))
    assert image is not None
    assert image.width == 10


def test_contact_without_photo_gets_placeholder() -> None:
    context = build_context(content=FakeContentResolver())
    results = []

    load_image_async(context, "content://contacts/people/42", results.append)

    assert len(results) == 1
    assert isinstance(results[0], Success)
    assert results[0].image is not None
    assert results[0].image.image.size == render_placeholder().size


def test_contact_photo_is_decoded() -> None:
    content = FakeContentResolver(photos={"content://contacts/people/1": _png(16, 16)})
    context = build_context(content=content)

    image = load_image(context, "content://contacts/people/1")

    assert image is not None
    assert image.width == 16


def test_io_failure_is_plain_message() -> None:
    context = build_context()
    results = []

    load_image_async(context, "content://media/absent", results.append)

    assert len(results) == 1
    assert isinstance(results[0], Failure)
    assert not results[0].is_permission_denied
    assert "content://media/absent" in results[0].message

    with pytest.raises(MediaError):
        load_image(context, "content://media/absent")


def test_undecodable_bytes_fail() -> None:
    context = build_context({"notes.txt": b"this is not an image"})
    results = []

    load_image_async(context, "notes.txt", results.append)

    assert len(results) == 1
    assert isinstance(results[0], Failure)
    with pytest.raises(MediaError):
        load_image(context, "notes.txt")


def test_remote_images_are_read_fresh_each_time() -> None:
    served = [_png(10, 10, (255, 0, 0)), _png(10, 10, (0, 255, 0))]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=served.pop(0))

    context = build_context(http_transport=httpx.MockTransport(handler))
    pipeline = ImagePipeline(context)

    first = pipeline.load("http://example.com/cam.png")
    second = pipeline.load("http://example.com/cam.png")

    assert first is not None and second is not None
    assert first.image.getpixel((0, 0))[:3] == (255, 0, 0)
    assert second.image.getpixel((0, 0))[:3] == (0, 255, 0)
    assert len(context.temp_files) == 0


def test_load_blocks_until_background_thread_delivers() -> None:
    runner = ThreadPoolRunner(max_workers=2)
    context = build_context({"icon.png": _png(8, 8)}, runner=runner)
    callers = []

    def call() -> None:
        callers.append(load_image(context, "icon.png"))

    try:
        threads = [threading.Thread(target=call) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
    finally:
        runner.shutdown()

    assert len(callers) == 3
    assert all(image is not None and image.width == 8 for image in callers)


def test_async_delivery_happens_off_the_caller_thread() -> None:
    runner = ThreadPoolRunner(max_workers=1)
    context = build_context({"icon.png": _png(8, 8)}, runner=runner)
    done = threading.Event()
    seen = {}

    def continuation(result) -> None:
        seen["thread"] = threading.current_thread()
        seen["result"] = result
        done.set()

    try:
        load_image_async(context, "icon.png", continuation)
        assert done.wait(timeout=10)
    finally:
        runner.shutdown()

    assert seen["thread"] is not threading.current_thread()
    assert isinstance(seen["result"], Success)


def test_synchronizer_accepts_a_single_result() -> None:
    synchronizer = Synchronizer()
    synchronizer.deliver(Failure("boom"))

    with pytest.raises(RuntimeError):
        synchronizer.deliver(Success(None))
    assert synchronizer.wait() == Failure("boom")


def test_placeholder_is_rgba_frame() -> None:
    placeholder = render_placeholder(32)
    assert placeholder.mode == "RGBA"
    assert placeholder.size == (32, 32)
    assert placeholder.getpixel((0, 0))[3] == 255


def test_oversized_jpeg_is_decoded_at_sampled_size(monkeypatch: pytest.MonkeyPatch) -> None:
    buffer = BytesIO()
    Image.new("L", (3000, 2500), 128).save(buffer, format="JPEG")
    context = build_context({"huge.jpg": buffer.getvalue()})
    # The native size is far past twice the limit; the 1/4 sampled size is not.
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1_000_000)

    image = load_image(context, "huge.jpg")

    assert image is not None
    assert image.sample_factor == 4
    assert (image.width, image.height) == (750, 625)
    assert Image.MAX_IMAGE_PIXELS == 1_000_000


def test_image_decoding_past_pixel_limit_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    context = build_context({"huge.png": _png(3000, 2500)})
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1_000_000)
    results = []

    load_image_async(context, "huge.png", results.append)

    assert len(results) == 1
    assert isinstance(results[0], Failure)
    assert "over the limit of 1000000" in results[0].message
