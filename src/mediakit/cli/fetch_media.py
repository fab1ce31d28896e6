from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from ..config import load_config
from ..context import MediaContext
from ..errors import PermissionDeniedError
from ..host import StaticPermissionHost, ThreadPoolRunner
from ..image_processing.pipeline import ImagePipeline
from ..media.tempfiles import materialize
from ..sources.classifier import classify


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve, cache or decode a media path")
    parser.add_argument(
        "path",
        help="Media path: asset name, /sdcard/ path, file:// or http(s) URL, or content:// handle",
    )
    parser.add_argument(
        "--classify", action="store_true", help="Only print the source kind of the path"
    )
    parser.add_argument(
        "--materialize",
        action="store_true",
        help="Copy the media to a local temp file and print its location",
    )
    parser.add_argument(
        "--output", type=Path, default=None, help="Decode the path as an image and save it here"
    )
    parser.add_argument(
        "--grant",
        action="append",
        default=[],
        metavar="CAPABILITY",
        help="Capability to grant for this run (repeatable)",
    )
    parser.add_argument(
        "--env-file", type=Path, default=None, help="Optional .env file with MEDIAKIT_* settings"
    )
    return parser.parse_args(argv)


def _build_context(args: argparse.Namespace) -> MediaContext:
    config = load_config(env_file=args.env_file)
    context = MediaContext.from_config(config)
    if args.grant:
        context.permissions = StaticPermissionHost([*config.granted_permissions, *args.grant])
    return context


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    try:
        context = _build_context(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    kind = classify(context, args.path)
    logger.info("Source kind for %s: %s", args.path, kind.name)
    if args.classify or not (args.materialize or args.output is not None):
        if not args.classify:
            logger.info("No --materialize or --output given, only classifying")
        print(kind.name)
        return

    try:
        if args.materialize:
            print(materialize(context, args.path, kind))
        if args.output is not None:
            image = ImagePipeline(context).load(args.path)
            if image is None:
                logger.error("Nothing to decode for empty path")
                raise SystemExit(2)
            image.image.save(args.output)
            logger.info(
                "Stored %sx%s image (sample factor %s) at %s",
                image.width,
                image.height,
                image.sample_factor,
                args.output,
            )
    except PermissionDeniedError as exc:
        logger.error("Permission denied: %s", exc.permission)
        raise SystemExit(1) from exc
    except OSError as exc:
        logger.error("Failed to load media: %s", exc)
        raise SystemExit(2) from exc
    except ValueError as exc:
        logger.error("Unable to save image to %s: %s", args.output, exc)
        raise SystemExit(2) from exc
    finally:
        if isinstance(context.runner, ThreadPoolRunner):
            context.runner.shutdown(wait=False)


if __name__ == "__main__":
    main()
