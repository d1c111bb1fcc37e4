"""Command line entry point: apply filters or build icon bundles from a file."""

from __future__ import annotations

import argparse
import dataclasses
import os
import sys

from pixel_editor.config import EditorConfig
from pixel_editor.edit.documents import DocumentRegistry
from pixel_editor.errors import ExportError, ExportTimeoutError, ValidationError
from pixel_editor.export.coordinator import ExportCoordinator, ExportResult
from pixel_editor.export.naming import format_file_size
from pixel_editor.export.worker_pool import WorkerPool
from pixel_editor.filters.square import ANCHORS
from pixel_editor.image_engine.decoder import VipsCodec, decode_buffer
from pixel_editor.image_engine.resample import QUALITIES
from pixel_editor.logger import get_logger, setup_logger
from pixel_editor.settings_manager import SettingsManager

logger = get_logger("main")

FORMAT_MIMES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "tiff": "image/tiff",
}


# --- CLI logging options -----------------------------------------------------
# Logging options are accepted anywhere on the command line. They are reflected
# in PIXEL_EDITOR_LOG_LEVEL / PIXEL_EDITOR_LOG_CATS and removed before the
# subcommand parser sees the arguments.


def _apply_cli_logging_options(argv: list[str]) -> list[str]:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    args, remaining = parser.parse_known_args(argv)
    if args.log_level:
        os.environ["PIXEL_EDITOR_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["PIXEL_EDITOR_LOG_CATS"] = args.log_cats
    setup_logger()
    return remaining


def _parse_scale(text: str) -> tuple[float, str]:
    """``0.5`` or ``0.5:medium``."""
    value, _, quality = text.partition(":")
    try:
        scale = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid scale: {value!r}") from None
    quality = quality or "high"
    if quality not in QUALITIES:
        raise argparse.ArgumentTypeError(f"quality must be one of {', '.join(QUALITIES)}")
    return scale, quality


def _parse_sizes(text: str) -> list[int]:
    try:
        return [int(p) for p in text.replace(" ", "").split(",") if p]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size list: {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pixel_editor", description="Pixel editor")
    parser.add_argument("--settings", help="JSON settings file")
    parser.add_argument("--no-worker", action="store_true", help="Run exports on the calling thread")
    sub = parser.add_subparsers(dest="command", required=True)

    conv = sub.add_parser("convert", help="Apply filters and re-encode")
    conv.add_argument("input")
    conv.add_argument("--square", nargs="?", const="center", choices=ANCHORS, help="Crop to a square")
    conv.add_argument("--grayscale", nargs="?", const=1.0, type=float, metavar="INTENSITY")
    conv.add_argument("--scale", type=_parse_scale, metavar="S[:QUALITY]")
    conv.add_argument("--format", default="png", choices=sorted(FORMAT_MIMES))
    conv.add_argument("--quality", type=int)
    conv.add_argument("-o", "--output")

    icons = sub.add_parser("icons", help="Build a multi-size icon bundle")
    icons.add_argument("input")
    icons.add_argument("--sizes", type=_parse_sizes, help="Comma separated, e.g. 16,32,48")
    icons.add_argument("-o", "--output")
    return parser


def _output_path(result: ExportResult, output: str | None, input_path: str, settings: SettingsManager | None) -> str:
    if output and not os.path.isdir(output):
        return output
    directory = output or (settings.last_output_dir if settings else None) or os.path.dirname(os.path.abspath(input_path))
    return os.path.join(directory, result.filename)


def run(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    argv = _apply_cli_logging_options(list(argv))
    args = build_parser().parse_args(argv)

    settings = SettingsManager(args.settings) if args.settings else None
    config = settings.editor_config() if settings else EditorConfig()
    if args.no_worker:
        config = dataclasses.replace(config, worker_enabled=False)

    codec = VipsCodec()
    pool = WorkerPool(codec) if config.worker_enabled else None
    coordinator = ExportCoordinator(config, codec, pool)
    registry = DocumentRegistry(config)
    try:
        with open(args.input, "rb") as f:
            data = f.read(config.max_file_size + 1)
        buffer = decode_buffer(data, None, config)
        stat = os.stat(args.input)
        name = os.path.basename(args.input)
        doc_id = registry.generate_id(name, stat.st_size, int(stat.st_mtime * 1000))
        ctx = registry.create_context(doc_id, buffer, name, size=stat.st_size)
        logger.info("loaded %s (%dx%d)", name, buffer.width, buffer.height)

        if args.command == "convert":
            pipeline = ctx.pipeline
            if args.square:
                pipeline.set_value("square", args.square)
                pipeline.enable("square")
            if args.grayscale is not None:
                pipeline.set_value("grayscale", args.grayscale)
                pipeline.enable("grayscale")
            if args.scale is not None:
                scale, quality = args.scale
                pipeline.set_value("resolution", scale)
                resolution = pipeline.get_filter("resolution")
                resolution.quality = quality  # type: ignore[union-attr]
                pipeline.enable("resolution")
            if pipeline.has_active_filters():
                ctx.recompute_derived()
            result = coordinator.export_single(ctx, FORMAT_MIMES[args.format], args.quality)
        else:
            result = coordinator.export_bundle(ctx, args.sizes)
            for err in result.errors:
                logger.warning("skipped: %s", err)

        path = _output_path(result, args.output, args.input, settings)
        with open(path, "wb") as f:
            f.write(result.data)
        if settings is not None:
            settings.set("last_output_dir", path)
        logger.info("wrote %s (%s)", path, format_file_size(len(result.data)))
        print(path)
        return 0
    except ValidationError as e:
        logger.error("invalid input: %s", e)
        return 2
    except (ExportError, ExportTimeoutError) as e:
        logger.error("%s", e.user_message)
        return 1
    except OSError as e:
        logger.error("%s", e)
        return 1
    finally:
        registry.clear()
        coordinator.shutdown()


if __name__ == "__main__":
    sys.exit(run())
