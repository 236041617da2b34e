# subocr_core/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import AppConfig
from .convert import convert_vobsub, list_tracks
from .errors import ConfigurationError, SubOcrError
from .log_manager import LogManager
from .models.enums import EndPolicy

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="subocr",
        description="Convert VobSub (.idx/.sub) subtitles to SRT using Tesseract OCR.",
    )
    p.add_argument("input", type=Path, help="Path to the .idx (or .sub) file")
    p.add_argument("-o", "--output", type=Path, help="Output .srt path (default: <input>.srt)")
    p.add_argument("-s", "--stream-index", type=int, help="Track index from the .idx file (default: its langidx track)")
    p.add_argument("--list-tracks", action="store_true", help="List available tracks and exit")
    p.add_argument("-l", "--lang", dest="ocr_language", help="Tesseract language (e.g. eng, deu)")
    p.add_argument(
        "--end-policy",
        choices=[policy.value for policy in EndPolicy],
        help="How to end the last subtitle: fixed duration or open until end of stream",
    )
    p.add_argument("--last-duration-ms", type=int, help="Duration of the last subtitle for --end-policy fixed")
    p.add_argument("--dump-images", action="store_true", default=None, help="Write <output>-NNNN.pgm per subtitle")
    p.add_argument("-j", "--workers", type=int, dest="ocr_max_workers", help="Parallel OCR threads")
    p.add_argument("--config", type=Path, help="Settings JSON file")
    p.add_argument("--log-file", type=Path, help="Also write the log to this file")
    p.add_argument("--debug-dir", type=Path, help="Save preprocessed OCR images here")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = AppConfig(args.config)
    config.update({
        "stream_index": args.stream_index,
        "ocr_language": args.ocr_language,
        "last_end_policy": args.end_policy,
        "last_duration_ms": args.last_duration_ms,
        "dump_images": args.dump_images,
        "ocr_max_workers": args.ocr_max_workers,
    })
    if args.verbose:
        config.set("log_level", "DEBUG")
    elif args.quiet:
        config.set("log_level", "ERROR")

    try:
        settings = config.to_settings()
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    root_logger, handlers = LogManager.setup_logging(settings.log_level, args.log_file)
    try:
        if args.list_tracks:
            try:
                tracks = list_tracks(args.input)
            except SubOcrError as e:
                logger.error(str(e))
                return 1
            for index, label in tracks:
                print(f"{index}: {label}")
            return 0

        def progress_callback(message: str, progress: float):
            logger.debug(f"{message} ({int(progress * 100)}%)")

        result = convert_vobsub(
            args.input,
            args.output,
            settings=settings,
            progress_callback=progress_callback,
            debug_dir=args.debug_dir,
        )
        if result.success:
            return 0
        if isinstance(result.exception, ConfigurationError):
            return 2
        return 1
    finally:
        LogManager.cleanup_logging(root_logger, handlers)


if __name__ == "__main__":
    sys.exit(main())
