# subocr_core/convert.py
# -*- coding: utf-8 -*-
"""
Conversion entry point.

Wires the VobSub packet source, the SPU assembler, Tesseract and the SRT
writer into an EventPipeline and reports the outcome as a
ConversionResult instead of raising for expected failures.

Usage:
    result = convert_vobsub(Path('movie.idx'), settings=AppSettings())
    if not result.success:
        print(result.error)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from .errors import SubOcrError
from .models.settings import AppSettings
from .ocr.engine import create_recognizer
from .ocr.preprocessing import create_preprocessor
from .pipeline import EventPipeline, PipelineConfig
from .vobsub.idx import parse_idx
from .vobsub.packets import VobSubPacketSource
from .vobsub.spu import SpuAssembler
from .writers.pgm_dump import PgmDumper
from .writers.srt_writer import SrtWriter

if TYPE_CHECKING:
    from .models.protocols import TextRecognizer

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Result of one conversion run."""
    success: bool = False
    output_path: Optional[Path] = None
    event_count: int = 0
    rejected_count: int = 0
    decode_errors: int = 0
    ocr_failures: int = 0
    timestamp_mismatches: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
    exception: Optional[SubOcrError] = field(default=None, repr=False)


def idx_path_for(input_path: Path) -> Path:
    """Accept either half of the pair and return the .idx path."""
    input_path = Path(input_path)
    if input_path.suffix.lower() == '.sub':
        return input_path.with_suffix('.idx')
    return input_path


def list_tracks(input_path: Path) -> list[tuple[int, str]]:
    """
    Return (index, language id) for every track declared in the .idx.

    Raises:
        SourceOpenError: If the index cannot be read
    """
    return parse_idx(idx_path_for(input_path)).available_tracks


def convert_vobsub(
    input_path: Path,
    output_path: Optional[Path] = None,
    settings: Optional[AppSettings] = None,
    recognizer: Optional['TextRecognizer'] = None,
    progress_callback: Optional[Callable[[str, float], None]] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    debug_dir: Optional[Path] = None,
) -> ConversionResult:
    """
    Convert a VobSub .idx/.sub pair to SRT.

    Args:
        input_path: Path to the .idx (or .sub) file
        output_path: SRT destination (defaults to <input>.srt)
        settings: Conversion settings (defaults to AppSettings())
        recognizer: Text recognizer; Tesseract is created from settings if None
        progress_callback: Signature: callback(message: str, progress: float)
        cancel_check: Polled between packets; True cancels the run
        debug_dir: Optional directory for preprocessed OCR images

    Returns:
        ConversionResult; on failure ``error`` describes the cause and no
        events are reported.
    """
    settings = settings or AppSettings()
    idx_path = idx_path_for(input_path)
    output_path = Path(output_path) if output_path else idx_path.with_suffix('.srt')

    result = ConversionResult(output_path=output_path)
    start_time = time.time()

    try:
        with VobSubPacketSource.open(idx_path, settings.stream_index) as source:
            track = source.track
            logger.info(
                f"Converting track {track.index} ({track.label}) of {idx_path.name}: "
                f"{len(track.entries)} indexed sub-pictures"
            )

            if recognizer is None:
                recognizer = create_recognizer(
                    settings,
                    track_language=track.language,
                    preprocessor=create_preprocessor(settings, debug_dir),
                )

            dumper = None
            if settings.dump_images:
                dumper = PgmDumper(output_path.parent / output_path.stem)

            config = PipelineConfig.from_settings(settings)
            config.forced_only = source.index.header.forced_only
            if config.forced_only:
                logger.info("Index requests forced subtitles only")

            pipeline = EventPipeline(
                source=source,
                assembler=SpuAssembler(source.index.header),
                recognizer=recognizer,
                writer=SrtWriter(output_path, encoding=settings.output_encoding),
                config=config,
                dumper=dumper,
                progress_callback=progress_callback,
                cancel_check=cancel_check,
            )
            context = pipeline.run()

    except SubOcrError as e:
        logger.error(f"Conversion failed: {e}")
        result.error = str(e)
        result.exception = e
        result.duration_seconds = time.time() - start_time
        return result

    result.success = True
    result.event_count = len(context.events)
    result.rejected_count = context.rejected
    result.decode_errors = context.decode_errors
    result.ocr_failures = context.ocr_failures
    result.timestamp_mismatches = context.timestamp_mismatches
    result.duration_seconds = time.time() - start_time

    logger.info(
        f"Wrote {result.event_count} subtitles to {output_path.name} "
        f"in {result.duration_seconds:.1f}s"
    )
    if result.ocr_failures:
        logger.warning(f"OCR failed for {result.ocr_failures} subtitles (placeholder text used)")

    return result
