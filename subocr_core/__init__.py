# subocr_core/__init__.py
"""
subocr - VobSub (.idx/.sub) to SRT conversion.

Pipeline:
    1. Demultiplex the selected subtitle track from the .sub payload
    2. Reassemble and decode DVD sub-picture units (SPU) into bitmaps
    3. Deduplicate, filter and order the units into timed events
    4. Backfill open-ended durations
    5. OCR each bitmap and write SRT
"""

from .convert import ConversionResult, convert_vobsub
from .errors import (
    ConfigurationError,
    ConversionCancelled,
    DecodeError,
    OcrFailure,
    SourceOpenError,
    StreamIOError,
    SubOcrError,
)
from .pipeline import EventPipeline, PipelineConfig
from .timing import pts_to_srt

__all__ = [
    "ConfigurationError",
    "ConversionCancelled",
    "ConversionResult",
    "DecodeError",
    "EventPipeline",
    "OcrFailure",
    "PipelineConfig",
    "SourceOpenError",
    "StreamIOError",
    "SubOcrError",
    "convert_vobsub",
    "pts_to_srt",
]
