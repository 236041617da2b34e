# subocr_core/errors.py
"""
Exception types raised by the conversion pipeline.

Unit-scoped failures (DecodeError, OcrFailure) are recovered by the
pipeline. Stream-scoped failures (ConfigurationError, SourceOpenError,
StreamIOError) abort the run.
"""


class SubOcrError(Exception):
    """Base class for all conversion errors."""


class ConfigurationError(SubOcrError):
    """Invalid run configuration, e.g. a track selector out of range."""


class SourceOpenError(SubOcrError):
    """The .idx/.sub pair is missing or cannot be parsed."""


class DecodeError(SubOcrError):
    """A single sub-picture unit could not be decoded."""


class OcrFailure(SubOcrError):
    """Text recognition failed for a single bitmap."""


class StreamIOError(SubOcrError, OSError):
    """Reading the packet stream or writing the output failed."""


class ConversionCancelled(SubOcrError):
    """The run was cancelled between two packets."""
