# subocr_core/writers/__init__.py
"""Subtitle and diagnostic image writers."""

from .pgm_dump import PgmDumper, pgm_bytes
from .srt_writer import SrtWriter, format_srt

__all__ = ["PgmDumper", "SrtWriter", "format_srt", "pgm_bytes"]
