# subocr_core/timing.py
# -*- coding: utf-8 -*-
"""
Conversion between 90 kHz presentation timestamps and SRT time text.

All arithmetic is integer and truncating; nothing is rounded.
"""
from __future__ import annotations

from .models.events import MAX_PTS, OPEN, EndPts

PTS_PER_MS = 90


def pts_to_srt(pts: int) -> str:
    """
    Format a pts as an SRT timestamp.

    Args:
        pts: Tick count in 90 kHz units, 0 <= pts <= 2**32 - 1

    Returns:
        Timestamp text (HH:MM:SS,mmm)
    """
    if not 0 <= pts <= MAX_PTS:
        raise ValueError(f"pts out of range: {pts}")

    ms = pts // PTS_PER_MS
    hours = ms // 3_600_000
    rest = ms % 3_600_000
    minutes = rest // 60_000
    rest %= 60_000
    seconds = rest // 1000
    millis = rest % 1000

    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def ms_to_pts(ms: int) -> int:
    return ms * PTS_PER_MS


def pts_to_ms(pts: int) -> int:
    return pts // PTS_PER_MS


def resolve_end(end: EndPts, fallback: int = MAX_PTS) -> int:
    """Return a concrete end pts, using ``fallback`` for an open end."""
    if end is OPEN:
        return fallback
    return end
