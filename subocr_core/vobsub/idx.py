# subocr_core/vobsub/idx.py
"""
VobSub .idx index parser.

The .idx file is a text sidecar for the binary .sub payload:

    size: 720x480
    palette: 000000, ffffff, ...
    langidx: 0
    id: en, index: 0
    timestamp: 00:00:01:234, filepos: 000000000
    id: fr, index: 1
    delay: 00:00:00:500
    timestamp: 00:00:02:000, filepos: 00000a800

Each ``id:`` line opens a track; ``timestamp:`` lines belong to the most
recent track and point at the pack holding the first packet of a
sub-picture. ``delay:`` lines shift every following timestamp of the
current track.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ConfigurationError, SourceOpenError
from ..timing import ms_to_pts

logger = logging.getLogger(__name__)

_SIZE_RE = re.compile(r"size:\s*(\d+)\s*x\s*(\d+)")
_ID_RE = re.compile(r"id:\s*([^,\s]*)\s*,\s*index:\s*(\d+)")
_TIME_RE = r"(-?)(\d+):(\d+):(\d+)[:.,](\d+)"
_TIMESTAMP_RE = re.compile(
    r"timestamp:\s*" + _TIME_RE + r"\s*,\s*filepos:\s*([0-9a-fA-F]+)"
)
_DELAY_RE = re.compile(r"delay:\s*" + _TIME_RE)
_OFFSET_RE = re.compile(r"time offset:\s*(-?\d+)\s*$")


@dataclass
class IdxEntry:
    """Parsed timestamp entry from .idx file."""

    timestamp_ms: int
    file_position: int

    @property
    def pts(self) -> int:
        return ms_to_pts(max(0, self.timestamp_ms))


@dataclass
class IdxTrack:
    """One language track declared with an ``id:`` line."""

    index: int
    language: str
    entries: list[IdxEntry] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.language or "(no id)"


@dataclass
class VobSubHeader:
    """Header information from .idx file."""

    size_x: int = 720
    size_y: int = 480
    palette: list[tuple[int, int, int]] = None  # RGB tuples
    default_track: int = 0
    forced_only: bool = False

    def __post_init__(self):
        if self.palette is None:
            # Default grayscale palette
            self.palette = [(i * 17, i * 17, i * 17) for i in range(16)]


@dataclass
class IdxIndex:
    """Complete contents of an .idx file."""

    path: Path
    header: VobSubHeader
    tracks: list[IdxTrack] = field(default_factory=list)

    @property
    def available_tracks(self) -> list[tuple[int, str]]:
        return [(t.index, t.label) for t in self.tracks]

    def track(self, stream_index: int) -> IdxTrack:
        """
        Return the track declared with ``index: stream_index``.

        Raises:
            ConfigurationError: If no such track exists
        """
        for candidate in self.tracks:
            if candidate.index == stream_index:
                return candidate
        raise ConfigurationError(
            f"Track index out of range: {stream_index} "
            f"(available: {', '.join(str(i) for i, _ in self.available_tracks)})"
        )

    def default_track(self) -> IdxTrack:
        """
        Return the track named by ``langidx:``.

        Falls back to the first declared track if ``langidx`` names none.
        """
        for candidate in self.tracks:
            if candidate.index == self.header.default_track:
                return candidate
        fallback = self.tracks[0]
        logger.warning(
            f"langidx {self.header.default_track} names no declared track, "
            f"using track {fallback.index}"
        )
        return fallback

    def select(self, stream_index: int | None) -> IdxTrack:
        """Return the requested track, or the default one if None was requested."""
        if stream_index is None:
            return self.default_track()
        return self.track(stream_index)


def _time_to_ms(match: re.Match, first_group: int = 1) -> int:
    sign, hours, minutes, seconds, millis = match.group(
        first_group, first_group + 1, first_group + 2, first_group + 3, first_group + 4
    )
    ms = (
        int(hours) * 3_600_000
        + int(minutes) * 60_000
        + int(seconds) * 1000
        + int(millis)
    )
    return -ms if sign == "-" else ms


def _parse_palette(value: str) -> list[tuple[int, int, int]]:
    palette = []
    for color in value.split(",")[:16]:
        color = color.strip()
        if not color:
            continue
        try:
            rgb = int(color, 16)
        except ValueError:
            palette.append((128, 128, 128))
            continue
        palette.append(((rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF))
    # Pad to 16 colors if needed
    while len(palette) < 16:
        palette.append((128, 128, 128))
    return palette


def parse_idx(idx_path: Path) -> IdxIndex:
    """
    Parse a VobSub .idx file.

    Raises:
        SourceOpenError: If the file cannot be read or declares no tracks
    """
    idx_path = Path(idx_path)
    header = VobSubHeader()
    index = IdxIndex(path=idx_path, header=header)

    try:
        with open(idx_path, encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        raise SourceOpenError(f"Couldn't open VobSub index '{idx_path}': {e}") from e

    current: IdxTrack | None = None
    delay_ms = 0
    offset_ms = 0

    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("size:"):
            match = _SIZE_RE.match(line)
            if match:
                header.size_x = int(match.group(1))
                header.size_y = int(match.group(2))

        elif line.startswith("palette:"):
            header.palette = _parse_palette(line[len("palette:"):])

        elif line.startswith("langidx:"):
            try:
                header.default_track = int(line[len("langidx:"):].strip())
            except ValueError:
                logger.warning(f"{idx_path.name}:{lineno}: bad langidx line: {line}")

        elif line.startswith("forced subs:"):
            header.forced_only = line[len("forced subs:"):].strip().upper() == "ON"

        elif line.startswith("time offset:"):
            match = _OFFSET_RE.match(line)
            if match:
                offset_ms = int(match.group(1))

        elif line.startswith("id:"):
            match = _ID_RE.match(line)
            if not match:
                logger.warning(f"{idx_path.name}:{lineno}: bad id line: {line}")
                continue
            current = IdxTrack(index=int(match.group(2)), language=match.group(1))
            index.tracks.append(current)
            delay_ms = 0

        elif line.startswith("delay:"):
            match = _DELAY_RE.match(line)
            if match:
                delay_ms += _time_to_ms(match)

        elif line.startswith("timestamp:"):
            match = _TIMESTAMP_RE.match(line)
            if not match:
                logger.warning(f"{idx_path.name}:{lineno}: bad timestamp line: {line}")
                continue
            if current is None:
                # Timestamps before any id line belong to track 0
                current = IdxTrack(index=0, language="")
                index.tracks.append(current)
            timestamp_ms = _time_to_ms(match) + delay_ms + offset_ms
            current.entries.append(IdxEntry(timestamp_ms, int(match.group(6), 16)))

    if not index.tracks:
        raise SourceOpenError(f"No subtitle tracks declared in '{idx_path}'")

    index.tracks.sort(key=lambda t: t.index)
    return index
