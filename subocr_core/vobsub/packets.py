# subocr_core/vobsub/packets.py
"""
VobSub .sub packet reader.

The .sub file is an MPEG-2 (rarely MPEG-1) Program Stream. Subtitle data is carried in
private stream 1 (0xBD) PES packets; the first payload byte is the
substream id, 0x20 + track index. Every pack is normally 0x800 bytes and
starts with a pack header (0x000001BA), padded with padding stream 0xBE.

Packets of the selected track are yielded whole (PES start code included)
together with the timestamp of the .idx entry that points at their pack.
Packets not referenced by the index are continuation data and carry
NO_PTS.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import BinaryIO, Iterator

from ..errors import SourceOpenError, StreamIOError
from ..models.events import NO_PTS, RawPacket
from .idx import IdxIndex, IdxTrack, parse_idx

logger = logging.getLogger(__name__)

PACK_START = b"\x00\x00\x01\xba"
END_CODE = b"\x00\x00\x01\xb9"
START_PREFIX = b"\x00\x00\x01"
PRIVATE_STREAM_1 = 0xBD
SUBSTREAM_BASE = 0x20
RESYNC_CHUNK = 2048


def sub_path_for(idx_path: Path) -> Path:
    """Return the .sub payload path paired with an .idx file."""
    for suffix in (".sub", ".SUB"):
        candidate = idx_path.with_suffix(suffix)
        if candidate.exists():
            return candidate
    return idx_path.with_suffix(".sub")


def _read_pts(pes: bytes, pos: int) -> int:
    return (
        ((pes[pos] >> 1) & 0x07) << 30
        | pes[pos + 1] << 22
        | (pes[pos + 2] >> 1) << 15
        | pes[pos + 3] << 7
        | pes[pos + 4] >> 1
    )


def parse_pes_header(pes: bytes) -> tuple[int | None, int]:
    """
    Return (pts, payload offset) of a PES packet with an MPEG-1 or MPEG-2 header.

    The pts is None when the header carries none.
    """
    if pes[6] & 0xC0 == 0x80:
        pts = _read_pts(pes, 9) if pes[7] & 0x80 and len(pes) >= 14 else None
        return pts, 9 + pes[8]

    # MPEG-1 style PES header: stuffing bytes then optional fields
    pos = 6
    while pos < len(pes) and pes[pos] == 0xFF:
        pos += 1
    if pos < len(pes) and pes[pos] & 0xC0 == 0x40:
        pos += 2
    pts = None
    if pos < len(pes) and pes[pos] & 0xE0 == 0x20:
        # 0x2_ carries a PTS, 0x3_ a PTS followed by a DTS
        if pos + 5 <= len(pes):
            pts = _read_pts(pes, pos)
        pos += 10 if pes[pos] & 0xF0 == 0x30 else 5
    else:
        pos += 1
    return pts, pos


def substream_id(pes: bytes) -> int | None:
    """Return the substream id of a private stream 1 PES packet, if any."""
    if len(pes) < 9 or pes[3] != PRIVATE_STREAM_1:
        return None
    _, payload_start = parse_pes_header(pes)
    if payload_start >= len(pes):
        return None
    return pes[payload_start]


class VobSubPacketSource:
    """
    Yields the PES packets of one VobSub track in file order.

    Use ``VobSubPacketSource.open()`` to validate the track selection and
    open the payload file; then call ``next_packet()`` until it returns
    None, or iterate.
    """

    def __init__(self, index: IdxIndex, stream: BinaryIO, stream_index: int):
        self.index = index
        self.stream_index = stream_index
        self.track: IdxTrack = index.track(stream_index)
        self._f = stream
        self._substream = SUBSTREAM_BASE + stream_index
        self._pts_by_pos = {e.file_position: e.pts for e in self.track.entries}
        self._pack_pos = -1
        self.packets_read = 0

    @classmethod
    def open(cls, idx_path: Path, stream_index: int | None = None) -> VobSubPacketSource:
        """
        Open an .idx/.sub pair for one track.

        With no stream_index the track named by ``langidx:`` is used.

        Raises:
            SourceOpenError: If either file is missing or unreadable
            ConfigurationError: If stream_index names no declared track
        """
        idx_path = Path(idx_path)
        if idx_path.suffix.lower() == ".sub":
            idx_path = idx_path.with_suffix(".idx")
        if not idx_path.exists():
            raise SourceOpenError(f"IDX file not found: {idx_path}")

        sub_path = sub_path_for(idx_path)
        if not sub_path.exists():
            raise SourceOpenError(f"SUB file not found: {sub_path}")

        index = parse_idx(idx_path)

        logger.info("Languages:")
        for track_index, label in index.available_tracks:
            logger.info(f"{track_index}: {label}")

        # Validate the selector before touching the payload
        stream_index = index.select(stream_index).index

        try:
            stream = open(sub_path, "rb")
        except OSError as e:
            raise SourceOpenError(f"Couldn't open VobSub payload '{sub_path}': {e}") from e

        logger.debug(f"Opened {sub_path.name}, track {stream_index}")
        return cls(index, stream, stream_index)

    @property
    def available_tracks(self) -> list[tuple[int, str]]:
        return self.index.available_tracks

    def close(self):
        if self._f is not None:
            self._f.close()
            self._f = None

    def __enter__(self) -> VobSubPacketSource:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __iter__(self) -> Iterator[RawPacket]:
        while True:
            packet = self.next_packet()
            if packet is None:
                return
            yield packet

    def next_packet(self) -> RawPacket | None:
        """
        Return the next packet of the selected track, or None at end of stream.

        Raises:
            StreamIOError: On a read error or a packet truncated mid-way
        """
        if self._f is None:
            return None

        try:
            while True:
                pos = self._f.tell()
                start_code = self._f.read(4)
                if len(start_code) < 4:
                    return None

                if start_code == PACK_START:
                    self._pack_pos = pos
                    self._skip_pack_header()
                    continue

                if start_code == END_CODE:
                    continue

                if start_code[:3] != START_PREFIX:
                    self._resync(pos + 1)
                    continue

                length_bytes = self._read_exact(2, "PES length")
                packet_length = struct.unpack(">H", length_bytes)[0]
                body = self._read_exact(packet_length, "PES payload")

                if start_code[3] != PRIVATE_STREAM_1:
                    continue

                pes = start_code + length_bytes + body
                if substream_id(pes) != self._substream:
                    continue

                self.packets_read += 1
                # Only the first packet of an indexed pack gets the index timestamp
                idx_pts = self._pts_by_pos.pop(self._pack_pos, NO_PTS)
                return RawPacket(data=pes, idx_pts=idx_pts)

        except OSError as e:
            if isinstance(e, StreamIOError):
                raise
            raise StreamIOError(f"Failed to read VobSub payload: {e}") from e

    def _read_exact(self, size: int, what: str) -> bytes:
        data = self._f.read(size)
        if len(data) < size:
            raise StreamIOError(
                f"Truncated {what} at offset {self._f.tell()}: "
                f"expected {size} bytes, got {len(data)}"
            )
        return data

    def _skip_pack_header(self):
        marker = self._read_exact(1, "pack header")
        if marker[0] & 0xC0 == 0x40:
            # MPEG-2: 10 bytes after the start code, last one holds stuffing length
            rest = self._read_exact(9, "pack header")
            stuffing = rest[8] & 0x07
            if stuffing:
                self._read_exact(stuffing, "pack stuffing")
        else:
            # MPEG-1: 8 bytes after the start code
            self._read_exact(7, "pack header")

    def _resync(self, pos: int):
        """Skip garbage up to the next start code prefix."""
        self._f.seek(pos)
        while True:
            chunk = self._f.read(RESYNC_CHUNK)
            if len(chunk) < 3:
                # Nothing left that could hold a start code
                self._f.seek(0, 2)
                return
            found = chunk.find(START_PREFIX)
            if found >= 0:
                self._f.seek(pos + found)
                logger.debug(f"Resynced at offset {pos + found}")
                return
            # Keep the last two bytes, the prefix may straddle chunks
            pos += len(chunk) - 2
            self._f.seek(pos)
