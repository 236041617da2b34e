# subocr_core/vobsub/spu.py
"""
DVD sub-picture unit (SPU) assembler and decoder.

A sub-picture unit may be split over several PES packets. The first
fragment starts with the 2-byte total unit size; the unit is complete
once that many payload bytes have been collected:

    SPU := size(2) ctrl_offset(2) rle_data... control_sequences...

Each control sequence (SP_DCSQ) is:
    - 2 bytes: SP_DCSQ_STM, delay in 1024/90000 s units
    - 2 bytes: offset of the next SP_DCSQ (points to itself on the last one)
    - commands until 0xFF

Commands:
    0x00 forced display     0x01 start display     0x02 stop display
    0x03 palette (2 bytes)  0x04 alpha (2 bytes)    0x05 coordinates (6 bytes)
    0x06 RLE field offsets (4 bytes)                0xFF end of sequence

RLE encoding (2-bit colour index, interlaced top/bottom fields):
    Value      Bits   Format
    1-3        4      nncc               (half a byte)
    4-15       8      00nnnncc           (one byte)
    16-63     12      0000nnnnnncc       (one and a half byte)
    64-255    16      000000nnnnnnnncc   (two bytes)
    A 16-bit code with n == 0 fills the rest of the line.

Usage mirrors a heartbeat-driven decoder: ``feed()`` fragments,
``advance()`` the clock, ``poll_completed()`` for finished units and
``drain()`` at end of stream.
"""

from __future__ import annotations

import logging
import struct
from collections import deque
from dataclasses import dataclass

import numpy as np

from ..errors import DecodeError
from ..models.events import MAX_PTS, NO_PTS, OPEN, Bitmap, EndPts, SubPictureUnit
from .idx import VobSubHeader
from .packets import PRIVATE_STREAM_1, START_PREFIX, parse_pes_header

logger = logging.getLogger(__name__)

MAX_DIMENSION = 2000

# Text pixels must be visible and bright; dark outlines become background
ALPHA_THRESHOLD = 1
LUMA_THRESHOLD = 100


@dataclass
class ControlInfo:
    """Display parameters read from the SPU control sequences."""

    x1: int = 0
    y1: int = 0
    x2: int = -1
    y2: int = -1
    color_indices: tuple[int, int, int, int] = (0, 1, 2, 3)
    alpha_values: tuple[int, int, int, int] = (0, 15, 15, 15)
    top_field_offset: int = 4
    bottom_field_offset: int = 4
    forced: bool = False
    start_delay: int = 0
    stop_delay: int | None = None

    @property
    def width(self) -> int:
        return max(0, self.x2 - self.x1 + 1)

    @property
    def height(self) -> int:
        return max(0, self.y2 - self.y1 + 1)


@dataclass
class _PendingUnit:
    data: bytes
    stream_pts: int  # Timing base: PES PTS, or the index timestamp if absent
    arrival_pts: int  # Clock value at which the unit may be finalized
    idx_pts: int


def read_pes_pts(pes: bytes) -> int | None:
    """Return the PTS of a PES packet, or None if it carries none."""
    if len(pes) < 9:
        return None
    pts, _ = parse_pes_header(pes)
    return None if pts is None else pts & MAX_PTS


def split_pes(pes: bytes) -> tuple[int | None, bytes]:
    """
    Split a private stream 1 PES packet into (pts, payload).

    The payload excludes the substream id byte.

    Raises:
        DecodeError: If the packet is not a well-formed private stream 1 packet
    """
    if len(pes) < 9 or pes[:3] != START_PREFIX or pes[3] != PRIVATE_STREAM_1:
        raise DecodeError("Fragment is not a private stream 1 PES packet")
    pts, payload_start = parse_pes_header(pes)
    if payload_start >= len(pes):
        raise DecodeError("PES packet has no payload")
    if pts is not None:
        pts &= MAX_PTS
    return pts, pes[payload_start + 1 :]


def _luminance(rgb: tuple[int, int, int]) -> float:
    r, g, b = rgb
    return 0.299 * r + 0.587 * g + 0.114 * b


class SpuAssembler:
    """
    Reassembles fragmented sub-picture units and decodes them to bitmaps.

    Completed units wait in a pending queue until ``advance()`` reaches
    their timestamp; they are then decoded into the ready queue read by
    ``poll_completed()``. Decode failures are queued in order and raised
    by the poll that reaches them.
    """

    def __init__(self, header: VobSubHeader | None = None):
        self.header = header or VobSubHeader()
        self.clock = NO_PTS
        self._buffer = bytearray()
        self._expected = 0
        self._unit_stream_pts = NO_PTS
        self._unit_arrival_pts = NO_PTS
        self._unit_idx_pts = NO_PTS
        self._pending: deque[_PendingUnit] = deque()
        self._ready: deque[SubPictureUnit | DecodeError] = deque()

    @property
    def in_progress(self) -> bool:
        return self._expected > 0

    def feed(self, data: bytes, idx_pts: int) -> None:
        """Accumulate one PES fragment."""
        try:
            pes_pts, payload = split_pes(data)
        except DecodeError as e:
            self._fail(e)
            return

        if self.in_progress and pes_pts is not None and pes_pts != self._unit_stream_pts:
            self._fail(
                DecodeError(
                    f"Unit at pts {self._unit_stream_pts} truncated: "
                    f"got {len(self._buffer)} of {self._expected} bytes"
                )
            )

        if not self.in_progress:
            if len(payload) < 2:
                self._fail(DecodeError("First fragment too short for unit size"))
                return
            size = struct.unpack(">H", payload[0:2])[0]
            if size < 4:
                self._fail(DecodeError(f"Invalid unit size {size}"))
                return
            stream_pts = pes_pts if pes_pts is not None else idx_pts
            if stream_pts < 0:
                self._fail(DecodeError("Unit start carries no timestamp"))
                return
            self._expected = size
            self._unit_stream_pts = stream_pts
            self._unit_arrival_pts = idx_pts if idx_pts >= 0 else stream_pts
            self._unit_idx_pts = idx_pts

        self._buffer.extend(payload)

        if len(self._buffer) >= self._expected:
            self._pending.append(
                _PendingUnit(
                    data=bytes(self._buffer[: self._expected]),
                    stream_pts=self._unit_stream_pts,
                    arrival_pts=self._unit_arrival_pts,
                    idx_pts=self._unit_idx_pts,
                )
            )
            self._reset()

    def advance(self, idx_pts: int) -> None:
        """Move the clock forward and finalize units that are due."""
        if idx_pts > self.clock:
            self.clock = idx_pts
        while self._pending and self._pending[0].arrival_pts <= self.clock:
            self._finalize(self._pending.popleft())

    def poll_completed(self) -> SubPictureUnit | None:
        """
        Return the next finished unit, or None.

        Raises:
            DecodeError: If the next queued unit could not be decoded
        """
        if not self._ready:
            return None
        item = self._ready.popleft()
        if isinstance(item, DecodeError):
            raise item
        return item

    def drain(self) -> list[SubPictureUnit]:
        """
        Finalize everything still pending at end of stream.

        Units that fail to decode here are logged and skipped.
        """
        if self.in_progress:
            logger.warning(
                f"Discarding incomplete unit at pts {self._unit_stream_pts}: "
                f"got {len(self._buffer)} of {self._expected} bytes"
            )
            self._reset()
        while self._pending:
            self._finalize(self._pending.popleft())

        units = []
        while self._ready:
            item = self._ready.popleft()
            if isinstance(item, DecodeError):
                logger.warning(f"Skipping undecodable unit: {item}")
                continue
            units.append(item)
        return units

    def _reset(self):
        self._buffer = bytearray()
        self._expected = 0
        self._unit_stream_pts = NO_PTS
        self._unit_arrival_pts = NO_PTS
        self._unit_idx_pts = NO_PTS

    def _fail(self, error: DecodeError):
        self._ready.append(error)
        self._reset()

    def _finalize(self, pending: _PendingUnit):
        try:
            unit = self.decode(pending.data, pending.stream_pts)
        except DecodeError as e:
            self._ready.append(e)
            return
        unit.idx_pts = pending.idx_pts
        self._ready.append(unit)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, data: bytes, stream_pts: int) -> SubPictureUnit:
        """
        Decode a complete SPU.

        Raises:
            DecodeError: If the unit is malformed
        """
        if len(data) < 4:
            raise DecodeError("Unit shorter than its header")

        ctrl_offset = struct.unpack(">H", data[2:4])[0]
        if ctrl_offset < 4 or ctrl_offset >= len(data):
            raise DecodeError(f"Control sequence offset {ctrl_offset} out of range")

        ctrl = self._parse_control_sequence(data, ctrl_offset)
        width, height = ctrl.width, ctrl.height
        if width > MAX_DIMENSION or height > MAX_DIMENSION:
            raise DecodeError(f"Implausible unit size {width}x{height}")

        image = self._decode_rle_image(data, ctrl, width, height)
        stride = (width + 7) & ~7
        bitmap = Bitmap.from_array(image, stride=stride)

        start_pts = min(stream_pts + (ctrl.start_delay << 10), MAX_PTS)
        end_pts: EndPts = OPEN
        if ctrl.stop_delay is not None:
            end_pts = min(stream_pts + (ctrl.stop_delay << 10), MAX_PTS)

        return SubPictureUnit(
            bitmap=bitmap,
            start_pts=start_pts,
            end_pts=end_pts,
            forced=ctrl.forced,
        )

    def _parse_control_sequence(self, data: bytes, offset: int) -> ControlInfo:
        """Walk the SP_DCSQ chain starting at ``offset``."""
        ctrl = ControlInfo()
        seen = set()

        while offset not in seen and offset + 4 <= len(data):
            seen.add(offset)
            delay = struct.unpack(">H", data[offset : offset + 2])[0]
            next_ctrl = struct.unpack(">H", data[offset + 2 : offset + 4])[0]
            pos = offset + 4

            while pos < len(data):
                cmd = data[pos]
                pos += 1

                if cmd == 0x00:
                    ctrl.forced = True
                elif cmd == 0x01:
                    ctrl.start_delay = delay
                elif cmd == 0x02:
                    ctrl.stop_delay = delay
                elif cmd == 0x03:
                    if pos + 2 > len(data):
                        raise DecodeError("Truncated palette command")
                    b1, b2 = data[pos], data[pos + 1]
                    # Nibbles map to colour slots 3,2,1,0
                    ctrl.color_indices = (b2 & 0x0F, b2 >> 4, b1 & 0x0F, b1 >> 4)
                    pos += 2
                elif cmd == 0x04:
                    if pos + 2 > len(data):
                        raise DecodeError("Truncated alpha command")
                    b1, b2 = data[pos], data[pos + 1]
                    ctrl.alpha_values = (b2 & 0x0F, b2 >> 4, b1 & 0x0F, b1 >> 4)
                    pos += 2
                elif cmd == 0x05:
                    if pos + 6 > len(data):
                        raise DecodeError("Truncated coordinates command")
                    c = data[pos : pos + 6]
                    ctrl.x1 = (c[0] << 4) | (c[1] >> 4)
                    ctrl.x2 = ((c[1] & 0x0F) << 8) | c[2]
                    ctrl.y1 = (c[3] << 4) | (c[4] >> 4)
                    ctrl.y2 = ((c[4] & 0x0F) << 8) | c[5]
                    pos += 6
                elif cmd == 0x06:
                    if pos + 4 > len(data):
                        raise DecodeError("Truncated RLE offsets command")
                    ctrl.top_field_offset, ctrl.bottom_field_offset = struct.unpack(
                        ">HH", data[pos : pos + 4]
                    )
                    pos += 4
                elif cmd == 0xFF:
                    break
                else:
                    logger.debug(f"Unknown control command 0x{cmd:02x}, skipping sequence")
                    break

            if next_ctrl == offset:
                break
            offset = next_ctrl

        return ctrl

    def _text_colors(self, ctrl: ControlInfo) -> list[int]:
        """
        Map the four SPU colour slots to grayscale (0 = text, 255 = background).

        Slot 0 is always background. Other slots are text when visible and
        bright; if no slot qualifies, visibility alone decides.
        """
        palette = self.header.palette
        lumas = [
            _luminance(palette[i]) if i < len(palette) else 128.0
            for i in ctrl.color_indices
        ]
        is_text = [
            slot != 0 and alpha >= ALPHA_THRESHOLD and luma > LUMA_THRESHOLD
            for slot, (alpha, luma) in enumerate(zip(ctrl.alpha_values, lumas))
        ]
        if not any(is_text):
            is_text = [
                slot != 0 and alpha >= ALPHA_THRESHOLD
                for slot, alpha in enumerate(ctrl.alpha_values)
            ]
        return [0 if text else 255 for text in is_text]

    def _decode_rle_image(
        self, data: bytes, ctrl: ControlInfo, width: int, height: int
    ) -> np.ndarray:
        image = np.full((height, width), 255, dtype=np.uint8)
        if width == 0 or height == 0:
            return image

        colors = self._text_colors(ctrl)
        # Top field holds even lines, bottom field odd lines
        _decode_rle_field(data, ctrl.top_field_offset, image, 0, colors)
        _decode_rle_field(data, ctrl.bottom_field_offset, image, 1, colors)
        return image


def _decode_rle_run(data: bytes, index: int, only_half: bool) -> tuple[int, int, int, bool, bool]:
    """
    Decode a single RLE run.

    Returns:
        Tuple of (index_increment, run_length, color, new_only_half, rest_of_line)
    """
    if index + 2 >= len(data):
        return 0, 0, 0, only_half, True

    b1 = data[index]
    b2 = data[index + 1]

    # At a half-byte position, realign the next two bytes
    if only_half:
        b3 = data[index + 2]
        b1 = ((b1 & 0x0F) << 4) | ((b2 & 0xF0) >> 4)
        b2 = ((b2 & 0x0F) << 4) | ((b3 & 0xF0) >> 4)

    # 16-bit code
    if b1 >> 2 == 0:
        run_length = (b1 << 6) | (b2 >> 2)
        color = b2 & 0x03
        if run_length == 0:
            if only_half:
                return 3, 0, color, False, True
            return 2, 0, color, only_half, True
        return 2, run_length, color, only_half, False

    # 12-bit code
    if b1 >> 4 == 0:
        run_length = (b1 << 2) | (b2 >> 6)
        color = (b2 & 0x30) >> 4
        if only_half:
            return 2, run_length, color, False, False
        return 1, run_length, color, True, False

    # 8-bit code
    if b1 >> 6 == 0:
        return 1, b1 >> 2, b1 & 0x03, only_half, False

    # 4-bit code
    run_length = b1 >> 6
    color = (b1 & 0x30) >> 4
    if only_half:
        return 1, run_length, color, False, False
    return 0, run_length, color, True, False


def _decode_rle_field(
    data: bytes, offset: int, image: np.ndarray, start_line: int, colors: list[int]
):
    """Decode one interlaced field into every second line of ``image``."""
    height, width = image.shape
    if offset >= len(data):
        return

    index = offset
    only_half = False
    x = 0
    y = start_line

    while y < height and index + 2 < len(data):
        inc, run_length, color, only_half, rest_of_line = _decode_rle_run(
            data, index, only_half
        )
        index += inc

        if rest_of_line:
            run_length = width - x
        run = min(run_length, width - x)
        if run > 0:
            image[y, x : x + run] = colors[color]
        x += run

        if x >= width:
            # Lines start on a byte boundary
            if only_half:
                only_half = False
                index += 1
            x = 0
            y += 2
