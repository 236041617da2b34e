# tests/test_spu.py
import logging
import struct

import numpy as np
import pytest

from subocr_core.errors import DecodeError
from subocr_core.models.events import NO_PTS, OPEN
from subocr_core.vobsub.idx import VobSubHeader
from subocr_core.vobsub.spu import (
    SpuAssembler, _decode_rle_run, read_pes_pts, split_pes,
)
from tests.vobsub_builder import build_spu, mpeg1_pes_packet, pes_packet, split_bytes


def test_pes_pts_is_read_back():
    pes = pes_packet(b"\x00\x04\x00\x00", pts=123_456_789)
    assert read_pes_pts(pes) == 123_456_789
    assert read_pes_pts(pes_packet(b"\x00\x04")) is None


def test_split_pes_strips_substream_id():
    pts, payload = split_pes(pes_packet(b"abc", pts=900, substream=0x21))
    assert pts == 900
    assert payload == b"abc"


def test_split_pes_accepts_mpeg1_headers():
    pts, payload = split_pes(mpeg1_pes_packet(b"abc", pts=123_456, substream=0x21))
    assert pts == 123_456
    assert payload == b"abc"

    pts, payload = split_pes(mpeg1_pes_packet(b"abc"))
    assert pts is None
    assert payload == b"abc"
    assert read_pes_pts(mpeg1_pes_packet(b"\x00\x04", pts=900)) == 900


@pytest.mark.parametrize("data", [
    b"\x00\x00\x01\xe0\x00\x05\x81\x00\x00\x20\x00",  # video stream
    b"\x00\x00\x01\xbd\x00\x03\xff\xff\x0f",  # MPEG-1 header, no payload
    b"\x00\x01",
])
def test_split_pes_rejects_foreign_packets(data):
    with pytest.raises(DecodeError):
        split_pes(data)


@pytest.mark.parametrize("data, expected", [
    (bytes([0x55, 0x00, 0x00]), (0, 1, 1, True, False)),     # 4-bit
    (bytes([0x12, 0x00, 0x00]), (1, 4, 2, False, False)),    # 8-bit
    (bytes([0x04, 0x30, 0x00]), (1, 16, 3, True, False)),    # 12-bit
    (bytes([0x01, 0x01, 0x00]), (2, 64, 1, False, False)),   # 16-bit
    (bytes([0x00, 0x02, 0x00]), (2, 0, 2, False, True)),     # rest of line
])
def test_rle_code_lengths(data, expected):
    assert _decode_rle_run(data, 0, False) == expected


def test_rle_half_byte_alignment():
    # Second nibble of 0x55 is itself a 4-bit code
    assert _decode_rle_run(bytes([0x55, 0x00, 0x00]), 0, True) == (1, 1, 1, False, False)


def test_decode_single_unit():
    unit = SpuAssembler().decode(build_spu(20, 10, x=100, y=400), stream_pts=90_000)
    assert (unit.width, unit.height) == (20, 10)
    assert unit.bitmap.stride == 24
    assert unit.start_pts == 90_000
    assert unit.end_pts is OPEN
    assert np.all(unit.bitmap.view == 0)
    # Row padding beyond the visible width is background
    assert np.all(unit.bitmap.pixels[:, 20:] == 255)
    assert not unit.forced


def test_decode_forced_flag():
    unit = SpuAssembler().decode(build_spu(20, 10, forced=True), stream_pts=0)
    assert unit.forced
    assert (unit.width, unit.height) == (20, 10)


def test_mpeg1_fragments_are_reassembled():
    first, second = split_bytes(build_spu(40, 12), 2)
    assembler = SpuAssembler()
    assembler.feed(mpeg1_pes_packet(first, pts=9000), 9000)
    assembler.feed(mpeg1_pes_packet(second), NO_PTS)
    assembler.advance(9000)
    unit = assembler.poll_completed()
    assert (unit.width, unit.start_pts) == (40, 9000)


def test_decode_applies_start_and_stop_delays():
    unit = SpuAssembler().decode(build_spu(20, 10, start_delay=2, stop_delay=100), 90_000)
    assert unit.start_pts == 90_000 + 2048
    assert unit.end_pts == 90_000 + 102_400


def test_dark_colour_is_background_when_a_bright_one_is_visible():
    spu = build_spu(16, 4, palette=b"\x0f\x10", alpha=b"\x0f\xf0")
    unit = SpuAssembler(VobSubHeader()).decode(spu, 0)
    assert np.all(unit.bitmap.view == 255)


def test_invisible_colour_is_background():
    unit = SpuAssembler().decode(build_spu(16, 4, alpha=b"\x00\x00"), 0)
    assert np.all(unit.bitmap.view == 255)


def test_bad_control_offset_is_rejected():
    spu = bytearray(build_spu(20, 10))
    spu[2:4] = struct.pack(">H", len(spu) + 10)
    with pytest.raises(DecodeError):
        SpuAssembler().decode(bytes(spu), 0)


def test_implausible_size_is_rejected():
    with pytest.raises(DecodeError):
        SpuAssembler().decode(build_spu(2500, 2), 0)


def test_unit_waits_for_clock():
    assembler = SpuAssembler()
    assembler.feed(pes_packet(build_spu(20, 10), pts=90_000), 90_000)
    assert assembler.poll_completed() is None
    assembler.advance(90_000)
    unit = assembler.poll_completed()
    assert unit.start_pts == 90_000
    assert unit.idx_pts == 90_000
    assert assembler.poll_completed() is None


def test_fragmented_unit_is_reassembled():
    first, second, third = split_bytes(build_spu(40, 12), 3)
    assembler = SpuAssembler()
    assembler.feed(pes_packet(first, pts=9000), 9000)
    assembler.feed(pes_packet(second), NO_PTS)
    assert assembler.in_progress
    assembler.feed(pes_packet(third), NO_PTS)
    assert not assembler.in_progress
    assembler.advance(9000)
    assert assembler.poll_completed().width == 40


def test_index_time_used_without_pes_pts():
    assembler = SpuAssembler()
    assembler.feed(pes_packet(build_spu(20, 10)), 45_000)
    assembler.advance(45_000)
    assert assembler.poll_completed().start_pts == 45_000


def test_unit_without_any_timestamp_fails():
    assembler = SpuAssembler()
    assembler.feed(pes_packet(build_spu(20, 10)), NO_PTS)
    with pytest.raises(DecodeError):
        assembler.poll_completed()


def test_truncated_unit_is_reported_and_next_one_survives():
    first, _ = split_bytes(build_spu(40, 12), 2)
    assembler = SpuAssembler()
    assembler.feed(pes_packet(first, pts=1000), 1000)
    assembler.feed(pes_packet(build_spu(20, 10), pts=2000), 2000)
    assembler.advance(2000)
    with pytest.raises(DecodeError, match="truncated"):
        assembler.poll_completed()
    assert assembler.poll_completed().start_pts == 2000


def test_garbage_packet_is_reported():
    assembler = SpuAssembler()
    assembler.feed(b"\x00\x00\x01\xbe\x00\x02\xff\xff", 1000)
    with pytest.raises(DecodeError):
        assembler.poll_completed()


def test_drain_flushes_pending_and_drops_partial(caplog):
    caplog.set_level(logging.WARNING, logger="subocr_core")
    assembler = SpuAssembler()
    assembler.feed(pes_packet(build_spu(20, 10), pts=1000), 1000)
    first, _ = split_bytes(build_spu(40, 12), 2)
    assembler.feed(pes_packet(first, pts=5000), 5000)

    units = assembler.drain()
    assert [u.start_pts for u in units] == [1000]
    assert "Discarding incomplete unit" in caplog.text
    assert assembler.drain() == []
