# tests/test_packets.py
import logging

import pytest

from subocr_core.errors import ConfigurationError, SourceOpenError, StreamIOError
from subocr_core.models.events import NO_PTS
from subocr_core.vobsub.packets import VobSubPacketSource, substream_id
from tests.vobsub_builder import SubBuilder, build_spu, pes_packet


def test_packets_carry_index_time_on_first_fragment_only(vobsub_pair):
    with VobSubPacketSource.open(vobsub_pair) as source:
        packets = list(source)
        assert source.packets_read == 4

    assert [p.idx_pts for p in packets] == [90_000, 270_000, NO_PTS, 540_000]
    assert all(substream_id(p.data) == 0x20 for p in packets)
    assert not packets[2].has_pts


def test_open_accepts_sub_path_and_logs_languages(vobsub_pair, caplog):
    caplog.set_level(logging.INFO, logger="subocr_core")
    with VobSubPacketSource.open(vobsub_pair.with_suffix(".sub")) as source:
        assert source.track.language == "en"
    assert "Languages:" in caplog.text
    assert "0: en" in caplog.text


def test_other_tracks_are_skipped(tmp_path):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000, track=0)
    builder.add_unit(build_spu(30, 10), pts_ms=1500, track=1)
    builder.add_unit(build_spu(40, 10), pts_ms=2000, track=0)
    idx_path = builder.write(tmp_path, languages=("en", "de"))

    with VobSubPacketSource.open(idx_path, stream_index=1) as source:
        packets = list(source)
    assert [p.idx_pts for p in packets] == [135_000]
    assert substream_id(packets[0].data) == 0x21


def test_garbage_between_packs_is_skipped(tmp_path):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000)
    builder.data += b"\x12\x34\x56\x78junkjunk"
    builder.add_unit(build_spu(20, 10), pts_ms=2000)
    idx_path = builder.write(tmp_path)

    with VobSubPacketSource.open(idx_path) as source:
        assert [p.idx_pts for p in source] == [90_000, 180_000]


def test_truncated_payload_raises(tmp_path):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000)
    builder.data += pes_packet(b"\x00\x40" + b"\x00" * 20, pts=9)[:-5]
    idx_path = builder.write(tmp_path)

    with VobSubPacketSource.open(idx_path) as source:
        assert source.next_packet().idx_pts == 90_000
        with pytest.raises(StreamIOError):
            source.next_packet()


def test_missing_files(tmp_path, vobsub_pair):
    with pytest.raises(SourceOpenError):
        VobSubPacketSource.open(tmp_path / "nothing.idx")

    vobsub_pair.with_suffix(".sub").unlink()
    with pytest.raises(SourceOpenError, match="SUB file not found"):
        VobSubPacketSource.open(vobsub_pair)


def test_unknown_track_is_rejected(vobsub_pair):
    with pytest.raises(ConfigurationError):
        VobSubPacketSource.open(vobsub_pair, stream_index=3)


def test_closed_source_returns_none(vobsub_pair):
    source = VobSubPacketSource.open(vobsub_pair)
    source.close()
    assert source.next_packet() is None


def test_default_track_comes_from_langidx(tmp_path):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000, track=0)
    builder.add_unit(build_spu(30, 10), pts_ms=1500, track=1)
    idx_path = builder.write(tmp_path, languages=("en", "de"), langidx=1)

    with VobSubPacketSource.open(idx_path) as source:
        assert source.track.language == "de"
        assert [p.idx_pts for p in source] == [135_000]

    with VobSubPacketSource.open(idx_path, stream_index=0) as source:
        assert [p.idx_pts for p in source] == [90_000]


def test_mpeg1_program_stream(tmp_path):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000, mpeg1=True)
    builder.add_unit(build_spu(40, 12), pts_ms=2000, fragments=2, mpeg1=True)
    idx_path = builder.write(tmp_path)

    with VobSubPacketSource.open(idx_path) as source:
        packets = list(source)
    assert [p.idx_pts for p in packets] == [90_000, 180_000, NO_PTS]
    assert all(substream_id(p.data) == 0x20 for p in packets)
