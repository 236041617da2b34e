# tests/test_convert.py
from subocr_core.convert import convert_vobsub, idx_path_for, list_tracks
from subocr_core.errors import ConfigurationError, ConversionCancelled, SourceOpenError
from subocr_core.models.enums import EndPolicy
from tests.fakes import FakeRecognizer, StaticRecognizer
from tests.vobsub_builder import SubBuilder, build_spu

EXPECTED_SRT = (
    "1\n00:00:01,000 --> 00:00:03,000\nHello\n\n"
    "2\n00:00:03,000 --> 00:00:06,000\nHello\n\n"
    "3\n00:00:06,000 --> 00:00:07,137\nHello\n\n"
)


def test_end_to_end(vobsub_pair, settings):
    result = convert_vobsub(vobsub_pair, settings=settings, recognizer=StaticRecognizer())
    assert result.success, result.error
    assert result.output_path == vobsub_pair.with_suffix(".srt")
    assert result.event_count == 3
    assert result.timestamp_mismatches == 0
    assert result.output_path.read_text(encoding="utf-8") == EXPECTED_SRT


def test_end_to_end_with_tesseract(vobsub_pair, settings, fake_tesseract, tmp_path):
    out = tmp_path / "out" / "movie.srt"
    out.parent.mkdir()
    result = convert_vobsub(vobsub_pair, out, settings=settings)
    assert result.success, result.error
    assert out.read_text(encoding="utf-8").count("Hello\n world\n") == 3
    assert {call["lang"] for call in fake_tesseract} == {"eng"}


def test_open_policy_runs_last_event_to_end_of_stream(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000)
    builder.add_unit(build_spu(20, 10), pts_ms=2000)
    idx_path = builder.write(tmp_path)

    settings.last_end_policy = EndPolicy.OPEN
    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer("x"))
    assert result.output_path.read_text(encoding="utf-8") == (
        "1\n00:00:01,000 --> 00:00:02,000\nx\n\n"
        "2\n00:00:02,000 --> 13:15:21,858\nx\n\n"
    )


def test_fixed_policy_uses_last_duration(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000)
    idx_path = builder.write(tmp_path)

    settings.last_duration_ms = 2500
    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer("x"))
    assert "00:00:01,000 --> 00:00:03,500" in result.output_path.read_text(encoding="utf-8")


def test_small_and_mistimed_units(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(5, 1), pts_ms=1000)
    builder.add_unit(build_spu(20, 10), pts_ms=2000, pes_pts_offset=900)
    idx_path = builder.write(tmp_path)

    settings.dump_images = True
    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer("x"))
    assert result.event_count == 1
    assert result.rejected_count == 1
    assert result.timestamp_mismatches == 1
    assert "00:00:02,010 --> " in result.output_path.read_text(encoding="utf-8")
    assert not (tmp_path / "movie-0001.pgm").exists()
    assert (tmp_path / "movie-0002.pgm").exists()


def test_ocr_failures_are_counted(vobsub_pair, settings):
    result = convert_vobsub(vobsub_pair, settings=settings, recognizer=FakeRecognizer(fail_widths={64}))
    assert result.success
    assert result.ocr_failures == 1
    assert "[OCR failure]" in result.output_path.read_text(encoding="utf-8")


def test_parallel_ocr(vobsub_pair, settings):
    settings.ocr_max_workers = 3
    result = convert_vobsub(vobsub_pair, settings=settings, recognizer=FakeRecognizer())
    lines = result.output_path.read_text(encoding="utf-8").splitlines()
    assert [line.split()[1] for line in lines if line.startswith("text")] == ["40x12", "64x20", "32x10"]


def test_empty_stream(tmp_path, settings):
    idx_path = SubBuilder().write(tmp_path)
    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer())
    assert result.success
    assert result.event_count == 0
    assert result.output_path.read_text(encoding="utf-8") == ""


def test_missing_input(tmp_path, settings):
    result = convert_vobsub(tmp_path / "missing.idx", settings=settings, recognizer=StaticRecognizer())
    assert not result.success
    assert isinstance(result.exception, SourceOpenError)
    assert "not found" in result.error


def test_bad_track(vobsub_pair, settings):
    settings.stream_index = 7
    result = convert_vobsub(vobsub_pair, settings=settings, recognizer=StaticRecognizer())
    assert isinstance(result.exception, ConfigurationError)
    assert not vobsub_pair.with_suffix(".srt").exists()


def test_cancelled_run_writes_nothing(vobsub_pair, settings):
    result = convert_vobsub(
        vobsub_pair, settings=settings, recognizer=StaticRecognizer(), cancel_check=lambda: True
    )
    assert isinstance(result.exception, ConversionCancelled)
    assert not vobsub_pair.with_suffix(".srt").exists()


def test_list_tracks_and_sub_path(vobsub_pair):
    assert list_tracks(vobsub_pair.with_suffix(".sub")) == [(0, "en")]
    assert idx_path_for(vobsub_pair.with_suffix(".sub")) == vobsub_pair


def test_forced_subs_index_keeps_forced_units_only(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000)
    builder.add_unit(build_spu(20, 10, forced=True), pts_ms=2000)
    builder.add_unit(build_spu(20, 10), pts_ms=3000)
    idx_path = builder.write(tmp_path, forced=True)

    settings.dump_images = True
    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer("x"))
    assert result.event_count == 1
    assert result.rejected_count == 2
    assert result.output_path.read_text(encoding="utf-8").startswith(
        "1\n00:00:02,000 --> 00:00:06,000\nx\n"
    )
    assert [p.name for p in sorted(tmp_path.glob("*.pgm"))] == ["movie-0002.pgm"]


def test_langidx_picks_track_when_none_is_given(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000, track=0)
    builder.add_unit(build_spu(30, 10), pts_ms=2000, track=1)
    idx_path = builder.write(tmp_path, languages=("en", "de"), langidx=1)

    result = convert_vobsub(idx_path, settings=settings, recognizer=FakeRecognizer())
    assert result.event_count == 1
    assert "text 30x10" in result.output_path.read_text(encoding="utf-8")


def test_mpeg1_stream_end_to_end(tmp_path, settings):
    builder = SubBuilder()
    builder.add_unit(build_spu(20, 10), pts_ms=1000, mpeg1=True)
    builder.add_unit(build_spu(40, 12), pts_ms=2000, fragments=2, mpeg1=True)
    idx_path = builder.write(tmp_path)

    result = convert_vobsub(idx_path, settings=settings, recognizer=StaticRecognizer("x"))
    assert result.success, result.error
    assert result.event_count == 2
    assert result.timestamp_mismatches == 0
