# tests/test_timing.py
import pytest

from subocr_core.models.events import MAX_PTS, OPEN
from subocr_core.timing import ms_to_pts, pts_to_ms, pts_to_srt, resolve_end


@pytest.mark.parametrize("pts, expected", [
    (0, "00:00:00,000"),
    (89, "00:00:00,000"),
    (90, "00:00:00,001"),
    (8110, "00:00:00,090"),
    (90_000, "00:00:01,000"),
    (324_000_000, "01:00:00,000"),
    (324_000_090, "01:00:00,001"),
    (MAX_PTS, "13:15:21,858"),
])
def test_pts_to_srt_truncates(pts, expected):
    assert pts_to_srt(pts) == expected


@pytest.mark.parametrize("pts", [-1, MAX_PTS + 1])
def test_pts_to_srt_rejects_out_of_range(pts):
    with pytest.raises(ValueError):
        pts_to_srt(pts)


def test_ms_conversions():
    assert ms_to_pts(4000) == 360_000
    assert pts_to_ms(360_089) == 4000


def test_resolve_end():
    assert resolve_end(1234) == 1234
    assert resolve_end(OPEN) == MAX_PTS
    assert resolve_end(OPEN, fallback=5) == 5
