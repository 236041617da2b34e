# tests/conftest.py
from pathlib import Path
import pytest

from subocr_core.models.settings import AppSettings


@pytest.fixture
def settings():
    """Defaults, isolated from any settings file on the machine."""
    return AppSettings()


@pytest.fixture
def vobsub_pair(tmp_path: Path):
    """
    Three subtitles on track 0:
      - 1.000s, no stop command
      - 3.000s, split over two packs, no stop command
      - 6.000s, explicit stop 1024*100 ticks later
    """
    from tests.vobsub_builder import SubBuilder, build_spu

    builder = SubBuilder()
    builder.add_unit(build_spu(40, 12), pts_ms=1000)
    builder.add_unit(build_spu(64, 20), pts_ms=3000, fragments=2)
    builder.add_unit(build_spu(32, 10, stop_delay=100), pts_ms=6000)
    return builder.write(tmp_path)


@pytest.fixture
def fake_tesseract(monkeypatch):
    """Patch pytesseract so no Tesseract binary is needed."""
    import pytesseract

    calls = []

    def image_to_string(image, lang=None, config=None):
        calls.append({"size": image.size, "lang": lang, "config": config})
        return "Hello  \n\n world\n\x0c"

    monkeypatch.setattr(pytesseract, "image_to_string", image_to_string)
    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng", "deu", "osd"])
    return calls
