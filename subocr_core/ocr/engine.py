# subocr_core/ocr/engine.py
"""
Tesseract OCR Engine Wrapper

Recognizes the text of one sub-picture bitmap at a time. Uses pytesseract
as the interface to Tesseract 4/5.

Recognition failures raise OcrFailure; the pipeline substitutes a
placeholder so the event keeps its timing.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

import cv2
import pytesseract
from PIL import Image

from ..errors import ConfigurationError, OcrFailure
from ..models.events import Bitmap
from .preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)

# .idx track ids are two-letter codes; Tesseract wants its own three-letter names
TESSERACT_LANGUAGES = {
    "ar": "ara",
    "bg": "bul",
    "cs": "ces",
    "da": "dan",
    "de": "deu",
    "el": "ell",
    "en": "eng",
    "es": "spa",
    "fi": "fin",
    "fr": "fra",
    "he": "heb",
    "hr": "hrv",
    "hu": "hun",
    "is": "isl",
    "it": "ita",
    "ja": "jpn",
    "ko": "kor",
    "nl": "nld",
    "no": "nor",
    "pl": "pol",
    "pt": "por",
    "ro": "ron",
    "ru": "rus",
    "sk": "slk",
    "sl": "slv",
    "sr": "srp",
    "sv": "swe",
    "th": "tha",
    "tr": "tur",
    "uk": "ukr",
    "zh": "chi_sim",
}


def tesseract_language(track_language: str, default: str = "eng") -> str:
    """Map an .idx language id to a Tesseract language name."""
    code = (track_language or "").strip().lower()
    if code in TESSERACT_LANGUAGES:
        return TESSERACT_LANGUAGES[code]
    if len(code) == 3:
        return code
    return default


@dataclass
class OCRConfig:
    """Configuration for OCR engine."""

    language: str = "eng"
    psm: int = 6  # Block mode - works better for DVD subtitles than line mode
    oem: int = 3  # Default - use LSTM if available
    char_blacklist: str = "|"  # Pipe is a frequent misread of 'I'


class TesseractRecognizer:
    """
    Text recognizer backed by Tesseract.

    Instances hold no per-image state, so ``recognize`` may be called from
    several threads at once.
    """

    def __init__(
        self,
        config: OCRConfig | None = None,
        preprocessor: ImagePreprocessor | None = None,
        verify: bool = True,
    ):
        self.config = config or OCRConfig()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.tesseract_version = None
        self._images = itertools.count(1)
        if verify:
            self._verify_tesseract()

    def _verify_tesseract(self):
        """Verify Tesseract is installed and the language is available."""
        try:
            self.tesseract_version = str(pytesseract.get_tesseract_version())
            languages = pytesseract.get_languages(config="")
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise ConfigurationError(
                f"Tesseract not found or not accessible: {e}\n"
                "Install Tesseract: apt install tesseract-ocr tesseract-ocr-eng"
            ) from e

        missing = [
            lang for lang in self.config.language.split("+") if lang not in languages
        ]
        if missing:
            raise ConfigurationError(
                f"Tesseract language data not installed: {', '.join(missing)}"
            )
        logger.debug(f"Tesseract {self.tesseract_version}, language {self.config.language}")

    def _build_config(self) -> str:
        """Build Tesseract configuration string."""
        config_parts = [f"--psm {self.config.psm}", f"--oem {self.config.oem}"]
        if self.config.char_blacklist:
            config_parts.append(f"-c tessedit_char_blacklist={self.config.char_blacklist}")
        config_parts.append("-c preserve_interword_spaces=1")
        return " ".join(config_parts)

    def recognize(self, bitmap: Bitmap) -> str:
        """
        Recognize the text of one bitmap.

        Returns:
            Text with trailing whitespace removed from every line

        Raises:
            OcrFailure: If Tesseract fails or finds no text
        """
        if bitmap is None or bitmap.width == 0 or bitmap.height == 0:
            raise OcrFailure("Empty bitmap")

        debug_name = f"sub_{next(self._images):04d}"
        try:
            image = Image.fromarray(self.preprocessor.prepare(bitmap.view, debug_name))
        except (cv2.error, ValueError, TypeError, OSError) as e:
            raise OcrFailure(f"Preprocessing failed: {e}") from e
        try:
            raw = pytesseract.image_to_string(
                image, lang=self.config.language, config=self._build_config()
            )
        except (pytesseract.TesseractError, RuntimeError) as e:
            raise OcrFailure(str(e)) from e

        text = clean_text(raw)
        if not text:
            raise OcrFailure("No text recognized")
        return text


def clean_text(raw: str) -> str:
    """Strip trailing whitespace per line and drop blank lines."""
    lines = [line.rstrip() for line in raw.replace("\x0c", "").splitlines()]
    return "\n".join(line for line in lines if line.strip())


def create_recognizer(settings, track_language: str = "", preprocessor=None) -> TesseractRecognizer:
    """
    Create a recognizer from AppSettings.

    The OCR language comes from settings.ocr_language, or is derived from
    the .idx id of the selected track.
    """
    language = settings.ocr_language or tesseract_language(track_language)
    config = OCRConfig(
        language=language,
        psm=settings.ocr_psm,
        oem=settings.ocr_oem,
        char_blacklist=settings.ocr_char_blacklist,
    )
    return TesseractRecognizer(config, preprocessor)
