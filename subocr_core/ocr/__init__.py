# subocr_core/ocr/__init__.py
"""
OCR for decoded sub-picture bitmaps

    - preprocessing: Inversion, upscaling, binarization, border
    - engine: Tesseract recognizer with language mapping
"""

from .engine import (
    OCRConfig,
    TesseractRecognizer,
    clean_text,
    create_recognizer,
    tesseract_language,
)
from .preprocessing import ImagePreprocessor, PreprocessingConfig, create_preprocessor

__all__ = [
    "ImagePreprocessor",
    "OCRConfig",
    "PreprocessingConfig",
    "TesseractRecognizer",
    "clean_text",
    "create_preprocessor",
    "create_recognizer",
    "tesseract_language",
]
