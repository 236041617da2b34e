# subocr_core/ocr/preprocessing.py
"""
Image Preprocessing for OCR

Prepares decoded sub-picture bitmaps for Tesseract.

Steps:
    1. Ensure black text on white background
    2. Upscale short images to a workable text height
    3. Binarize (Otsu or adaptive thresholding)
    4. Add white border so glyphs do not touch the edge
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from ..models.enums import BinarizationMethod


@dataclass
class PreprocessingConfig:
    """Configuration for preprocessing pipeline."""

    # Auto-detect inverted images
    auto_detect: bool = True

    # Upscaling
    upscale_threshold_height: int = 40  # Upscale if height < this
    target_height: int = 80  # Target height after upscaling

    # Border
    border_size: int = 10  # White border in pixels

    # Binarization
    binarization_method: BinarizationMethod = BinarizationMethod.OTSU
    adaptive_block_size: int = 11
    adaptive_c: int = 2

    # Debug
    debug_dir: Path | None = None


class ImagePreprocessor:
    """Turns a grayscale bitmap into an OCR-ready image."""

    def __init__(self, config: PreprocessingConfig | None = None):
        self.config = config or PreprocessingConfig()

    def prepare(self, gray: np.ndarray, debug_name: str | None = None) -> np.ndarray:
        """
        Preprocess a (height, width) uint8 image.

        Args:
            gray: Grayscale image
            debug_name: File stem for the debug copy (only with debug_dir)

        Returns:
            Preprocessed uint8 image
        """
        gray = np.ascontiguousarray(gray, dtype=np.uint8)

        if self._should_invert(gray):
            gray = 255 - gray

        if gray.shape[0] < self.config.upscale_threshold_height:
            gray = self._upscale(gray)

        gray = self._binarize(gray)
        gray = self._add_border(gray)

        if self.config.debug_dir is not None and debug_name:
            self._save_debug(gray, debug_name)

        return gray

    def _should_invert(self, gray: np.ndarray) -> bool:
        """
        Tesseract works best with black text on white background.

        A mostly dark image most likely carries light text.
        """
        if not self.config.auto_detect or gray.size == 0:
            return False
        return float(np.mean(gray)) < 128

    def _upscale(self, gray: np.ndarray) -> np.ndarray:
        """Upscale to the target height using Lanczos interpolation."""
        current_height = gray.shape[0]
        if current_height == 0 or current_height >= self.config.target_height:
            return gray

        scale = self.config.target_height / current_height
        new_width = max(1, int(gray.shape[1] * scale))
        return cv2.resize(
            gray,
            (new_width, self.config.target_height),
            interpolation=cv2.INTER_LANCZOS4,
        )

    def _binarize(self, gray: np.ndarray) -> np.ndarray:
        method = self.config.binarization_method

        if method is BinarizationMethod.OTSU:
            _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
            return binary
        if method is BinarizationMethod.ADAPTIVE:
            return cv2.adaptiveThreshold(
                gray,
                255,
                cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                cv2.THRESH_BINARY,
                self.config.adaptive_block_size,
                self.config.adaptive_c,
            )
        return gray

    def _add_border(self, gray: np.ndarray) -> np.ndarray:
        size = self.config.border_size
        if size <= 0:
            return gray
        return cv2.copyMakeBorder(
            gray,
            top=size,
            bottom=size,
            left=size,
            right=size,
            borderType=cv2.BORDER_CONSTANT,
            value=255,
        )

    def _save_debug(self, gray: np.ndarray, name: str) -> Path:
        debug_dir = self.config.debug_dir
        debug_dir.mkdir(parents=True, exist_ok=True)
        output_path = debug_dir / f"{name}_preprocessed.png"
        Image.fromarray(gray).save(output_path)
        return output_path


def create_preprocessor(settings, debug_dir: Path | None = None) -> ImagePreprocessor:
    """
    Create preprocessor from AppSettings.

    Args:
        settings: Application settings
        debug_dir: Directory for preprocessed debug images

    Returns:
        Configured ImagePreprocessor
    """
    config = PreprocessingConfig(
        upscale_threshold_height=settings.ocr_upscale_threshold_height,
        target_height=settings.ocr_target_height,
        border_size=settings.ocr_border_size,
        binarization_method=settings.ocr_binarization_method,
        debug_dir=debug_dir,
    )
    return ImagePreprocessor(config)
