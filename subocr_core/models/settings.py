# subocr_core/models/settings.py
"""Application settings dataclass.

This is the single source of truth for all conversion settings.
All settings are typed and have defaults, eliminating dict[str, Any] access.

Settings are organized by category:
- Input: Track selection
- Timing: Resolution of the last open-ended event
- OCR: Tesseract and preprocessing options
- Output: Encoding, diagnostic image dumps
- Logging: Log level
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import BinarizationMethod, EndPolicy

DEFAULT_OCR_FAILURE_TEXT = "[OCR failure]"


def _optional_int(value) -> int | None:
    return None if value is None else int(value)


@dataclass
class AppSettings:
    """Complete application settings with typed fields.

    Pipeline code should access settings through this dataclass,
    not through raw dict access.
    """

    # =========================================================================
    # Input Settings
    # =========================================================================
    stream_index: int | None = None  # None = the .idx default track (langidx)

    # =========================================================================
    # Timing Settings
    # =========================================================================
    last_end_policy: EndPolicy = EndPolicy.FIXED
    last_duration_ms: int = 4000

    # =========================================================================
    # OCR Settings
    # =========================================================================
    ocr_language: str = ""  # Empty = derive from the .idx track id
    ocr_psm: int = 6
    ocr_oem: int = 3
    ocr_char_blacklist: str = "|"
    ocr_max_workers: int = 1
    ocr_failure_text: str = DEFAULT_OCR_FAILURE_TEXT

    # OCR Preprocessing
    ocr_upscale_threshold_height: int = 40
    ocr_target_height: int = 80
    ocr_border_size: int = 10
    ocr_binarization_method: BinarizationMethod = BinarizationMethod.OTSU

    # =========================================================================
    # Output Settings
    # =========================================================================
    output_encoding: str = "utf-8"
    dump_images: bool = False

    # =========================================================================
    # Logging Settings
    # =========================================================================
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, cfg: dict) -> AppSettings:
        """Create AppSettings from a config dictionary.

        Missing keys fall back to the dataclass defaults.
        """
        return cls(
            # Input Settings
            stream_index=_optional_int(cfg.get("stream_index")),
            # Timing Settings
            last_end_policy=EndPolicy(cfg.get("last_end_policy", "fixed")),
            last_duration_ms=int(cfg.get("last_duration_ms", 4000)),
            # OCR Settings
            ocr_language=str(cfg.get("ocr_language", "") or ""),
            ocr_psm=int(cfg.get("ocr_psm", 6)),
            ocr_oem=int(cfg.get("ocr_oem", 3)),
            ocr_char_blacklist=str(cfg.get("ocr_char_blacklist", "|")),
            ocr_max_workers=max(1, int(cfg.get("ocr_max_workers", 1))),
            ocr_failure_text=str(
                cfg.get("ocr_failure_text", DEFAULT_OCR_FAILURE_TEXT)
            ),
            ocr_upscale_threshold_height=int(
                cfg.get("ocr_upscale_threshold_height", 40)
            ),
            ocr_target_height=int(cfg.get("ocr_target_height", 80)),
            ocr_border_size=int(cfg.get("ocr_border_size", 10)),
            ocr_binarization_method=BinarizationMethod(
                cfg.get("ocr_binarization_method", "otsu")
            ),
            # Output Settings
            output_encoding=str(cfg.get("output_encoding", "utf-8")),
            dump_images=bool(cfg.get("dump_images", False)),
            # Logging Settings
            log_level=str(cfg.get("log_level", "INFO")).upper(),
        )

    def to_dict(self) -> dict:
        """Convert AppSettings to a dictionary for serialization."""
        from dataclasses import fields

        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            # Convert enums to their string values
            if hasattr(value, "value"):
                result[f.name] = value.value
            else:
                result[f.name] = value
        return result
