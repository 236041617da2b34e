# subocr_core/writers/pgm_dump.py
"""
Diagnostic dump of accepted sub-pictures as binary PGM (Netpbm P5) files.

Files are named ``<base>-NNNN.pgm`` after the pipeline's diagnostic
counter, so rejected sub-pictures leave gaps in the numbering.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..models.events import Bitmap

logger = logging.getLogger(__name__)


def pgm_bytes(bitmap: Bitmap) -> bytes:
    """Encode a bitmap as P5; only the first ``width`` bytes of each row are kept."""
    header = f"P5\n{bitmap.width} {bitmap.height} 255\n".encode("ascii")
    rows = bitmap.pixels[: bitmap.height, : bitmap.width]
    return header + rows.astype("uint8").tobytes()


class PgmDumper:
    """Writes one PGM per accepted sub-picture next to ``base``."""

    def __init__(self, base: Path):
        self.base = Path(base)
        self.written: list[Path] = []

    def path_for(self, counter: int) -> Path:
        return self.base.with_name(f"{self.base.name}-{counter:04d}.pgm")

    def dump(self, counter: int, bitmap: Bitmap) -> Path | None:
        """Write the image; a failed dump is logged and does not stop the run."""
        path = self.path_for(counter)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(pgm_bytes(bitmap))
        except OSError as e:
            logger.warning(f"Could not dump image {counter} to {path}: {e}")
            return None
        self.written.append(path)
        return path
