# subocr_core/models/events.py
"""
Data structures passed between the packet source, the SPU assembler and
the event pipeline.

All timestamps are presentation timestamps (pts) in 90 kHz ticks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

# idx_pts value for packets that have no timestamp of their own
NO_PTS = -1

# Largest representable pts (32-bit unsigned)
MAX_PTS = 2**32 - 1


class EndMarker(Enum):
    """Explicit marker for an end time that is not known yet."""

    OPEN = "open"

    def __repr__(self) -> str:
        return "OPEN"


OPEN = EndMarker.OPEN

EndPts = Union[int, EndMarker]


@dataclass(slots=True)
class RawPacket:
    """One PES packet of the selected subtitle stream."""

    data: bytes
    idx_pts: int = NO_PTS

    @property
    def has_pts(self) -> bool:
        return self.idx_pts >= 0


@dataclass
class Bitmap:
    """
    8-bit grayscale sub-picture bitmap.

    Attributes:
        width: Visible width in pixels
        height: Height in pixels
        stride: Row length of the pixel buffer (>= width)
        pixels: uint8 array of shape (height, stride)
    """

    width: int
    height: int
    stride: int
    pixels: np.ndarray

    @classmethod
    def from_array(cls, image: np.ndarray, stride: int | None = None) -> Bitmap:
        """Wrap a (height, width) array, padding rows to ``stride`` with white."""
        height, width = image.shape[:2]
        stride = max(stride or width, width)
        pixels = np.full((height, stride), 255, dtype=np.uint8)
        pixels[:, :width] = image
        return cls(width=width, height=height, stride=stride, pixels=pixels)

    @property
    def view(self) -> np.ndarray:
        """The visible (height, width) part of the buffer."""
        return self.pixels[: self.height, : self.width]

    @property
    def size(self) -> int:
        """Size of the pixel buffer in bytes."""
        return self.stride * self.height


@dataclass
class SubPictureUnit:
    """
    A decoded sub-picture with its timing.

    ``start_pts``/``end_pts`` come from the bitstream; ``idx_pts`` is the
    index timestamp of the packet the unit started in, if it had one.
    """

    bitmap: Bitmap
    start_pts: int
    end_pts: EndPts = OPEN
    forced: bool = False
    idx_pts: int = NO_PTS

    @property
    def width(self) -> int:
        return self.bitmap.width

    @property
    def height(self) -> int:
        return self.bitmap.height


@dataclass
class CandidateEvent:
    """
    An accepted unit on its way to the writer.

    ``sequence_number`` stays None until the event is written;
    ``dump_index`` is the diagnostic counter value used for image dumps.
    """

    start_pts: int
    end_pts: EndPts
    bitmap: Bitmap | None = None
    text: str | None = None
    sequence_number: int | None = None
    dump_index: int | None = None

    @property
    def is_open(self) -> bool:
        return self.end_pts is OPEN
