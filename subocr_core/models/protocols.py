# subocr_core/models/protocols.py
"""
Interfaces of the collaborators driven by EventPipeline.

The pipeline only depends on these shapes, so tests can drive it with
in-memory fakes instead of real .sub files, Tesseract or the filesystem.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from .events import Bitmap, CandidateEvent, RawPacket, SubPictureUnit


class PacketSource(Protocol):
    def next_packet(self) -> RawPacket | None:
        """Return the next packet, or None at end of stream."""
        ...


class ImageAssembler(Protocol):
    def feed(self, data: bytes, idx_pts: int) -> None: ...

    def advance(self, idx_pts: int) -> None: ...

    def poll_completed(self) -> SubPictureUnit | None:
        """Return a completed unit or None. Raises DecodeError for bad units."""
        ...

    def drain(self) -> list[SubPictureUnit]:
        """Return units still pending once the stream has ended."""
        ...


class TextRecognizer(Protocol):
    def recognize(self, bitmap: Bitmap) -> str:
        """Return recognized text. Raises OcrFailure."""
        ...


class EventWriter(Protocol):
    def write(self, events: Sequence[CandidateEvent]) -> None: ...
