# subocr_core/models/__init__.py
"""
Centralized model definitions for subocr.

    from subocr_core.models import (
        # Stream and event models
        RawPacket, Bitmap, SubPictureUnit, CandidateEvent, OPEN,
        # Settings
        AppSettings, EndPolicy, BinarizationMethod,
    )

Model Organization:
    - enums.py: Core enums (EndPolicy, BinarizationMethod)
    - events.py: Packet, bitmap, unit and event models
    - protocols.py: Collaborator interfaces used by the pipeline
    - settings.py: AppSettings dataclass
"""

from .enums import BinarizationMethod, EndPolicy
from .events import (
    MAX_PTS,
    NO_PTS,
    OPEN,
    Bitmap,
    CandidateEvent,
    EndMarker,
    EndPts,
    RawPacket,
    SubPictureUnit,
)
from .protocols import EventWriter, ImageAssembler, PacketSource, TextRecognizer
from .settings import AppSettings

__all__ = [
    "MAX_PTS",
    "NO_PTS",
    "OPEN",
    "AppSettings",
    "BinarizationMethod",
    "Bitmap",
    "CandidateEvent",
    "EndMarker",
    "EndPolicy",
    "EndPts",
    "EventWriter",
    "ImageAssembler",
    "PacketSource",
    "RawPacket",
    "SubPictureUnit",
    "TextRecognizer",
]
