# subocr_core/models/enums.py
# -*- coding: utf-8 -*-
from enum import Enum

class EndPolicy(Enum):
    """How the open end of the last event is resolved."""
    FIXED = 'fixed'
    OPEN = 'open'

class BinarizationMethod(Enum):
    OTSU = 'otsu'
    ADAPTIVE = 'adaptive'
    NONE = 'none'
