# subocr_core/vobsub/__init__.py
"""
VobSub (.idx/.sub) input

    - idx: Index parser (header, palette, tracks, timestamps)
    - packets: Program stream demultiplexer yielding one track's PES packets
    - spu: Sub-picture unit reassembly and RLE decoding
"""

from .idx import IdxEntry, IdxIndex, IdxTrack, VobSubHeader, parse_idx
from .packets import VobSubPacketSource
from .spu import SpuAssembler

__all__ = [
    "IdxEntry",
    "IdxIndex",
    "IdxTrack",
    "SpuAssembler",
    "VobSubHeader",
    "VobSubPacketSource",
    "parse_idx",
]
