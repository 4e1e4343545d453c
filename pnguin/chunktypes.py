"""
pnguin Chunk Type Registry

Maps the 4-byte ASCII type code of a PNG chunk to its semantic
classification. The table is closed: any code not listed here is
classified as ChunkType.UNKNOWN.

Critical chunks (IHDR, PLTE, IDAT, IEND) are the ones needed to
reconstruct pixels. Everything else is ancillary metadata.

Reference: https://www.w3.org/TR/png/#4Concepts.FormatTypes
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ChunkType(Enum):
    """Semantic classification of a chunk type code.

    Each member's value is a (code, label) pair; UNKNOWN has no code.
    """
    UNKNOWN = (b"", "Unknown")

    # Critical
    HEADER = (b"IHDR", "IHDR (Header)")
    PALETTE = (b"PLTE", "PLTE (Palette)")
    DATA = (b"IDAT", "IDAT (Data)")
    END = (b"IEND", "IEND (Image End)")

    # Ancillary
    BACKGROUND = (b"bKGD", "bKGD (Default Background Color)")
    CHROMATICITY = (b"cHRM", "cHRM (Chromaticity)")
    SIGNATURE = (b"dSIG", "dSIG (Digital Signatures)")
    EXIF = (b"eXIf", "eXIf (Exif)")
    GAMMA = (b"gAMA", "gAMA (Gamma)")
    HISTOGRAM = (b"hIST", "hIST (Color Histogram)")
    ICC = (b"iCCP", "iCCP (ICC Color Profile)")
    TEXT_UTF8 = (b"iTXt", "iTXt (UTF-8 Keyword Text)")
    PIXEL_SIZE = (b"pHYs", "pHYs (Intended Pixel Size)")
    SIGNIFICANT_BITS = (b"sBIT", "sBIT (Color-Accuracy)")
    SUGGESTED_PALETTE = (b"sPLT", "sPLT (Suggested Palette)")
    SRGB = (b"sRGB", "sRGB (sRGB Color Space)")
    STEREO = (b"sTER", "sTER (Stereo-Image Indicator)")
    TEXT_LATIN1 = (b"tEXt", "tEXt (ISO/IEC 8859-1 Text)")
    TIME = (b"tIME", "tIME (Last Changed Time)")
    TRANSPARENCY = (b"tRNS", "tRNS (Transparency)")
    TEXT_COMPRESSED = (b"zTXt", "zTXt (Compressed Text)")

    def __init__(self, code: bytes, label: str) -> None:
        self.code = code
        self.label = label

    @property
    def is_critical(self) -> bool:
        return self in CRITICAL_TYPES

    @property
    def is_text(self) -> bool:
        return self in TEXT_TYPES

    def __str__(self) -> str:
        return self.label


CRITICAL_TYPES: frozenset[ChunkType] = frozenset({
    ChunkType.HEADER,
    ChunkType.PALETTE,
    ChunkType.DATA,
    ChunkType.END,
})

TEXT_TYPES: frozenset[ChunkType] = frozenset({
    ChunkType.TEXT_LATIN1,
    ChunkType.TEXT_COMPRESSED,
    ChunkType.TEXT_UTF8,
})

_REGISTRY: Mapping[bytes, ChunkType] = MappingProxyType({
    ct.code: ct for ct in ChunkType if ct is not ChunkType.UNKNOWN
})


def classify(code: bytes) -> ChunkType:
    """Classify a raw type code. Total: unrecognized codes map to UNKNOWN."""
    return _REGISTRY.get(bytes(code), ChunkType.UNKNOWN)


def known_codes() -> list[bytes]:
    """All type codes in the registry, in declaration order."""
    return list(_REGISTRY.keys())
