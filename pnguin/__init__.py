"""
pnguin - PNG chunk inspector and metadata stripper

Reads the chunk structure of PNG files without decoding pixels:

- Registry: Classifies chunk type codes (critical vs. ancillary)
- Parser: Streams a PNG into an ordered sequence of chunks
- Forge: Re-serializes a document, optionally keeping only the
  chunks needed to reconstruct the image
"""

__version__ = "0.2.0"

from pnguin.chunktypes import ChunkType, CRITICAL_TYPES, TEXT_TYPES, classify
from pnguin.chunk import PNG_SIGNATURE, Chunk, HeaderFields, ParsedDocument
from pnguin.errors import (
    PnguinError,
    NotAPng,
    IoFailure,
    TruncatedChunk,
    HeaderDecodeFailure,
    TextDecodeFailure,
)
from pnguin.parser import Parser, load
from pnguin.forge import StripForge, ForgeResult, strip, emit, to_bytes
from pnguin.text import TextEntry, decode_text

__all__ = [
    "ChunkType",
    "CRITICAL_TYPES",
    "TEXT_TYPES",
    "classify",
    "PNG_SIGNATURE",
    "Chunk",
    "HeaderFields",
    "ParsedDocument",
    "PnguinError",
    "NotAPng",
    "IoFailure",
    "TruncatedChunk",
    "HeaderDecodeFailure",
    "TextDecodeFailure",
    "Parser",
    "load",
    "StripForge",
    "ForgeResult",
    "strip",
    "emit",
    "to_bytes",
    "TextEntry",
    "decode_text",
]
