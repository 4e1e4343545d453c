"""
pnguin Forge — Re-serialization

Turns a ParsedDocument back into PNG bytes:

- strip(): Lazy producer keeping only the critical chunks (or any other
  set of known classifications). Each kept chunk is written with the
  canonical type code of its classification and its original length,
  data and CRC.
- emit(): Lazy producer re-emitting every chunk verbatim.
- StripForge: Drives a producer into a writable destination and reports
  what was kept and dropped.

Producers yield one field at a time, so IDAT payloads are never
concatenated into a second in-memory copy of the image.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterable, Iterator

from pnguin.chunk import PNG_SIGNATURE, ParsedDocument
from pnguin.chunktypes import CRITICAL_TYPES, ChunkType
from pnguin.errors import IoFailure


# ============================================================================
# Producers
# ============================================================================

def strip(
    document: ParsedDocument,
    keep: Iterable[ChunkType] = CRITICAL_TYPES,
) -> Iterator[bytes]:
    """Produce the signature plus only the chunks classified in keep.

    No PNG-semantic validation is done: a missing IHDR or unusual chunk
    order is passed through as found.

    Raises:
        ValueError: If keep holds UNKNOWN, which has no canonical code
    """
    keep = frozenset(keep)
    if ChunkType.UNKNOWN in keep:
        raise ValueError("Cannot keep UNKNOWN chunks: they have no canonical type code")
    return _strip(document, keep)


def _strip(document: ParsedDocument, keep: frozenset[ChunkType]) -> Iterator[bytes]:
    yield PNG_SIGNATURE
    for chunk in document:
        ct = chunk.chunk_type
        if ct not in keep:
            continue
        yield struct.pack(">I", chunk.length)
        yield ct.code
        yield chunk.data
        yield chunk.crc


def emit(document: ParsedDocument) -> Iterator[bytes]:
    """Produce the document unchanged: signature plus every chunk verbatim."""
    yield PNG_SIGNATURE
    for chunk in document:
        yield chunk.to_bytes()


def to_bytes(document: ParsedDocument, stripped: bool = True) -> bytes:
    """Collect a producer into memory. Convenient for small images and tests."""
    producer = strip(document) if stripped else emit(document)
    return b"".join(producer)


# ============================================================================
# Forge Result
# ============================================================================

@dataclass
class ForgeResult:
    """The outcome of writing a stripped document."""
    source: str
    description: str
    bytes_written: int = 0
    kept: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    # One entry per dropped chunk
    mutations: list[dict[str, Any]] = field(default_factory=list)
    result_hash: str = ""

    @property
    def changed(self) -> bool:
        return bool(self.dropped)

    def __repr__(self) -> str:
        return (
            f"<ForgeResult: {self.source} {self.bytes_written}B "
            f"kept={len(self.kept)} dropped={len(self.dropped)}>"
        )


# ============================================================================
# Strip Forge
# ============================================================================

class StripForge:
    """Remove metadata chunks from parsed PNGs.

    Usage:
        forge = StripForge()
        with open("clean.png", "wb") as dest:
            result = forge.write(document, dest)
        print(result.dropped)   # ['tEXt', 'tIME', ...]

    Args:
        keep: Classifications to retain (defaults to the four critical ones)
    """

    def __init__(self, keep: Iterable[ChunkType] = CRITICAL_TYPES) -> None:
        self.keep = frozenset(keep)
        if ChunkType.UNKNOWN in self.keep:
            raise ValueError("Cannot keep UNKNOWN chunks: they have no canonical type code")

    def strip(self, document: ParsedDocument) -> Iterator[bytes]:
        return strip(document, self.keep)

    def write(self, document: ParsedDocument, dest: BinaryIO) -> ForgeResult:
        """Stream the stripped document into dest.

        On failure dest is left partially written; discarding it is up to
        the caller.

        Raises:
            IoFailure: If a write to dest fails
        """
        digest = hashlib.sha256()
        written = 0
        for piece in self.strip(document):
            try:
                dest.write(piece)
            except (OSError, ValueError) as e:
                # ValueError: dest was closed mid-write
                raise IoFailure(
                    f"unable to write stripped output after {written} bytes: {e}",
                    source=document.source, phase="write",
                ) from e
            digest.update(piece)
            written += len(piece)

        kept, dropped, mutations = [], [], []
        offset = len(PNG_SIGNATURE)
        for chunk in document:
            if chunk.chunk_type in self.keep:
                kept.append(chunk.name)
            else:
                dropped.append(chunk.name)
                mutations.append({
                    "type": "drop",
                    "chunk": chunk.name,
                    "offset": offset,
                    "length": chunk.length,
                    "description": f"Dropped {chunk.name} ({chunk.length}B) at {offset:#x}",
                })
            offset += chunk.size

        return ForgeResult(
            source=document.source,
            description=f"Kept {len(kept)} chunk(s), dropped {len(dropped)}",
            bytes_written=written,
            kept=kept,
            dropped=dropped,
            mutations=mutations,
            result_hash=digest.hexdigest()[:16],
        )
