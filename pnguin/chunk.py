"""
pnguin Chunk Model

Chunk is one length/type/data/CRC record as read from the stream.
ParsedDocument is the ordered sequence of chunks for one PNG.
HeaderFields is the decoded view of an IHDR payload.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Union

from kaitaistruct import KaitaiStream

from pnguin.chunktypes import ChunkType, classify
from pnguin.errors import HeaderDecodeFailure, TextDecodeFailure

if TYPE_CHECKING:
    from pnguin.text import TextEntry


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

HEADER_SIZE = 13

COLOR_TYPES = {
    0: "Grayscale",
    2: "Truecolor",
    3: "Indexed-color",
    4: "Grayscale with alpha",
    6: "Truecolor with alpha",
}


@dataclass(frozen=True)
class Chunk:
    """A single chunk, exactly as it appeared in the stream.

    Attributes:
        length: Declared byte count of the data field
        type_code: Raw 4-byte type code
        data: Chunk payload
        crc: Raw 4-byte CRC trailer (never checked or recomputed)
    """
    length: int
    type_code: bytes
    data: bytes
    crc: bytes

    @property
    def chunk_type(self) -> ChunkType:
        return classify(self.type_code)

    @property
    def is_critical(self) -> bool:
        return self.chunk_type.is_critical

    @property
    def name(self) -> str:
        return self.type_code.decode("ascii", errors="replace")

    @property
    def size(self) -> int:
        """Bytes this chunk occupies on the wire."""
        return 12 + len(self.data)

    def to_bytes(self) -> bytes:
        """Re-emit the chunk with its original layout and raw type code."""
        return struct.pack(">I", self.length) + self.type_code + self.data + self.crc

    def __repr__(self) -> str:
        return f"<Chunk {self.name} len={self.length} crc={self.crc.hex()}>"


@dataclass(frozen=True)
class HeaderFields:
    """Decoded IHDR payload."""
    width: int
    height: int
    bit_depth: int
    color_type: int
    compression_method: int
    filter_method: int
    interlace_method: int

    @classmethod
    def decode(cls, data: bytes, source: Optional[str] = None) -> HeaderFields:
        """Decode a 13-byte IHDR payload.

        Raises:
            HeaderDecodeFailure: If data is not exactly 13 bytes
        """
        if len(data) != HEADER_SIZE:
            raise HeaderDecodeFailure(
                f"got {len(data)} bytes for header chunk, expected {HEADER_SIZE}",
                source=source, phase="header",
            )
        stream = KaitaiStream(io.BytesIO(data))
        return cls(
            width=stream.read_u4be(),
            height=stream.read_u4be(),
            bit_depth=stream.read_u1(),
            color_type=stream.read_u1(),
            compression_method=stream.read_u1(),
            filter_method=stream.read_u1(),
            interlace_method=stream.read_u1(),
        )

    @property
    def color_type_name(self) -> str:
        return COLOR_TYPES.get(self.color_type, "Unknown")

    @property
    def interlaced(self) -> bool:
        return self.interlace_method == 1


@dataclass(frozen=True)
class ParsedDocument:
    """All chunks of one PNG, in file order.

    Attributes:
        chunks: The chunks, in stream order
        source: Identity of the input (path, "stdin", "<bytes>")
        truncated: Parsing stopped inside a chunk's data or CRC field
    """
    chunks: tuple[Chunk, ...] = ()
    source: str = "<bytes>"
    truncated: bool = False

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)

    def __getitem__(self, index: Union[int, slice]):
        return self.chunks[index]

    def walk(self, fn: Callable[[Chunk], bool]) -> None:
        """Hand each chunk to fn until it returns a falsy value."""
        for chunk in self.chunks:
            if not fn(chunk):
                break

    def of_type(self, *types: ChunkType) -> list[Chunk]:
        return [c for c in self.chunks if c.chunk_type in types]

    def ancillary(self) -> list[Chunk]:
        """Chunks not needed to reconstruct pixels, unknown ones included."""
        return [c for c in self.chunks if not c.is_critical]

    def header(self) -> Optional[HeaderFields]:
        """Decode the first IHDR chunk, or None if there is none."""
        for chunk in self.chunks:
            if chunk.chunk_type is ChunkType.HEADER:
                return HeaderFields.decode(chunk.data, source=self.source)
        return None

    def text_entries(self, failures: Optional[list[TextDecodeFailure]] = None) -> list[TextEntry]:
        """Decode every text chunk. See pnguin.text.

        By default the first malformed chunk raises TextDecodeFailure. Pass
        a list as failures to collect those errors there and skip the
        chunks instead.
        """
        from pnguin.text import decode_text
        entries = []
        for chunk in self.chunks:
            if not chunk.chunk_type.is_text:
                continue
            try:
                entries.append(decode_text(chunk, source=self.source))
            except TextDecodeFailure as e:
                if failures is None:
                    raise
                failures.append(e)
        return entries

    @property
    def type_names(self) -> list[str]:
        return [c.name for c in self.chunks]

    def __repr__(self) -> str:
        flag = " truncated" if self.truncated else ""
        return f"<ParsedDocument {self.source}: {len(self.chunks)} chunks{flag}>"
