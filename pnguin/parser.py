"""
pnguin Chunk Stream Parser

Walks a PNG byte stream in a single forward pass:

    signature (8) | length (4) | type (4) | data (length) | crc (4) | ...

The source only needs sequential reads. It is never seeked, so pipes
and stdin work the same as files. A small look-ahead buffer gives the
signature check its peek semantics.

Usage:
    with Parser.open("photo.png") as p:
        if p.check_signature():
            doc = p.parse()
            for chunk in doc:
                print(chunk.name, chunk.length)
"""

from __future__ import annotations

import io
import struct
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from pnguin.chunk import PNG_SIGNATURE, Chunk, ParsedDocument
from pnguin.errors import IoFailure, NotAPng, TruncatedChunk


class _Lookahead:
    """Read-full and peek over a raw binary stream."""

    BLOCK_SIZE = 1 << 16

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self._buffer = bytearray()

    def _fill(self, n: int) -> None:
        # Raw streams may return fewer bytes than asked; only b"" means EOF.
        while len(self._buffer) < n:
            block = self._raw.read(min(n - len(self._buffer), self.BLOCK_SIZE))
            if not block:
                break
            self._buffer += block

    def peek(self, n: int) -> bytes:
        self._fill(n)
        return bytes(self._buffer[:n])

    def read(self, n: int) -> bytes:
        self._fill(n)
        out = bytes(self._buffer[:n])
        del self._buffer[:n]
        return out


class Parser:
    """Parses one PNG input into a ParsedDocument.

    Args:
        path: Identity of the input, used in error reports
        source: Readable binary stream
        strict: Treat a short read inside a chunk's data or CRC as
            TruncatedChunk instead of a quiet end of the document
    """

    def __init__(self, path: str, source: BinaryIO, strict: bool = False) -> None:
        self.path = path
        self.strict = strict
        self._source = source
        self._reader = _Lookahead(source)
        self._document: Optional[ParsedDocument] = None

    @classmethod
    def open(cls, path: Union[str, Path], strict: bool = False) -> Parser:
        try:
            f = open(path, "rb")
        except OSError as e:
            raise IoFailure(f"unable to open file: {e}", source=str(path), phase="open") from e
        return cls(str(path), f, strict=strict)

    @property
    def document(self) -> ParsedDocument:
        if self._document is None:
            raise ValueError(f"{self.path} has not been parsed. Call parse() first.")
        return self._document

    def _read(self, op: Callable[[int], bytes], n: int, phase: str) -> bytes:
        try:
            return op(n)
        except (OSError, ValueError) as e:
            # ValueError: the source was closed underneath us
            raise IoFailure(f"unable to read chunk {phase}: {e}", source=self.path, phase=phase) from e

    def check_signature(self) -> bool:
        """Compare the first 8 bytes against the PNG signature.

        Does not advance the stream; calling it again, or calling parse()
        afterwards, sees the same bytes.

        Raises:
            IoFailure: If fewer than 8 bytes are available
        """
        head = self._read(self._reader.peek, len(PNG_SIGNATURE), "signature")
        if len(head) < len(PNG_SIGNATURE):
            raise IoFailure(
                f"unable to read header: got {len(head)} bytes, expected {len(PNG_SIGNATURE)}",
                source=self.path, phase="signature",
            )
        return head == PNG_SIGNATURE

    def _short_read(self, phase: str, chunk_name: str, got: int, expected: int) -> None:
        if self.strict:
            raise TruncatedChunk(
                f"short read on {chunk_name} {phase} (got {got} bytes, expected {expected})",
                source=self.path, phase=phase,
            )

    def parse(self) -> ParsedDocument:
        """Consume the signature and every chunk up to end of stream.

        Raises:
            NotAPng: Signature mismatch
            IoFailure: The stream failed, or ended before the signature
            TruncatedChunk: The stream ended between a length and its type
                (or inside data/CRC when strict)
        """
        if not self.check_signature():
            raise NotAPng("input not a PNG", source=self.path, phase="signature")
        self._read(self._reader.read, len(PNG_SIGNATURE), "signature")

        chunks: list[Chunk] = []
        truncated = False

        while True:
            raw_length = self._read(self._reader.read, 4, "length")
            if not raw_length:
                break
            if len(raw_length) < 4:
                raise TruncatedChunk(
                    f"short read on chunk length (got {len(raw_length)} bytes, expected 4)",
                    source=self.path, phase="length",
                )
            (length,) = struct.unpack(">I", raw_length)

            type_code = self._read(self._reader.read, 4, "type")
            if len(type_code) < 4:
                raise TruncatedChunk(
                    f"chunk of length {length} has no type (got {len(type_code)} bytes)",
                    source=self.path, phase="type",
                )
            name = type_code.decode("ascii", errors="replace")

            data = self._read(self._reader.read, length, "data")
            if len(data) < length:
                self._short_read("data", name, len(data), length)
                truncated = True
                break

            crc = self._read(self._reader.read, 4, "crc")
            if len(crc) < 4:
                self._short_read("crc", name, len(crc), 4)
                truncated = True
                break

            chunks.append(Chunk(length=length, type_code=type_code, data=data, crc=crc))

        self._document = ParsedDocument(chunks=tuple(chunks), source=self.path, truncated=truncated)
        return self._document

    def walk(self, fn: Callable[[Chunk], bool]) -> None:
        """Iterate parsed chunks until fn returns a falsy value."""
        self.document.walk(fn)

    def close(self) -> None:
        self._source.close()

    def __enter__(self) -> Parser:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "parsed" if self._document is not None else "unparsed"
        return f"<Parser {self.path} ({state})>"


def load(
    source: Union[str, Path, bytes, bytearray, BinaryIO],
    strict: bool = False,
) -> ParsedDocument:
    """Parse a PNG from a path, raw bytes, or a readable binary stream.

    Streams passed in are left open; files opened here are closed.
    """
    if isinstance(source, (bytes, bytearray)):
        return Parser("<bytes>", io.BytesIO(bytes(source)), strict=strict).parse()
    if isinstance(source, (str, Path)):
        with Parser.open(source, strict=strict) as parser:
            return parser.parse()
    if hasattr(source, "read"):
        name = getattr(source, "name", "<stream>")
        return Parser(str(name), source, strict=strict).parse()
    raise TypeError(f"Cannot load from {type(source)}")
