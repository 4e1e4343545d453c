"""
pnguin Text Payloads

Decodes the three PNG text chunk layouts:

    tEXt: keyword \\0 text                              (Latin-1)
    zTXt: keyword \\0 method zlib(text)                 (Latin-1)
    iTXt: keyword \\0 flag method language \\0
          translated_keyword \\0 text                   (UTF-8, zlib if flag)
"""

from __future__ import annotations

import io
import zlib
from dataclasses import dataclass
from typing import Optional

from kaitaistruct import KaitaiStream

from pnguin.chunk import Chunk
from pnguin.chunktypes import ChunkType
from pnguin.errors import TextDecodeFailure


@dataclass(frozen=True)
class TextEntry:
    """One keyword/text pair decoded from a text chunk."""
    chunk_type: ChunkType
    keyword: str
    text: str
    language: str = ""
    translated_keyword: str = ""
    compressed: bool = False

    def __str__(self) -> str:
        lang = f" [{self.language}]" if self.language else ""
        return f"{self.keyword}{lang}: {self.text}"


def _fail(chunk: Chunk, message: str, source: Optional[str]) -> TextDecodeFailure:
    return TextDecodeFailure(f"{chunk.name}: {message}", source=source, phase="text")


def _read_cstring(stream: KaitaiStream, chunk: Chunk, what: str, source: Optional[str]) -> bytes:
    raw = stream.read_bytes_term(0, True, True, False)
    if not raw.endswith(b"\x00"):
        raise _fail(chunk, f"{what} is not NUL-terminated", source)
    return raw[:-1]


def _inflate(chunk: Chunk, method: int, payload: bytes, source: Optional[str]) -> bytes:
    if method != 0:
        raise _fail(chunk, f"unsupported compression method {method}", source)
    try:
        return zlib.decompress(payload)
    except zlib.error as e:
        raise _fail(chunk, f"bad zlib stream: {e}", source) from e


def decode_text(chunk: Chunk, source: Optional[str] = None) -> TextEntry:
    """Decode a tEXt, zTXt or iTXt chunk.

    Raises:
        TextDecodeFailure: Not a text chunk, or the payload is malformed
    """
    ct = chunk.chunk_type
    if not ct.is_text:
        raise _fail(chunk, "not a text chunk", source)

    stream = KaitaiStream(io.BytesIO(chunk.data))
    keyword = _read_cstring(stream, chunk, "keyword", source).decode("latin-1")

    if ct is ChunkType.TEXT_LATIN1:
        return TextEntry(ct, keyword, stream.read_bytes_full().decode("latin-1"))

    if ct is ChunkType.TEXT_COMPRESSED:
        if stream.is_eof():
            raise _fail(chunk, "missing compression method", source)
        method = stream.read_u1()
        text = _inflate(chunk, method, stream.read_bytes_full(), source)
        return TextEntry(ct, keyword, text.decode("latin-1"), compressed=True)

    # iTXt
    if stream.size() - stream.pos() < 2:
        raise _fail(chunk, "missing compression flag and method", source)
    flag = stream.read_u1()
    method = stream.read_u1()
    try:
        language = _read_cstring(stream, chunk, "language tag", source).decode("ascii")
        translated = _read_cstring(stream, chunk, "translated keyword", source).decode("utf-8")
        payload = stream.read_bytes_full()
        if flag:
            payload = _inflate(chunk, method, payload, source)
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise _fail(chunk, f"invalid text encoding: {e}", source) from e

    return TextEntry(
        ct, keyword, text,
        language=language,
        translated_keyword=translated,
        compressed=bool(flag),
    )
