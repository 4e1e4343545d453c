"""
pnguin Parser Tests

1. Signature check
2. Chunk decomposition
3. Truncation policy
4. I/O failures and sources
5. Header decoding
"""

import dataclasses
import io
import struct
import sys
import os
import zlib

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest

from pnguin import (
    ChunkType,
    HeaderDecodeFailure,
    HeaderFields,
    IoFailure,
    NotAPng,
    ParsedDocument,
    Parser,
    TruncatedChunk,
    emit,
    load,
    to_bytes,
)
from builders import (
    IDAT,
    IEND,
    IHDR,
    SIGNATURE,
    TEXT_HELLO,
    build_minimal_png,
    build_png,
    build_tagged_png,
    idat_data,
    make_chunk,
    run_tests,
)


class TrickleReader:
    """A stream that hands out one byte per read() call."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self.closed = False

    def read(self, n: int = -1) -> bytes:
        if self._pos >= len(self._data) or n == 0:
            return b""
        out = self._data[self._pos:self._pos + 1]
        self._pos += 1
        return out

    def close(self) -> None:
        self.closed = True


class BrokenReader:
    """Serves `good` bytes, then fails every read."""

    def __init__(self, good: bytes) -> None:
        self._stream = io.BytesIO(good)

    def read(self, n: int = -1) -> bytes:
        out = self._stream.read(n)
        if not out:
            raise OSError("device unplugged")
        return out

    def close(self) -> None:
        pass


def parser_for(data: bytes, strict: bool = False) -> Parser:
    return Parser("test.png", io.BytesIO(data), strict=strict)


# --- 1. Signature check ---

def test_signature_accepted():
    assert parser_for(build_minimal_png()).check_signature()


def test_signature_check_does_not_consume():
    p = parser_for(build_minimal_png())
    assert p.check_signature()
    assert p.check_signature()
    doc = p.parse()
    assert doc.type_names == ["IHDR", "IDAT", "IEND"]


def test_text_file_is_not_a_png():
    source = io.BytesIO(b"just some plain text, definitely not an image\n" * 4)
    p = Parser("notes.txt", source)
    assert not p.check_signature()
    with pytest.raises(NotAPng) as exc:
        p.parse()
    assert exc.value.source == "notes.txt"
    assert exc.value.phase == "signature"
    # Nothing beyond the 8 signature bytes was pulled from the source
    assert source.tell() <= 8


def test_too_short_for_signature_is_io_failure():
    p = parser_for(SIGNATURE[:5])
    with pytest.raises(IoFailure):
        p.check_signature()
    with pytest.raises(IoFailure):
        parser_for(b"").parse()


# --- 2. Chunk decomposition ---

def test_minimal_png_chunks():
    doc = parser_for(build_minimal_png()).parse()
    assert len(doc) == 3
    hdr, dat, end = doc
    assert hdr.chunk_type is ChunkType.HEADER and hdr.length == 13
    assert dat.chunk_type is ChunkType.DATA and dat.data == idat_data()
    assert end.chunk_type is ChunkType.END and end.length == 0 and end.data == b""
    assert hdr.crc == struct.pack(">I", zlib.crc32(b"IHDR" + hdr.data) & 0xFFFFFFFF)
    assert not doc.truncated


def test_signature_only_gives_empty_document():
    doc = parser_for(SIGNATURE).parse()
    assert len(doc) == 0
    assert list(doc) == []
    assert not doc.truncated


def test_stream_order_is_preserved():
    second_idat = make_chunk(b"IDAT", b"\x01\x02\x03")
    doc = parser_for(build_png(IHDR, TEXT_HELLO, IDAT, second_idat, IEND)).parse()
    assert doc.type_names == ["IHDR", "tEXt", "IDAT", "IDAT", "IEND"]
    assert doc[3].data == b"\x01\x02\x03"


def test_round_trip_identity():
    for data in (build_minimal_png(), build_tagged_png(), SIGNATURE):
        doc = parser_for(data).parse()
        assert b"".join(emit(doc)) == data
        assert to_bytes(doc, stripped=False) == data


def test_crc_is_not_validated():
    bogus = make_chunk(b"tEXt", b"k\x00v", crc=b"\xde\xad\xbe\xef")
    doc = parser_for(build_png(IHDR, bogus, IDAT, IEND)).parse()
    assert doc[1].crc == b"\xde\xad\xbe\xef"


def test_unknown_chunks_are_kept_in_document():
    doc = parser_for(build_tagged_png()).parse()
    private = [c for c in doc if c.name == "prVt"]
    assert len(private) == 1
    assert private[0].chunk_type is ChunkType.UNKNOWN
    assert private[0] in doc.ancillary()


def test_walk_stops_early():
    doc = parser_for(build_tagged_png()).parse()
    seen = []

    def visit(chunk):
        seen.append(chunk.name)
        return chunk.chunk_type is not ChunkType.DATA

    doc.walk(visit)
    assert seen[-1] == "IDAT"
    assert "IEND" not in seen


def test_document_is_restartable():
    doc = parser_for(build_minimal_png()).parse()
    assert [c.name for c in doc] == [c.name for c in doc]


def test_chunks_are_immutable():
    doc = parser_for(build_minimal_png()).parse()
    with pytest.raises(dataclasses.FrozenInstanceError):
        doc[0].data = b""


def test_trickling_source():
    data = build_tagged_png()
    reader = TrickleReader(data)
    with Parser("trickle", reader) as p:
        assert p.check_signature()
        doc = p.parse()
    assert reader.closed
    assert b"".join(emit(doc)) == data


def test_parser_keeps_document():
    p = parser_for(build_minimal_png())
    with pytest.raises(ValueError):
        p.document
    doc = p.parse()
    assert p.document is doc
    names = []
    p.walk(lambda c: names.append(c.name) or True)
    assert names == ["IHDR", "IDAT", "IEND"]


# --- 3. Truncation policy ---

def test_overrunning_final_chunk_is_tolerated():
    cut = make_chunk(b"IDAT", b"x" * 100)[:40]
    doc = parser_for(build_png(IHDR, IDAT, cut)).parse()
    assert doc.type_names == ["IHDR", "IDAT"]
    assert doc.truncated


def test_overrunning_final_chunk_strict():
    cut = make_chunk(b"IDAT", b"x" * 100)[:40]
    with pytest.raises(TruncatedChunk) as exc:
        parser_for(build_png(IHDR, IDAT, cut), strict=True).parse()
    assert exc.value.phase == "data"


def test_huge_declared_length_on_disk(tmp_path):
    # Declares ~4 GiB of IDAT data with two bytes behind it
    path = tmp_path / "huge.png"
    path.write_bytes(SIGNATURE + IHDR + struct.pack(">I", 0xFFFFFFF0) + b"IDAT" + b"xx")
    doc = load(path)
    assert doc.type_names == ["IHDR"]
    assert doc.truncated
    with pytest.raises(TruncatedChunk) as exc:
        load(path, strict=True)
    assert exc.value.phase == "data"


def test_reads_are_bounded():
    class RecordingReader(io.BytesIO):
        def __init__(self, data):
            super().__init__(data)
            self.requests = []

        def read(self, n=-1):
            self.requests.append(n)
            return super().read(n)

    src = RecordingReader(SIGNATURE + IHDR + struct.pack(">I", 0xFFFFFFF0) + b"IDAT")
    Parser("big.png", src).parse()
    assert max(src.requests) <= 1 << 16


def test_missing_crc():
    cut = IEND[:-2]
    doc = parser_for(build_png(IHDR, IDAT, cut)).parse()
    assert doc.type_names == ["IHDR", "IDAT"]
    assert doc.truncated
    with pytest.raises(TruncatedChunk) as exc:
        parser_for(build_png(IHDR, IDAT, cut), strict=True).parse()
    assert exc.value.phase == "crc"


def test_length_without_type_is_fatal():
    data = build_png(IHDR, struct.pack(">I", 5))
    for strict in (False, True):
        with pytest.raises(TruncatedChunk) as exc:
            parser_for(data, strict=strict).parse()
        assert exc.value.phase == "type"


def test_partial_type_is_fatal():
    data = build_png(IHDR, struct.pack(">I", 0) + b"IE")
    with pytest.raises(TruncatedChunk):
        parser_for(data).parse()


def test_partial_length_is_fatal():
    with pytest.raises(TruncatedChunk) as exc:
        parser_for(build_png(IHDR, b"\x00\x00")).parse()
    assert exc.value.phase == "length"


# --- 4. I/O failures and sources ---

def test_read_error_becomes_io_failure():
    p = Parser("flaky.png", BrokenReader(SIGNATURE + IHDR))
    with pytest.raises(IoFailure) as exc:
        p.parse()
    assert exc.value.source == "flaky.png"
    assert "flaky.png" in str(exc.value)
    assert isinstance(exc.value.__cause__, OSError)


def test_closed_source_is_io_failure():
    src = io.BytesIO(build_minimal_png())
    src.close()
    p = Parser("closed.png", src)
    with pytest.raises(IoFailure) as exc:
        p.parse()
    assert exc.value.source == "closed.png"
    assert isinstance(exc.value.__cause__, ValueError)


def test_open_missing_file(tmp_path):
    missing = tmp_path / "nope.png"
    with pytest.raises(IoFailure) as exc:
        Parser.open(missing)
    assert exc.value.phase == "open"


def test_load_sources(tmp_path):
    data = build_tagged_png()
    path = tmp_path / "tagged.png"
    path.write_bytes(data)

    from_bytes = load(data)
    from_path = load(path)
    from_str = load(str(path))
    with open(path, "rb") as f:
        from_stream = load(f)

    assert from_bytes.source == "<bytes>"
    assert from_path.source == str(path)
    assert from_stream.source == str(path)
    assert from_bytes.chunks == from_path.chunks == from_str.chunks == from_stream.chunks


def test_load_rejects_other_types():
    with pytest.raises(TypeError):
        load(12345)


# --- 5. Header decoding ---

def test_header_fields():
    raw = bytes.fromhex("00000010" "00000020" "08" "06" "00" "00" "00")
    hdr = HeaderFields.decode(raw)
    assert (hdr.width, hdr.height) == (16, 32)
    assert hdr.bit_depth == 8
    assert hdr.color_type == 6
    assert hdr.color_type_name == "Truecolor with alpha"
    assert (hdr.compression_method, hdr.filter_method, hdr.interlace_method) == (0, 0, 0)
    assert not hdr.interlaced


def test_header_wrong_size():
    for raw in (b"", b"\x00" * 12, b"\x00" * 14):
        with pytest.raises(HeaderDecodeFailure):
            HeaderFields.decode(raw)


def test_document_header():
    doc = parser_for(build_minimal_png()).parse()
    hdr = doc.header()
    assert (hdr.width, hdr.height) == (16, 32)


def test_bad_header_does_not_abort_parse():
    short_ihdr = make_chunk(b"IHDR", b"\x00" * 7)
    doc = parser_for(build_png(short_ihdr, IDAT, IEND)).parse()
    assert len(doc) == 3
    with pytest.raises(HeaderDecodeFailure) as exc:
        doc.header()
    assert exc.value.source == "test.png"


def test_document_without_header():
    assert ParsedDocument().header() is None
    assert parser_for(build_png(IDAT, IEND)).parse().header() is None


if __name__ == "__main__":
    sys.exit(run_tests(globals()))
