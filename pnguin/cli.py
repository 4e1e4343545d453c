#!/usr/bin/env python3
"""
pnguin — PNG chunk inspector and metadata stripper

Command-line interface.

Usage:
    pnguin tags [file ...]            Show metadata chunks and embedded text
    pnguin clean [file ...]           Write copies with metadata stripped
    pnguin header [file ...]          Show decoded IHDR fields
    pnguin chunks [file ...]          List every chunk in the file

With no files, the PNG is read from stdin.
"""

from __future__ import annotations

import argparse
import os
import sys
import textwrap
from pathlib import Path
from typing import Iterator, Optional

from pnguin import __version__
from pnguin.chunk import PNG_SIGNATURE, ParsedDocument
from pnguin.chunktypes import ChunkType
from pnguin.errors import IoFailure, PnguinError, TextDecodeFailure
from pnguin.forge import StripForge
from pnguin.parser import Parser
from pnguin.text import decode_text


STDIN = "stdin"


# ============================================================================
# Formatting helpers
# ============================================================================

class C:
    """ANSI colors."""
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    RESET = "\033[0m"

    @staticmethod
    def off():
        C.BOLD = C.DIM = C.RED = C.GREEN = C.YELLOW = ""
        C.CYAN = C.RESET = ""


RULE = "─" * 60


def header(text: str) -> str:
    return f"\n{C.CYAN}{RULE}{C.RESET}\n{C.BOLD}  {text}{C.RESET}\n{C.CYAN}{RULE}{C.RESET}"


def ok(text: str) -> str:
    return f"  {C.GREEN}✓{C.RESET} {text}"


def warn(text: str) -> str:
    return f"  {C.YELLOW}⚠{C.RESET} {text}"


def fail(text: str) -> str:
    return f"  {C.RED}✗{C.RESET} {text}"


def dim(text: str) -> str:
    return f"{C.DIM}{text}{C.RESET}"


def filesize(n: int) -> str:
    """Chunk lengths are u32, so GiB is the largest unit needed."""
    for unit, scale in (("GiB", 1 << 30), ("MiB", 1 << 20), ("KiB", 1 << 10)):
        if n >= scale:
            return f"{n / scale:.1f} {unit}"
    return f"{n} B"


def describe(ct: ChunkType, name: str) -> str:
    if ct is ChunkType.UNKNOWN:
        return f"{name} (Unknown)"
    return ct.label


# ============================================================================
# Inputs
# ============================================================================

def cleaned_path(path: str, index: int) -> Path:
    """Where `clean` writes its output when no -o is given."""
    if path == STDIN:
        return Path.cwd() / f"stdin-{index}.png"
    p = Path(path)
    return p.with_name(f"{p.stem}-cleaned.png")


def iter_documents(args, failures: list[str]) -> Iterator[tuple[int, ParsedDocument]]:
    """Parse each input in turn.

    A failing input is reported and recorded in failures; the remaining
    inputs are still processed.
    """
    paths = args.files or [STDIN]
    for i, path in enumerate(paths):
        parser: Optional[Parser] = None
        try:
            if path == STDIN:
                parser = Parser(STDIN, sys.stdin.buffer, strict=args.strict)
            else:
                parser = Parser.open(path, strict=args.strict)
            if not parser.check_signature():
                print(fail(f"{path} is not a PNG"), file=sys.stderr)
                failures.append(path)
                continue
            document = parser.parse()
        except PnguinError as e:
            print(fail(f"problem parsing {path}: {e}"), file=sys.stderr)
            failures.append(path)
            continue
        finally:
            if parser is not None and path != STDIN:
                parser.close()

        if document.truncated:
            print(warn(f"{path} ends inside a chunk; trailing partial chunk ignored"),
                  file=sys.stderr)
        yield i, document


# ============================================================================
# Commands
# ============================================================================

# The image chunks every PNG has; `tags` lists everything else, PLTE included.
IMAGE_CHUNKS = frozenset({ChunkType.HEADER, ChunkType.DATA, ChunkType.END})


def cmd_tags(args, failures: list[str]) -> None:
    """Show non-data chunks and the text they carry."""
    for _, doc in iter_documents(args, failures):
        print(header(f"TAGS: {doc.source}"))
        extra = [c for c in doc if c.chunk_type not in IMAGE_CHUNKS]
        if not extra:
            print(ok("No metadata chunks"))
            continue

        for chunk in extra:
            ct = chunk.chunk_type
            print(f"  {C.BOLD}{describe(ct, chunk.name)}{C.RESET}  {dim(filesize(chunk.length))}")
            if ct.is_text:
                try:
                    entry = decode_text(chunk, source=doc.source)
                except TextDecodeFailure as e:
                    print(warn(str(e)))
                    print(f"    {dim(repr(chunk.data))}")
                    continue
                for line in str(entry).splitlines() or [""]:
                    print(f"    {line}")


def cmd_clean(args, failures: list[str]) -> None:
    """Write stripped copies of each input."""
    to_stdout = args.output == "-"
    log = sys.stderr if to_stdout else sys.stdout
    forge = StripForge()

    for i, doc in iter_documents(args, failures):
        if to_stdout:
            dest_name = "<stdout>"
            dest = sys.stdout.buffer
        else:
            dest_path = Path(args.output) if args.output else cleaned_path(doc.source, i)
            dest_name = str(dest_path)
            try:
                dest = open(dest_path, "wb")
            except OSError as e:
                print(fail(f"unable to open cleaning destination for {doc.source}: {e}"),
                      file=sys.stderr)
                failures.append(doc.source)
                continue

        print(header(f"CLEAN: {doc.source} → {dest_name}"), file=log)
        try:
            result = forge.write(doc, dest)
        except IoFailure as e:
            print(fail(f"unable to strip tags for {doc.source}: {e}"), file=sys.stderr)
            failures.append(doc.source)
            if not to_stdout:
                dest.close()
                os.remove(dest_name)
            continue

        if to_stdout:
            dest.flush()
        else:
            dest.close()

        print(ok(result.description), file=log)
        print(f"  Output: {dest_name} ({filesize(result.bytes_written)})", file=log)
        for m in result.mutations:
            print(f"    {dim(m['description'])}", file=log)


def cmd_header(args, failures: list[str]) -> None:
    """Print the IHDR fields of each input."""
    for _, doc in iter_documents(args, failures):
        print(header(f"HEADER: {doc.source}"))
        try:
            hdr = doc.header()
        except PnguinError as e:
            print(fail(str(e)))
            failures.append(doc.source)
            continue
        if hdr is None:
            print(warn("No IHDR chunk"))
            continue

        print(f"    Width               {hdr.width}")
        print(f"    Height              {hdr.height}")
        print(f"    Bit Depth           {hdr.bit_depth}")
        print(f"    Color Type          {hdr.color_type} {dim(f'({hdr.color_type_name})')}")
        print(f"    Compression Method  {hdr.compression_method}")
        print(f"    Filter Method       {hdr.filter_method}")
        print(f"    Interlace Method    {hdr.interlace_method}")


def cmd_chunks(args, failures: list[str]) -> None:
    """List every chunk with its offset, length and CRC."""
    for _, doc in iter_documents(args, failures):
        print(header(f"CHUNKS: {doc.source}"))
        print(f"  {C.DIM}{len(doc)} chunk(s){C.RESET}")
        offset = len(PNG_SIGNATURE)
        for chunk in doc:
            ct = chunk.chunk_type
            mark = f"{C.GREEN}●{C.RESET}" if ct.is_critical else f"{C.YELLOW}○{C.RESET}"
            print(f"  {mark} {C.CYAN}{offset:#08x}{C.RESET}  {chunk.name}  "
                  f"{filesize(chunk.length):>10}  crc={chunk.crc.hex()}  "
                  f"{dim(describe(ct, chunk.name))}")
            offset += chunk.size


# ============================================================================
# CLI setup
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pnguin",
        description="pnguin — PNG chunk inspector and metadata stripper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
        examples:
          pnguin tags photo.png
          pnguin clean *.png
          cat photo.png | pnguin clean -o - > clean.png
          pnguin header icon.png
          pnguin chunks --strict damaged.png
        """),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--strict", action="store_true",
                        help="Fail on chunks cut short inside their data or CRC")

    # Accept the global flags after the subcommand too; SUPPRESS keeps an
    # absent subcommand flag from overwriting one given before it.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--no-color", action="store_true", default=argparse.SUPPRESS,
                        help="Disable colored output")
    common.add_argument("--strict", action="store_true", default=argparse.SUPPRESS,
                        help="Fail on chunks cut short inside their data or CRC")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    p = sub.add_parser("tags", parents=[common], help="Print non-data chunks and embedded text")
    p.add_argument("files", nargs="*", help="PNG files (default: stdin)")

    p = sub.add_parser("clean", parents=[common], help="Write images stripped of metadata chunks")
    p.add_argument("files", nargs="*", help="PNG files (default: stdin)")
    p.add_argument("-o", "--output",
                   help="Output path for a single input, or - for stdout")

    p = sub.add_parser("header", parents=[common], help="Print decoded IHDR fields")
    p.add_argument("files", nargs="*", help="PNG files (default: stdin)")

    p = sub.add_parser("chunks", parents=[common], help="List every chunk")
    p.add_argument("files", nargs="*", help="PNG files (default: stdin)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        C.off()

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "clean" and args.output and len(args.files) > 1:
        parser.error("-o/--output takes a single input file")

    commands = {
        "tags": cmd_tags,
        "clean": cmd_clean,
        "header": cmd_header,
        "chunks": cmd_chunks,
    }

    failures: list[str] = []
    commands[args.command](args, failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
