"""
pnguin error taxonomy

Every failure names the input it came from (source) and the step that
failed (phase), so a batch of inputs can be reported one by one without
aborting the others.
"""

from __future__ import annotations

from typing import Optional


class PnguinError(Exception):
    """Base class for all pnguin failures."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        phase: Optional[str] = None,
    ) -> None:
        self.message = message
        self.source = source
        self.phase = phase
        super().__init__(str(self))

    def __str__(self) -> str:
        where = []
        if self.source:
            where.append(self.source)
        if self.phase:
            where.append(self.phase)
        prefix = f"[{': '.join(where)}] " if where else ""
        return f"{prefix}{self.message}"


class NotAPng(PnguinError):
    """The input does not start with the PNG signature."""


class IoFailure(PnguinError):
    """The underlying stream failed to read or write."""


class TruncatedChunk(PnguinError):
    """A chunk was cut short at a field boundary."""


class HeaderDecodeFailure(PnguinError):
    """IHDR data is not exactly 13 bytes."""


class TextDecodeFailure(PnguinError):
    """A tEXt/zTXt/iTXt payload could not be decoded."""
