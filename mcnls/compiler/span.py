"""
Source positions for the MCN-16 compiler.

Lines and columns are zero-based so they map directly onto LSP positions.
"""

from __future__ import annotations

from typing import NamedTuple


class Location(NamedTuple):
    line: int
    column: int


class Span(NamedTuple):
    """A start/end pair of locations. ``a + b`` spans from a's start to b's end."""

    start: Location
    end: Location

    def __add__(self, other: Span) -> Span:  # type: ignore[override]
        return Span(self.start, other.end)

    @classmethod
    def at(cls, line: int, column: int, length: int = 0) -> Span:
        return cls(Location(line, column), Location(line, column + length))


EMPTY_SPAN = Span.at(0, 0)
