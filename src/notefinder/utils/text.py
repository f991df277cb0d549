"""Text helpers for heading parsing and overlapping windows."""

from __future__ import annotations

import re
from typing import Iterator, Tuple

ROOT_HEADING = "ROOT"

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)\s*$")


def normalize_heading(heading: str) -> str:
    return heading.strip() or ROOT_HEADING


def match_heading(line: str) -> str | None:
    """Return the heading label if ``line`` is a markdown heading."""
    match = HEADING_RE.match(line)
    if match is None:
        return None
    return match.group(2)


def iter_windows(text: str, *, max_chars: int, overlap: int) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` offsets of overlapping character windows.

    Consecutive windows share ``overlap`` characters. The last window always
    ends at ``len(text)``.
    """
    if not text:
        return

    start = 0
    length = len(text)
    while start < length:
        end = min(length, start + max_chars)
        yield start, end
        if end >= length:
            break
        start = max(0, end - overlap)
