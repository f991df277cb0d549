"""Heading-aware, size-bounded segmentation of markdown notes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from notefinder.errors import ConfigurationError
from notefinder.models import Segment
from notefinder.utils.text import ROOT_HEADING, iter_windows, match_heading, normalize_heading


@dataclass(slots=True)
class _Section:
    heading: str
    start_line: int
    end_line: int
    text: str


def _split_sections(lines: List[str]) -> List[_Section]:
    sections: List[_Section] = []
    heading = ROOT_HEADING
    section_start = 0

    for i, line in enumerate(lines):
        label = match_heading(line)
        if label is None:
            continue
        text = "\n".join(lines[section_start:i]).strip()
        if text:
            sections.append(_Section(normalize_heading(heading), section_start, i - 1, text))
        heading = label or ROOT_HEADING
        section_start = i

    text = "\n".join(lines[section_start:]).strip()
    if text:
        sections.append(
            _Section(normalize_heading(heading), section_start, len(lines) - 1, text)
        )
    return sections


def segment_id(
    document_id: str,
    heading: str,
    start_line: int,
    end_line: int,
    window: tuple[int, int] | None = None,
) -> str:
    base = f"{document_id}::{heading}::{start_line}-{end_line}"
    if window is None:
        return base
    return f"{base}::{window[0]}-{window[1]}"


def segment_text(
    document_id: str, text: str, *, max_chars: int = 2400, overlap: int = 250
) -> List[Segment]:
    """Split a note into ordered segments.

    Sections start at each markdown heading (levels 1-6). Sections longer than
    ``max_chars`` are cut into overlapping windows that keep the section's
    line range; their ids carry the window offsets.
    """
    if max_chars <= 0:
        raise ConfigurationError(f"max_chars must be positive, got {max_chars}")
    if overlap < 0 or overlap >= max_chars:
        raise ConfigurationError(
            f"overlap must be in [0, max_chars), got {overlap} with max_chars={max_chars}"
        )

    segments: List[Segment] = []
    for section in _split_sections(text.split("\n")):
        if len(section.text) <= max_chars:
            segments.append(
                Segment(
                    segment_id=segment_id(
                        document_id, section.heading, section.start_line, section.end_line
                    ),
                    document_id=document_id,
                    heading=section.heading,
                    start_line=section.start_line,
                    end_line=section.end_line,
                    text=section.text,
                )
            )
            continue

        # Line ranges are approximate for windows: they inherit the section's.
        for start, end in iter_windows(section.text, max_chars=max_chars, overlap=overlap):
            segments.append(
                Segment(
                    segment_id=segment_id(
                        document_id,
                        section.heading,
                        section.start_line,
                        section.end_line,
                        (start, end),
                    ),
                    document_id=document_id,
                    heading=section.heading,
                    start_line=section.start_line,
                    end_line=section.end_line,
                    text=section.text[start:end].strip(),
                )
            )
    return segments
