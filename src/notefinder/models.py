"""Core NoteFinder data models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Union

FrontMatterValue = Union[str, int, float, bool, None]
FrontMatter = Dict[str, FrontMatterValue]


@dataclass(slots=True)
class Segment:
    """Addressable slice of a note, before redaction."""

    segment_id: str
    document_id: str
    heading: str
    start_line: int
    end_line: int
    text: str


@dataclass(slots=True)
class SegmentRecord:
    """Persisted segment with its embedding."""

    id: str
    document_id: str
    heading: str
    start_line: int
    end_line: int
    text: str
    mtime: int
    hash: str
    embedding: List[float]
    block_id: str = ""

    def with_mtime(self, mtime: int) -> "SegmentRecord":
        return replace(self, mtime=mtime)


@dataclass(slots=True)
class DocumentRecord:
    document_id: str
    mtime: int
    indexed_at: int


@dataclass(slots=True)
class SourceDocument:
    """A note as handed over by the document source."""

    document_id: str
    text: str
    mtime: int
    front_matter: FrontMatter = field(default_factory=dict)
