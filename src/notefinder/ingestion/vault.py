"""Filesystem document source for a vault of markdown notes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Protocol

import yaml

from notefinder.models import FrontMatter, SourceDocument
from notefinder.utils.files import iter_markdown_paths

LOGGER = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool)


class DocumentSource(Protocol):
    def list_documents(self) -> List[str]: ...

    async def load(self, document_id: str) -> SourceDocument | None: ...


def parse_front_matter(text: str) -> FrontMatter:
    """Parse a leading ``---`` YAML block, keeping scalar values only."""
    lines = text.split("\n")
    if not lines or lines[0].strip() != "---":
        return {}
    for end, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            break
    else:
        return {}

    try:
        data = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        LOGGER.warning("Invalid front matter: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        str(key): value
        for key, value in data.items()
        if value is None or isinstance(value, _SCALARS)
    }


class FileSystemVault:
    """Markdown notes under ``root``, addressed by POSIX relative path."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, document_id: str) -> Path:
        return self.root / document_id

    def list_documents(self) -> List[str]:
        return [
            path.relative_to(self.root).as_posix() for path in iter_markdown_paths(self.root)
        ]

    def _read(self, document_id: str) -> SourceDocument | None:
        path = self.path_for(document_id)
        try:
            stat = path.stat()
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return SourceDocument(
            document_id=document_id,
            text=text,
            mtime=stat.st_mtime_ns // 1_000_000,
            front_matter=parse_front_matter(text),
        )

    async def load(self, document_id: str) -> SourceDocument | None:
        return await asyncio.to_thread(self._read, document_id)
