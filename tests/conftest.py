"""Shared fixtures: an in-memory note source and a counting fake provider."""

from __future__ import annotations

import asyncio
from typing import Dict, List

import pytest

from notefinder.errors import ProviderError
from notefinder.index.indexer import IndexSettings, Indexer
from notefinder.index.storage import SQLiteVectorStore
from notefinder.models import FrontMatter, SourceDocument


class FakeProvider:
    """Embeds text as a tiny deterministic vector and records every call."""

    def __init__(self) -> None:
        self.calls: List[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def embed(self, model: str, text: str) -> List[float]:
        self.calls.append((model, text))
        if self.gate is not None:
            await self.gate.wait()
        if any(marker in text for marker in self.fail_on):
            raise ProviderError("Embeddings error 500: boom", status_code=500)
        return [float(len(text)), float(sum(map(ord, text)) % 97), 1.0]

    async def aclose(self) -> None:
        pass


class MemorySource:
    """Document source backed by a dict of note id -> (text, mtime, front matter)."""

    def __init__(self) -> None:
        self.notes: Dict[str, SourceDocument] = {}

    def put(
        self, document_id: str, text: str, mtime: int, front_matter: FrontMatter | None = None
    ) -> None:
        self.notes[document_id] = SourceDocument(
            document_id=document_id, text=text, mtime=mtime, front_matter=front_matter or {}
        )

    def remove(self, document_id: str) -> None:
        self.notes.pop(document_id, None)

    def list_documents(self) -> List[str]:
        return sorted(self.notes)

    async def load(self, document_id: str) -> SourceDocument | None:
        return self.notes.get(document_id)


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    store = SQLiteVectorStore(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def source() -> MemorySource:
    return MemorySource()


@pytest.fixture
def settings() -> IndexSettings:
    return IndexSettings(
        embedding_model="test-model",
        max_chars=2400,
        overlap=250,
        redact_patterns=[r"secret\s*[:=]\s*\S+"],
        exclude_folders=[".obsidian", "99_Templates"],
    )


@pytest.fixture
def indexer(temp_db, provider, source, settings) -> Indexer:
    return Indexer(temp_db, provider, source, settings)
