"""Semantic search interface."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Sequence

from notefinder.index.retriever import rank
from notefinder.index.storage import SQLiteVectorStore

if TYPE_CHECKING:
    from notefinder.embedding.encoder import EmbeddingProvider


@dataclass(slots=True)
class SearchResult:
    segment_id: str
    document_id: str
    heading: str
    start_line: int
    end_line: int
    score: float
    text: str


def build_context(results: Sequence[SearchResult]) -> str:
    """Render results as the numbered context block fed to an answering model."""
    blocks = [
        f"CHUNK {i}\nchunkId: {r.segment_id}\nnotePath: {r.document_id}\n"
        f"heading: {r.heading}\ntext:\n{r.text}\n"
        for i, r in enumerate(results, start=1)
    ]
    return "\n---\n".join(blocks)


class Searcher:
    """High-level API to query the vector store."""

    def __init__(
        self, provider: EmbeddingProvider, store: SQLiteVectorStore, *, model: str
    ) -> None:
        self.provider = provider
        self.store = store
        self.model = model

    async def search(self, query: str, *, top_k: int = 8) -> List[SearchResult]:
        embedding = await self.provider.embed(self.model, query)
        candidates = await asyncio.to_thread(self.store.scan_all_segments)
        return [
            SearchResult(
                segment_id=record.id,
                document_id=record.document_id,
                heading=record.heading,
                start_line=record.start_line,
                end_line=record.end_line,
                score=score,
                text=record.text,
            )
            for record, score in rank(embedding, candidates, top_k)
        ]
