"""Incremental note indexing pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Mapping, Sequence, Tuple

from notefinder.errors import ConfigurationError, IndexIntegrityError
from notefinder.index.fingerprint import fingerprint
from notefinder.index.redact import redact
from notefinder.index.segmenter import segment_text
from notefinder.index.storage import SQLiteVectorStore
from notefinder.models import DocumentRecord, FrontMatter, Segment, SegmentRecord
from notefinder.utils.files import is_in_folders

if TYPE_CHECKING:
    from notefinder.embedding.encoder import EmbeddingProvider
    from notefinder.ingestion.vault import DocumentSource

LOGGER = logging.getLogger(__name__)

INSERTED = "inserted"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
FAILED = "failed"


def is_markdown(document_id: str) -> bool:
    return document_id.lower().endswith(".md")


def is_opted_out(front_matter: FrontMatter | None, key: str) -> bool:
    """A note opts out when its front matter sets ``key`` to exactly False."""
    if not front_matter or key not in front_matter:
        return False
    return front_matter[key] is False


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class IndexSettings:
    embedding_model: str
    max_chars: int = 2400
    overlap: int = 250
    redact_patterns: List[str] = field(default_factory=list)
    index_folders: List[str] = field(default_factory=list)
    exclude_folders: List[str] = field(default_factory=list)
    opt_out_key: str = "ai"
    max_concurrency: int = 4


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    processed: list[str] = field(default_factory=list)

    def increment(self, status: str, document_id: str) -> None:
        if status == INSERTED:
            self.inserted += 1
        elif status == UPDATED:
            self.updated += 1
        elif status == UNCHANGED:
            self.unchanged += 1
        elif status == SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        self.processed.append(document_id)


class SingleFlight:
    """Per-key mutual exclusion that drops, rather than queues, overlapping callers."""

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._in_flight

    @contextmanager
    def slot(self, key: str) -> Iterator[bool]:
        """Yield True if the slot was taken, False if ``key`` is already running."""
        if key in self._in_flight:
            yield False
            return
        self._in_flight.add(key)
        try:
            yield True
        finally:
            self._in_flight.discard(key)


def reconcile(
    segments: Sequence[Segment],
    existing: Mapping[str, SegmentRecord],
    fresh: Mapping[str, SegmentRecord],
    mtime: int,
) -> Tuple[List[SegmentRecord], List[str]]:
    """Compute the write set and the stale ids for one note.

    Every current segment must be either freshly embedded or already stored;
    stored records are re-stamped with ``mtime``. Stored ids that are no
    longer produced are stale.
    """
    puts: List[SegmentRecord] = []
    current_ids = set()
    for segment in segments:
        current_ids.add(segment.segment_id)
        record = fresh.get(segment.segment_id)
        if record is not None:
            puts.append(record)
            continue
        previous = existing.get(segment.segment_id)
        if previous is None:
            raise IndexIntegrityError(
                f"Index diff error: missing embedding for new segment {segment.segment_id}"
            )
        puts.append(previous.with_mtime(mtime))

    stale = [segment_id for segment_id in existing if segment_id not in current_ids]
    return puts, stale


async def prune_missing(store: SQLiteVectorStore, source: DocumentSource) -> int:
    """Drop index entries for notes the source no longer lists."""
    present = set(source.list_documents())
    indexed = await asyncio.to_thread(store.list_documents)
    removed = 0
    for row in indexed:
        if row["document_id"] not in present:
            await asyncio.to_thread(store.remove_document, row["document_id"])
            LOGGER.info("Pruned %s", row["document_id"])
            removed += 1
    return removed


class Indexer:
    """Coordinates per-note segmentation, embedding and persistence."""

    def __init__(
        self,
        store: SQLiteVectorStore,
        provider: EmbeddingProvider,
        source: DocumentSource,
        settings: IndexSettings,
    ) -> None:
        self.store = store
        self.provider = provider
        self.source = source
        self.settings = settings
        self.in_flight = SingleFlight()

    def is_allowed(self, document_id: str) -> bool:
        return is_markdown(document_id) and is_in_folders(
            document_id, self.settings.index_folders, self.settings.exclude_folders
        )

    async def full_reindex(self) -> IndexStats:
        """Index every allowed note the source lists.

        A note that fails is logged and counted; configuration and integrity
        errors abort the sweep.
        """
        stats = IndexStats()
        document_ids = [d for d in self.source.list_documents() if self.is_allowed(d)]
        if not document_ids:
            LOGGER.warning("No notes found to index")
            return stats

        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrency))

        async def run(document_id: str) -> None:
            async with semaphore:
                try:
                    status = await self.index_document(document_id)
                except (ConfigurationError, IndexIntegrityError):
                    raise
                except Exception as exc:
                    LOGGER.error("Failed to index %s: %s", document_id, exc)
                    status = FAILED
                stats.increment(status, document_id)

        tasks = [asyncio.ensure_future(run(d)) for d in document_ids]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return stats

    async def on_document_created(self, document_id: str) -> str:
        return await self.index_document(document_id)

    async def on_document_modified(self, document_id: str) -> str:
        return await self.index_document(document_id)

    async def on_document_deleted(self, document_id: str) -> None:
        await self.delete_from_index(document_id)

    async def delete_from_index(self, document_id: str) -> bool:
        """Remove a note's segments and record, bypassing the single-flight slot."""
        removed = await asyncio.to_thread(self.store.remove_document, document_id)
        if removed:
            LOGGER.info("Removed %s from index", document_id)
        return removed

    async def prune_missing(self) -> int:
        return await prune_missing(self.store, self.source)

    async def index_document(self, document_id: str) -> str:
        """Index one note if it passes the gates.

        Returns one of ``inserted``, ``updated``, ``unchanged`` or ``skipped``.
        Provider errors propagate and leave the note's stored state untouched.
        """
        if not self.is_allowed(document_id):
            LOGGER.debug("Skipping %s: outside indexed folders", document_id)
            return SKIPPED

        with self.in_flight.slot(document_id) as acquired:
            if not acquired:
                LOGGER.debug("Skipping %s: already indexing", document_id)
                return SKIPPED
            return await self._index_single(document_id)

    async def _index_single(self, document_id: str) -> str:
        settings = self.settings
        document = await self.source.load(document_id)
        if document is None:
            LOGGER.debug("Skipping %s: not found", document_id)
            return SKIPPED
        if is_opted_out(document.front_matter, settings.opt_out_key):
            LOGGER.debug("Skipping %s: opted out via %r", document_id, settings.opt_out_key)
            return SKIPPED

        previous = await asyncio.to_thread(self.store.get_document, document_id)
        if previous is not None and previous.mtime == document.mtime:
            return UNCHANGED

        LOGGER.info("Processing: %s", document_id)
        segments = segment_text(
            document_id, document.text, max_chars=settings.max_chars, overlap=settings.overlap
        )
        existing = {
            record.id: record
            for record in await asyncio.to_thread(
                self.store.get_segments_by_document, document_id
            )
        }

        fresh: Dict[str, SegmentRecord] = {}
        for segment in segments:
            digest = fingerprint(
                document_id, segment.heading, segment.start_line, segment.end_line
            )
            current = existing.get(segment.segment_id)
            if current is not None and current.hash == digest:
                continue
            text = redact(segment.text, settings.redact_patterns)
            embedding = await self.provider.embed(settings.embedding_model, text)
            fresh[segment.segment_id] = SegmentRecord(
                id=segment.segment_id,
                document_id=document_id,
                heading=segment.heading,
                start_line=segment.start_line,
                end_line=segment.end_line,
                text=text,
                mtime=document.mtime,
                hash=digest,
                embedding=list(embedding),
            )

        puts, stale = reconcile(segments, existing, fresh, document.mtime)
        record = DocumentRecord(document_id=document_id, mtime=document.mtime, indexed_at=_now_ms())
        await asyncio.to_thread(self.store.replace_segments, record, puts, stale)
        LOGGER.debug(
            "Indexed %s: %d embedded, %d reused, %d stale",
            document_id,
            len(fresh),
            len(puts) - len(fresh),
            len(stale),
        )
        return UPDATED if previous is not None else INSERTED
