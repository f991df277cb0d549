"""SQLite vector store for segment records and note metadata."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence

import numpy as np

from notefinder.models import DocumentRecord, SegmentRecord

_SEGMENT_COLUMNS = (
    "id, document_id, heading, block_id, start_line, end_line, text, mtime, hash, embedding"
)


def _encode_embedding(vector: Sequence[float]) -> sqlite3.Binary:
    return sqlite3.Binary(np.asarray(vector, dtype="float32").tobytes())


def _decode_embedding(blob: bytes) -> List[float]:
    return np.frombuffer(blob, dtype="float32").tolist()


def _row_to_segment(row: sqlite3.Row) -> SegmentRecord:
    return SegmentRecord(
        id=row["id"],
        document_id=row["document_id"],
        heading=row["heading"],
        block_id=row["block_id"] or "",
        start_line=row["start_line"],
        end_line=row["end_line"],
        text=row["text"],
        mtime=row["mtime"],
        hash=row["hash"],
        embedding=_decode_embedding(row["embedding"]),
    )


def _row_to_document(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(
        document_id=row["document_id"], mtime=row["mtime"], indexed_at=row["indexed_at"]
    )


class SQLiteVectorStore:
    """Persistence layer for segment embeddings and per-note metadata.

    All access goes through one connection guarded by a re-entrant lock, so
    methods may be called from worker threads.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS segments (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    heading TEXT NOT NULL,
                    block_id TEXT NOT NULL DEFAULT '',
                    start_line INTEGER NOT NULL,
                    end_line INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    mtime INTEGER NOT NULL,
                    hash TEXT NOT NULL,
                    embedding BLOB NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_segments_document_id ON segments(document_id)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_segments_mtime ON segments(mtime)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_segments_hash ON segments(hash)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    document_id TEXT PRIMARY KEY,
                    mtime INTEGER NOT NULL,
                    indexed_at INTEGER NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_mtime ON documents(mtime)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_indexed_at ON documents(indexed_at)"
            )

    # -- documents -----------------------------------------------------------

    def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT document_id, mtime, indexed_at FROM documents WHERE document_id = ?",
                (document_id,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def put_document(self, record: DocumentRecord) -> None:
        with self.transaction() as conn:
            self._put_document(conn, record)

    def delete_document(self, document_id: str) -> bool:
        """Delete the note record only. Returns True if it existed."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE document_id = ?", (document_id,))
        return cursor.rowcount > 0

    def list_documents(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT d.document_id AS document_id, d.mtime AS mtime,
                       d.indexed_at AS indexed_at, COUNT(s.id) AS segment_count
                FROM documents d
                LEFT JOIN segments s ON s.document_id = d.document_id
                GROUP BY d.document_id
                ORDER BY d.document_id
                """
            ).fetchall()
        return [dict(row) for row in rows]

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            documents = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
            segments = self._conn.execute("SELECT COUNT(*) FROM segments").fetchone()[0]
        return {"document_count": documents, "segment_count": segments}

    # -- segments ------------------------------------------------------------

    def get_segment(self, segment_id: str) -> SegmentRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SEGMENT_COLUMNS} FROM segments WHERE id = ?", (segment_id,)
            ).fetchone()
        return _row_to_segment(row) if row else None

    def get_segments_by_document(self, document_id: str) -> List[SegmentRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SEGMENT_COLUMNS} FROM segments WHERE document_id = ?",
                (document_id,),
            ).fetchall()
        return [_row_to_segment(row) for row in rows]

    def scan_all_segments(self) -> List[SegmentRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SEGMENT_COLUMNS} FROM segments ORDER BY rowid"
            ).fetchall()
        return [_row_to_segment(row) for row in rows]

    def bulk_put(self, records: Iterable[SegmentRecord]) -> None:
        with self.transaction() as conn:
            self._put_segments(conn, records)

    def bulk_delete(self, segment_ids: Iterable[str]) -> None:
        with self.transaction() as conn:
            self._delete_segments(conn, segment_ids)

    def delete_all_segments_of_document(self, document_id: str) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM segments WHERE document_id = ?", (document_id,))
        return cursor.rowcount

    # -- per-note batches ----------------------------------------------------

    def replace_segments(
        self,
        document: DocumentRecord,
        puts: Sequence[SegmentRecord],
        stale_ids: Sequence[str],
    ) -> None:
        """Atomically write a note's new segment set and its record.

        Upserts run before deletes, so even without the transaction a reader
        would see a superset of the final state.
        """
        with self.transaction() as conn:
            self._put_segments(conn, puts)
            self._delete_segments(conn, stale_ids)
            self._put_document(conn, document)

    def remove_document(self, document_id: str) -> bool:
        """Delete a note's segments and record in one transaction."""
        with self.transaction() as conn:
            segments = conn.execute(
                "DELETE FROM segments WHERE document_id = ?", (document_id,)
            ).rowcount
            documents = conn.execute(
                "DELETE FROM documents WHERE document_id = ?", (document_id,)
            ).rowcount
        return bool(segments or documents)

    @staticmethod
    def _put_document(conn: sqlite3.Connection, record: DocumentRecord) -> None:
        conn.execute(
            """
            INSERT INTO documents(document_id, mtime, indexed_at) VALUES (?, ?, ?)
            ON CONFLICT(document_id) DO UPDATE SET
                mtime = excluded.mtime, indexed_at = excluded.indexed_at
            """,
            (record.document_id, record.mtime, record.indexed_at),
        )

    @staticmethod
    def _put_segments(conn: sqlite3.Connection, records: Iterable[SegmentRecord]) -> None:
        conn.executemany(
            f"""
            INSERT INTO segments({_SEGMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                document_id = excluded.document_id,
                heading = excluded.heading,
                block_id = excluded.block_id,
                start_line = excluded.start_line,
                end_line = excluded.end_line,
                text = excluded.text,
                mtime = excluded.mtime,
                hash = excluded.hash,
                embedding = excluded.embedding
            """,
            [
                (
                    record.id,
                    record.document_id,
                    record.heading,
                    record.block_id,
                    record.start_line,
                    record.end_line,
                    record.text,
                    record.mtime,
                    record.hash,
                    _encode_embedding(record.embedding),
                )
                for record in records
            ],
        )

    @staticmethod
    def _delete_segments(conn: sqlite3.Connection, segment_ids: Iterable[str]) -> None:
        conn.executemany("DELETE FROM segments WHERE id = ?", [(sid,) for sid in segment_ids])
