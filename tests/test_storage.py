"""Tests for SQLiteVectorStore."""

from __future__ import annotations

import sqlite3

import pytest

from notefinder.index.storage import SQLiteVectorStore
from notefinder.models import DocumentRecord, SegmentRecord


def _segment(segment_id: str, document_id: str = "a.md", **overrides) -> SegmentRecord:
    values = dict(
        id=segment_id,
        document_id=document_id,
        heading="H",
        start_line=0,
        end_line=3,
        text=f"text of {segment_id}",
        mtime=100,
        hash="hash-" + segment_id,
        embedding=[0.5, -1.25, 2.0],
    )
    values.update(overrides)
    return SegmentRecord(**values)


class TestSQLiteVectorStore:
    """Test initialization and schema."""

    def test_init_creates_database(self, tmp_path):
        db_path = tmp_path / "new.db"
        assert not db_path.exists()

        store = SQLiteVectorStore(db_path)

        assert db_path.exists()
        assert store.db_path == db_path
        store.close()

    def test_schema_creation(self, temp_db):
        """Both tables and their secondary indexes exist."""
        conn = temp_db.connection
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'index')")
        }

        assert {"segments", "documents"} <= names
        assert {
            "idx_segments_document_id",
            "idx_segments_mtime",
            "idx_segments_hash",
            "idx_documents_mtime",
            "idx_documents_indexed_at",
        } <= names

    def test_pragma_settings(self, temp_db):
        conn = temp_db.connection

        assert conn.execute("PRAGMA journal_mode").fetchone()[0].lower() == "wal"
        assert conn.execute("PRAGMA synchronous").fetchone()[0] == 1

    def test_close(self, tmp_path):
        store = SQLiteVectorStore(tmp_path / "close.db")
        conn = store.connection

        store.close()

        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")

    def test_reopen_keeps_data(self, tmp_path):
        db_path = tmp_path / "persist.db"
        store = SQLiteVectorStore(db_path)
        store.bulk_put([_segment("s1")])
        store.close()

        reopened = SQLiteVectorStore(db_path)
        assert reopened.get_segment("s1") is not None
        reopened.close()


class TestTransaction:
    def test_rollback_on_exception(self, temp_db):
        with pytest.raises(ValueError):
            with temp_db.transaction() as conn:
                conn.execute(
                    "INSERT INTO documents(document_id, mtime, indexed_at) VALUES (?, ?, ?)",
                    ("a.md", 1, 2),
                )
                raise ValueError("Test error")

        assert temp_db.get_document("a.md") is None


class TestDocuments:
    def test_put_and_get(self, temp_db):
        temp_db.put_document(DocumentRecord("a.md", mtime=10, indexed_at=20))

        assert temp_db.get_document("a.md") == DocumentRecord("a.md", 10, 20)
        assert temp_db.get_document("missing.md") is None

    def test_put_overwrites(self, temp_db):
        temp_db.put_document(DocumentRecord("a.md", 10, 20))
        temp_db.put_document(DocumentRecord("a.md", 11, 21))

        assert temp_db.get_document("a.md") == DocumentRecord("a.md", 11, 21)
        assert temp_db.get_stats()["document_count"] == 1

    def test_delete_document_keeps_segments(self, temp_db):
        """delete_document only removes the note record."""
        temp_db.put_document(DocumentRecord("a.md", 10, 20))
        temp_db.bulk_put([_segment("s1")])

        assert temp_db.delete_document("a.md") is True
        assert temp_db.delete_document("a.md") is False
        assert temp_db.get_document("a.md") is None
        assert temp_db.get_segment("s1") is not None


class TestSegments:
    def test_bulk_put_round_trip(self, temp_db):
        """Embeddings survive float32 storage exactly for representable values."""
        record = _segment("s1", block_id="^abc")
        temp_db.bulk_put([record])

        assert temp_db.get_segment("s1") == record

    def test_bulk_put_overwrites_by_id(self, temp_db):
        temp_db.bulk_put([_segment("s1")])
        temp_db.bulk_put([_segment("s1", text="new", mtime=200)])

        stored = temp_db.get_segment("s1")
        assert stored.text == "new"
        assert stored.mtime == 200
        assert temp_db.get_stats()["segment_count"] == 1

    def test_get_segments_by_document(self, temp_db):
        temp_db.bulk_put([_segment("s1"), _segment("s2"), _segment("t1", document_id="b.md")])

        ids = {r.id for r in temp_db.get_segments_by_document("a.md")}
        assert ids == {"s1", "s2"}
        assert temp_db.get_segments_by_document("none.md") == []

    def test_bulk_delete(self, temp_db):
        temp_db.bulk_put([_segment("s1"), _segment("s2"), _segment("s3")])

        temp_db.bulk_delete(["s1", "s3", "unknown"])

        assert [r.id for r in temp_db.scan_all_segments()] == ["s2"]

    def test_delete_all_segments_of_document(self, temp_db):
        temp_db.bulk_put([_segment("s1"), _segment("s2"), _segment("t1", document_id="b.md")])

        assert temp_db.delete_all_segments_of_document("a.md") == 2
        assert [r.id for r in temp_db.scan_all_segments()] == ["t1"]

    def test_scan_keeps_insertion_order_on_update(self, temp_db):
        """Upserting an existing id does not move it in the scan order."""
        temp_db.bulk_put([_segment("s1"), _segment("s2")])
        temp_db.bulk_put([_segment("s1", mtime=999)])

        assert [r.id for r in temp_db.scan_all_segments()] == ["s1", "s2"]


class TestReplaceSegments:
    def test_replace_writes_puts_deletes_stale_and_document(self, temp_db):
        temp_db.bulk_put([_segment("keep"), _segment("old")])

        temp_db.replace_segments(
            DocumentRecord("a.md", 300, 400),
            [_segment("keep", mtime=300), _segment("new", mtime=300)],
            ["old"],
        )

        ids = {r.id for r in temp_db.get_segments_by_document("a.md")}
        assert ids == {"keep", "new"}
        assert temp_db.get_segment("keep").mtime == 300
        assert temp_db.get_document("a.md") == DocumentRecord("a.md", 300, 400)

    def test_replace_is_atomic(self, temp_db):
        """A failure inside the batch leaves the previous state intact."""
        temp_db.bulk_put([_segment("old")])
        broken = _segment("new", text=None)

        with pytest.raises(sqlite3.IntegrityError):
            temp_db.replace_segments(DocumentRecord("a.md", 1, 2), [_segment("x"), broken], ["old"])

        assert {r.id for r in temp_db.scan_all_segments()} == {"old"}
        assert temp_db.get_document("a.md") is None

    def test_remove_document(self, temp_db):
        temp_db.put_document(DocumentRecord("a.md", 1, 2))
        temp_db.bulk_put([_segment("s1"), _segment("t1", document_id="b.md")])

        assert temp_db.remove_document("a.md") is True
        assert temp_db.remove_document("a.md") is False
        assert temp_db.get_document("a.md") is None
        assert [r.id for r in temp_db.scan_all_segments()] == ["t1"]


class TestListing:
    def test_list_documents_with_counts(self, temp_db):
        temp_db.put_document(DocumentRecord("b.md", 1, 2))
        temp_db.put_document(DocumentRecord("a.md", 3, 4))
        temp_db.bulk_put([_segment("s1"), _segment("s2")])

        rows = temp_db.list_documents()

        assert [r["document_id"] for r in rows] == ["a.md", "b.md"]
        assert rows[0]["segment_count"] == 2
        assert rows[1]["segment_count"] == 0

    def test_stats(self, temp_db):
        assert temp_db.get_stats() == {"document_count": 0, "segment_count": 0}
