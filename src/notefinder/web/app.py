"""FastAPI application exposing NoteFinder search and indexing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from notefinder.config import AppConfig, create_provider
from notefinder.errors import ConfigurationError, NoteFinderError, ProviderError
from notefinder.index.indexer import Indexer
from notefinder.index.search import Searcher, SearchResult
from notefinder.index.storage import SQLiteVectorStore
from notefinder.ingestion.vault import FileSystemVault

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="NoteFinder Web", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class SearchPayload(BaseModel):
    query: str
    db: Path | None = None
    provider: Literal["openai", "local"] = "openai"
    top_k: int = 8


class IndexPayload(BaseModel):
    vault: str
    db: Path | None = None
    provider: Literal["openai", "local"] = "openai"
    chunk_chars: int | None = None
    overlap: int | None = None


def _resolve_db_path(db: Path | None) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _http_error(exc: NoteFinderError) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ProviderError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.post("/search")
async def search_notes(payload: SearchPayload) -> dict[str, List[SearchResult]]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    top_k = max(1, min(payload.top_k, 50))

    resolved_db = _resolve_db_path(payload.db)
    if not resolved_db.exists():
        raise HTTPException(
            status_code=404,
            detail=f"Database not found at {resolved_db}. Index a vault first.",
        )

    config = AppConfig(db_path=resolved_db, provider=payload.provider)
    store = SQLiteVectorStore(resolved_db)
    try:
        provider = create_provider(config)
        searcher = Searcher(provider, store, model=config.active_model)
        try:
            results = await searcher.search(query, top_k=top_k)
        finally:
            await provider.aclose()
    except NoteFinderError as exc:
        raise _http_error(exc) from exc
    finally:
        store.close()
    return {"results": results}


@app.post("/index")
async def index_vault(payload: IndexPayload) -> dict[str, Any]:
    if not payload.vault.strip():
        raise HTTPException(status_code=400, detail="No vault provided")
    vault = Path(payload.vault.strip()).expanduser()
    if not vault.is_dir():
        raise HTTPException(status_code=404, detail=f"Vault not found: {vault}")

    defaults = AppConfig()
    config = AppConfig(
        db_path=payload.db if payload.db is not None else defaults.db_path,
        provider=payload.provider,
        chunk_chars=payload.chunk_chars or defaults.chunk_chars,
        overlap=payload.overlap if payload.overlap is not None else defaults.overlap,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    store = SQLiteVectorStore(resolved_db)
    try:
        provider = create_provider(config)
        indexer = Indexer(store, provider, FileSystemVault(vault), config.index_settings())
        try:
            stats = await indexer.full_reindex()
        finally:
            await provider.aclose()
    except NoteFinderError as exc:
        LOGGER.exception("Indexing failed: %s", exc)
        raise _http_error(exc) from exc
    finally:
        store.close()

    return {
        "status": "ok",
        "db": str(resolved_db),
        "stats": {
            "inserted": stats.inserted,
            "updated": stats.updated,
            "unchanged": stats.unchanged,
            "skipped": stats.skipped,
            "failed": stats.failed,
            "processed": stats.processed,
        },
    }


@app.get("/documents")
async def list_documents(db: Path | None = None) -> dict[str, Any]:
    """List all indexed notes."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        return {"documents": [], "stats": {"document_count": 0, "segment_count": 0}}

    store = SQLiteVectorStore(resolved_db)
    try:
        documents = store.list_documents()
        stats = store.get_stats()
    finally:
        store.close()

    return {"documents": documents, "stats": stats}


@app.delete("/documents/{document_id:path}")
async def delete_document(document_id: str, db: Path | None = None) -> dict[str, Any]:
    """Remove a note and its segments from the index."""
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(status_code=404, detail="Database not found")

    store = SQLiteVectorStore(resolved_db)
    try:
        deleted = store.remove_document(document_id)
    finally:
        store.close()

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Note {document_id} not found")

    return {"status": "ok", "deleted_id": document_id}
