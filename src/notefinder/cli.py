"""Command line interface for NoteFinder."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from notefinder.config import AppConfig, create_provider
from notefinder.embedding.encoder import EmbeddingProvider
from notefinder.errors import NoteFinderError
from notefinder.index.indexer import Indexer, prune_missing
from notefinder.index.search import Searcher
from notefinder.index.storage import SQLiteVectorStore
from notefinder.ingestion.vault import FileSystemVault
from notefinder.web.app import app as web_app

T = TypeVar("T")

console = Console()
app = typer.Typer(help="NoteFinder - incremental semantic search for markdown notes")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_config(
    db: Optional[Path], provider: str, model: Optional[str], **overrides: Any
) -> AppConfig:
    config = AppConfig(
        db_path=db if db is not None else AppConfig().db_path, provider=provider, **overrides
    )
    if model:
        if provider == "local":
            config.local_model = model
        else:
            config.embedding_model = model
    return config


def _run(awaitable: Awaitable[T], provider: EmbeddingProvider) -> T:
    async def runner() -> T:
        try:
            return await awaitable
        finally:
            await provider.aclose()

    return asyncio.run(runner())


@app.command()
def index(
    vault: Path = typer.Argument(..., help="Vault folder with markdown notes.", resolve_path=True),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    provider: str = typer.Option("openai", help="Embedding provider: openai or local"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    chunk_chars: int = typer.Option(AppConfig().chunk_chars, help="Segment size in characters"),
    overlap: int = typer.Option(AppConfig().overlap, help="Segment overlap"),
    concurrency: int = typer.Option(AppConfig().max_concurrency, help="Notes indexed at once"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index (or re-index) every allowed note in a vault."""
    _setup_logging(verbose)
    if not vault.is_dir():
        raise typer.BadParameter(f"Vault folder not found: {vault}")

    config = _build_config(
        db,
        provider,
        model,
        chunk_chars=chunk_chars,
        overlap=overlap,
        max_concurrency=concurrency,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    store = SQLiteVectorStore(resolved_db)
    try:
        embedder = create_provider(config)
        indexer = Indexer(store, embedder, FileSystemVault(vault), config.index_settings())
        console.print(f"Indexing [bold]{vault}[/bold] into [bold]{resolved_db}[/bold]...")
        stats = _run(indexer.full_reindex(), embedder)
    except NoteFinderError as exc:
        console.print(f"[red]Reindex failed: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()

    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, unchanged: {stats.unchanged}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    provider: str = typer.Option("openai", help="Embedding provider: openai or local"),
    model: Optional[str] = typer.Option(None, help="Embedding model name"),
    top_k: int = typer.Option(8, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Execute a semantic search."""
    _setup_logging(verbose)
    config = _build_config(db, provider, model)
    resolved_db = config.resolve_db_path(Path.cwd())

    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    store = SQLiteVectorStore(resolved_db)
    try:
        embedder = create_provider(config)
        searcher = Searcher(embedder, store, model=config.active_model)
        results = _run(searcher.search(query, top_k=top_k), embedder)
    except NoteFinderError as exc:
        console.print(f"[red]Search failed: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Note")
    table.add_column("Heading")
    table.add_column("Snippet")

    for result in results:
        snippet = result.text.replace("\n", " ")
        table.add_row(f"{result.score:.4f}", result.document_id, result.heading, snippet[:180])

    console.print(table)


@app.command()
def delete(
    document_id: str = typer.Argument(..., help="Vault-relative note path"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Remove one note from the index."""
    _setup_logging(verbose)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to delete.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db)
    try:
        removed = store.remove_document(document_id)
    finally:
        store.close()

    if removed:
        console.print(f"Removed {document_id} from the index.")
    else:
        console.print(f"[yellow]{document_id} is not indexed.[/yellow]")


@app.command()
def prune(
    vault: Path = typer.Argument(..., help="Vault folder with markdown notes.", resolve_path=True),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Remove notes that no longer exist in the vault."""
    _setup_logging(verbose)
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())

    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db)
    try:
        removed = asyncio.run(prune_missing(store, FileSystemVault(vault)))
    finally:
        store.close()
    console.print(f"Removed {removed} orphaned notes.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the web API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter("uvicorn is not installed.") from exc

    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, searches might fail.[/yellow]")

    console.print(f"Starting web API on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
