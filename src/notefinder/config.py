"""Application configuration defaults."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal

from notefinder.embedding.encoder import (
    DEFAULT_MODEL,
    EmbeddingConfig,
    EmbeddingModel,
    EmbeddingProvider,
    LocalEmbeddingProvider,
)
from notefinder.embedding.openai_client import OpenAIClient
from notefinder.errors import ConfigurationError
from notefinder.index.indexer import IndexSettings

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"
DEFAULT_BASE_URL = "https://api.openai.com"
DEFAULT_REDACT_PATTERNS = [
    r"(?i)api[_-]?key\s*[:=]\s*\S+",
    r"(?i)password\s*[:=]\s*\S+",
    r"(?i)secret\s*[:=]\s*\S+",
]


def _get_default_db_path() -> Path:
    """Get the default database path based on platform and execution context."""
    user_db = Path.home() / "Documents" / "NoteFinder" / "notefinder.db"

    if getattr(sys, "frozen", False):
        return user_db

    # When running from source, prefer local data/ if it exists
    local_db = Path("data/notefinder.db")
    if local_db.exists():
        return local_db

    return user_db


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    provider: Literal["openai", "local"] = "openai"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    local_model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    chunk_chars: int = 2400
    overlap: int = 250
    index_folders: List[str] = field(default_factory=list)
    exclude_folders: List[str] = field(default_factory=lambda: [".obsidian", "99_Templates"])
    redact_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_REDACT_PATTERNS))
    opt_out_key: str = "ai"
    max_concurrency: int = 4

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if self.api_key is None:
            self.api_key = os.environ.get("OPENAI_API_KEY") or None

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    @property
    def active_model(self) -> str:
        """Model name passed to the embedding provider."""
        return self.local_model if self.provider == "local" else self.embedding_model

    def index_settings(self) -> IndexSettings:
        return IndexSettings(
            embedding_model=self.active_model,
            max_chars=self.chunk_chars,
            overlap=self.overlap,
            redact_patterns=list(self.redact_patterns),
            index_folders=list(self.index_folders),
            exclude_folders=list(self.exclude_folders),
            opt_out_key=self.opt_out_key,
            max_concurrency=self.max_concurrency,
        )


def create_provider(config: AppConfig) -> EmbeddingProvider:
    """Build the embedding provider selected by ``config.provider``."""
    if config.provider == "local":
        model = EmbeddingModel(EmbeddingConfig(model_name=config.local_model))
        return LocalEmbeddingProvider(model)
    if config.provider == "openai":
        return OpenAIClient(lambda: config.api_key, config.base_url)
    raise ConfigurationError(f"Unknown embedding provider: {config.provider!r}")
