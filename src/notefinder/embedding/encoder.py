"""Embedding providers: the provider contract and a local sentence-transformers model."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal, Protocol, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from notefinder.errors import ConfigurationError

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length vector. May fail with ``ProviderError``."""

    async def embed(self, model: str, text: str) -> List[float]: ...

    async def aclose(self) -> None: ...


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    backend: Literal["torch", "onnx", "openvino"] = "torch"
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for query and segment embeddings."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(
            self.config.model_name,
            backend=self.config.backend,
            device=self.config.device,
        )
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded %s (backend: %s, dimension: %d)",
            self.config.model_name,
            self.config.backend,
            self.dimension,
        )

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-text embedding."""
        return self.embed([text])[0]


class LocalEmbeddingProvider:
    """`EmbeddingProvider` backed by a local `EmbeddingModel`.

    Encoding runs in a worker thread so the event loop stays responsive.
    """

    def __init__(self, model: EmbeddingModel) -> None:
        self.model = model

    @property
    def model_name(self) -> str:
        return self.model.config.model_name

    async def embed(self, model: str, text: str) -> List[float]:
        if model != self.model_name:
            raise ConfigurationError(
                f"Local provider serves {self.model_name!r}, not {model!r}"
            )
        vector = await asyncio.to_thread(self.model.embed_query, text)
        return vector.tolist()

    async def aclose(self) -> None:
        pass
