"""Embedding helpers backed by Sentence Transformers or OpenAI."""
from __future__ import annotations

import hashlib
import logging
import random
from functools import lru_cache
from typing import List, Optional, Sequence

from msgrag.config import Settings
from msgrag.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
HASH_DIMENSION = 384


class EmbeddingModel:
    """Turn texts into vectors with the configured backend.

    ``hash`` produces deterministic pseudo-random vectors and is meant for
    offline development and tests; it carries no semantic signal.
    """

    def __init__(
        self,
        backend: str = "sentence-transformers",
        model_name: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        dimension: int = HASH_DIMENSION,
    ) -> None:
        self.backend = backend
        self._dimension = dimension
        self._model = None
        self._client = None

        if backend == "hash":
            self.model_name = "deterministic-hash"
        elif backend == "sentence-transformers":
            from sentence_transformers import SentenceTransformer

            self.model_name = model_name or DEFAULT_MODEL_NAME
            LOGGER.info("Loading sentence-transformers model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
            self._dimension = int(self._model.get_sentence_embedding_dimension())
        elif backend == "openai":
            from openai import OpenAI

            self.model_name = model_name or DEFAULT_OPENAI_MODEL
            self._client = OpenAI(api_key=api_key)
        else:
            raise ConfigurationError(f"Unsupported embedding backend: {backend!r}")

    @property
    def dimension(self) -> int:
        return int(self._dimension)

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        if self._model is not None:
            vectors = self._model.encode(
                list(texts),
                convert_to_numpy=True,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
            return vectors.tolist()
        if self._client is not None:
            response = self._client.embeddings.create(model=self.model_name, input=list(texts))
            return [list(item.embedding) for item in response.data]
        return [self._deterministic_embedding(str(text)) for text in texts]

    def _deterministic_embedding(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
        rng = random.Random(seed)
        return [rng.uniform(-1.0, 1.0) for _ in range(self._dimension)]


@lru_cache()
def _cached_model(backend: str, model_name: Optional[str], api_key: Optional[str]) -> EmbeddingModel:
    return EmbeddingModel(backend, model_name, api_key=api_key)


def get_embedding_model(settings: Settings) -> EmbeddingModel:
    """Return the process-wide embedding model for *settings*."""

    return _cached_model(settings.embedding_backend, settings.embedding_model, settings.openai_api_key)


def reset_embedding_model_cache() -> None:
    """Clear the cached embedding model instance (primarily for testing)."""

    _cached_model.cache_clear()


__all__ = ["EmbeddingModel", "get_embedding_model", "reset_embedding_model_cache"]
