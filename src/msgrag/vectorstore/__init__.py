"""Vector store helpers backed by pluggable backends."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from msgrag.config import Settings
from msgrag.embeddings import EmbeddingModel, get_embedding_model
from msgrag.errors import ConfigurationError
from msgrag.ingest.models import Chunk

from .errors import VectorStoreUnavailableError
from .mock_store import MockQueryResult, MockVectorStore

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "documents"
DEFAULT_DISTANCE_METRIC = "cosine"
# OpenAI caps one embeddings request at 2048 inputs.
DEFAULT_BATCH_SIZE = 1000


class EmbeddingModelLike(Protocol):
    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class StoreBackend(Protocol):
    def create_collection(self, name: str, *, metadata: Optional[Dict[str, object]] = None) -> Any:
        ...

    def add(self, name: str, *, ids, embeddings, documents, metadatas=None) -> None:
        ...

    def query(self, name: str, query_embedding: Sequence[float], k: int = 5) -> List[Any]:
        ...


@dataclass(slots=True)
class ChunkSearchResult:
    """A stored chunk together with its similarity to the query."""

    id: str
    chunk: Chunk
    score: float


class ChunkVectorStore:
    """Embed chunks and keep them in a similarity-searchable collection.

    Uploads are append-only: every chunk gets a fresh id, nothing is merged
    or replaced.
    """

    def __init__(
        self,
        backend: StoreBackend,
        embedding_model: EmbeddingModelLike,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        distance_metric: str = DEFAULT_DISTANCE_METRIC,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.collection_name = collection_name
        self.batch_size = batch_size
        self.distance_metric = distance_metric
        self.embedding_model = embedding_model
        self._store = backend
        try:
            self._store.create_collection(self.collection_name, metadata={"hnsw:space": self.distance_metric})
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to initialise vector store collection", cause=exc) from exc

    def upsert_batch(self, chunks: Sequence[Chunk]) -> List[str]:
        """Embed and append *chunks*, sliced to what the backend accepts per call."""

        if not chunks:
            return []

        ids = [uuid.uuid4().hex for _ in chunks]
        documents = [chunk.text for chunk in chunks]
        metadatas = [dict(chunk.metadata) for chunk in chunks]
        added = 0
        try:
            step = self._slice_size()
            for start in range(0, len(chunks), step):
                window = slice(start, start + step)
                self._store.add(
                    self.collection_name,
                    ids=ids[window],
                    embeddings=self.embedding_model.embed_texts(documents[window]),
                    documents=documents[window],
                    metadatas=metadatas[window],
                )
                added += len(ids[window])
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            LOGGER.error("Upload stopped after %d of %d chunks", added, len(chunks))
            raise VectorStoreUnavailableError("Failed to add chunks to vector store", cause=exc) from exc

        LOGGER.info("Added %d chunks to collection %s", len(ids), self.collection_name)
        return ids

    def _slice_size(self) -> int:
        limit = getattr(self._store, "max_batch_size", None)
        if isinstance(limit, int) and 0 < limit < self.batch_size:
            return limit
        return self.batch_size

    def search(self, query_text: str, k: int = 4) -> List[ChunkSearchResult]:
        """Return up to *k* chunks ordered from most to least similar."""

        if not query_text.strip() or k <= 0:
            return []

        try:
            query_embeddings = self.embedding_model.embed_texts([query_text])
            if not query_embeddings:
                return []
            neighbours = self._store.query(self.collection_name, query_embedding=query_embeddings[0], k=k)
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError("Vector store query failed", cause=exc) from exc

        results: List[ChunkSearchResult] = []
        for neighbour in neighbours:
            if isinstance(neighbour, MockQueryResult):
                chunk_id, document, metadata, distance = (
                    neighbour.id,
                    neighbour.document,
                    neighbour.metadata,
                    neighbour.distance,
                )
            else:
                chunk_id = str(neighbour.get("id", ""))
                document = str(neighbour.get("document", ""))
                metadata = neighbour.get("metadata", {})
                distance = float(neighbour.get("distance", 0.0))
            results.append(
                ChunkSearchResult(
                    id=chunk_id,
                    chunk=Chunk(text=document, metadata=dict(metadata)),
                    score=1.0 - float(distance),
                )
            )
        return results


_STORES: Dict[Tuple[object, ...], ChunkVectorStore] = {}


def build_vector_store(settings: Settings, embedding_model: Optional[EmbeddingModel] = None) -> ChunkVectorStore:
    """Create a store for *settings* without caching it."""

    embedding_model = embedding_model or get_embedding_model(settings)
    if settings.vector_store == "mock":
        backend: StoreBackend = MockVectorStore()
    elif settings.vector_store == "chroma":
        from .chroma_store import ChromaStore

        backend = ChromaStore(settings.chroma_persist_dir, host=settings.chroma_host, port=settings.chroma_port)
    else:
        raise ConfigurationError(f"Unsupported VECTOR_STORE backend: {settings.vector_store!r}")

    LOGGER.info("Opening %s vector store collection %s", settings.vector_store, settings.collection_name)
    return ChunkVectorStore(
        backend,
        embedding_model,
        collection_name=settings.collection_name,
        distance_metric=settings.distance_metric,
    )


def get_vector_store(settings: Settings) -> ChunkVectorStore:
    """Return the process-wide vector store for *settings*."""

    key = (
        settings.vector_store,
        str(settings.chroma_persist_dir),
        settings.chroma_host,
        settings.chroma_port,
        settings.collection_name,
        settings.embedding_backend,
        settings.embedding_model,
    )
    store = _STORES.get(key)
    if store is None:
        store = _STORES[key] = build_vector_store(settings)
    return store


def reset_vector_store_cache() -> None:
    """Clear the cached vector stores (primarily for testing)."""

    _STORES.clear()


__all__ = [
    "ChunkSearchResult",
    "ChunkVectorStore",
    "MockQueryResult",
    "MockVectorStore",
    "VectorStoreUnavailableError",
    "build_vector_store",
    "get_vector_store",
    "reset_vector_store_cache",
]
