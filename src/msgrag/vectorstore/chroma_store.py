"""ChromaDB backend: a local persistent directory or a remote HTTP server."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from .errors import VectorStoreUnavailableError


class ChromaStore:
    """Expose Chroma collections through the backend calls ChunkVectorStore makes."""

    def __init__(
        self,
        persist_dir: str | Path | None = None,
        *,
        host: Optional[str] = None,
        port: int = 8000,
        client: Optional[ClientAPI] = None,
    ) -> None:
        try:
            if client is not None:
                self._client = client
            elif host is not None:
                self._client = chromadb.HttpClient(host=host, port=port)
            else:
                path = Path(persist_dir or "chroma_db")
                path.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(path))
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise VectorStoreUnavailableError("Failed to initialise Chroma client", cause=exc) from exc
        self._collections: Dict[str, Collection] = {}
        self._max_batch_size: Optional[int] = None

    @property
    def max_batch_size(self) -> int:
        """Largest number of rows Chroma accepts in one ``add`` call."""

        if self._max_batch_size is None:
            self._max_batch_size = self._client.get_max_batch_size()
        return self._max_batch_size

    def create_collection(self, name: str, *, metadata: Optional[Dict[str, Any]] = None) -> Collection:
        """Open *name*, creating it with *metadata* on first use."""

        collection = self._collections.get(name)
        if collection is None:
            collection = self._client.get_or_create_collection(name=name, metadata=metadata)
            self._collections[name] = collection
        return collection

    def count(self, name: str) -> int:
        return self.create_collection(name).count()

    def add(
        self,
        name: str,
        *,
        ids: Iterable[str],
        embeddings: Iterable[Sequence[float]],
        documents: Iterable[str],
        metadatas: Iterable[Dict[str, Any] | None] | None = None,
    ) -> None:
        """Append rows; ids must be new, Chroma does not merge them."""

        id_list = list(ids)
        metadata_list = list(metadatas) if metadatas is not None else [None] * len(id_list)
        # Chroma rejects empty metadata dicts.
        self.create_collection(name).add(
            ids=id_list,
            embeddings=[list(map(float, vector)) for vector in embeddings],
            documents=list(documents),
            metadatas=[metadata or None for metadata in metadata_list],
        )

    def query(self, name: str, query_embedding: Sequence[float], k: int = 5) -> List[Dict[str, Any]]:
        """Return up to *k* neighbours as plain dicts, nearest first."""

        if k <= 0:
            return []

        collection = self.create_collection(name)
        available = collection.count()
        if available == 0:
            return []
        result = collection.query(
            query_embeddings=[list(map(float, query_embedding))],
            n_results=min(k, available),
            include=["documents", "metadatas", "distances"],
        )

        ids, documents, metadatas, distances = (
            _first_row(result, key) for key in ("ids", "documents", "metadatas", "distances")
        )

        return [
            {
                "id": idx,
                "document": doc or "",
                "metadata": metadata or {},
                "distance": float(distance) if distance is not None else 0.0,
            }
            for idx, doc, metadata, distance in zip(ids, documents, metadatas, distances)
        ]


def _first_row(result: Any, key: str) -> List[Any]:
    """Chroma returns one row per query embedding; only one is ever sent."""

    rows = result.get(key) or [[]]
    return list(rows[0] or [])


__all__ = ["ChromaStore"]
