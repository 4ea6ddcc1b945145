"""In-memory vector store with the same call shape as the Chroma adapter."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

Vector = Sequence[float]


def _check_dimensions(vec_a: Vector, vec_b: Vector) -> None:
    if len(vec_a) != len(vec_b):
        raise ValueError("Vectors must be of the same dimension")


def _cosine_distance(vec_a: Vector, vec_b: Vector) -> float:
    _check_dimensions(vec_a, vec_b)
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm = math.sqrt(sum(a * a for a in vec_a)) * math.sqrt(sum(b * b for b in vec_b))
    if norm == 0.0:
        return 1.0
    return 1.0 - dot / norm


def _squared_l2_distance(vec_a: Vector, vec_b: Vector) -> float:
    _check_dimensions(vec_a, vec_b)
    return sum((a - b) ** 2 for a, b in zip(vec_a, vec_b))


def _inner_product_distance(vec_a: Vector, vec_b: Vector) -> float:
    _check_dimensions(vec_a, vec_b)
    return 1.0 - sum(a * b for a, b in zip(vec_a, vec_b))


# Same names and formulas as Chroma's ``hnsw:space`` setting.
DISTANCES: Dict[str, Callable[[Vector, Vector], float]] = {
    "cosine": _cosine_distance,
    "l2": _squared_l2_distance,
    "ip": _inner_product_distance,
}


@dataclass(frozen=True)
class MockQueryResult:
    """One neighbour returned by :meth:`MockVectorStore.query`."""

    id: str
    document: str
    metadata: dict
    distance: float


@dataclass(slots=True)
class _Entry:
    id: str
    embedding: List[float]
    document: str
    metadata: dict


@dataclass(slots=True)
class _Collection:
    space: str = "cosine"
    entries: List[_Entry] = field(default_factory=list)

    def nearest(self, query_embedding: Vector, k: int) -> List[MockQueryResult]:
        distance = DISTANCES[self.space]
        ranked = sorted(
            ((distance(query_embedding, entry.embedding), entry) for entry in self.entries),
            key=lambda pair: pair[0],
        )
        return [
            MockQueryResult(id=entry.id, document=entry.document, metadata=dict(entry.metadata), distance=score)
            for score, entry in ranked[:k]
        ]


class MockVectorStore:
    """Keep collections in process memory; everything is lost on exit."""

    def __init__(self) -> None:
        self._collections: Dict[str, _Collection] = {}

    def create_collection(self, name: str, *, metadata: Optional[Dict[str, object]] = None) -> None:
        """Create *name* unless it exists; ``hnsw:space`` picks the distance."""

        if name in self._collections:
            return
        space = str((metadata or {}).get("hnsw:space", "cosine"))
        if space not in DISTANCES:
            raise ValueError(f"Unsupported distance metric: {space!r}")
        self._collections[name] = _Collection(space=space)

    def count(self, name: str) -> int:
        collection = self._collections.get(name)
        return len(collection.entries) if collection else 0

    def add(
        self,
        name: str,
        *,
        ids: Iterable[str],
        embeddings: Iterable[Vector],
        documents: Iterable[str],
        metadatas: Iterable[dict | None] | None = None,
    ) -> None:
        collection = self._get(name)
        columns = [list(ids), [list(map(float, vector)) for vector in embeddings], list(documents)]
        columns.append(list(metadatas) if metadatas is not None else [None] * len(columns[0]))
        if len({len(column) for column in columns}) != 1:
            raise ValueError("All inputs must be of the same length")

        collection.entries.extend(
            _Entry(id=entry_id, embedding=vector, document=document, metadata=dict(metadata or {}))
            for entry_id, vector, document, metadata in zip(*columns)
        )

    def query(self, name: str, query_embedding: Vector, k: int = 5) -> List[MockQueryResult]:
        """Return up to *k* entries closest to *query_embedding*, nearest first."""

        if k <= 0:
            return []
        return self._get(name).nearest(query_embedding, k)

    def _get(self, name: str) -> _Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise KeyError(f"Collection '{name}' does not exist") from None


__all__ = ["DISTANCES", "MockQueryResult", "MockVectorStore"]
