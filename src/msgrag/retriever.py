"""Utilities for retrieving relevant context from the vector store."""
from __future__ import annotations

import asyncio
from typing import List, Protocol

from msgrag.vectorstore import ChunkSearchResult


class SearchableStore(Protocol):
    """Protocol describing the vector store contract used by the retriever."""

    def search(self, query_text: str, k: int = 4) -> List[ChunkSearchResult]:
        """Execute a similarity search against the vector store."""


class Retriever:
    """Fetch the best matching chunks for a question."""

    def __init__(self, vectorstore: SearchableStore, *, min_score: float | None = None) -> None:
        self._vectorstore = vectorstore
        self.min_score = min_score

    async def retrieve(self, question: str, top_k: int = 4) -> List[ChunkSearchResult]:
        """Return up to *top_k* matches, best first, above the relevance floor."""

        if top_k <= 0:
            return []

        results = await asyncio.to_thread(self._vectorstore.search, question, top_k)
        if self.min_score is not None:
            results = [result for result in results if result.score >= self.min_score]
        return list(results)[:top_k]
