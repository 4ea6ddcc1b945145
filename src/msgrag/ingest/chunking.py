"""Chunking utilities for breaking records into embedding-friendly units."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Sequence

from msgrag.errors import ConfigurationError

from .models import Chunk, Record

LOGGER = logging.getLogger(__name__)

# Largest boundary first; "" means raw characters.
DEFAULT_SEPARATORS: Sequence[str] = ("\n\n", "\n", ". ", "? ", "! ", " ", "")


@dataclass(slots=True)
class ChunkingConfig:
    chunk_chars: int = 1000
    overlap_chars: int = 100

    def __post_init__(self) -> None:
        if self.chunk_chars <= 0:
            raise ConfigurationError("chunk_chars must be a positive integer")
        if self.overlap_chars < 0:
            raise ConfigurationError("overlap_chars must be a non-negative integer")
        if self.overlap_chars >= self.chunk_chars:
            raise ConfigurationError(
                f"overlap_chars ({self.overlap_chars}) must be smaller than chunk_chars ({self.chunk_chars})"
            )


class ChunkSplitter:
    """Split record text at the largest semantic boundary that fits.

    Text is cut on paragraphs, then lines, then sentence punctuation, then
    words and finally single characters. Neighbouring pieces are merged back
    together up to ``chunk_chars`` and every new chunk starts with up to
    ``overlap_chars`` of trailing context from the previous one.
    """

    def __init__(self, config: ChunkingConfig, separators: Sequence[str] = DEFAULT_SEPARATORS) -> None:
        self.config = config
        self.separators = tuple(separators)

    def split(self, record: Record) -> Iterator[Chunk]:
        """Yield chunks of *record* tagged with sequential ``split_id`` values."""

        for split_id, text in enumerate(self.split_text(record.content)):
            metadata = dict(record.metadata)
            metadata["split_id"] = split_id
            yield Chunk(text=text, metadata=metadata)

    def split_text(self, text: str) -> List[str]:
        if not text or not text.strip():
            return []
        if len(text) <= self.config.chunk_chars:
            return [text.strip()]
        chunks = self._split(text, self.separators)
        LOGGER.debug("Split %d characters into %d chunks", len(text), len(chunks))
        return chunks

    def _split(self, text: str, separators: Sequence[str]) -> List[str]:
        separator = separators[-1]
        remaining: Sequence[str] = ()
        for index, candidate in enumerate(separators):
            if candidate == "":
                separator = ""
                break
            if candidate in text:
                separator = candidate
                remaining = separators[index + 1 :]
                break

        chunks: List[str] = []
        short_pieces: List[str] = []
        for piece in _split_keeping_separator(text, separator):
            if len(piece) < self.config.chunk_chars:
                short_pieces.append(piece)
                continue
            if short_pieces:
                chunks.extend(self._merge(short_pieces))
                short_pieces = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                stripped = piece.strip()
                if stripped:
                    chunks.append(stripped)
        if short_pieces:
            chunks.extend(self._merge(short_pieces))
        return chunks

    def _merge(self, pieces: Sequence[str]) -> List[str]:
        chunk_chars = self.config.chunk_chars
        overlap_chars = self.config.overlap_chars

        merged: List[str] = []
        window: List[str] = []
        total = 0
        for piece in pieces:
            length = len(piece)
            if window and total + length > chunk_chars:
                text = "".join(window).strip()
                if text:
                    merged.append(text)
                # Keep at most overlap_chars of the tail as context for the next chunk.
                while window and (total > overlap_chars or total + length > chunk_chars):
                    total -= len(window.pop(0))
            window.append(piece)
            total += length

        text = "".join(window).strip()
        if text:
            merged.append(text)
        return merged


def _split_keeping_separator(text: str, separator: str) -> List[str]:
    if not separator:
        return list(text)
    pieces = re.split(f"(?<={re.escape(separator)})", text)
    return [piece for piece in pieces if piece]


__all__ = ["ChunkSplitter", "ChunkingConfig", "DEFAULT_SEPARATORS"]
