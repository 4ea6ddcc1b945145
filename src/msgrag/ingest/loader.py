"""Load persisted chunks and push them into the vector index."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Union

from pydantic import BaseModel, ValidationError

from msgrag.errors import MsgragError
from msgrag.telemetry import traced_duration

from .models import Chunk

LOGGER = logging.getLogger(__name__)


class MalformedRecordError(MsgragError):
    """Raised when a JSONL line cannot be parsed into a chunk."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        super().__init__(f"{path}:{line_number}: malformed record ({reason})")
        self.path = path
        self.line_number = line_number


class ChunkRecord(BaseModel):
    """Shape of one persisted line."""

    text: str
    metadata: Dict[str, Union[int, float, bool, str, None]]


class ChunkSink(Protocol):
    def upsert_batch(self, chunks: Sequence[Chunk]) -> List[str]:
        ...


def discover(directory: str | Path) -> List[Path]:
    """Return the ``*.jsonl`` files of *directory* sorted by name."""

    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob("*.jsonl") if path.is_file())


class IndexLoader:
    """Read JSONL chunk files back and upload them in one batch."""

    def __init__(self, vector_store: ChunkSink | None = None) -> None:
        self.vector_store = vector_store

    def load(self, source_files: Sequence[str | Path]) -> List[Chunk]:
        chunks: List[Chunk] = []
        for source in source_files:
            path = Path(source)
            loaded = self._load_file(path)
            LOGGER.info("Loaded %d chunks from %s", len(loaded), path.name)
            chunks.extend(loaded)
        return chunks

    def upload(self, source_files: Sequence[str | Path]) -> int:
        if self.vector_store is None:
            raise RuntimeError("IndexLoader needs a vector store to upload into")

        with traced_duration("index.upload", files=[Path(source).name for source in source_files]) as details:
            chunks = self.load(source_files)
            if chunks:
                self.vector_store.upsert_batch(chunks)
            details["count"] = len(chunks)
        return len(chunks)

    @staticmethod
    def _load_file(path: Path) -> List[Chunk]:
        chunks: List[Chunk] = []
        with path.open("rb") as handle:
            for line_number, raw in enumerate(handle, start=1):
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError as error:
                    raise MalformedRecordError(path, line_number, "invalid UTF-8") from error
                if not line.strip():
                    continue
                try:
                    record = ChunkRecord.model_validate_json(line)
                except ValidationError as error:
                    reason = error.errors()[0].get("msg", "invalid record") if error.errors() else str(error)
                    raise MalformedRecordError(path, line_number, reason) from error
                chunks.append(Chunk(text=record.text, metadata=dict(record.metadata)))
        return chunks


__all__ = ["ChunkRecord", "IndexLoader", "MalformedRecordError", "discover"]
