"""Persist chunks as newline-delimited JSON."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from msgrag.errors import MsgragError

from .models import Chunk

LOGGER = logging.getLogger(__name__)


class RecordSinkError(MsgragError):
    """Raised when writing a JSONL file fails part way through.

    The destination is left as written so far; re-run ingestion for the
    source file to repair it.
    """

    def __init__(self, destination: Path, written: int, cause: BaseException) -> None:
        super().__init__(f"Failed to write {destination} after {written} records: {cause}")
        self.destination = destination
        self.written = written


class RecordSink:
    """Write one JSON object per chunk, truncating the destination first."""

    def write(self, chunks: Iterable[Chunk], destination: str | Path) -> int:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        try:
            with destination.open("w", encoding="utf-8") as handle:
                for chunk in chunks:
                    handle.write(json.dumps(chunk.to_dict(), ensure_ascii=False))
                    handle.write("\n")
                    written += 1
        except (OSError, TypeError, ValueError) as error:
            LOGGER.error("Partial write to %s: %d records written before failure", destination, written)
            raise RecordSinkError(destination, written, error) from error

        LOGGER.debug("Wrote %d records to %s", written, destination)
        return written


__all__ = ["RecordSink", "RecordSinkError"]
