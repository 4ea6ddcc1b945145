"""Extraction, chunking and persistence of market message guides."""
from __future__ import annotations

from .chunking import ChunkingConfig, ChunkSplitter
from .loader import IndexLoader, MalformedRecordError, discover
from .models import Chunk, Record
from .patterns import Classification, PatternFamily, classify, extract
from .sink import RecordSink, RecordSinkError

__all__ = [
    "Chunk",
    "ChunkSplitter",
    "ChunkingConfig",
    "Classification",
    "IndexLoader",
    "MalformedRecordError",
    "PatternFamily",
    "Record",
    "RecordSink",
    "RecordSinkError",
    "classify",
    "discover",
    "extract",
]
