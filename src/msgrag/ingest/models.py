"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

MetadataValue = Union[str, int]

UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Record:
    """A labeled span of text extracted from one source file."""

    content: str
    metadata: Mapping[str, str] = field(default_factory=dict)

    @property
    def source_file(self) -> str:
        return self.metadata.get("source_file", UNKNOWN)


@dataclass(slots=True)
class Chunk:
    """A bounded slice of a record, ready for embedding."""

    text: str
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)

    @property
    def split_id(self) -> int:
        return int(self.metadata.get("split_id", 0))

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "metadata": dict(self.metadata)}
