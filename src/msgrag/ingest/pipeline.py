"""High level ingestion pipeline entry point."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from msgrag.logging_config import AUDIT_LOGGER_NAME
from msgrag.telemetry import emit_exception, emit_ingest_event

from . import patterns
from .chunking import ChunkingConfig, ChunkSplitter
from .extractors import PageContent, PDFExtractor, join_pages
from .models import Chunk, Record
from .sink import RecordSink

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class PageExtractor(Protocol):
    def extract(self, path: str | Path) -> List[PageContent]:
        ...


@dataclass(slots=True)
class IngestPipelineConfig:
    chunk_chars: int = 1000
    overlap_chars: int = 100
    raw_pages: bool = False


@dataclass(slots=True)
class FileIngestResult:
    source_file: str
    output_path: Path
    pattern: str
    record_count: int
    chunk_count: int


@dataclass(slots=True)
class FileIngestFailure:
    source_file: str
    error: str


@dataclass(slots=True)
class IngestReport:
    results: List[FileIngestResult] = field(default_factory=list)
    failures: List[FileIngestFailure] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return sum(result.chunk_count for result in self.results)


def discover_pdfs(directory: str | Path) -> List[Path]:
    """Return the PDF files of *directory* sorted by name."""

    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.iterdir() if path.is_file() and path.suffix.lower() == ".pdf")


class IngestPipeline:
    """Turn PDFs into tagged, chunked JSONL files, one file at a time."""

    def __init__(
        self,
        config: Optional[IngestPipelineConfig] = None,
        *,
        extractor: Optional[PageExtractor] = None,
        sink: Optional[RecordSink] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.extractor = extractor or PDFExtractor()
        self.splitter = ChunkSplitter(
            ChunkingConfig(chunk_chars=self.config.chunk_chars, overlap_chars=self.config.overlap_chars)
        )
        self.sink = sink or RecordSink()

    def run(self, pdf_paths: Sequence[str | Path], output_dir: str | Path) -> IngestReport:
        report = IngestReport()
        for pdf_path in pdf_paths:
            path = Path(pdf_path)
            try:
                report.results.append(self.ingest_file(path, output_dir))
            except Exception as error:
                LOGGER.exception("Ingestion failed for %s", path.name)
                emit_exception(module=f"{__name__}.file", error=error, suggestion="re-run ingestion for this file")
                report.failures.append(FileIngestFailure(source_file=path.name, error=str(error)))
        LOGGER.info(
            "Ingested %d files (%d failed), %d chunks written",
            len(report.results),
            len(report.failures),
            report.chunk_count,
        )
        return report

    def ingest_file(self, pdf_path: str | Path, output_dir: str | Path) -> FileIngestResult:
        path = Path(pdf_path)
        started = time.perf_counter()
        emit_ingest_event("ingest.file.start", file_name=path.name)

        pages = self.extractor.extract(path)
        if self.config.raw_pages:
            pattern = "raw_pages"
            records = self._page_records(pages, path.name)
        else:
            family, records = patterns.tag(join_pages(pages), path.name)
            pattern = family.value

        output_path = Path(output_dir) / f"{path.stem}.jsonl"
        chunk_count = self.sink.write(self.chunk_records(records), output_path)

        emit_ingest_event(
            "ingest.file.complete",
            file_name=path.name,
            pattern=pattern,
            pages=len(pages),
            records=len(records),
            chunks=chunk_count,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "file_name": path.name,
                "pattern": pattern,
                "chunk_count": chunk_count,
                "output": str(output_path),
            }
        )
        return FileIngestResult(
            source_file=path.name,
            output_path=output_path,
            pattern=pattern,
            record_count=len(records),
            chunk_count=chunk_count,
        )

    def chunk_records(self, records: Iterable[Record]) -> Iterable[Chunk]:
        for record in records:
            yield from self.splitter.split(record)

    @staticmethod
    def _page_records(pages: Iterable[PageContent], source_file: str) -> List[Record]:
        return [
            Record(
                content=page.text.strip(),
                metadata={"source_file": source_file, "page": str(page.page_number)},
            )
            for page in pages
            if page.text.strip()
        ]


__all__ = [
    "FileIngestFailure",
    "FileIngestResult",
    "IngestPipeline",
    "IngestPipelineConfig",
    "IngestReport",
    "discover_pdfs",
]
