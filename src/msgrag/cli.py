"""Command line entry points: split PDFs, upload chunks, answer questions."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, TextIO

from msgrag.config import PROFILES, Settings, load_settings
from msgrag.errors import ConfigurationError, MsgragError
from msgrag.logging_config import configure_logging
from msgrag.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)

PROMPT = "Ask a question (or type 'exit'): "
EXIT_COMMAND = "exit"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="msgrag", description=__doc__)
    parser.add_argument("--profile", choices=sorted(PROFILES), help="pipeline variant to use")
    parser.add_argument("--env-file", type=Path, help="dotenv file to load before reading the environment")
    subparsers = parser.add_subparsers(dest="command", required=True)

    split = subparsers.add_parser("split", help="extract, tag and chunk PDFs into JSONL files")
    split.add_argument("--docs-dir", type=Path, help="directory holding the source PDFs")
    split.add_argument("--out-dir", type=Path, help="directory receiving the JSONL files")
    split.add_argument("--raw-pages", action="store_true", default=None, help="chunk page text without patterns")

    run = subparsers.add_parser("run", help="answer questions, or upload chunks with --upload")
    run.add_argument("--upload", action="store_true", help="upload JSONL chunks into the index and exit")
    run.add_argument("--chunks-dir", type=Path, help="directory holding the JSONL files to upload")

    api = subparsers.add_parser("api", help="serve the HTTP query API")
    api.add_argument("--host", default="127.0.0.1")
    api.add_argument("--port", type=int, default=8000)
    return parser


def _resolve_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.profile, env_file=args.env_file)
    overrides = {}
    if getattr(args, "docs_dir", None) is not None:
        overrides["docs_dir"] = args.docs_dir
    if getattr(args, "out_dir", None) is not None:
        overrides["chunks_dir"] = args.out_dir
    if getattr(args, "chunks_dir", None) is not None:
        overrides["chunks_dir"] = args.chunks_dir
    if getattr(args, "raw_pages", None):
        overrides["raw_pages"] = True
    if overrides:
        settings = settings.with_overrides(**overrides)
    return settings


def split_documents(settings: Settings) -> int:
    from msgrag.ingest.pipeline import IngestPipeline, IngestPipelineConfig, discover_pdfs

    pdfs = discover_pdfs(settings.docs_dir)
    if not pdfs:
        LOGGER.warning("No PDF files found in %s", settings.docs_dir)
        return 0

    pipeline = IngestPipeline(
        IngestPipelineConfig(
            chunk_chars=settings.chunk_size,
            overlap_chars=settings.chunk_overlap,
            raw_pages=settings.raw_pages,
        )
    )
    report = pipeline.run(pdfs, settings.chunks_dir)
    for result in report.results:
        print(f"{result.source_file}: {result.chunk_count} chunks ({result.pattern}) -> {result.output_path}")
    for failure in report.failures:
        print(f"{failure.source_file}: FAILED ({failure.error})", file=sys.stderr)
    return 1 if report.failures else 0


def upload_chunks(settings: Settings) -> int:
    from msgrag.ingest.loader import IndexLoader, discover
    from msgrag.vectorstore import get_vector_store

    files = discover(settings.chunks_dir)
    if not files:
        LOGGER.warning("No JSONL files found in %s", settings.chunks_dir)
        return 0

    count = IndexLoader(get_vector_store(settings)).upload(files)
    print(f"Uploaded {count} chunks from {len(files)} files to '{settings.collection_name}'.")
    return 0


async def run_repl(
    answer: Callable[[str], Awaitable[str]],
    *,
    read_line: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
) -> None:
    """Read questions until ``exit`` or end of input, printing one answer each."""

    while True:
        try:
            line = await asyncio.to_thread(read_line, PROMPT)
        except EOFError:
            break
        question = line.strip()
        if question.lower() == EXIT_COMMAND:
            break
        if not question:
            continue
        try:
            result = await answer(question)
        except Exception as error:
            LOGGER.exception("Failed to answer question")
            emit_exception(module=f"{__name__}.repl", error=error)
            print(f"Failed to answer question: {error}", file=out)
            continue
        print(result, file=out)


def serve_questions(settings: Settings) -> int:
    from msgrag.rag import build_pipeline

    pipeline = build_pipeline(settings)
    print("Ready!")
    asyncio.run(run_repl(pipeline.answer))
    return 0


def serve_api(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    from msgrag.main import create_app

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = _resolve_settings(args).validate()
    except ConfigurationError as error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_dir)

    try:
        if args.command == "split":
            return split_documents(settings)
        if args.command == "run":
            return upload_chunks(settings) if args.upload else serve_questions(settings)
        if args.command == "api":
            return serve_api(settings, args.host, args.port)
    except ConfigurationError as error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 2
    except MsgragError as error:
        LOGGER.exception("Command %s failed", args.command)
        print(f"Error: {error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
