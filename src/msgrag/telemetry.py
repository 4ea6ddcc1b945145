"""Structured lifecycle events for ingestion, upload and question answering.

Every event is a dict handed to the logger as the message, so the JSON
formatter merges it into the top level of the log line. The ``step`` key
names the event (``ingest.file.complete``, ``retriever.search`` ...).
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

LOGGER = logging.getLogger("msgrag.telemetry")

PREVIEW_CHARS = 120


def _describe(error: BaseException) -> str:
    return "".join(traceback.format_exception_only(type(error), error)).strip()


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS]


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: Dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log one event dict at *level* on *logger* (the telemetry logger by default)."""

    target = logger or LOGGER
    optional = {
        "req_id": req_id or None,
        "duration_ms": round(duration_ms, 3) if duration_ms is not None else None,
        "details": details,
    }
    event: Dict[str, Any] = {"step": step, "module": target.name}
    event.update((key, value) for key, value in optional.items() if value is not None)
    event.update(payload)

    exc_info = None
    if isinstance(exc, BaseException):
        event["exc"] = _describe(exc)
        exc_info = (type(exc), exc, exc.__traceback__)
    elif exc is not None:
        event["exc"] = str(exc)

    getattr(target, level.lower(), target.info)(event, exc_info=exc_info)


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Time a block and log ``<step>.complete`` or ``<step>.error``.

    The yielded dict is merged into the closing event's details, so the block
    can report results (counts, names) it only knows at the end.
    """

    started = time.perf_counter()
    details: Dict[str, Any] = dict(fields)
    try:
        yield details
    except Exception as error:
        log_event(
            logger,
            f"{step}.error",
            level="error",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            details=details,
            exc=error,
        )
        raise
    log_event(logger, f"{step}.complete", duration_ms=(time.perf_counter() - started) * 1000.0, details=details)


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    pattern: str | None = None,
    pages: int | None = None,
    records: int | None = None,
    chunks: int | None = None,
    duration_ms: float | None = None,
) -> None:
    details = {"file": file_name, "pattern": pattern, "pages": pages, "records": records, "chunks": chunks}
    log_event(LOGGER, step, duration_ms=duration_ms, details=details)


def emit_retriever_event(
    *,
    req_id: str,
    query: str,
    top_k: int,
    results: Sequence[Dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {"query_preview": _preview(query), "top_k": top_k, "results": list(results)}
    log_event(LOGGER, "retriever.search", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_prompt_event(*, req_id: str, context_chunks: int, prompt_chars: int) -> None:
    details = {"context_chunks": context_chunks, "prompt_chars": prompt_chars}
    log_event(LOGGER, "prompt.compose", level="debug", req_id=req_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    context_chunks: int,
    fallback: bool,
) -> None:
    details = {
        "model_used": model_used,
        "answer_preview": _preview(answer_preview),
        "context_chunks": context_chunks,
        "fallback": fallback,
    }
    log_event(LOGGER, "inference.result", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module, "suggestion": suggestion} if suggestion else {"module": module}
    log_event(LOGGER, "exception", level="error", req_id=req_id, details=details, exc=error)
