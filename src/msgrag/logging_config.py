"""Logging setup shared by the CLI and the HTTP service."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

AUDIT_LOGGER_NAME = "msgrag.ingest.audit"
AUDIT_FILE_NAME = "ingest_audit.log"
QUIET_LOGGERS = ("httpx", "chromadb", "sentence_transformers", "pdfminer")

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Dict messages (the telemetry events) are merged into the top level;
    anything else becomes ``message``. Values passed through ``extra`` are
    copied as-is.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: Dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "module": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            text = record.getMessage()
            if text:
                payload["message"] = text

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(level: str, log_dir: Path, quiet: Iterable[str] = QUIET_LOGGERS) -> Dict[str, Any]:
    """Return the ``dictConfig`` mapping for console plus audit-file logging."""

    loggers: Dict[str, Any] = {name: {"level": "WARNING"} for name in quiet}
    loggers[AUDIT_LOGGER_NAME] = {"level": "INFO", "handlers": ["ingest_audit"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": MinimalJSONFormatter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stderr",
            },
            "ingest_audit": {
                "class": "logging.FileHandler",
                "filename": str(log_dir / AUDIT_FILE_NAME),
                "mode": "a",
                "encoding": "utf-8",
                "formatter": "json",
            },
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(level: str = "INFO", log_dir: str | Path = "logs") -> None:
    """Install JSON console logging and the ingestion audit file."""

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(level, log_dir))
