"""Utilities for constructing answer prompts."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Sequence

from msgrag.errors import ConfigurationError
from msgrag.ingest.models import Chunk

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "prompts" / "answer.txt"
_PLACEHOLDERS = ("{context}", "{question}")
_PLACEHOLDER_RE = re.compile(r"\{(context|question)\}")


def load_template(path: Optional[Path] = None) -> str:
    """Read a prompt template and check that it has both placeholders."""

    path = path or DEFAULT_TEMPLATE_PATH
    template = path.read_text(encoding="utf-8").strip()
    missing = [placeholder for placeholder in _PLACEHOLDERS if placeholder not in template]
    if missing:
        raise ConfigurationError(f"Prompt template {path} is missing {', '.join(missing)}")
    return template


def join_context(chunks: Sequence[Chunk]) -> str:
    """Concatenate chunk texts in rank order, one per line."""

    return "\n".join(chunk.text for chunk in chunks if chunk.text)


def build_prompt(template: str, question: str, chunks: Sequence[Chunk]) -> str:
    """Fill *template* with the retrieved context and the question."""

    if question is None:
        raise ValueError("question must not be None")
    values = {"context": join_context(chunks), "question": question.strip()}
    # Single pass: other braces stay literal and filled values are not rescanned.
    return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template)


__all__ = ["DEFAULT_TEMPLATE_PATH", "build_prompt", "join_context", "load_template"]
