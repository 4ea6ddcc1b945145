"""Runtime configuration loaded from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from msgrag.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

VECTOR_STORE_BACKENDS = ("mock", "chroma")
EMBEDDING_BACKENDS = ("sentence-transformers", "openai", "hash")
LLM_PROVIDERS = ("openai", "transformers", "mock")
DISTANCE_METRICS = ("cosine", "l2", "ip")


@dataclass(frozen=True, slots=True)
class Profile:
    """Chunking and index parameters of one pipeline variant."""

    name: str
    chunk_size: int
    chunk_overlap: int
    collection_name: str
    raw_pages: bool


PROFILES: Dict[str, Profile] = {
    # Pattern-tagged records from the market message guides.
    "tagged": Profile("tagged", chunk_size=1000, chunk_overlap=100, collection_name="documents", raw_pages=False),
    # Plain page text, smaller chunks.
    "raw": Profile("raw", chunk_size=500, chunk_overlap=100, collection_name="documents", raw_pages=True),
    "tutorial": Profile("tutorial", chunk_size=1000, chunk_overlap=200, collection_name="tutorial", raw_pages=True),
}
DEFAULT_PROFILE = "tagged"


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    """Resolved settings for one process."""

    profile: str = DEFAULT_PROFILE
    docs_dir: Path = Path("docs")
    chunks_dir: Path = Path("mnt/data")
    chunk_size: int = 1000
    chunk_overlap: int = 100
    raw_pages: bool = False

    vector_store: str = "mock"
    chroma_persist_dir: Path = Path("chroma_db")
    chroma_host: Optional[str] = None
    chroma_port: int = 8000
    collection_name: str = "documents"
    distance_metric: str = "cosine"

    embedding_backend: str = "sentence-transformers"
    # None selects the backend default model.
    embedding_model: Optional[str] = None

    llm_provider: str = "openai"
    llm_model: Optional[str] = None
    llm_temperature: float = 0.0
    llm_max_tokens: int = 512
    openai_api_key: Optional[str] = field(default=None, repr=False)

    top_k: int = 4
    min_score: Optional[float] = None
    prompt_template_path: Optional[Path] = None

    log_level: str = "INFO"
    log_dir: Path = Path("logs")

    @classmethod
    def for_profile(cls, name: str) -> "Settings":
        try:
            profile = PROFILES[name]
        except KeyError as exc:
            raise ConfigurationError(
                f"Unknown profile {name!r}; expected one of {', '.join(sorted(PROFILES))}"
            ) from exc
        return cls(
            profile=profile.name,
            chunk_size=profile.chunk_size,
            chunk_overlap=profile.chunk_overlap,
            collection_name=profile.collection_name,
            raw_pages=profile.raw_pages,
        )

    def with_overrides(self, **changes: object) -> "Settings":
        return replace(self, **changes)

    def validate(self) -> "Settings":
        """Raise :class:`ConfigurationError` when the settings cannot work."""

        if self.chunk_size <= 0:
            raise ConfigurationError("CHUNK_SIZE must be a positive integer")
        if self.chunk_overlap < 0:
            raise ConfigurationError("CHUNK_OVERLAP must be a non-negative integer")
        if self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                f"CHUNK_OVERLAP ({self.chunk_overlap}) must be smaller than CHUNK_SIZE ({self.chunk_size})"
            )
        if self.top_k <= 0:
            raise ConfigurationError("RETRIEVER_TOP_K must be a positive integer")
        if self.vector_store not in VECTOR_STORE_BACKENDS:
            raise ConfigurationError(f"Unsupported VECTOR_STORE backend: {self.vector_store!r}")
        if self.embedding_backend not in EMBEDDING_BACKENDS:
            raise ConfigurationError(f"Unsupported EMBEDDING_BACKEND: {self.embedding_backend!r}")
        if self.llm_provider not in LLM_PROVIDERS:
            raise ConfigurationError(f"Unsupported LLM_PROVIDER: {self.llm_provider!r}")
        if self.distance_metric not in DISTANCE_METRICS:
            raise ConfigurationError(f"Unsupported CHROMA_DISTANCE_METRIC: {self.distance_metric!r}")
        uses_openai = self.llm_provider == "openai" or self.embedding_backend == "openai"
        if uses_openai and not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the OpenAI backends")
        if self.llm_provider == "transformers" and not self.llm_model:
            raise ConfigurationError("LLM_MODEL must name a local model for the transformers provider")
        if self.vector_store == "chroma" and self.chroma_host is not None and not 0 < self.chroma_port < 65536:
            raise ConfigurationError(f"CHROMA_PORT is out of range: {self.chroma_port}")
        if self.prompt_template_path is not None and not self.prompt_template_path.is_file():
            raise ConfigurationError(f"PROMPT_TEMPLATE_PATH does not exist: {self.prompt_template_path}")
        return self


def load_settings(profile: Optional[str] = None, *, env_file: str | Path | None = None) -> Settings:
    """Build settings from the selected profile, ``.env`` and the environment."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file)
    else:
        load_dotenv()

    base = Settings.for_profile(profile or _env_str("MSGRAG_PROFILE", DEFAULT_PROFILE) or DEFAULT_PROFILE)

    template = _env_str("PROMPT_TEMPLATE_PATH")
    min_score = _env_float("RETRIEVER_MIN_SCORE", None)
    return base.with_overrides(
        docs_dir=Path(_env_str("DOCS_DIR", str(base.docs_dir))),
        chunks_dir=Path(_env_str("CHUNKS_DIR", str(base.chunks_dir))),
        chunk_size=_env_int("CHUNK_SIZE", base.chunk_size),
        chunk_overlap=_env_int("CHUNK_OVERLAP", base.chunk_overlap),
        raw_pages=_env_flag("RAW_PAGES", base.raw_pages),
        vector_store=(_env_str("VECTOR_STORE", base.vector_store) or base.vector_store).lower(),
        chroma_persist_dir=Path(_env_str("CHROMA_PERSIST_DIR", str(base.chroma_persist_dir))),
        chroma_host=_env_str("CHROMA_HOST"),
        chroma_port=_env_int("CHROMA_PORT", base.chroma_port),
        collection_name=_env_str("COLLECTION_NAME", base.collection_name),
        distance_metric=_env_str("CHROMA_DISTANCE_METRIC", base.distance_metric),
        embedding_backend=(_env_str("EMBEDDING_BACKEND", base.embedding_backend) or "").lower(),
        embedding_model=_env_str("EMBEDDING_MODEL", base.embedding_model),
        llm_provider=(_env_str("LLM_PROVIDER", base.llm_provider) or "").lower(),
        llm_model=_env_str("LLM_MODEL", base.llm_model),
        llm_temperature=_env_float("LLM_TEMPERATURE", base.llm_temperature),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", base.llm_max_tokens),
        openai_api_key=_env_str("OPENAI_API_KEY"),
        top_k=_env_int("RETRIEVER_TOP_K", base.top_k),
        min_score=min_score,
        prompt_template_path=Path(template) if template else None,
        log_level=(_env_str("LOG_LEVEL", base.log_level) or "INFO").upper(),
        log_dir=Path(_env_str("LOG_DIR", str(base.log_dir))),
    )


__all__ = ["PROFILES", "Profile", "Settings", "load_settings"]
