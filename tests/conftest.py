"""Shared fixtures: offline embeddings, in-memory index and a recording LLM."""
from __future__ import annotations

from typing import List

import pytest

from msgrag.config import Settings
from msgrag.embeddings import EmbeddingModel, reset_embedding_model_cache
from msgrag.llm_provider import LLM, reset_llm_cache
from msgrag.vectorstore import ChunkVectorStore, MockVectorStore, reset_vector_store_cache

_CONFIG_ENV_VARS = (
    "MSGRAG_PROFILE",
    "DOCS_DIR",
    "CHUNKS_DIR",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "RAW_PAGES",
    "VECTOR_STORE",
    "CHROMA_PERSIST_DIR",
    "CHROMA_HOST",
    "CHROMA_PORT",
    "COLLECTION_NAME",
    "CHROMA_DISTANCE_METRIC",
    "EMBEDDING_BACKEND",
    "EMBEDDING_MODEL",
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "OPENAI_API_KEY",
    "RETRIEVER_TOP_K",
    "RETRIEVER_MIN_SCORE",
    "PROMPT_TEMPLATE_PATH",
    "LOG_LEVEL",
    "LOG_DIR",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_embedding_model_cache()
    reset_vector_store_cache()
    reset_llm_cache()
    yield
    reset_embedding_model_cache()
    reset_vector_store_cache()
    reset_llm_cache()


@pytest.fixture
def offline_settings(tmp_path) -> Settings:
    return Settings(
        docs_dir=tmp_path / "docs",
        chunks_dir=tmp_path / "chunks",
        vector_store="mock",
        embedding_backend="hash",
        llm_provider="mock",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def hash_embeddings() -> EmbeddingModel:
    return EmbeddingModel("hash", dimension=16)


@pytest.fixture
def memory_store(hash_embeddings: EmbeddingModel) -> ChunkVectorStore:
    return ChunkVectorStore(MockVectorStore(), hash_embeddings, collection_name="test")


class RecordingLLM(LLM):
    """LLM double that remembers every prompt it receives."""

    def __init__(self, answer: str = "Message 001 is a registration request.") -> None:
        self.answer = answer
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer

    @property
    def model_name(self) -> str:
        return "recording"


@pytest.fixture
def recording_llm() -> RecordingLLM:
    return RecordingLLM()
